"""
Business modules live under this package.

Each module owns its models, service functions and JSON routes, and reuses
the platform primitives (auth, RBAC, tenancy, audit, DB session). Every
tenant-owned table carries ``admin_id``.
"""
