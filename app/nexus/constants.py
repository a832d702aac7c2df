"""
Central constants for the LPG Nexus application.
"""
from __future__ import annotations

# User roles
ROLE_SUPER_ADMIN = "SUPER_ADMIN"
ROLE_ADMIN = "ADMIN"
ROLE_BRANCH_MANAGER = "BRANCH_MANAGER"
ROLE_STAFF = "STAFF"
ROLE_VIEWER = "VIEWER"

ROLES = (ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_BRANCH_MANAGER, ROLE_STAFF, ROLE_VIEWER)
STAFF_ROLES = (ROLE_BRANCH_MANAGER, ROLE_STAFF, ROLE_VIEWER)

# User status
STATUS_ACTIVE = "ACTIVE"
STATUS_PENDING = "PENDING"
STATUS_SUSPENDED = "SUSPENDED"

USER_STATUSES = (STATUS_ACTIVE, STATUS_PENDING, STATUS_SUSPENDED)

# Module access levels, weakest first
NO_ACCESS = "NO_ACCESS"
NOT_SHOW = "NOT_SHOW"
VIEW = "VIEW"
EDIT = "EDIT"
FULL_ACCESS = "FULL_ACCESS"

ACCESS_LEVELS = (NO_ACCESS, NOT_SHOW, VIEW, EDIT, FULL_ACCESS)

# Modules subject to access control, keyed by the page path that hosts them.
ROUTE_MODULE_MAP = {
    "/": "dashboard",
    "/add-cylinder": "addCylinder",
    "/add-customer": "addCustomer",
    "/payments": "payments",
    "/payment-logs": "paymentLogs",
    "/expenses": "expenses",
    "/inventory": "inventory",
    "/reports": "reports",
    "/notes": "notes",
    "/settings": "settings",
    "/backup": "backup",
    "/profile": "profile",
}

MODULES = tuple(ROUTE_MODULE_MAP.values())

# Seeded into module_permissions as role rows (the role-default table).
# Modules missing for a role resolve to NO_ACCESS.
ROLE_DEFAULT_ACCESS: dict[str, dict[str, str]] = {
    ROLE_ADMIN: {m: EDIT for m in MODULES},
    ROLE_BRANCH_MANAGER: {
        **{m: EDIT for m in MODULES},
        "settings": VIEW,
        "backup": NOT_SHOW,
    },
    ROLE_STAFF: {
        "dashboard": VIEW,
        "addCylinder": EDIT,
        "addCustomer": EDIT,
        "payments": VIEW,
        "paymentLogs": VIEW,
        "expenses": VIEW,
        "inventory": VIEW,
        "notes": EDIT,
        "profile": EDIT,
        "backup": NOT_SHOW,
    },
    ROLE_VIEWER: {
        **{m: VIEW for m in MODULES},
        "backup": NOT_SHOW,
    },
}

# Business enums
CUSTOMER_STATUSES = ("ACTIVE", "INACTIVE")
CYLINDER_DIRECTIONS = ("DELIVERED", "RECEIVED")
BILL_STATUSES = ("NOT_PAID", "PARTIALLY_PAID", "PAID")
EXPENSE_CUSTOM = "CUSTOM"

PAYMENT_EVENT_TYPES = (
    "BILL_GENERATED",
    "BILL_UPDATED",
    "BILL_DELETED",
    "PAYMENT_RECEIVED",
    "PARTIAL_PAYMENT",
    "PAYMENT_DELETED",
)

# Expense type -> category; unknown and custom types fall under HOME.
EXPENSE_CATEGORIES = ("HOME", "OTHER")
EXPENSE_TYPE_CATEGORIES = {
    "Transportation": "HOME",
    "Maintenance": "OTHER",
    "Utilities": "HOME",
    "Insurance": "OTHER",
    "Logistics": "HOME",
    "Office Supplies": "OTHER",
    "Equipment": "HOME",
    "Miscellaneous": "OTHER",
}
