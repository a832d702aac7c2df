"""
Customers module.

- Customer CRUD with a sequential per-tenant customer code
- Search over name, contact number, address and code
"""
