from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.nexus.constants import ROLE_ADMIN
from app.nexus.models import User
from app.nexus.modules.customers.models import Customer
from app.nexus.modules.cylinders.models import CylinderEntry
from app.nexus.modules.expenses.models import Expense
from app.nexus.modules.inventory.models import InventoryItem
from app.nexus.modules.payments.models import Bill, Payment

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

_COUNTED = {
    "customers": Customer,
    "cylinder_entries": CylinderEntry,
    "bills": Bill,
    "payments": Payment,
    "expenses": Expense,
    "inventory_items": InventoryItem,
}


def tenant_stats(s: "Session") -> list[dict[str, Any]]:
    """Row counts per tenant for every ADMIN."""
    counts: dict[str, dict[int, int]] = {}
    for key, model in _COUNTED.items():
        rows = s.query(model.admin_id, func.count(model.id)).group_by(model.admin_id).all()
        counts[key] = {admin_id: n for admin_id, n in rows}

    admins = s.query(User).filter(User.role == ROLE_ADMIN).order_by(User.created_at.asc(), User.id.asc()).all()
    return [
        {
            "admin_id": a.id,
            "admin_name": a.name,
            "admin_email": a.email,
            "business_name": a.business_name,
            "admin_created_at": a.created_at.isoformat() if a.created_at else None,
            **{key: counts[key].get(a.id, 0) for key in _COUNTED},
        }
        for a in admins
    ]


def user_stats(s: "Session") -> dict[str, int]:
    return {
        "total_users": s.query(User).count(),
        "verified_users": s.query(User).filter(User.is_verified.is_(True)).count(),
        "unverified_users": s.query(User).filter(User.is_verified.is_(False)).count(),
        "total_admins": s.query(User).filter(User.role == ROLE_ADMIN).count(),
    }
