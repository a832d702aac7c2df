from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.nexus.modules.customers.models import Customer
from app.nexus.modules.cylinders.models import CylinderEntry
from app.nexus.modules.expenses.models import Expense
from app.nexus.modules.inventory.models import InventoryItem
from app.nexus.modules.payments.models import Bill, Payment
from app.nexus.modules.payments.service import month_bounds
from app.nexus.tenancy import apply_tenant_filter

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

USAGE_MONTHS = 6


def _sum(s: "Session", column, flt: dict, *conditions) -> int:
    q = apply_tenant_filter(s.query(column.class_), flt).with_entities(func.coalesce(func.sum(column), 0))
    for cond in conditions:
        q = q.filter(cond)
    return int(q.scalar() or 0)


def _month_starts(today: date, count: int) -> list[date]:
    months = []
    year, month = today.year, today.month
    for _ in range(count):
        months.append(date(year, month, 1))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(months))


def overview(s: "Session", flt: dict, start: date, end: date, *, today: date | None = None) -> dict[str, Any]:
    """Tenant totals for [start, end] plus six months of delivered/received volumes."""
    start_dt = datetime.combine(start, time.min)
    end_dt = datetime.combine(end + timedelta(days=1), time.min)

    customers = apply_tenant_filter(s.query(Customer), flt)
    active_customers = customers.filter(Customer.status == "ACTIVE").count()

    in_range = (CylinderEntry.delivery_date >= start, CylinderEntry.delivery_date <= end)
    delivered = _sum(s, CylinderEntry.quantity, flt, CylinderEntry.direction == "DELIVERED", *in_range)
    received = _sum(s, CylinderEntry.quantity, flt, CylinderEntry.direction == "RECEIVED", *in_range)
    sales = _sum(s, CylinderEntry.amount, flt, CylinderEntry.direction == "DELIVERED", *in_range)

    payments = _sum(s, Payment.amount, flt, Payment.paid_on >= start_dt, Payment.paid_on < end_dt)
    expenses = _sum(s, Expense.amount, flt, Expense.expense_date >= start, Expense.expense_date <= end)
    inventory_in = _sum(
        s, InventoryItem.quantity, flt, InventoryItem.entry_date >= start, InventoryItem.entry_date <= end
    )

    outstanding = sum(max(b.remaining_amount, 0) for b in apply_tenant_filter(s.query(Bill), flt).all())

    usage = []
    for month_start in _month_starts(today or date.today(), USAGE_MONTHS):
        _, month_end = month_bounds(month_start)
        window = (CylinderEntry.delivery_date >= month_start, CylinderEntry.delivery_date <= month_end)
        usage.append(
            {
                "month": month_start.strftime("%Y-%m"),
                "delivered": _sum(s, CylinderEntry.quantity, flt, CylinderEntry.direction == "DELIVERED", *window),
                "received": _sum(s, CylinderEntry.quantity, flt, CylinderEntry.direction == "RECEIVED", *window),
            }
        )

    return {
        "range": {"from": start.isoformat(), "to": end.isoformat()},
        "totals": {
            "customers": customers.count(),
            "active_customers": active_customers,
            "cylinders_delivered": delivered,
            "cylinders_received": received,
            "cylinders_outstanding": delivered - received,
            "sales": sales,
            "payments_received": payments,
            "expenses": expenses,
            "net": payments - expenses,
            "inventory_received": inventory_in,
            "outstanding_balance": outstanding,
        },
        "usage": usage,
    }
