from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import func

from app.nexus.audit import record_event
from app.nexus.constants import CYLINDER_DIRECTIONS
from app.nexus.errors import ValidationError
from app.nexus.modules.payments.service import sync_bills_for_customer
from app.nexus.tenancy import apply_tenant_filter, get_scoped_or_404
from app.nexus.utils import clean_str, date_errors, int_errors, parse_date, parse_int, str_field

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.nexus.models import User
    from app.nexus.modules.cylinders.models import CylinderEntry

DELIVERED, RECEIVED = CYLINDER_DIRECTIONS


def validate_entry_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """Validate cylinder entry create/update payload. Returns list of errors."""
    errors: list[str] = []
    direction = str_field(payload, "direction").upper()
    if direction not in CYLINDER_DIRECTIONS and (direction or not partial):
        errors.append(f"direction must be one of: {', '.join(CYLINDER_DIRECTIONS)}")

    if not partial or "cylinder_label" in payload:
        if not str_field(payload, "cylinder_label"):
            errors.append("cylinder_label is required.")
    if not partial and not payload.get("customer_id") and not str_field(payload, "customer_name"):
        errors.append("customer_id or customer_name is required.")

    errors.extend(int_errors(payload, "quantity", required=not partial, minimum=0))
    errors.extend(int_errors(payload, "unit_price", minimum=0))
    errors.extend(int_errors(payload, "amount", minimum=0))
    errors.extend(int_errors(payload, "customer_id", minimum=1))
    errors.extend(date_errors(payload, "delivery_date"))
    return errors


def _entry_amount(direction: str, quantity: int, unit_price: int, amount: int | None) -> int:
    # Only deliveries are billed.
    if direction == DELIVERED and unit_price and quantity:
        return unit_price * quantity
    return amount or 0


def _same_customer(q, customer_id: int | None, customer_name: str):
    from app.nexus.modules.cylinders.models import CylinderEntry

    if customer_id:
        return q.filter(CylinderEntry.customer_id == customer_id)
    return q.filter(CylinderEntry.customer_name == customer_name)


def _bill_key(entry: "CylinderEntry") -> tuple[int | None, str, date]:
    return entry.customer_id, entry.customer_name, entry.delivery_date


def customer_balance(s: "Session", admin_id: int, customer_id: int | None, customer_name: str) -> tuple[int, int]:
    """(delivered, received) cylinder totals for one customer within a tenant."""
    from app.nexus.modules.cylinders.models import CylinderEntry

    q = s.query(CylinderEntry.direction, func.coalesce(func.sum(CylinderEntry.quantity), 0)).filter(
        CylinderEntry.admin_id == admin_id
    )
    q = _same_customer(q, customer_id, customer_name)
    totals = dict(q.group_by(CylinderEntry.direction).all())
    return int(totals.get(DELIVERED, 0)), int(totals.get(RECEIVED, 0))


def _check_balance(
    s: "Session",
    admin_id: int,
    customer_id: int | None,
    customer_name: str,
    *,
    entry: "CylinderEntry | None" = None,
) -> None:
    """Total received may never exceed total delivered for a customer."""
    delivered, received = customer_balance(s, admin_id, customer_id, customer_name)
    if received <= delivered:
        return
    if entry is not None and entry.direction == RECEIVED:
        raise ValidationError(
            f"Cannot receive {entry.quantity} cylinders. Total received ({received}) "
            f"cannot exceed total delivered ({delivered})."
        )
    raise ValidationError(
        f"Total delivered ({delivered}) cannot be lower than total received ({received}) for {customer_name}."
    )


def _sync_bills(s: "Session", user: "User", admin_id: int, keys: set[tuple[int | None, str, date]]) -> None:
    for customer_id, customer_name, on_date in sorted(keys, key=lambda k: (k[0] or 0, k[1], k[2])):
        sync_bills_for_customer(s, admin_id, customer_id, customer_name, on_date, user)


def _resolve_customer(s: "Session", user: "User", payload: dict, admin_id: int):
    from app.nexus.modules.customers.models import Customer

    customer_id = parse_int(payload.get("customer_id"))
    if not customer_id:
        return None
    customer = get_scoped_or_404(s, Customer, customer_id, user, "Customer")
    if customer.admin_id != admin_id:
        raise ValidationError("Customer belongs to a different tenant.")
    return customer


def create_entry(s: "Session", payload: dict, user: "User", admin_id: int) -> "CylinderEntry":
    from app.nexus.modules.cylinders.models import CylinderEntry

    customer = _resolve_customer(s, user, payload, admin_id)
    direction = str_field(payload, "direction").upper()
    quantity = parse_int(payload.get("quantity"), default=0)
    unit_price = parse_int(payload.get("unit_price"), default=0)

    now = datetime.utcnow()
    entry = CylinderEntry(
        admin_id=admin_id,
        customer_id=customer.id if customer else None,
        customer_name=customer.name if customer else str_field(payload, "customer_name"),
        direction=direction,
        cylinder_label=str_field(payload, "cylinder_label"),
        quantity=quantity,
        unit_price=unit_price,
        amount=_entry_amount(direction, quantity, unit_price, parse_int(payload.get("amount"))),
        delivered_by=clean_str(payload.get("delivered_by")),
        bill_created_by=clean_str(payload.get("bill_created_by")) or user.name,
        description=clean_str(payload.get("description")),
        verified=bool(payload.get("verified", False)),
        delivery_date=parse_date(payload.get("delivery_date")) or date.today(),
        created_at=now,
        updated_at=now,
    )
    s.add(entry)
    s.flush()
    _check_balance(s, admin_id, entry.customer_id, entry.customer_name, entry=entry)
    if entry.direction == DELIVERED:
        _sync_bills(s, user, admin_id, {_bill_key(entry)})

    record_event(
        s,
        actor=user,
        action="cylinder_entry.create",
        entity_type="CylinderEntry",
        entity_id=str(entry.id),
        admin_id=admin_id,
        metadata={"direction": entry.direction, "quantity": entry.quantity, "customer": entry.customer_name},
    )
    return entry


def update_entry(s: "Session", entry: "CylinderEntry", payload: dict, user: "User") -> "CylinderEntry":
    before_customer = (entry.customer_id, entry.customer_name)
    before_key = _bill_key(entry) if entry.direction == DELIVERED else None

    if "customer_id" in payload:
        customer = _resolve_customer(s, user, payload, entry.admin_id)
        entry.customer_id = customer.id if customer else None
        if customer:
            entry.customer_name = customer.name
    if str_field(payload, "customer_name") and not entry.customer_id:
        entry.customer_name = str_field(payload, "customer_name")
    if str_field(payload, "direction"):
        entry.direction = str_field(payload, "direction").upper()
    if str_field(payload, "cylinder_label"):
        entry.cylinder_label = str_field(payload, "cylinder_label")
    if "quantity" in payload:
        entry.quantity = parse_int(payload.get("quantity"), default=0)
    if "unit_price" in payload:
        entry.unit_price = parse_int(payload.get("unit_price"), default=0)
    for field in ("delivered_by", "bill_created_by", "description"):
        if field in payload:
            setattr(entry, field, clean_str(payload.get(field)))
    if "verified" in payload:
        entry.verified = bool(payload.get("verified"))
    if payload.get("delivery_date"):
        entry.delivery_date = parse_date(payload["delivery_date"])

    entry.amount = _entry_amount(
        entry.direction, entry.quantity, entry.unit_price, parse_int(payload.get("amount"), default=entry.amount)
    )
    entry.updated_at = datetime.utcnow()
    s.flush()
    _check_balance(s, entry.admin_id, entry.customer_id, entry.customer_name, entry=entry)
    if before_customer != (entry.customer_id, entry.customer_name):
        _check_balance(s, entry.admin_id, *before_customer)
    bill_keys = {before_key} if before_key else set()
    if entry.direction == DELIVERED:
        bill_keys.add(_bill_key(entry))
    _sync_bills(s, user, entry.admin_id, bill_keys)

    record_event(
        s,
        actor=user,
        action="cylinder_entry.update",
        entity_type="CylinderEntry",
        entity_id=str(entry.id),
        admin_id=entry.admin_id,
        metadata={"fields": sorted(payload.keys())},
    )
    return entry


def delete_entry(s: "Session", entry: "CylinderEntry", user: "User") -> int:
    """
    Delete one entry. Deleting a delivery also deletes the RECEIVED entries of
    the same customer, date and cylinder label. Returns how many of those went.
    """
    from app.nexus.modules.cylinders.models import CylinderEntry

    admin_id, customer_id, customer_name = entry.admin_id, entry.customer_id, entry.customer_name
    bill_key = _bill_key(entry) if entry.direction == DELIVERED else None

    removed_received = 0
    if bill_key:
        q = s.query(CylinderEntry).filter(
            CylinderEntry.admin_id == admin_id,
            CylinderEntry.direction == RECEIVED,
            CylinderEntry.delivery_date == entry.delivery_date,
            CylinderEntry.cylinder_label == entry.cylinder_label,
            CylinderEntry.id != entry.id,
        )
        removed_received = _same_customer(q, customer_id, customer_name).delete(synchronize_session="fetch")

    record_event(
        s,
        actor=user,
        action="cylinder_entry.delete",
        entity_type="CylinderEntry",
        entity_id=str(entry.id),
        admin_id=admin_id,
        metadata={"removed_received": removed_received} if removed_received else None,
    )
    s.delete(entry)
    s.flush()
    _check_balance(s, admin_id, customer_id, customer_name)
    if bill_key:
        _sync_bills(s, user, admin_id, {bill_key})
    return removed_received


def delete_all_entries(s: "Session", user: "User", flt: dict) -> int:
    """Delete every cylinder entry matching the tenant filter. Returns the count deleted."""
    from app.nexus.modules.cylinders.models import CylinderEntry

    count = apply_tenant_filter(s.query(CylinderEntry), flt).delete(synchronize_session=False)
    record_event(
        s,
        actor=user,
        action="cylinder_entry.delete_all",
        entity_type="CylinderEntry",
        metadata={"count": count},
    )
    return count
