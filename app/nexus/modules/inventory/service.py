from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

from app.nexus.audit import record_event
from app.nexus.utils import clean_str, date_errors, int_errors, parse_date, parse_int, str_field

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.nexus.models import User
    from app.nexus.modules.inventory.models import InventoryItem


def validate_inventory_payload(payload: dict) -> list[str]:
    """
    A receipt from one vendor may carry several lines:
    {"vendor", "received_by", "entry_date", "entries": [{"cylinder_type", "category", "quantity", "unit_price"}]}
    A single line may also be given at the top level instead of ``entries``.
    """
    errors = []
    if not str_field(payload, "vendor"):
        errors.append("vendor is required.")
    if not str_field(payload, "received_by"):
        errors.append("received_by is required.")
    errors.extend(date_errors(payload, "entry_date"))

    entries = payload.get("entries")
    if entries is None:
        entries = [payload]
    if not isinstance(entries, list) or not entries:
        return errors + ["entries must be a non-empty list."]
    for i, entry in enumerate(entries, start=1):
        if not isinstance(entry, dict):
            errors.append(f"Entry {i} must be an object.")
            continue
        if not str_field(entry, "cylinder_type"):
            errors.append(f"Entry {i}: cylinder_type is required.")
        if not str_field(entry, "category"):
            errors.append(f"Entry {i}: category is required.")
        errors.extend(f"Entry {i}: {e}" for e in int_errors(entry, "quantity", required=True, minimum=1))
        errors.extend(f"Entry {i}: {e}" for e in int_errors(entry, "unit_price", minimum=0))
    return errors


def create_inventory_items(s: "Session", payload: dict, user: "User", admin_id: int) -> list["InventoryItem"]:
    from app.nexus.modules.inventory.models import InventoryItem

    entries = payload.get("entries")
    if entries is None:
        entries = [payload]

    now = datetime.utcnow()
    entry_date = parse_date(payload.get("entry_date")) or date.today()
    items = []
    for entry in entries:
        item = InventoryItem(
            admin_id=admin_id,
            cylinder_type=str_field(entry, "cylinder_type"),
            category=str_field(entry, "category"),
            quantity=parse_int(entry.get("quantity")),
            unit_price=parse_int(entry.get("unit_price")),
            vendor=str_field(payload, "vendor"),
            received_by=str_field(payload, "received_by"),
            description=clean_str(payload.get("description")),
            verified=bool(payload.get("verified", False)),
            entry_date=entry_date,
            created_at=now,
        )
        s.add(item)
        items.append(item)
    s.flush()

    record_event(
        s,
        actor=user,
        action="inventory.create",
        entity_type="InventoryItem",
        entity_id=",".join(str(i.id) for i in items),
        admin_id=admin_id,
        metadata={"vendor": str_field(payload, "vendor"), "lines": len(items)},
    )
    return items


def delete_inventory_item(s: "Session", item: "InventoryItem", user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="inventory.delete",
        entity_type="InventoryItem",
        entity_id=str(item.id),
        admin_id=item.admin_id,
    )
    s.delete(item)
    s.flush()
