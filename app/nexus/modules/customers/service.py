from __future__ import annotations

import re
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import func

from app.nexus.audit import record_event
from app.nexus.constants import CUSTOMER_STATUSES
from app.nexus.utils import clean_str, int_errors, parse_int, str_field

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.nexus.models import User
    from app.nexus.modules.customers.models import Customer

PHONE_RE = re.compile(r"^\d{11}$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# field -> (min length, max length); None min means optional
_TEXT_FIELDS = {
    "name": (2, 80),
    "customer_type": (2, 48),
    "cylinder_type": (2, 64),
    "bill_type": (2, 32),
    "address": (5, 200),
    "area": (2, 80),
    "city": (2, 80),
    "country": (2, 80),
    "notes": (None, 200),
}


def _normalized_contacts(payload: dict) -> list[dict]:
    contacts = payload.get("additional_contacts") or []
    if not isinstance(contacts, list):
        return []
    return [
        {
            "name": str_field(c, "name"),
            "contact_number": str_field(c, "contact_number"),
        }
        for c in contacts
        if isinstance(c, dict)
    ]


def validate_customer_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """Validate customer create/update payload. Returns list of errors."""
    errors: list[str] = []
    for field, (min_len, max_len) in _TEXT_FIELDS.items():
        if partial and field not in payload:
            continue
        value = str_field(payload, field)
        if field == "customer_type" and not value:
            continue  # defaults to Domestic
        if min_len is None:
            if len(value) > max_len:
                errors.append(f"{field} must be at most {max_len} characters.")
            continue
        if not (min_len <= len(value) <= max_len):
            errors.append(f"{field} must be {min_len}-{max_len} characters.")

    contact = str_field(payload, "contact_number")
    if contact and not PHONE_RE.match(contact):
        errors.append("Phone number must be exactly 11 digits.")

    contacts = payload.get("additional_contacts")
    if contacts is not None and not isinstance(contacts, list):
        errors.append("additional_contacts must be a list.")
    for c in _normalized_contacts(payload):
        if len(c["name"]) < 2:
            errors.append("Additional contact name is required.")
        if not PHONE_RE.match(c["contact_number"]):
            errors.append("Additional contact phone number must be exactly 11 digits.")

    if not partial and not contact and not _normalized_contacts(payload):
        errors.append("At least one contact number is required.")

    status = str_field(payload, "status").upper()
    if status and status not in CUSTOMER_STATUSES:
        errors.append(f"Invalid status. Must be one of: {', '.join(CUSTOMER_STATUSES)}")

    email = str_field(payload, "email")
    if email and not EMAIL_RE.match(email):
        errors.append("Invalid email.")

    errors.extend(int_errors(payload, "security_deposit", minimum=0))
    return errors


def next_customer_code(s: "Session", admin_id: int) -> int:
    from app.nexus.modules.customers.models import Customer

    current = s.query(func.max(Customer.customer_code)).filter(Customer.admin_id == admin_id).scalar()
    return (current or 0) + 1


def create_customer(s: "Session", payload: dict, user: "User", admin_id: int) -> "Customer":
    from app.nexus.modules.customers.models import Customer

    contacts = _normalized_contacts(payload)
    # The first additional contact doubles as the primary number when given.
    contact_number = contacts[0]["contact_number"] if contacts else str_field(payload, "contact_number")

    now = datetime.utcnow()
    customer = Customer(
        admin_id=admin_id,
        customer_code=next_customer_code(s, admin_id),
        name=str_field(payload, "name"),
        contact_number=contact_number,
        email=clean_str(payload.get("email")),
        customer_type=clean_str(payload.get("customer_type")) or "Domestic",
        cylinder_type=str_field(payload, "cylinder_type"),
        bill_type=str_field(payload, "bill_type"),
        security_deposit=parse_int(payload.get("security_deposit")),
        status=(clean_str(payload.get("status")) or "ACTIVE").upper(),
        address=str_field(payload, "address"),
        area=str_field(payload, "area"),
        city=str_field(payload, "city"),
        country=str_field(payload, "country"),
        notes=clean_str(payload.get("notes")),
        additional_contacts=contacts,
        created_at=now,
        updated_at=now,
    )
    s.add(customer)
    s.flush()

    record_event(
        s,
        actor=user,
        action="customer.create",
        entity_type="Customer",
        entity_id=str(customer.id),
        admin_id=admin_id,
        metadata={"name": customer.name, "customer_code": customer.customer_code},
    )
    return customer


def update_customer(s: "Session", customer: "Customer", payload: dict, user: "User") -> "Customer":
    changes = {}
    for field in ("name", "customer_type", "cylinder_type", "bill_type", "address", "area", "city", "country"):
        if field not in payload:
            continue
        new = str_field(payload, field)
        if new and new != getattr(customer, field):
            changes[field] = {"old": getattr(customer, field), "new": new}
            setattr(customer, field, new)

    for field in ("notes", "email"):
        if field in payload:
            new = clean_str(payload.get(field))
            if new != getattr(customer, field):
                changes[field] = {"old": getattr(customer, field), "new": new}
                setattr(customer, field, new)

    if "contact_number" in payload:
        new = str_field(payload, "contact_number")
        if new and new != customer.contact_number:
            changes["contact_number"] = {"old": customer.contact_number, "new": new}
            customer.contact_number = new

    if "additional_contacts" in payload:
        customer.additional_contacts = _normalized_contacts(payload)
        changes["additional_contacts"] = len(customer.additional_contacts)

    if "status" in payload:
        new = str_field(payload, "status").upper()
        if new and new != customer.status:
            changes["status"] = {"old": customer.status, "new": new}
            customer.status = new

    if "security_deposit" in payload:
        new = parse_int(payload.get("security_deposit"))
        if new != customer.security_deposit:
            changes["security_deposit"] = {"old": customer.security_deposit, "new": new}
            customer.security_deposit = new

    customer.updated_at = datetime.utcnow()

    if changes:
        record_event(
            s,
            actor=user,
            action="customer.update",
            entity_type="Customer",
            entity_id=str(customer.id),
            admin_id=customer.admin_id,
            metadata={"changes": changes},
        )
    return customer


def delete_customer(s: "Session", customer: "Customer", user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="customer.delete",
        entity_type="Customer",
        entity_id=str(customer.id),
        admin_id=customer.admin_id,
        metadata={"name": customer.name, "customer_code": customer.customer_code},
    )
    s.delete(customer)
    s.flush()
