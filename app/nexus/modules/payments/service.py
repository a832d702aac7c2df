from __future__ import annotations

import calendar
import logging
from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, or_

from app.nexus.audit import record_event
from app.nexus.constants import CYLINDER_DIRECTIONS
from app.nexus.errors import ValidationError
from app.nexus.utils import clean_str, date_errors, int_errors, parse_date, parse_datetime, parse_int, str_field

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.nexus.models import User
    from app.nexus.modules.customers.models import Customer
    from app.nexus.modules.payments.models import Bill, Payment, PaymentLog

logger = logging.getLogger(__name__)

DELIVERED = CYLINDER_DIRECTIONS[0]


def month_bounds(day: date) -> tuple[date, date]:
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)


def log_payment_event(
    s: "Session",
    *,
    event_type: str,
    bill: "Bill",
    user: "User | None",
    amount: int | None = None,
    payment_id: int | None = None,
    details: str | None = None,
) -> "PaymentLog":
    from app.nexus.modules.payments.models import PaymentLog

    customer = bill.customer
    entry = PaymentLog(
        admin_id=bill.admin_id,
        event_type=event_type,
        bill_id=bill.id,
        payment_id=payment_id,
        customer_name=customer.name if customer else "Unknown",
        customer_code=customer.customer_code if customer else None,
        amount=amount,
        details=details,
        bill_start_date=bill.bill_start_date,
        bill_end_date=bill.bill_end_date,
        performed_by=user.name if user else None,
        created_at=datetime.utcnow(),
    )
    s.add(entry)
    return entry


def bill_to_dict(bill: "Bill") -> dict:
    from app.nexus.api import serialize

    data = serialize(bill)
    data.update(
        {
            "total_amount": bill.total_amount,
            "paid_amount": bill.paid_amount,
            "remaining_amount": bill.remaining_amount,
            "status": bill.status,
            "customer_name": bill.customer.name if bill.customer else None,
            "customer_code": bill.customer.customer_code if bill.customer else None,
            "payments": [serialize(p) for p in bill.payments],
        }
    )
    return data


# ---------- Bills ----------
def validate_bill_payload(payload: dict) -> list[str]:
    errors = int_errors(payload, "customer_id", required=True, minimum=1)
    errors.extend(date_errors(payload, "start_date", "end_date"))
    return errors


def _delivered_totals(s: "Session", customer: "Customer", start: date, end: date) -> tuple[int, int]:
    """(cylinders, amount) of DELIVERED entries for a customer within [start, end]."""
    from app.nexus.modules.cylinders.models import CylinderEntry

    row = (
        s.query(
            func.coalesce(func.sum(CylinderEntry.quantity), 0),
            func.coalesce(func.sum(CylinderEntry.amount), 0),
        )
        .filter(CylinderEntry.admin_id == customer.admin_id)
        .filter(CylinderEntry.direction == DELIVERED)
        .filter(
            or_(
                CylinderEntry.customer_id == customer.id,
                (CylinderEntry.customer_id.is_(None)) & (CylinderEntry.customer_name == customer.name),
            )
        )
        .filter(CylinderEntry.delivery_date >= start, CylinderEntry.delivery_date <= end)
        .one()
    )
    return int(row[0]), int(row[1])


def previous_bill(s: "Session", customer: "Customer", before: date) -> "Bill | None":
    from app.nexus.modules.payments.models import Bill

    return (
        s.query(Bill)
        .filter(Bill.customer_id == customer.id, Bill.bill_end_date < before)
        .order_by(Bill.bill_end_date.desc(), Bill.id.desc())
        .first()
    )


def generate_bill(s: "Session", customer: "Customer", user: "User", start: date | None, end: date | None) -> "Bill":
    """
    Bill a customer for a period (defaults to the current month). The previous
    bill's unpaid remainder is carried forward as ``last_month_remaining``.
    """
    from app.nexus.modules.payments.models import Bill

    if start is None and end is None:
        start, end = month_bounds(date.today())
    elif start is None or end is None:
        raise ValidationError("start_date and end_date must be given together.")
    if end < start:
        raise ValidationError("end_date must not be before start_date.")

    overlapping = (
        s.query(Bill)
        .filter(Bill.customer_id == customer.id)
        .filter(Bill.bill_start_date <= end, Bill.bill_end_date >= start)
        .first()
    )
    if overlapping:
        raise ValidationError(
            f"A bill already exists for this customer covering {overlapping.bill_start_date} to {overlapping.bill_end_date}."
        )

    cylinders, amount = _delivered_totals(s, customer, start, end)
    prev = previous_bill(s, customer, start)
    carried = max(prev.remaining_amount, 0) if prev else 0

    now = datetime.utcnow()
    bill = Bill(
        admin_id=customer.admin_id,
        customer_id=customer.id,
        bill_start_date=start,
        bill_end_date=end,
        last_month_remaining=carried,
        current_month_bill=amount,
        cylinders=cylinders,
        created_at=now,
        updated_at=now,
    )
    bill.customer = customer
    s.add(bill)
    s.flush()

    log_payment_event(
        s,
        event_type="BILL_GENERATED",
        bill=bill,
        user=user,
        amount=bill.total_amount,
        details=f"Bill generated for {cylinders} cylinders. Carried forward: Rs {carried}.",
    )
    record_event(
        s,
        actor=user,
        action="bill.generate",
        entity_type="Bill",
        entity_id=str(bill.id),
        admin_id=bill.admin_id,
        metadata={"customer_id": customer.id, "total": bill.total_amount},
    )
    return bill


def resync_bill(s: "Session", bill: "Bill", user: "User") -> "Bill":
    """Recompute the current-period amount from cylinder entries."""
    cylinders, amount = _delivered_totals(s, bill.customer, bill.bill_start_date, bill.bill_end_date)
    if bill.paid_amount > bill.last_month_remaining + amount:
        raise ValidationError("Recalculated bill would be lower than the amount already paid.")
    old_amount = bill.current_month_bill
    bill.cylinders = cylinders
    bill.current_month_bill = amount
    bill.updated_at = datetime.utcnow()
    s.flush()
    if old_amount != amount:
        log_payment_event(
            s,
            event_type="BILL_UPDATED",
            bill=bill,
            user=user,
            amount=bill.total_amount,
            details=f"Bill amount changed from Rs {old_amount} to Rs {amount}.",
        )
    return bill


def sync_bills_for_customer(
    s: "Session",
    admin_id: int,
    customer_id: int | None,
    customer_name: str,
    on_date: date,
    user: "User",
) -> list["Bill"]:
    """Resync every bill of the customer whose period covers ``on_date``."""
    from app.nexus.modules.customers.models import Customer
    from app.nexus.modules.payments.models import Bill

    q = s.query(Bill).filter(Bill.admin_id == admin_id)
    if customer_id:
        q = q.filter(Bill.customer_id == customer_id)
    else:
        q = q.join(Customer, Bill.customer_id == Customer.id).filter(Customer.name == customer_name)
    bills = q.filter(Bill.bill_start_date <= on_date, Bill.bill_end_date >= on_date).all()
    for bill in bills:
        resync_bill(s, bill, user)
    if bills:
        logger.info("Resynced %d bill(s) for customer=%s date=%s", len(bills), customer_id or customer_name, on_date)
    return bills


def delete_bill(s: "Session", bill: "Bill", user: "User") -> None:
    log_payment_event(
        s,
        event_type="BILL_DELETED",
        bill=bill,
        user=user,
        amount=bill.total_amount,
        details=f"Bill deleted with {len(bill.payments)} payment(s).",
    )
    record_event(
        s,
        actor=user,
        action="bill.delete",
        entity_type="Bill",
        entity_id=str(bill.id),
        admin_id=bill.admin_id,
    )
    s.flush()
    s.delete(bill)
    s.flush()


# ---------- Payments ----------
def validate_payment_payload(payload: dict) -> list[str]:
    errors = int_errors(payload, "bill_id", required=True, minimum=1)
    errors.extend(int_errors(payload, "amount", required=True, minimum=1))
    if not str_field(payload, "method"):
        errors.append("Payment method is required.")
    raw_paid_on = payload.get("paid_on")
    if raw_paid_on:
        try:
            parse_datetime(raw_paid_on)
        except (TypeError, ValueError):
            errors.append("Invalid date format for paid_on.")
    return errors


def add_payment(s: "Session", bill: "Bill", payload: dict, user: "User") -> "Payment":
    from app.nexus.modules.payments.models import Payment

    amount = parse_int(payload.get("amount"))
    remaining = bill.remaining_amount
    if amount > remaining:
        raise ValidationError(
            f"Payment amount (Rs {amount:,}) cannot exceed remaining amount (Rs {remaining:,})."
        )

    method = str_field(payload, "method")
    notes = clean_str(payload.get("notes"))
    payment = Payment(
        admin_id=bill.admin_id,
        bill_id=bill.id,
        amount=amount,
        paid_on=parse_datetime(payload.get("paid_on")) or datetime.utcnow(),
        method=method,
        notes=notes,
        created_at=datetime.utcnow(),
    )
    bill.payments.append(payment)
    s.flush()

    new_remaining = bill.remaining_amount
    suffix = f" Notes: {notes}" if notes else ""
    if new_remaining <= 0:
        event_type = "PAYMENT_RECEIVED"
        details = f"Full payment received via {method}.{suffix}"
    else:
        event_type = "PARTIAL_PAYMENT"
        details = f"Partial payment of Rs {amount:,} received via {method}. Remaining: Rs {new_remaining:,}.{suffix}"
    log_payment_event(s, event_type=event_type, bill=bill, user=user, amount=amount, payment_id=payment.id, details=details)
    return payment


def delete_payment(s: "Session", payment: "Payment", user: "User") -> None:
    bill = payment.bill
    log_payment_event(
        s,
        event_type="PAYMENT_DELETED",
        bill=bill,
        user=user,
        amount=payment.amount,
        payment_id=payment.id,
        details=f"Payment of Rs {payment.amount:,} via {payment.method} deleted.",
    )
    s.flush()
    bill.payments.remove(payment)
    s.flush()
