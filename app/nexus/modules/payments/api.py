from __future__ import annotations

from datetime import datetime, time, timedelta

from flask import Blueprint, g, request

from app.nexus.api import created, json_body, ok, serialize
from app.nexus.db import db_session
from app.nexus.errors import ValidationError, raise_for_errors
from app.nexus.modules.customers.models import Customer
from app.nexus.modules.payments.models import Bill, Payment, PaymentLog
from app.nexus.modules.payments.service import (
    add_payment,
    bill_to_dict,
    delete_bill,
    delete_payment,
    generate_bill,
    resync_bill,
    validate_bill_payload,
    validate_payment_payload,
)
from app.nexus.pagination import page_payload, paginate, parse_pagination, text_search
from app.nexus.rbac import require_module_access
from app.nexus.tenancy import get_scoped_or_404, scoped_query
from app.nexus.utils import parse_date, parse_int

bp = Blueprint("payments", __name__)


# ---------- Bills ----------
@bp.get("/bills")
@require_module_access("payments")
def bills_list():
    s = db_session()
    pagination = parse_pagination(request.args)
    q = scoped_query(s, Bill, g.current_user).join(Customer, Bill.customer_id == Customer.id)
    q = text_search(q, pagination.q, Customer.name, Customer.customer_code)
    customer_id = (request.args.get("customer_id") or "").strip()
    if customer_id.isdigit():
        q = q.filter(Bill.customer_id == int(customer_id))
    q = q.order_by(Bill.bill_start_date.desc(), Bill.id.desc())
    items, total = paginate(q, pagination)

    status = (request.args.get("status") or "").strip().upper()
    rows = [bill_to_dict(b) for b in items]
    if status:
        # Status is derived from payments, so it filters the current page only.
        rows = [r for r in rows if r["status"] == status]
    return ok(page_payload(rows, pagination, total))


@bp.post("/bills")
@require_module_access("payments", edit=True)
def bills_create():
    s = db_session()
    payload = json_body()
    raise_for_errors(validate_bill_payload(payload))
    customer = get_scoped_or_404(s, Customer, parse_int(payload.get("customer_id")), g.current_user, "Customer")
    bill = generate_bill(
        s,
        customer,
        g.current_user,
        parse_date(payload.get("start_date")),
        parse_date(payload.get("end_date")),
    )
    s.commit()
    return created(bill_to_dict(bill))


@bp.get("/bills/<int:bill_id>")
@require_module_access("payments")
def bill_detail(bill_id: int):
    s = db_session()
    bill = get_scoped_or_404(s, Bill, bill_id, g.current_user, "Bill")
    return ok(bill_to_dict(bill))


@bp.post("/bills/<int:bill_id>/resync")
@require_module_access("payments", edit=True)
def bill_resync(bill_id: int):
    s = db_session()
    bill = get_scoped_or_404(s, Bill, bill_id, g.current_user, "Bill")
    resync_bill(s, bill, g.current_user)
    s.commit()
    return ok(bill_to_dict(bill))


@bp.delete("/bills/<int:bill_id>")
@require_module_access("payments", edit=True)
def bill_delete(bill_id: int):
    s = db_session()
    bill = get_scoped_or_404(s, Bill, bill_id, g.current_user, "Bill")
    delete_bill(s, bill, g.current_user)
    s.commit()
    return ok({"deleted": True, "id": bill_id})


# ---------- Payments ----------
@bp.post("/payments")
@require_module_access("payments", edit=True)
def payments_create():
    s = db_session()
    payload = json_body()
    raise_for_errors(validate_payment_payload(payload))
    bill = get_scoped_or_404(s, Bill, parse_int(payload.get("bill_id")), g.current_user, "Bill")
    payment = add_payment(s, bill, payload, g.current_user)
    s.commit()
    return created({"payment": serialize(payment), "bill": bill_to_dict(bill)})


@bp.delete("/payments/<int:payment_id>")
@require_module_access("payments", edit=True)
def payment_delete(payment_id: int):
    s = db_session()
    payment = get_scoped_or_404(s, Payment, payment_id, g.current_user, "Payment")
    bill = payment.bill
    delete_payment(s, payment, g.current_user)
    s.commit()
    return ok({"deleted": True, "id": payment_id, "bill": bill_to_dict(bill)})


# ---------- Payment logs ----------
@bp.get("/payment-logs")
@require_module_access("paymentLogs")
def payment_logs_list():
    s = db_session()
    pagination = parse_pagination(request.args)
    q = scoped_query(s, PaymentLog, g.current_user)
    q = text_search(q, pagination.q, PaymentLog.customer_name, PaymentLog.customer_code, PaymentLog.details)
    event_type = (request.args.get("event_type") or "").strip().upper()
    if event_type:
        q = q.filter(PaymentLog.event_type == event_type)
    try:
        date_from = parse_date(request.args.get("from"))
        date_to = parse_date(request.args.get("to"))
    except ValueError:
        raise ValidationError("from/to must be dates (YYYY-MM-DD)")
    if date_from:
        q = q.filter(PaymentLog.created_at >= datetime.combine(date_from, time.min))
    if date_to:
        q = q.filter(PaymentLog.created_at < datetime.combine(date_to + timedelta(days=1), time.min))
    q = q.order_by(PaymentLog.created_at.desc(), PaymentLog.id.desc())
    items, total = paginate(q, pagination)
    return ok(page_payload([serialize(r) for r in items], pagination, total))
