from __future__ import annotations

from flask import Blueprint, g, request
from sqlalchemy import or_

from app.nexus.api import created, json_body, ok, serialize
from app.nexus.db import db_session
from app.nexus.errors import raise_for_errors
from app.nexus.modules.customers.models import Customer
from app.nexus.modules.customers.service import (
    create_customer,
    delete_customer,
    update_customer,
    validate_customer_payload,
)
from app.nexus.pagination import page_payload, paginate, parse_pagination
from app.nexus.rbac import require_module_access
from app.nexus.tenancy import get_scoped_or_404, requested_admin_id, scoped_query, tenant_id_for_create

bp = Blueprint("customers", __name__)


@bp.get("/customers")
@require_module_access("addCustomer")
def customers_list():
    s = db_session()
    pagination = parse_pagination(request.args)

    q = scoped_query(s, Customer, g.current_user)
    if pagination.q:
        like = f"%{pagination.q}%"
        conditions = [
            Customer.name.ilike(like),
            Customer.contact_number.ilike(like),
            Customer.address.ilike(like),
        ]
        if pagination.q.isdigit():
            conditions.append(Customer.customer_code == int(pagination.q))
        q = q.filter(or_(*conditions))

    status = (request.args.get("status") or "").strip().upper()
    if status:
        q = q.filter(Customer.status == status)

    items, total = paginate(q.order_by(Customer.customer_code.asc()), pagination)
    return ok(page_payload([serialize(c) for c in items], pagination, total))


@bp.post("/customers")
@require_module_access("addCustomer", edit=True)
def customers_create():
    s = db_session()
    payload = json_body()
    raise_for_errors(validate_customer_payload(payload))

    admin_id = tenant_id_for_create(s, g.current_user, requested_admin_id(payload))
    customer = create_customer(s, payload, g.current_user, admin_id)
    s.commit()
    return created(serialize(customer))


@bp.get("/customers/<int:customer_id>")
@require_module_access("addCustomer")
def customer_detail(customer_id: int):
    s = db_session()
    customer = get_scoped_or_404(s, Customer, customer_id, g.current_user, "Customer")
    return ok(serialize(customer))


@bp.patch("/customers/<int:customer_id>")
@require_module_access("addCustomer", edit=True)
def customer_update(customer_id: int):
    s = db_session()
    customer = get_scoped_or_404(s, Customer, customer_id, g.current_user, "Customer")
    payload = json_body()
    raise_for_errors(validate_customer_payload(payload, partial=True))
    update_customer(s, customer, payload, g.current_user)
    s.commit()
    return ok(serialize(customer))


@bp.delete("/customers/<int:customer_id>")
@require_module_access("addCustomer", edit=True)
def customer_delete(customer_id: int):
    s = db_session()
    customer = get_scoped_or_404(s, Customer, customer_id, g.current_user, "Customer")
    delete_customer(s, customer, g.current_user)
    s.commit()
    return ok({"deleted": True, "id": customer_id})
