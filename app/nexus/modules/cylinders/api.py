from __future__ import annotations

from flask import Blueprint, g, request

from app.nexus.api import created, json_body, ok, serialize
from app.nexus.db import db_session
from app.nexus.errors import ValidationError, raise_for_errors
from app.nexus.modules.cylinders.models import CylinderEntry
from app.nexus.modules.cylinders.service import (
    create_entry,
    delete_all_entries,
    delete_entry,
    update_entry,
    validate_entry_payload,
)
from app.nexus.pagination import page_payload, paginate, parse_pagination, text_search
from app.nexus.rbac import require_module_access
from app.nexus.tenancy import get_scoped_or_404, requested_admin_id, scoped_query, tenant_filter, tenant_id_for_create
from app.nexus.utils import parse_date

bp = Blueprint("cylinders", __name__)


@bp.get("/cylinders")
@require_module_access("addCylinder")
def cylinders_list():
    s = db_session()
    pagination = parse_pagination(request.args)

    q = scoped_query(s, CylinderEntry, g.current_user)
    q = text_search(q, pagination.q, CylinderEntry.customer_name, CylinderEntry.cylinder_label, CylinderEntry.delivered_by)

    direction = (request.args.get("direction") or "").strip().upper()
    if direction:
        q = q.filter(CylinderEntry.direction == direction)
    customer_id = (request.args.get("customer_id") or "").strip()
    if customer_id.isdigit():
        q = q.filter(CylinderEntry.customer_id == int(customer_id))
    try:
        date_from = parse_date(request.args.get("from"))
        date_to = parse_date(request.args.get("to"))
    except ValueError:
        raise ValidationError("from/to must be dates (YYYY-MM-DD)")
    if date_from:
        q = q.filter(CylinderEntry.delivery_date >= date_from)
    if date_to:
        q = q.filter(CylinderEntry.delivery_date <= date_to)

    q = q.order_by(CylinderEntry.delivery_date.desc(), CylinderEntry.id.desc())
    items, total = paginate(q, pagination)
    return ok(page_payload([serialize(e) for e in items], pagination, total))


@bp.post("/cylinders")
@require_module_access("addCylinder", edit=True)
def cylinders_create():
    s = db_session()
    payload = json_body()
    raise_for_errors(validate_entry_payload(payload))

    admin_id = tenant_id_for_create(s, g.current_user, requested_admin_id(payload))
    entry = create_entry(s, payload, g.current_user, admin_id)
    s.commit()
    return created(serialize(entry))


@bp.patch("/cylinders/<int:entry_id>")
@require_module_access("addCylinder", edit=True)
def cylinder_update(entry_id: int):
    s = db_session()
    entry = get_scoped_or_404(s, CylinderEntry, entry_id, g.current_user, "Cylinder entry")
    payload = json_body()
    raise_for_errors(validate_entry_payload(payload, partial=True))
    update_entry(s, entry, payload, g.current_user)
    s.commit()
    return ok(serialize(entry))


@bp.delete("/cylinders/<int:entry_id>")
@require_module_access("addCylinder", edit=True)
def cylinder_delete(entry_id: int):
    s = db_session()
    entry = get_scoped_or_404(s, CylinderEntry, entry_id, g.current_user, "Cylinder entry")
    removed_received = delete_entry(s, entry, g.current_user)
    s.commit()
    return ok({"deleted": True, "id": entry_id, "removed_received": removed_received})


@bp.delete("/add-cylinder/delete-all")
@require_module_access("addCylinder", edit=True)
def cylinders_delete_all():
    s = db_session()
    count = delete_all_entries(s, g.current_user, tenant_filter(g.current_user))
    s.commit()
    return ok({"message": f"Deleted {count} cylinder entries.", "count": count})
