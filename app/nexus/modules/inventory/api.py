from __future__ import annotations

from flask import Blueprint, g, request

from app.nexus.api import created, json_body, ok, serialize
from app.nexus.db import db_session
from app.nexus.errors import raise_for_errors
from app.nexus.modules.inventory.models import InventoryItem
from app.nexus.modules.inventory.service import (
    create_inventory_items,
    delete_inventory_item,
    validate_inventory_payload,
)
from app.nexus.pagination import page_payload, paginate, parse_pagination, text_search
from app.nexus.rbac import require_module_access
from app.nexus.tenancy import get_scoped_or_404, requested_admin_id, scoped_query, tenant_id_for_create

bp = Blueprint("inventory", __name__)


@bp.get("/inventory")
@require_module_access("inventory")
def inventory_list():
    s = db_session()
    pagination = parse_pagination(request.args)
    q = scoped_query(s, InventoryItem, g.current_user)
    q = text_search(q, pagination.q, InventoryItem.cylinder_type, InventoryItem.vendor, InventoryItem.category)
    category = (request.args.get("category") or "").strip()
    if category:
        q = q.filter(InventoryItem.category == category)
    q = q.order_by(InventoryItem.entry_date.desc(), InventoryItem.id.desc())
    items, total = paginate(q, pagination)
    return ok(page_payload([serialize(i) for i in items], pagination, total))


@bp.post("/inventory")
@require_module_access("inventory", edit=True)
def inventory_create():
    s = db_session()
    payload = json_body()
    raise_for_errors(validate_inventory_payload(payload))
    admin_id = tenant_id_for_create(s, g.current_user, requested_admin_id(payload))
    items = create_inventory_items(s, payload, g.current_user, admin_id)
    s.commit()
    return created({"items": [serialize(i) for i in items]})


@bp.delete("/inventory/<int:item_id>")
@require_module_access("inventory", edit=True)
def inventory_delete(item_id: int):
    s = db_session()
    item = get_scoped_or_404(s, InventoryItem, item_id, g.current_user, "Inventory item")
    delete_inventory_item(s, item, g.current_user)
    s.commit()
    return ok({"deleted": True, "id": item_id})
