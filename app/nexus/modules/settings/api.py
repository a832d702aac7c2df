from __future__ import annotations

from flask import Blueprint, g, request

from app.nexus.api import json_body, ok
from app.nexus.db import db_session
from app.nexus.errors import raise_for_errors
from app.nexus.modules.settings.service import get_settings, update_settings, validate_settings_payload
from app.nexus.rbac import require_module_access
from app.nexus.tenancy import current_admin_id, is_super_admin, requested_admin_id, tenant_id_for_create

bp = Blueprint("settings", __name__)


@bp.get("/settings")
@require_module_access("settings")
def settings_get():
    user = g.current_user
    admin_id = current_admin_id(user)
    if is_super_admin(user):
        admin_id = requested_admin_id(request.args)
    return ok(get_settings(db_session(), admin_id))


@bp.put("/settings")
@require_module_access("settings", edit=True)
def settings_put():
    s = db_session()
    payload = json_body()
    raise_for_errors(validate_settings_payload(payload))
    admin_id = tenant_id_for_create(s, g.current_user, requested_admin_id(payload))
    data = update_settings(s, admin_id, payload, g.current_user)
    s.commit()
    return ok(data)
