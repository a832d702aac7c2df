from __future__ import annotations

from flask import Blueprint, g

from app.nexus.api import json_body, ok
from app.nexus.auth import check_rate_limit
from app.nexus.db import db_session
from app.nexus.modules.profile.service import change_password, update_profile
from app.nexus.rbac import get_user_permissions, require_module_access
from app.nexus.users import user_to_dict

bp = Blueprint("profile", __name__)


@bp.get("/profile")
@require_module_access("profile")
def profile_get():
    s = db_session()
    user = g.current_user
    return ok(user_to_dict(user, permissions=get_user_permissions(s, user)))


@bp.patch("/profile")
@require_module_access("profile", edit=True)
def profile_update():
    s = db_session()
    user = update_profile(s, g.current_user, json_body())
    s.commit()
    return ok(user_to_dict(user))


@bp.post("/profile/change-password")
@require_module_access("profile", edit=True)
def profile_change_password():
    payload = json_body()
    check_rate_limit("password", "LOGIN_RATE_LIMIT")
    s = db_session()
    change_password(s, g.current_user, payload)
    s.commit()
    return ok({"message": "Password changed successfully."})
