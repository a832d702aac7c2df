"""
Tenant staff management.

An ADMIN manages the staff accounts under its own tenant and their per-module
access levels; a SUPER_ADMIN may do the same for any tenant by naming it.
"""
from __future__ import annotations

from flask import Blueprint, g, request

from app.nexus.api import created, json_body, ok
from app.nexus.audit import record_event
from app.nexus.constants import ROLE_ADMIN, ROLE_STAFF, ROLE_SUPER_ADMIN, STAFF_ROLES
from app.nexus.db import db_session
from app.nexus.errors import ValidationError
from app.nexus.models import User
from app.nexus.rbac import get_user_permissions, require_roles, set_user_permissions
from app.nexus.tenancy import get_scoped_or_404, requested_admin_id, scoped_query, tenant_id_for_create
from app.nexus.users import create_user, normalize_role, user_to_dict

bp = Blueprint("team", __name__)


@bp.get("/team")
@require_roles(ROLE_ADMIN, ROLE_SUPER_ADMIN)
def team_list():
    s = db_session()
    q = scoped_query(s, User, g.current_user).filter(User.role.in_(STAFF_ROLES))
    if g.current_user.role == ROLE_SUPER_ADMIN:
        admin_id = requested_admin_id(request.args)
        if admin_id:
            q = q.filter(User.admin_id == admin_id)
    members = q.order_by(User.name.asc()).all()
    return ok({"items": [user_to_dict(u, permissions=get_user_permissions(s, u)) for u in members]})


@bp.post("/team")
@require_roles(ROLE_ADMIN, ROLE_SUPER_ADMIN)
def team_create():
    s = db_session()
    payload = json_body()
    role = normalize_role(payload.get("role"), ROLE_STAFF)
    if role not in STAFF_ROLES:
        raise ValidationError(f"Team members must have one of the roles: {', '.join(STAFF_ROLES)}")
    admin_id = tenant_id_for_create(s, g.current_user, requested_admin_id(payload))
    member = create_user(s, payload, role=role, admin_id=admin_id, actor=g.current_user, is_verified=True)

    levels = payload.get("permissions")
    if levels:
        if not isinstance(levels, dict):
            raise ValidationError("permissions must be an object of module -> access level")
        set_user_permissions(s, member, levels)
    s.commit()
    return created(user_to_dict(member, permissions=get_user_permissions(s, member)))


@bp.put("/team/<int:user_id>/permissions")
@require_roles(ROLE_ADMIN, ROLE_SUPER_ADMIN)
def team_permissions(user_id: int):
    s = db_session()
    member = get_scoped_or_404(s, User, user_id, g.current_user, "User")
    if member.role not in STAFF_ROLES:
        raise ValidationError("Only staff permissions can be edited here.")
    payload = json_body()
    levels = payload.get("permissions", payload)
    if not isinstance(levels, dict):
        raise ValidationError("permissions must be an object of module -> access level")
    stored = set_user_permissions(s, member, levels)
    record_event(
        s,
        actor=g.current_user,
        action="permissions.update",
        entity_type="User",
        entity_id=str(member.id),
        admin_id=member.admin_id,
        metadata={"permissions": stored},
    )
    s.commit()
    return ok(user_to_dict(member, permissions=get_user_permissions(s, member)))
