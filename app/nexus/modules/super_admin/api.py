"""
Super-admin console: every user across tenants, their permissions, platform
overview, the activity log and the OTP-confirmed wipe of business data.
"""
from __future__ import annotations

from flask import Blueprint, current_app, g, request

from app.nexus.api import created, json_body, ok, serialize
from app.nexus.audit import record_event
from app.nexus.constants import ROLE_ADMIN, ROLE_SUPER_ADMIN, ROLES
from app.nexus.db import db_session
from app.nexus.errors import Forbidden, NotFound, ValidationError
from app.nexus.mail import send_otp_email
from app.nexus.models import AuditEvent, User
from app.nexus.modules.backup.service import wipe_business_data
from app.nexus.modules.super_admin.service import tenant_stats, user_stats
from app.nexus.otp import OtpError, issue_otp, verify_otp
from app.nexus.pagination import page_payload, paginate, parse_pagination, text_search
from app.nexus.rbac import get_user_permissions, require_roles, set_user_permissions
from app.nexus.tenancy import requested_admin_id
from app.nexus.users import create_user, normalize_role, update_user, user_to_dict

bp = Blueprint("super_admin", __name__)

super_admin_only = require_roles(ROLE_SUPER_ADMIN)


def _get_user_or_404(s, user_id: int) -> User:
    user = s.get(User, user_id)
    if not user:
        raise NotFound.for_resource("User")
    return user


# ---------- Users ----------
@bp.get("/super-admin/users")
@super_admin_only
def users_list():
    s = db_session()
    pagination = parse_pagination(request.args)
    q = text_search(s.query(User), pagination.q, User.name, User.email, User.username, User.business_name)
    role = (request.args.get("role") or "").strip().upper()
    if role:
        q = q.filter(User.role == role)
    status = (request.args.get("status") or "").strip().upper()
    if status:
        q = q.filter(User.status == status)
    admin_id = requested_admin_id(request.args)
    if admin_id:
        q = q.filter(User.admin_id == admin_id)
    items, total = paginate(q.order_by(User.created_at.desc(), User.id.desc()), pagination)
    return ok(page_payload([user_to_dict(u) for u in items], pagination, total))


@bp.post("/super-admin/users")
@super_admin_only
def users_create():
    s = db_session()
    payload = json_body()
    role = normalize_role(payload.get("role"), ROLE_ADMIN)
    if role == ROLE_SUPER_ADMIN:
        raise ValidationError("Super admin accounts are provisioned by scripts/init_db.py.")
    admin_id = None
    if role != ROLE_ADMIN:
        admin_id = requested_admin_id(payload)
        tenant = s.get(User, admin_id) if admin_id else None
        if not tenant or tenant.role != ROLE_ADMIN:
            raise ValidationError("admin_id must reference an ADMIN user for staff roles.")
    user = create_user(
        s,
        payload,
        role=role,
        admin_id=admin_id,
        actor=g.current_user,
        is_verified=bool(payload.get("is_verified", True)),
    )
    s.commit()
    return created(user_to_dict(user, permissions=get_user_permissions(s, user)))


@bp.get("/super-admin/users/<int:user_id>")
@super_admin_only
def user_detail(user_id: int):
    s = db_session()
    user = _get_user_or_404(s, user_id)
    data = user_to_dict(user, permissions=get_user_permissions(s, user))
    if user.role == ROLE_ADMIN:
        data["team_size"] = s.query(User).filter(User.admin_id == user.id, User.id != user.id).count()
    return ok(data)


@bp.patch("/super-admin/users/<int:user_id>")
@super_admin_only
def user_update(user_id: int):
    s = db_session()
    user = _get_user_or_404(s, user_id)
    payload = json_body()
    if user.id == g.current_user.id and "status" in payload:
        raise ValidationError("You cannot change your own status.")
    if "role" in payload and normalize_role(payload.get("role"), user.role) != user.role:
        raise ValidationError(f"Role cannot be changed. Valid roles: {', '.join(ROLES)}")
    update_user(s, user, payload, actor=g.current_user)
    s.commit()
    return ok(user_to_dict(user, permissions=get_user_permissions(s, user)))


@bp.delete("/super-admin/users/<int:user_id>")
@super_admin_only
def user_delete(user_id: int):
    """Deleting an ADMIN removes its whole tenant (staff and business rows cascade)."""
    s = db_session()
    user = _get_user_or_404(s, user_id)
    if user.id == g.current_user.id:
        raise ValidationError("You cannot delete your own account.")
    if user.role == ROLE_SUPER_ADMIN:
        raise Forbidden("Super admin accounts cannot be deleted here.")
    record_event(
        s,
        actor=g.current_user,
        action="user.delete",
        entity_type="User",
        entity_id=str(user.id),
        admin_id=None,
        metadata={"email": user.email, "role": user.role},
    )
    s.delete(user)
    s.commit()
    return ok({"deleted": True, "id": user_id})


@bp.put("/super-admin/users/<int:user_id>/permissions")
@super_admin_only
def user_permissions(user_id: int):
    s = db_session()
    user = _get_user_or_404(s, user_id)
    payload = json_body()
    levels = payload.get("permissions", payload)
    if not isinstance(levels, dict):
        raise ValidationError("permissions must be an object of module -> access level")
    stored = set_user_permissions(s, user, levels)
    record_event(
        s,
        actor=g.current_user,
        action="permissions.update",
        entity_type="User",
        entity_id=str(user.id),
        admin_id=user.admin_id,
        metadata={"permissions": stored},
    )
    s.commit()
    return ok(user_to_dict(user, permissions=get_user_permissions(s, user)))


# ---------- Overview / activity ----------
@bp.get("/super-admin/overview")
@super_admin_only
def overview():
    s = db_session()
    recent = s.query(AuditEvent).order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(5).all()
    return ok(
        {
            "stats": user_stats(s),
            "tenant_stats": tenant_stats(s),
            "recent_activity": [serialize(e) for e in recent],
        }
    )


@bp.get("/super-admin/activity-logs")
@super_admin_only
def activity_logs():
    s = db_session()
    pagination = parse_pagination(request.args)
    q = text_search(s.query(AuditEvent), pagination.q, AuditEvent.action, AuditEvent.actor_user_email, AuditEvent.entity_type)
    admin_id = requested_admin_id(request.args)
    if admin_id:
        q = q.filter(AuditEvent.admin_id == admin_id)
    action = (request.args.get("action") or "").strip()
    if action:
        q = q.filter(AuditEvent.action.like(f"{action}%"))
    items, total = paginate(q.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()), pagination)
    return ok(page_payload([serialize(e) for e in items], pagination, total))


# ---------- Delete all data ----------
@bp.get("/super-admin/delete-all-data/get-email")
@super_admin_only
def delete_all_get_email():
    return ok({"email": g.current_user.email})


@bp.post("/super-admin/delete-all-data/request-otp")
@super_admin_only
def delete_all_request_otp():
    s = db_session()
    issued = issue_otp(
        s,
        g.current_user.email,
        length=current_app.config["OTP_LENGTH"],
        ttl_minutes=current_app.config["OTP_EXPIRATION_MINUTES"],
    )
    s.commit()
    send_otp_email(issued.email, issued.code, issued.expires_at, purpose="data deletion")
    return ok({"expires_at": issued.expires_at.isoformat()})


@bp.post("/super-admin/delete-all-data/verify-otp")
@super_admin_only
def delete_all_verify_otp():
    """
    Confirms the wipe with the emailed code, then deletes business data of one
    tenant (``admin_id``) or of every tenant. Users and backup history stay.
    """
    s = db_session()
    payload = json_body()
    code = payload.get("code")
    if not code or not isinstance(code, str):
        raise ValidationError("Verification code is required")
    admin_id = requested_admin_id(payload)
    if admin_id:
        tenant = s.get(User, admin_id)
        if not tenant or tenant.role != ROLE_ADMIN:
            raise ValidationError("admin_id must reference an ADMIN user")

    try:
        verify_otp(s, g.current_user.email, code.strip(), max_attempts=current_app.config["OTP_MAX_ATTEMPTS"])
    except OtpError as e:
        s.commit()
        message = (
            "Verification code has expired. Please request a new one."
            if e.reason == "EXPIRED"
            else "Invalid verification code. Please check and try again."
        )
        raise ValidationError(message, code=e.reason)

    deleted = wipe_business_data(s, admin_id)
    record_event(
        s,
        actor=g.current_user,
        action="data.delete_all",
        entity_type="Tenant" if admin_id else "Platform",
        entity_id=str(admin_id) if admin_id else None,
        admin_id=admin_id,
        metadata={"deleted": deleted},
    )
    s.commit()
    current_app.logger.warning("All business data deleted by user_id=%s scope=%s", g.current_user.id, admin_id or "all")
    return ok({"deleted": deleted, "admin_id": admin_id})
