from __future__ import annotations

from flask import Blueprint, current_app, g, request

from app.nexus.api import json_body, ok
from app.nexus.audit import record_event
from app.nexus.auth import check_rate_limit
from app.nexus.constants import MODULES
from app.nexus.db import db_session
from app.nexus.errors import ValidationError
from app.nexus.mail import send_otp_email
from app.nexus.otp import EXPIRED, OtpError, issue_otp, verify_otp
from app.nexus.rbac import (
    check_module_access,
    current_user_or_401,
    get_user_permissions,
    level_allows_edit,
    level_allows_view,
)
from app.nexus.security import ensure_csrf_token
from app.nexus.users import find_user_by_email
from app.nexus.utils import str_field

bp = Blueprint("routes", __name__)


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for probes. No DB access, minimal overhead.
    """
    return "ok", 200


@bp.get("/api/csrf-token")
def csrf_token():
    return ok({"csrf_token": ensure_csrf_token()})


# ---------- OTP ----------
@bp.post("/api/otp/request")
def otp_request():
    payload = json_body()
    email = str_field(payload, "email")
    if not email or "@" not in email:
        raise ValidationError("A valid email is required.")
    check_rate_limit("otp", "OTP_RATE_LIMIT")

    s = db_session()
    issued = issue_otp(
        s,
        email,
        length=current_app.config["OTP_LENGTH"],
        ttl_minutes=current_app.config["OTP_EXPIRATION_MINUTES"],
    )
    s.commit()
    send_otp_email(issued.email, issued.code, issued.expires_at)
    return ok({"expires_at": issued.expires_at.isoformat()})


@bp.post("/api/otp/verify")
def otp_verify():
    payload = json_body()
    email = str_field(payload, "email")
    code = payload.get("code")
    if not email or not code or not isinstance(code, str):
        raise ValidationError("email and code are required.")

    s = db_session()
    try:
        verify_otp(s, email, code, max_attempts=current_app.config["OTP_MAX_ATTEMPTS"])
    except OtpError as e:
        s.commit()  # keep the failed-attempt count
        message = (
            "Verification code has expired. Please request a new one."
            if e.reason == EXPIRED
            else "Invalid verification code. Please check and try again."
        )
        raise ValidationError(message, code=e.reason)

    # A successful verification confirms ownership of the address.
    user = find_user_by_email(s, email)
    if user and not user.is_verified:
        user.is_verified = True
        record_event(s, actor=user, action="auth.email_verified", entity_type="User", entity_id=str(user.id))
    s.commit()
    return ok({"verified": True, "user_verified": bool(user and user.is_verified)})


# ---------- Permissions ----------
@bp.get("/api/permissions/check")
def permissions_check():
    current_user_or_401()
    module_id = (request.args.get("module") or "").strip()
    if not module_id:
        raise ValidationError("module is required")
    if module_id not in MODULES:
        raise ValidationError(f"Unknown module: {module_id}")
    level = check_module_access(module_id)
    return ok(
        {
            "module": module_id,
            "access_level": level,
            "can_view": level_allows_view(level),
            "can_edit": level_allows_edit(level),
        }
    )


@bp.get("/api/permissions/me")
def permissions_me():
    user = current_user_or_401()
    return ok({"role": user.role, "permissions": get_user_permissions(db_session(), g.current_user)})
