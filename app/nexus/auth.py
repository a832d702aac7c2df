from __future__ import annotations

import uuid
from datetime import datetime

from flask import Blueprint, current_app, g, request
from werkzeug.security import check_password_hash

from app.nexus.api import json_body, ok, created
from app.nexus.audit import record_event
from app.nexus.constants import ROLE_ADMIN, STATUS_SUSPENDED
from app.nexus.db import db_session
from app.nexus.errors import Forbidden, TooManyRequests, Unauthorized, ValidationError
from app.nexus.mail import send_otp_email
from app.nexus.models import User
from app.nexus.otp import OtpError, issue_otp, verify_otp
from app.nexus.ratelimit import limiter
from app.nexus.rbac import current_user_or_401, get_user_permissions
from app.nexus.tokens import identity_claims, parse_expires_in, sign_token, verify_token
from app.nexus.users import create_user, find_user_by_email, find_user_by_login, set_password, user_to_dict
from app.nexus.utils import str_field

bp = Blueprint("auth", __name__)


def _client_ip() -> str:
    # Behind TRUSTED_PROXIES, ProxyFix has already rewritten remote_addr.
    return request.remote_addr or "unknown"


def load_current_user() -> None:
    """
    Resolves g.current_user from the signed token cookie.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.current_user = None
    g.identity = None

    token = request.cookies.get(current_app.config["AUTH_COOKIE_NAME"])
    if not token:
        return

    claims = verify_token(
        token,
        secret=current_app.config["JWT_SECRET"],
        issuer=current_app.config["JWT_ISSUER"],
    )
    if not claims or not claims.get("user_id"):
        g.clear_auth_cookie = True
        return

    s = db_session()
    user = s.get(User, int(claims["user_id"]))
    if not user or user.status == STATUS_SUSPENDED:
        g.clear_auth_cookie = True
        return
    g.identity = claims
    g.current_user = user


def clear_stale_auth_cookie(response):
    if getattr(g, "clear_auth_cookie", False):
        response.delete_cookie(current_app.config["AUTH_COOKIE_NAME"], path="/")
    return response


def _set_auth_cookie(response, user: User, remember_me: bool) -> None:
    cfg = current_app.config
    ttl = cfg["REMEMBER_ME_TTL"] if remember_me else cfg["AUTH_TOKEN_TTL"]
    token = sign_token(identity_claims(user), secret=cfg["JWT_SECRET"], issuer=cfg["JWT_ISSUER"], expires_in=ttl)
    response.set_cookie(
        cfg["AUTH_COOKIE_NAME"],
        token,
        max_age=parse_expires_in(ttl),
        httponly=True,
        secure=bool(cfg.get("SESSION_COOKIE_SECURE")),
        samesite="Lax",
        path="/",
    )


def check_rate_limit(bucket: str, limit_key: str) -> None:
    cfg = current_app.config
    result = limiter.hit(f"{bucket}:{_client_ip()}", limit=cfg[limit_key], window_seconds=cfg["RATE_LIMIT_WINDOW"])
    if not result.allowed:
        raise TooManyRequests("Too many attempts. Please wait a few minutes and try again.")


@bp.post("/login")
def login():
    payload = json_body()
    login_name = str_field(payload, "username") or str_field(payload, "email")
    password = str_field(payload, "password", strip=False)
    remember_me = bool(payload.get("remember_me"))
    if not login_name or not password:
        raise ValidationError("Username and password are required.")

    check_rate_limit("login", "LOGIN_RATE_LIMIT")

    s = db_session()
    try:
        user = find_user_by_login(s, login_name)
        if not user or not check_password_hash(user.password_hash, password):
            record_event(
                s,
                actor=None,
                action="auth.login_failed",
                entity_type="User",
                entity_id=login_name,
                reason="Invalid credentials",
                admin_id=user.admin_id if user else None,
            )
            s.commit()
            raise Unauthorized("Invalid credentials.")
        if user.status == STATUS_SUSPENDED:
            raise Forbidden("Your account has been suspended. Please contact support.")
        if not user.is_verified:
            raise Forbidden("Account not verified. Please verify your email or contact support.")

        user.last_login_at = datetime.utcnow()
        record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
        s.commit()
    except (Unauthorized, Forbidden):
        raise
    except Exception:
        current_app.logger.exception("Login crashed (login=%s request_id=%s)", login_name, getattr(g, "request_id", None))
        raise

    limiter.reset(f"login:{_client_ip()}")
    response, status = ok({"user": user_to_dict(user)})
    _set_auth_cookie(response, user, remember_me)
    return response, status


@bp.post("/logout")
def logout():
    user = getattr(g, "current_user", None)
    if user:
        s = db_session()
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
        s.commit()
    response, status = ok({"logged_out": True})
    response.delete_cookie(current_app.config["AUTH_COOKIE_NAME"], path="/")
    return response, status


@bp.get("/me")
def me():
    user = current_user_or_401()
    return ok({"user": user_to_dict(user, permissions=get_user_permissions(db_session(), user))})


@bp.post("/register")
def register():
    """Self-signup of a new tenant ADMIN; the account stays unverified until its email OTP is confirmed."""
    payload = json_body()
    s = db_session()
    user = create_user(s, payload, role=ROLE_ADMIN, admin_id=None, actor=None, is_verified=False)
    issued = issue_otp(
        s,
        user.email,
        length=current_app.config["OTP_LENGTH"],
        ttl_minutes=current_app.config["OTP_EXPIRATION_MINUTES"],
    )
    s.commit()
    send_otp_email(user.email, issued.code, issued.expires_at)
    return created({"user": user_to_dict(user), "verification_expires_at": issued.expires_at.isoformat()})


@bp.post("/forgot-password")
def forgot_password():
    payload = json_body()
    email = str_field(payload, "email")
    if not email:
        raise ValidationError("Email is required.")
    check_rate_limit("otp", "OTP_RATE_LIMIT")

    s = db_session()
    user = find_user_by_email(s, email)
    if user:
        issued = issue_otp(
            s,
            user.email,
            length=current_app.config["OTP_LENGTH"],
            ttl_minutes=current_app.config["OTP_EXPIRATION_MINUTES"],
        )
        record_event(s, actor=user, action="auth.password_reset_requested", entity_type="User", entity_id=str(user.id))
        s.commit()
        send_otp_email(user.email, issued.code, issued.expires_at, purpose="password reset")
    # Same answer whether or not the account exists.
    return ok({"message": "If an account exists, a password reset code has been sent."})


@bp.post("/reset-password")
def reset_password():
    payload = json_body()
    email = str_field(payload, "email")
    code = str_field(payload, "code")
    new_password = str_field(payload, "new_password", strip=False)
    if not email or not code or not new_password:
        raise ValidationError("email, code and new_password are required.")

    s = db_session()
    user = find_user_by_email(s, email)
    if not user:
        raise ValidationError("Invalid or expired reset code.")
    try:
        verify_otp(s, email, code, max_attempts=current_app.config["OTP_MAX_ATTEMPTS"])
    except OtpError as e:
        s.commit()  # keep the failed-attempt count
        raise ValidationError("Invalid or expired reset code.", code=e.reason)
    set_password(s, user, new_password)
    record_event(s, actor=user, action="auth.password_reset", entity_type="User", entity_id=str(user.id))
    s.commit()
    return ok({"message": "Password reset successfully."})
