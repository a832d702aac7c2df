from __future__ import annotations

import re
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash

from app.nexus.audit import record_event
from app.nexus.constants import (
    ROLE_ADMIN,
    ROLE_SUPER_ADMIN,
    ROLES,
    STATUS_ACTIVE,
    USER_STATUSES,
)
from app.nexus.errors import ValidationError, raise_for_errors
from app.nexus.models import User
from app.nexus.utils import str_field

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
USERNAME_RE = re.compile(r"^[A-Za-z0-9_.-]{3,64}$")
MIN_PASSWORD_LENGTH = 8

_ROLE_ALIASES = {"SUPERADMIN": ROLE_SUPER_ADMIN, "BRANCHMANAGER": "BRANCH_MANAGER"}


def normalize_role(raw: str | None, default: str) -> str:
    if raw is not None and not isinstance(raw, str):
        raise ValidationError("role must be a string.")
    role = (raw or "").strip().upper().replace(" ", "_")
    role = _ROLE_ALIASES.get(role, role)
    return role if role in ROLES else default


def validate_user_payload(payload: dict, *, require_password: bool = True) -> list[str]:
    errors = []
    name = str_field(payload, "name")
    if len(name) < 2:
        errors.append("Name is required.")
    email = str_field(payload, "email")
    if not EMAIL_RE.match(email):
        errors.append("A valid email is required.")
    username = str_field(payload, "username")
    if username and not USERNAME_RE.match(username):
        errors.append("Username must be 3-64 letters, digits, dots, dashes or underscores.")
    password = str_field(payload, "password", strip=False)
    if require_password and len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    status = str_field(payload, "status").upper()
    if status and status not in USER_STATUSES:
        errors.append(f"Invalid status. Must be one of: {', '.join(USER_STATUSES)}")
    return errors


def find_user_by_login(s: Session, login: str) -> User | None:
    login = (login or "").strip()
    if not login:
        return None
    if "@" in login:
        return s.query(User).filter(func.lower(User.email) == login.lower()).one_or_none()
    return s.query(User).filter(User.username == login).one_or_none()


def find_user_by_email(s: Session, email: str) -> User | None:
    return s.query(User).filter(func.lower(User.email) == (email or "").strip().lower()).one_or_none()


def create_user(
    s: Session,
    payload: dict,
    *,
    role: str,
    admin_id: int | None,
    actor: User | None,
    is_verified: bool = True,
) -> User:
    """
    Create a user. ADMIN users become the root of a new tenant (admin_id is
    their own id); staff must be given their ADMIN's id; SUPER_ADMIN has none.
    """
    raise_for_errors(validate_user_payload(payload, require_password=True))

    email = str_field(payload, "email").lower()
    username = str_field(payload, "username") or None
    if find_user_by_email(s, email):
        raise ValidationError("Email already exists. Please use a different email.")
    if username and s.query(User).filter(User.username == username).one_or_none():
        raise ValidationError("Username already taken. Please choose another username.")
    if role not in (ROLE_ADMIN, ROLE_SUPER_ADMIN) and not admin_id:
        raise ValidationError("Staff users must belong to a tenant.")

    user = User(
        name=str_field(payload, "name"),
        email=email,
        username=username,
        phone=str_field(payload, "phone") or None,
        business_name=str_field(payload, "business_name") or None,
        password_hash=generate_password_hash(payload["password"]),
        role=role,
        status=(payload.get("status") or STATUS_ACTIVE).strip().upper(),
        is_verified=is_verified,
        admin_id=None if role in (ROLE_ADMIN, ROLE_SUPER_ADMIN) else admin_id,
    )
    s.add(user)
    s.flush()
    if role == ROLE_ADMIN:
        user.admin_id = user.id
        s.flush()

    record_event(
        s,
        actor=actor,
        action="user.create",
        entity_type="User",
        entity_id=str(user.id),
        admin_id=user.admin_id,
        metadata={"email": user.email, "role": user.role},
    )
    return user


def set_password(s: Session, user: User, new_password: str) -> None:
    if len(new_password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    user.password_hash = generate_password_hash(new_password)
    s.flush()


def user_to_dict(user: User, *, permissions: dict[str, str] | None = None) -> dict[str, Any]:
    data = {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "username": user.username,
        "phone": user.phone,
        "business_name": user.business_name,
        "role": user.role,
        "status": user.status,
        "is_verified": user.is_verified,
        "admin_id": user.admin_id,
        "created_at": user.created_at.isoformat() if user.created_at else None,
        "last_login_at": user.last_login_at.isoformat() if user.last_login_at else None,
    }
    if permissions is not None:
        data["permissions"] = permissions
    return data


def update_user(s: Session, user: User, payload: dict, *, actor: User | None) -> User:
    """Apply profile/status changes. Email and role are fixed after creation."""
    errors = []
    changes: dict[str, Any] = {}

    if "name" in payload:
        name = str_field(payload, "name")
        if len(name) < 2:
            errors.append("Name is required.")
        elif name != user.name:
            changes["name"] = {"old": user.name, "new": name}
            user.name = name

    if "username" in payload:
        username = str_field(payload, "username") or None
        if username and not USERNAME_RE.match(username):
            errors.append("Username must be 3-64 letters, digits, dots, dashes or underscores.")
        elif username != user.username:
            taken = username and s.query(User).filter(User.username == username, User.id != user.id).first()
            if taken:
                errors.append("Username already taken. Please choose another username.")
            else:
                changes["username"] = {"old": user.username, "new": username}
                user.username = username

    for field in ("phone", "business_name"):
        if field in payload:
            value = str_field(payload, field) or None
            if value != getattr(user, field):
                changes[field] = {"old": getattr(user, field), "new": value}
                setattr(user, field, value)

    if "status" in payload:
        status = str_field(payload, "status").upper()
        if status not in USER_STATUSES:
            errors.append(f"Invalid status. Must be one of: {', '.join(USER_STATUSES)}")
        elif status != user.status:
            changes["status"] = {"old": user.status, "new": status}
            user.status = status

    if "is_verified" in payload:
        verified = bool(payload.get("is_verified"))
        if verified != user.is_verified:
            changes["is_verified"] = {"old": user.is_verified, "new": verified}
            user.is_verified = verified

    raise_for_errors(errors)
    new_password = str_field(payload, "password", strip=False)
    if new_password:
        set_password(s, user, new_password)
        changes["password"] = "changed"

    s.flush()
    if changes:
        record_event(
            s,
            actor=actor,
            action="user.update",
            entity_type="User",
            entity_id=str(user.id),
            admin_id=user.admin_id,
            metadata={"changes": changes},
        )
    return user
