"""
Module access control.

Every module resolves to one of five access levels for a user: SUPER_ADMIN is
always FULL_ACCESS; everyone else gets their explicit user record, then their
role's default record, then NO_ACCESS.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from functools import wraps
from typing import Any

from flask import abort, g, redirect, request, url_for
from sqlalchemy.orm import Session

from app.nexus.constants import (
    ACCESS_LEVELS,
    EDIT,
    FULL_ACCESS,
    MODULES,
    NO_ACCESS,
    NOT_SHOW,
    ROLE_DEFAULT_ACCESS,
    ROLE_SUPER_ADMIN,
    ROUTE_MODULE_MAP,
)
from app.nexus.db import db_session
from app.nexus.errors import Forbidden, Unauthorized, ValidationError
from app.nexus.models import ModulePermission, User

logger = logging.getLogger(__name__)


def level_allows_view(level: str) -> bool:
    return level not in (NO_ACCESS, NOT_SHOW)


def level_allows_edit(level: str) -> bool:
    return level in (EDIT, FULL_ACCESS)


def resolve_access_level(s: Session, user: User | None, module_id: str) -> str:
    if not user:
        return NO_ACCESS
    if user.role == ROLE_SUPER_ADMIN:
        return FULL_ACCESS
    if not user.is_active or not user.is_verified:
        return NO_ACCESS

    record = (
        s.query(ModulePermission)
        .filter(ModulePermission.user_id == user.id, ModulePermission.module_id == module_id)
        .one_or_none()
    )
    if record is None:
        record = (
            s.query(ModulePermission)
            .filter(ModulePermission.role == user.role, ModulePermission.module_id == module_id)
            .one_or_none()
        )
    if record is None or record.access_level not in ACCESS_LEVELS:
        return NO_ACCESS

    # FULL_ACCESS is reserved for SUPER_ADMIN
    if record.access_level == FULL_ACCESS:
        return EDIT
    return record.access_level


def check_module_access(module_id: str) -> str:
    """Access level of the current session's user for a module."""
    user: User | None = getattr(g, "current_user", None)
    if not user:
        return NO_ACCESS
    return resolve_access_level(db_session(), user, module_id)


def can_view(module_id: str) -> bool:
    return level_allows_view(check_module_access(module_id))


def can_edit(module_id: str) -> bool:
    return level_allows_edit(check_module_access(module_id))


def get_user_permissions(s: Session, user: User) -> dict[str, str]:
    """Effective level for every known module."""
    return {m: resolve_access_level(s, user, m) for m in MODULES}


def set_user_permissions(s: Session, target: User, levels: dict[str, str]) -> dict[str, str]:
    """
    Upsert explicit per-user records. Unknown modules or levels are rejected;
    FULL_ACCESS can only be granted to a SUPER_ADMIN.
    """
    errors: list[str] = []
    for module_id, level in levels.items():
        if module_id not in MODULES:
            errors.append(f"Unknown module: {module_id}")
        if level not in ACCESS_LEVELS:
            errors.append(f"Invalid access level for {module_id}: {level}")
        elif level == FULL_ACCESS and target.role != ROLE_SUPER_ADMIN:
            errors.append(f"FULL_ACCESS is reserved for super admins ({module_id}).")
    if errors:
        raise ValidationError("Invalid permissions", details=errors)

    existing = {
        p.module_id: p
        for p in s.query(ModulePermission).filter(ModulePermission.user_id == target.id).all()
    }
    now = datetime.utcnow()
    for module_id, level in levels.items():
        record = existing.get(module_id)
        if record is None:
            s.add(ModulePermission(user_id=target.id, module_id=module_id, access_level=level, updated_at=now))
        elif record.access_level != level:
            record.access_level = level
            record.updated_at = now
    s.flush()
    rows = s.query(ModulePermission).filter(ModulePermission.user_id == target.id).all()
    return {p.module_id: p.access_level for p in rows}


def seed_role_defaults(s: Session) -> int:
    """Write the role-default table (idempotent, never lowers an edited row). Returns rows created."""
    created = 0
    for role, modules in ROLE_DEFAULT_ACCESS.items():
        have = {
            p.module_id
            for p in s.query(ModulePermission).filter(ModulePermission.role == role).all()
        }
        for module_id, level in modules.items():
            if module_id in have:
                continue
            s.add(ModulePermission(role=role, module_id=module_id, access_level=level))
            created += 1
    s.flush()
    return created


def module_for_path(pathname: str) -> str | None:
    """Module guarding a page path: exact match first, then the longest matching prefix."""
    if pathname in ROUTE_MODULE_MAP:
        return ROUTE_MODULE_MAP[pathname]
    best: str | None = None
    best_len = 0
    for route, module_id in ROUTE_MODULE_MAP.items():
        if route == "/":
            continue
        if (pathname == route or pathname.startswith(route + "/")) and len(route) > best_len:
            best, best_len = module_id, len(route)
    return best


def enforce_page_permission(pathname: str) -> str | None:
    """
    Page guard. NOT_SHOW redirects to /access-denied; NO_ACCESS is returned so
    the page renders behind a restricted overlay. Unmapped paths return None.
    """
    if pathname == "/access-denied":
        return None
    module_id = module_for_path(pathname)
    if not module_id:
        return None
    level = check_module_access(module_id)
    if level == NOT_SHOW:
        abort(redirect(url_for("pages.access_denied")))
    return level


def current_user_or_401() -> User:
    user: User | None = getattr(g, "current_user", None)
    if not user:
        raise Unauthorized()
    return user


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        current_user_or_401()
        return fn(*args, **kwargs)

    return wrapped


def require_module_access(module_id: str, *, edit: bool = False) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """API guard: 401 without a session, 403 without view (or edit) access to the module."""

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            current_user_or_401()
            level = check_module_access(module_id)
            allowed = level_allows_edit(level) if edit else level_allows_view(level)
            if not allowed:
                g.missing_permission = f"{module_id}:{'edit' if edit else 'view'}"
                if edit:
                    raise Forbidden("You do not have permission to perform this action. Edit access is required.")
                raise Forbidden("You do not have permission to access this resource.")
            return fn(*args, **kwargs)

        return wrapped

    return decorator


def require_roles(*roles: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user = current_user_or_401()
            if user.role not in roles:
                g.missing_permission = f"role:{'|'.join(roles)}"
                logger.warning("Role check failed: user_id=%s role=%s path=%s", user.id, user.role, request.path)
                raise Forbidden()
            return fn(*args, **kwargs)

        return wrapped

    return decorator
