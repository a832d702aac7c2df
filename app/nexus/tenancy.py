"""
Tenant scoping.

A tenant is an ADMIN user plus every row carrying its id in ``admin_id``.
Every read of a tenant-owned table goes through ``scoped_query`` (or merges
``tenant_filter`` itself); every insert takes its ``admin_id`` from
``tenant_id_for_create``.
"""
from __future__ import annotations

import logging
from typing import Any, TypeVar

from sqlalchemy.orm import Query, Session

from app.nexus.constants import ROLE_ADMIN, ROLE_SUPER_ADMIN
from app.nexus.errors import Forbidden, NotFound, Unauthorized, ValidationError
from app.nexus.models import User

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Filter value for users without a tenant; no row ever has admin_id 0.
NO_TENANT_ID = 0


def is_super_admin(user: User | None) -> bool:
    return bool(user and user.role == ROLE_SUPER_ADMIN)


def current_admin_id(user: User | None) -> int | None:
    """Tenant id for a user: own id for ADMIN, parent id for staff, None for SUPER_ADMIN."""
    if not user or user.role == ROLE_SUPER_ADMIN:
        return None
    if user.role == ROLE_ADMIN:
        return user.id
    return user.admin_id


def tenant_filter(user: User | None) -> dict[str, int]:
    """
    Predicate merged into every tenant-owned query.

    SUPER_ADMIN is unscoped ({}); a user that resolves to no tenant gets a
    filter that matches nothing.
    """
    if is_super_admin(user):
        return {}
    admin_id = current_admin_id(user)
    if not admin_id:
        return {"admin_id": NO_TENANT_ID}
    return {"admin_id": admin_id}


def apply_tenant_filter(q: Query, flt: dict[str, Any]) -> Query:
    if not flt:
        return q
    return q.filter_by(**flt)


def scoped_query(s: Session, model: type[T], user: User | None) -> Query:
    return apply_tenant_filter(s.query(model), tenant_filter(user))


def tenant_id_for_create(s: Session, user: User | None, requested_admin_id: int | None = None) -> int:
    """
    admin_id to stamp on a new tenant-owned row.

    SUPER_ADMIN may name any ADMIN's tenant and otherwise lands in the oldest
    ADMIN's tenant. An ADMIN whose self-reference is missing gets it repaired.
    """
    if not user:
        raise Unauthorized("Cannot create record: user not authenticated")

    if user.role == ROLE_SUPER_ADMIN:
        if requested_admin_id:
            target = s.get(User, int(requested_admin_id))
            if not target or target.role != ROLE_ADMIN:
                raise ValidationError("admin_id must reference an ADMIN user")
            return target.id
        first_admin = (
            s.query(User)
            .filter(User.role == ROLE_ADMIN)
            .order_by(User.created_at.asc(), User.id.asc())
            .first()
        )
        if not first_admin:
            raise ValidationError("Cannot create record: no ADMIN user exists yet.")
        return first_admin.id

    if user.role == ROLE_ADMIN:
        if user.admin_id != user.id:
            logger.warning("Repairing ADMIN self-reference for user_id=%s (was %s)", user.id, user.admin_id)
            user.admin_id = user.id
        return user.id

    if not user.admin_id:
        raise Forbidden("Cannot create record: user does not belong to a tenant.")
    return user.admin_id


def can_access_tenant_data(user: User | None, record_admin_id: int | None) -> bool:
    if is_super_admin(user):
        return True
    admin_id = current_admin_id(user)
    if not admin_id:
        return False
    return admin_id == record_admin_id


def get_scoped_or_404(s: Session, model: type[T], record_id: int, user: User | None, resource: str) -> T:
    """
    Fetch one tenant-owned row: 404 when it does not exist, 403 when it
    belongs to another tenant.
    """
    row = s.get(model, record_id)
    if row is None:
        raise NotFound.for_resource(resource)
    if not can_access_tenant_data(user, getattr(row, "admin_id", None)):
        raise Forbidden(f"You do not have permission to access this {resource.lower()}.")
    return row


def requested_admin_id(payload: dict) -> int | None:
    """Optional ``admin_id`` a SUPER_ADMIN names in a create payload."""
    raw = payload.get("admin_id")
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError("admin_id must be an integer")
