from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError

from app.nexus.audit import record_event
from app.nexus.models import SystemSettings
from app.nexus.utils import str_field

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.nexus.models import User

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS: dict[str, Any] = {
    "software_name": "LPG Nexus",
    "currency": "PKR",
    "bill_footer": None,
    "chatbot_visible": True,
}

EDITABLE_FIELDS = tuple(DEFAULT_SETTINGS)


def settings_to_dict(row: SystemSettings | None, admin_id: int | None) -> dict[str, Any]:
    data = dict(DEFAULT_SETTINGS)
    data["admin_id"] = admin_id
    if row is not None:
        for field in EDITABLE_FIELDS:
            data[field] = getattr(row, field)
        data["updated_at"] = row.updated_at.isoformat() if row.updated_at else None
    return data


def get_settings(s: "Session", admin_id: int | None) -> dict[str, Any]:
    """
    Tenant settings merged over the defaults. A failed lookup is logged and
    answered with the defaults.
    """
    if not admin_id:
        return settings_to_dict(None, None)
    try:
        row = s.query(SystemSettings).filter(SystemSettings.admin_id == admin_id).one_or_none()
    except SQLAlchemyError as e:
        logger.warning("Settings lookup failed for admin_id=%s; using defaults: %s", admin_id, e)
        s.rollback()
        return settings_to_dict(None, admin_id)
    return settings_to_dict(row, admin_id)


def validate_settings_payload(payload: dict) -> list[str]:
    errors = []
    unknown = sorted(set(payload) - set(EDITABLE_FIELDS) - {"admin_id"})
    if unknown:
        errors.append(f"Unknown settings: {', '.join(unknown)}")
    if "software_name" in payload and not (2 <= len(str_field(payload, "software_name")) <= 128):
        errors.append("software_name must be 2-128 characters.")
    if "currency" in payload and not (1 <= len(str_field(payload, "currency")) <= 8):
        errors.append("currency must be 1-8 characters.")
    if "bill_footer" in payload and len(str_field(payload, "bill_footer")) > 500:
        errors.append("bill_footer must be at most 500 characters.")
    if "chatbot_visible" in payload and not isinstance(payload.get("chatbot_visible"), bool):
        errors.append("chatbot_visible must be true or false.")
    return errors


def update_settings(s: "Session", admin_id: int, payload: dict, user: "User") -> dict[str, Any]:
    row = s.query(SystemSettings).filter(SystemSettings.admin_id == admin_id).one_or_none()
    if row is None:
        row = SystemSettings(admin_id=admin_id, **{k: v for k, v in DEFAULT_SETTINGS.items()})
        s.add(row)

    changes = {}
    for field in EDITABLE_FIELDS:
        if field not in payload:
            continue
        value = payload[field]
        if isinstance(value, str):
            value = value.strip()
        if field == "bill_footer" and not value:
            value = None
        if value != getattr(row, field):
            changes[field] = {"old": getattr(row, field), "new": value}
            setattr(row, field, value)
    row.updated_at = datetime.utcnow()
    s.flush()

    if changes:
        record_event(
            s,
            actor=user,
            action="settings.update",
            entity_type="SystemSettings",
            entity_id=str(row.id),
            admin_id=admin_id,
            metadata={"changes": changes},
        )
    return settings_to_dict(row, admin_id)
