from __future__ import annotations

from datetime import date, datetime
from typing import Any

from app.nexus.errors import ValidationError


def parse_date(raw: Any) -> date | None:
    """Parse a YYYY-MM-DD string (or an ISO datetime, truncated to its date)."""
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    text = str(raw).strip()
    if not text:
        return None
    if len(text) > 10:
        return parse_datetime(text).date()
    return date.fromisoformat(text)


def parse_datetime(raw: Any) -> datetime | None:
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw
    text = str(raw).strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1]
    parsed = datetime.fromisoformat(text)
    # Stored naive (UTC)
    return parsed.replace(tzinfo=None)


def date_errors(payload: dict, *fields: str) -> list[str]:
    """Validation messages for fields that are present but not parseable dates."""
    errors = []
    for name in fields:
        try:
            parse_date(payload.get(name))
        except (TypeError, ValueError):
            errors.append(f"{name} must be a date (YYYY-MM-DD).")
    return errors


def parse_int(raw: Any, *, default: int | None = None) -> int | None:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return default
    if isinstance(raw, bool):
        raise ValueError("boolean is not an integer")
    if isinstance(raw, float):
        if not raw.is_integer():
            raise ValueError("must be a whole number")
        return int(raw)
    return int(str(raw).strip())


def int_errors(payload: dict, name: str, *, required: bool = False, minimum: int | None = None) -> list[str]:
    try:
        value = parse_int(payload.get(name))
    except (TypeError, ValueError):
        return [f"{name} must be a whole number."]
    if value is None:
        return [f"{name} is required."] if required else []
    if minimum is not None and value < minimum:
        return [f"{name} must be at least {minimum}."]
    return []


def clean_str(raw: Any) -> str | None:
    text = (str(raw) if raw is not None else "").strip()
    return text or None


def str_field(payload: dict, name: str, *, strip: bool = True) -> str:
    """Text of ``payload[name]``; "" when missing or null, 400 for non-strings."""
    raw = payload.get(name)
    if raw is None:
        return ""
    if not isinstance(raw, str):
        raise ValidationError(f"{name} must be a string.")
    return raw.strip() if strip else raw
