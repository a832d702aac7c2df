from __future__ import annotations

from datetime import date, datetime
from typing import Any

from flask import jsonify, request
from sqlalchemy import inspect as sa_inspect

from app.nexus.errors import ValidationError


def ok(data: Any = None, status: int = 200):
    return jsonify({"success": True, "data": data}), status


def created(data: Any = None):
    return ok(data, 201)


def fail(message: str, status: int = 400, *, code: str | None = None, details: Any = None):
    body: dict[str, Any] = {"success": False, "error": message}
    if code:
        body["code"] = code
    if details is not None:
        body["details"] = details
    return jsonify(body), status


def json_body() -> dict:
    """Parsed JSON object from the request body; anything else is a validation error."""
    payload = request.get_json(silent=True)
    if payload is None:
        raise ValidationError("Invalid JSON body")
    if not isinstance(payload, dict):
        raise ValidationError("JSON body must be an object")
    return payload


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def serialize(obj: Any, *, exclude: tuple[str, ...] = ()) -> dict[str, Any]:
    """Column values of an ORM row as a JSON-ready dict (dates as ISO strings)."""
    mapper = sa_inspect(obj).mapper
    return {
        attr.key: _jsonable(getattr(obj, attr.key))
        for attr in mapper.column_attrs
        if attr.key not in exclude
    }
