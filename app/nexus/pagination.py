from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy import String, cast, or_
from sqlalchemy.orm import Query

from app.nexus.errors import ValidationError

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
MAX_QUERY_LENGTH = 120


@dataclass(frozen=True)
class Pagination:
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    q: str | None = None

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def _int_param(args: Mapping[str, Any], name: str, default: int) -> int:
    raw = args.get(name)
    if raw is None or str(raw).strip() == "":
        return default
    try:
        return int(str(raw).strip())
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def parse_pagination(args: Mapping[str, Any], *, max_page_size: int = MAX_PAGE_SIZE) -> Pagination:
    """Read page / page_size / q from query args (pageSize accepted as an alias)."""
    page = _int_param(args, "page", 1)
    page_size = _int_param(args, "page_size", _int_param(args, "pageSize", DEFAULT_PAGE_SIZE))
    if page < 1:
        raise ValidationError("page must be >= 1")
    if page_size < 1 or page_size > max_page_size:
        raise ValidationError(f"page_size must be between 1 and {max_page_size}")
    q = (args.get("q") or "").strip() or None
    if q and len(q) > MAX_QUERY_LENGTH:
        raise ValidationError(f"q must be at most {MAX_QUERY_LENGTH} characters")
    return Pagination(page=page, page_size=page_size, q=q)


def total_pages(total: int, page_size: int) -> int:
    return math.ceil(total / page_size) if page_size else 0


def text_search(q: Query, term: str | None, *columns) -> Query:
    """Case-insensitive contains-match of ``term`` across ``columns``."""
    if not term:
        return q
    like = f"%{term}%"
    return q.filter(or_(*(cast(c, String).ilike(like) for c in columns)))


def paginate(q: Query, pagination: Pagination) -> tuple[list, int]:
    total = q.order_by(None).count()
    items = q.offset(pagination.offset).limit(pagination.page_size).all()
    return items, total


def page_payload(items: list[dict], pagination: Pagination, total: int) -> dict[str, Any]:
    return {
        "items": items,
        "page": pagination.page,
        "page_size": pagination.page_size,
        "total": total,
        "total_pages": total_pages(total, pagination.page_size),
    }
