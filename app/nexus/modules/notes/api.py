from __future__ import annotations

from datetime import date

from flask import Blueprint, g, request

from app.nexus.api import json_body, ok, serialize
from app.nexus.db import db_session
from app.nexus.errors import ValidationError, raise_for_errors
from app.nexus.modules.notes.models import DailyNote
from app.nexus.modules.notes.service import save_note, validate_note_payload
from app.nexus.pagination import page_payload, paginate, parse_pagination, text_search
from app.nexus.rbac import require_module_access
from app.nexus.tenancy import requested_admin_id, scoped_query, tenant_id_for_create

bp = Blueprint("notes", __name__)


def _note_date(raw: str) -> date:
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise ValidationError("Note date must be YYYY-MM-DD")


@bp.get("/notes")
@require_module_access("notes")
def notes_list():
    s = db_session()
    pagination = parse_pagination(request.args)
    q = scoped_query(s, DailyNote, g.current_user)
    q = text_search(q, pagination.q, DailyNote.note_text, DailyNote.labels)
    items, total = paginate(q.order_by(DailyNote.note_date.desc()), pagination)
    rows = [serialize(n, exclude=("sections", "note_text")) for n in items]
    return ok(page_payload(rows, pagination, total))


@bp.get("/notes/<note_date>")
@require_module_access("notes")
def note_detail(note_date: str):
    s = db_session()
    day = _note_date(note_date)
    note = scoped_query(s, DailyNote, g.current_user).filter(DailyNote.note_date == day).first()
    if note is None:
        return ok({"note_date": day.isoformat(), "sections": [], "labels": [], "exists": False})
    data = serialize(note)
    data["exists"] = True
    return ok(data)


@bp.put("/notes/<note_date>")
@require_module_access("notes", edit=True)
def note_save(note_date: str):
    s = db_session()
    day = _note_date(note_date)
    payload = json_body()
    raise_for_errors(validate_note_payload(payload))
    admin_id = tenant_id_for_create(s, g.current_user, requested_admin_id(payload))
    note = save_note(s, day, payload, g.current_user, admin_id)
    s.commit()
    return ok(serialize(note))
