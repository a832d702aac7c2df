from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING

from app.nexus.audit import record_event

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.nexus.models import User
    from app.nexus.modules.notes.models import DailyNote

MAX_LABELS = 5


def validate_note_payload(payload: dict) -> list[str]:
    errors = []
    sections = payload.get("sections")
    if not isinstance(sections, list) or not sections:
        errors.append("sections must be a non-empty list.")
    else:
        for i, section in enumerate(sections, start=1):
            if not isinstance(section, dict):
                errors.append(f"Section {i} must be an object.")
                continue
            if not str(section.get("id") or "").strip():
                errors.append(f"Section {i}: id is required.")
            if not str(section.get("title") or "").strip():
                errors.append(f"Section {i}: title is required.")
            if section.get("content") is not None and not isinstance(section.get("content"), str):
                errors.append(f"Section {i}: content must be text.")

    labels = payload.get("labels")
    if labels is not None:
        if not isinstance(labels, list) or not all(isinstance(l, str) and l.strip() for l in labels):
            errors.append("labels must be a list of non-empty strings.")
        elif len(labels) > MAX_LABELS:
            errors.append(f"At most {MAX_LABELS} labels are allowed.")
    return errors


def save_note(s: "Session", note_date: date, payload: dict, user: "User", admin_id: int) -> "DailyNote":
    """Upsert the tenant's note for one date; other dates are untouched."""
    from app.nexus.modules.notes.models import DailyNote

    sections = [
        {"id": str(sec["id"]).strip(), "title": str(sec["title"]).strip(), "content": sec.get("content") or ""}
        for sec in payload["sections"]
    ]
    labels = [l.strip() for l in (payload.get("labels") or [])]

    note = (
        s.query(DailyNote)
        .filter(DailyNote.admin_id == admin_id, DailyNote.note_date == note_date)
        .one_or_none()
    )
    now = datetime.utcnow()
    if note is None:
        note = DailyNote(admin_id=admin_id, note_date=note_date, created_at=now)
        s.add(note)
    note.sections = sections
    note.labels = labels
    note.note_text = "\n\n".join(sec["content"] for sec in sections)
    note.character_count = sum(len(sec["content"]) for sec in sections)
    note.updated_at = now
    s.flush()

    record_event(
        s,
        actor=user,
        action="note.save",
        entity_type="DailyNote",
        entity_id=note_date.isoformat(),
        admin_id=admin_id,
        metadata={"characters": note.character_count},
    )
    return note
