import json
from typing import Any

from flask import g, has_request_context, request
from sqlalchemy.orm import Session

from app.nexus.models import AuditEvent, User
from app.nexus.tenancy import current_admin_id


def record_event(
    s: Session,
    *,
    actor: User | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
    admin_id: int | None = None,
    request_id: str | None = None,
) -> AuditEvent:
    """
    Append-only activity log helper. The event is attributed to the actor's
    tenant unless ``admin_id`` names one explicitly.
    """
    in_request = has_request_context()
    rid = request_id or (getattr(g, "request_id", None) if in_request else None)
    ev = AuditEvent(
        request_id=rid,
        client_ip=request.remote_addr if in_request else None,
        actor_user_id=actor.id if actor else None,
        actor_user_email=actor.email if actor else None,
        admin_id=admin_id if admin_id is not None else current_admin_id(actor),
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
        metadata_json=json.dumps(metadata, sort_keys=True, default=str) if metadata else None,
    )
    s.add(ev)
    return ev
