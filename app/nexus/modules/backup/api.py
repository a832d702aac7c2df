from __future__ import annotations

import json
import secrets

from flask import Blueprint, Response, current_app, g, request

from app.nexus.api import json_body, ok, serialize
from app.nexus.constants import ROLE_ADMIN
from app.nexus.db import db_session
from app.nexus.errors import Forbidden, Unauthorized, ValidationError
from app.nexus.models import BackupRecord, User
from app.nexus.modules.backup.service import dump_document, generate_backup, restore_backup
from app.nexus.pagination import page_payload, paginate, parse_pagination
from app.nexus.rbac import require_module_access
from app.nexus.tenancy import current_admin_id, is_super_admin, requested_admin_id, scoped_query, tenant_id_for_create

bp = Blueprint("backup", __name__)


def _backup_admin_id(args) -> int | None:
    """Tenant to back up: the caller's own, or any (None = all) for a super admin."""
    user = g.current_user
    if is_super_admin(user):
        return requested_admin_id(args)
    return current_admin_id(user)


@bp.get("/backup/generate")
@require_module_access("backup")
def backup_generate():
    s = db_session()
    document, record = generate_backup(s, g.current_user, _backup_admin_id(request.args))
    s.commit()
    return Response(
        dump_document(document),
        status=200,
        mimetype="application/json",
        headers={"Content-Disposition": f'attachment; filename="{record.file_name}"'},
    )


def _uploaded_document() -> tuple[object, str | None, dict]:
    """(document, file name, extra fields) from a multipart upload or a JSON body."""
    upload = request.files.get("file")
    if upload is not None:
        try:
            document = json.loads(upload.read().decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            raise ValidationError("Backup file is not valid JSON.")
        return document, upload.filename or None, request.form.to_dict()

    payload = json_body()
    if "document" in payload:
        return payload["document"], payload.get("file_name"), payload
    return payload, None, {}


@bp.post("/backup/restore")
@require_module_access("backup", edit=True)
def backup_restore():
    s = db_session()
    document, file_name, extra = _uploaded_document()

    if is_super_admin(g.current_user):
        target = requested_admin_id(extra)
        if not target:
            raise ValidationError("admin_id of the tenant to restore into is required.")
        target = tenant_id_for_create(s, g.current_user, target)
    else:
        target = tenant_id_for_create(s, g.current_user)

    result = restore_backup(s, g.current_user, document, target, file_name=file_name)
    s.commit()
    return ok(result)


def _check_cron_token() -> None:
    expected = current_app.config.get("BACKUP_CRON_TOKEN")
    if not expected:
        raise Forbidden("Automatic backup is not configured.")
    header = request.headers.get("Authorization", "")
    if not secrets.compare_digest(header.encode(), f"Bearer {expected}".encode()):
        raise Unauthorized()


@bp.get("/backup/automatic")
def backup_automatic_status():
    return ok({"configured": bool(current_app.config.get("BACKUP_CRON_TOKEN"))})


@bp.post("/backup/automatic")
def backup_automatic_run():
    """Cron entry point: one backup per tenant, authorised by the shared bearer token."""
    _check_cron_token()
    s = db_session()
    admins = s.query(User).filter(User.role == ROLE_ADMIN).order_by(User.id.asc()).all()
    backups = []
    for admin in admins:
        document, record = generate_backup(s, None, admin.id, is_automatic=True)
        backups.append(
            {
                "admin_id": admin.id,
                "backup_id": record.id,
                "file_name": record.file_name,
                "file_size": record.file_size,
                "document": document,
            }
        )
    s.commit()
    current_app.logger.info("Automatic backup complete: %s tenant(s)", len(backups))
    return ok({"count": len(backups), "backups": backups})


@bp.get("/backup/history")
@require_module_access("backup")
def backup_history():
    s = db_session()
    pagination = parse_pagination(request.args)
    q = scoped_query(s, BackupRecord, g.current_user)
    kind = (request.args.get("kind") or "").strip().upper()
    if kind:
        q = q.filter(BackupRecord.kind == kind)
    items, total = paginate(q.order_by(BackupRecord.created_at.desc(), BackupRecord.id.desc()), pagination)
    return ok(page_payload([serialize(r) for r in items], pagination, total))
