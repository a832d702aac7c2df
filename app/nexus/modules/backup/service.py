from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import Boolean, Date, DateTime

from app.nexus.api import serialize
from app.nexus.audit import record_event
from app.nexus.errors import ValidationError
from app.nexus.models import BackupRecord, SystemSettings
from app.nexus.modules.customers.models import Customer
from app.nexus.modules.cylinders.models import CylinderEntry
from app.nexus.modules.expenses.models import Expense
from app.nexus.modules.inventory.models import InventoryItem
from app.nexus.modules.notes.models import DailyNote
from app.nexus.modules.payments.models import Bill, Payment, PaymentLog
from app.nexus.tenancy import apply_tenant_filter
from app.nexus.utils import parse_date, parse_datetime

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.nexus.models import User

logger = logging.getLogger(__name__)

BACKUP_VERSION = "1.0"

# Parents before children; restore deletes in the reverse order.
BACKUP_TABLES = (
    Customer,
    CylinderEntry,
    InventoryItem,
    Expense,
    Bill,
    Payment,
    PaymentLog,
    DailyNote,
    SystemSettings,
)

# column -> table whose old ids it refers to
_FOREIGN_KEYS = {
    "customer_id": "customers",
    "bill_id": "bills",
    "payment_id": "payments",
}


def backup_file_name(now: datetime | None = None, *, prefix: str = "backup") -> str:
    return f"{prefix}-{(now or datetime.utcnow()).strftime('%Y-%m-%d-%H-%M')}.json"


def dump_document(document: dict) -> str:
    return json.dumps(document, indent=2, sort_keys=False, default=str)


def generate_backup(
    s: "Session",
    user: "User | None",
    admin_id: int | None,
    *,
    is_automatic: bool = False,
    now: datetime | None = None,
) -> tuple[dict[str, Any], BackupRecord]:
    """
    Serialise every tenant-owned business row of ``admin_id`` (all tenants
    when None) and record the backup. Users and OTP codes are never exported.
    """
    now = now or datetime.utcnow()
    flt = {"admin_id": admin_id} if admin_id else {}
    data: dict[str, list[dict]] = {}
    for model in BACKUP_TABLES:
        rows = apply_tenant_filter(s.query(model), flt).order_by(model.id.asc()).all()
        data[model.__tablename__] = [serialize(r) for r in rows]

    document = {
        "version": BACKUP_VERSION,
        "backup_date": now.isoformat(),
        "admin_id": admin_id,
        "data": data,
    }
    file_name = backup_file_name(now, prefix="auto-backup" if is_automatic else "backup")
    record = BackupRecord(
        admin_id=admin_id,
        kind="BACKUP",
        file_name=file_name,
        file_size=len(dump_document(document)),
        is_automatic=is_automatic,
        created_by_user_id=user.id if user else None,
        created_at=now,
    )
    s.add(record)
    s.flush()

    record_event(
        s,
        actor=user,
        action="backup.generate",
        entity_type="BackupRecord",
        entity_id=str(record.id),
        admin_id=admin_id,
        metadata={"file_name": file_name, "automatic": is_automatic, "rows": {k: len(v) for k, v in data.items()}},
    )
    logger.info("Backup generated admin_id=%s file=%s automatic=%s", admin_id, file_name, is_automatic)
    return document, record


def validate_document(document: Any) -> list[str]:
    errors = []
    if not isinstance(document, dict):
        return ["Backup must be a JSON object."]
    if document.get("version") != BACKUP_VERSION:
        errors.append(f"Unsupported backup version: {document.get('version')!r}")
    data = document.get("data")
    if not isinstance(data, dict):
        return errors + ["Backup is missing its data section."]
    known = {m.__tablename__ for m in BACKUP_TABLES}
    for table, rows in data.items():
        if table not in known:
            # Older or foreign exports may carry extra tables (users, otps); they are skipped.
            continue
        if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
            errors.append(f"Table {table} must be a list of objects.")
    return errors


def _coerce_row(model, raw: dict) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for column in model.__table__.columns:
        if column.name == "id" or column.name not in raw:
            continue
        value = raw[column.name]
        if value is not None:
            if isinstance(column.type, DateTime):
                value = parse_datetime(value)
            elif isinstance(column.type, Date):
                value = parse_date(value)
            elif isinstance(column.type, Boolean):
                value = bool(value)
        values[column.name] = value
    return values


def wipe_business_data(s: "Session", admin_id: int | None) -> dict[str, int]:
    """Delete every tenant-owned business row of one tenant (every tenant when None)."""
    flt = {"admin_id": admin_id} if admin_id else {}
    deleted = {}
    for model in reversed(BACKUP_TABLES):
        q = apply_tenant_filter(s.query(model), flt)
        deleted[model.__tablename__] = q.delete(synchronize_session=False)
    return deleted


def restore_backup(
    s: "Session",
    user: "User | None",
    document: Any,
    target_admin_id: int,
    *,
    file_name: str | None = None,
) -> dict[str, Any]:
    """
    Replace the target tenant's business rows with the document's rows.

    Rows get fresh ids; customer/bill/payment references are remapped and
    ``admin_id`` is forced to the target tenant. Rows whose required parent
    is missing from the document are skipped. The caller commits.
    """
    errors = validate_document(document)
    if errors:
        raise ValidationError("Invalid backup file", details=errors)

    data = document["data"]
    deleted = wipe_business_data(s, target_admin_id)
    s.expire_all()

    id_maps: dict[str, dict[Any, int]] = {}
    restored: dict[str, int] = {}
    skipped: dict[str, int] = {}
    used_codes: set[int] = set()
    seen_note_dates: set = set()

    for model in BACKUP_TABLES:
        table = model.__tablename__
        id_map = id_maps.setdefault(table, {})
        restored[table] = 0
        skipped[table] = 0
        for raw in data.get(table) or []:
            values = _coerce_row(model, raw)
            values["admin_id"] = target_admin_id

            missing_parent = False
            for fk, parent in _FOREIGN_KEYS.items():
                if fk not in values or values[fk] is None:
                    continue
                new_id = id_maps.get(parent, {}).get(values[fk])
                if new_id is None and not model.__table__.columns[fk].nullable:
                    missing_parent = True
                values[fk] = new_id
            if missing_parent:
                skipped[table] += 1
                continue

            if model is Customer:
                code = values.get("customer_code")
                if not code or code in used_codes:
                    values["customer_code"] = max(used_codes, default=0) + 1
                used_codes.add(values["customer_code"])
            elif model is DailyNote:
                if values.get("note_date") in seen_note_dates:
                    skipped[table] += 1
                    continue
                seen_note_dates.add(values.get("note_date"))
            elif model is SystemSettings and restored[table]:
                skipped[table] += 1
                continue

            row = model(**values)
            s.add(row)
            s.flush()
            if raw.get("id") is not None:
                id_map[raw["id"]] = row.id
            restored[table] += 1

    record = BackupRecord(
        admin_id=target_admin_id,
        kind="RESTORE",
        file_name=file_name or backup_file_name(prefix="restore"),
        file_size=len(dump_document(document)),
        is_automatic=False,
        created_by_user_id=user.id if user else None,
        created_at=datetime.utcnow(),
    )
    s.add(record)
    s.flush()

    record_event(
        s,
        actor=user,
        action="backup.restore",
        entity_type="BackupRecord",
        entity_id=str(record.id),
        admin_id=target_admin_id,
        metadata={"restored": restored, "deleted": deleted, "skipped": skipped},
    )
    logger.info("Backup restored admin_id=%s restored=%s skipped=%s", target_admin_id, restored, skipped)
    return {"restored": restored, "deleted": deleted, "skipped": skipped, "record_id": record.id}
