from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from app.nexus.constants import NO_ACCESS, ROLE_STAFF, STATUS_ACTIVE


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_admin_id", "admin_id"),
        Index("idx_users_role", "role"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    username: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    business_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    role: Mapped[str] = mapped_column(String(32), nullable=False, default=ROLE_STAFF)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=STATUS_ACTIVE)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Tenant key: ADMIN points at itself, staff at their ADMIN, SUPER_ADMIN is NULL.
    admin_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE


class ModulePermission(Base):
    """
    One access level for one module, held either by a single user (explicit
    override) or by a role (role-default table). Exactly one holder is set.
    """

    __tablename__ = "module_permissions"
    __table_args__ = (
        UniqueConstraint("user_id", "module_id", name="uq_module_permissions_user_module"),
        UniqueConstraint("role", "module_id", name="uq_module_permissions_role_module"),
        CheckConstraint("(user_id IS NULL) <> (role IS NULL)", name="ck_module_permissions_one_holder"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    role: Mapped[str | None] = mapped_column(String(32), nullable=True)
    module_id: Mapped[str] = mapped_column(String(64), nullable=False)
    access_level: Mapped[str] = mapped_column(String(32), nullable=False, default=NO_ACCESS)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)


class Otp(Base):
    __tablename__ = "otps"
    __table_args__ = (Index("idx_otps_email", "email"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    code: Mapped[str] = mapped_column(String(16), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    consumed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    superseded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)


class SystemSettings(Base):
    __tablename__ = "system_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    admin_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    software_name: Mapped[str] = mapped_column(String(128), nullable=False, default="LPG Nexus")
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="PKR")
    bill_footer: Mapped[str | None] = mapped_column(Text, nullable=True)
    chatbot_visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)


class BackupRecord(Base):
    __tablename__ = "backup_records"
    __table_args__ = (Index("idx_backup_records_admin_id", "admin_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    admin_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False, default="BACKUP")  # BACKUP | RESTORE
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_automatic: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)


class AuditEvent(Base):
    """
    Append-only activity log event, attributed to the actor's tenant.
    Super admins read across tenants; everyone else only sees their admin_id.
    """

    __tablename__ = "audit_events"
    __table_args__ = (
        Index("idx_audit_events_admin_id", "admin_id"),
        Index("idx_audit_events_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    client_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)

    actor_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    actor_user_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    # Tenant the event belongs to; NULL for system-level (super admin) events.
    admin_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    action: Mapped[str] = mapped_column(String(128), nullable=False)  # e.g. "auth.login"
    entity_type: Mapped[str | None] = mapped_column(String(128), nullable=True)  # e.g. "Customer"
    entity_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    reason: Mapped[str | None] = mapped_column(String(512), nullable=True)
    metadata_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # small JSON string


# Ensure module models are imported so Base.metadata includes their tables.
# (Kept at bottom to avoid circular imports.)
from app.nexus.modules.customers.models import Customer  # noqa: E402,F401
from app.nexus.modules.cylinders.models import CylinderEntry  # noqa: E402,F401
from app.nexus.modules.inventory.models import InventoryItem  # noqa: E402,F401
from app.nexus.modules.expenses.models import Expense  # noqa: E402,F401
from app.nexus.modules.payments.models import Bill, Payment, PaymentLog  # noqa: E402,F401
from app.nexus.modules.notes.models import DailyNote  # noqa: E402,F401
