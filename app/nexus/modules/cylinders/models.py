from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.nexus.models import Base


class CylinderEntry(Base):
    __tablename__ = "cylinder_entries"
    __table_args__ = (
        Index("idx_cylinder_entries_admin_id", "admin_id"),
        Index("idx_cylinder_entries_customer_id", "customer_id"),
        Index("idx_cylinder_entries_delivery_date", "delivery_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    admin_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    customer_id: Mapped[int | None] = mapped_column(ForeignKey("customers.id", ondelete="CASCADE"), nullable=True)
    customer_name: Mapped[str] = mapped_column(String(128), nullable=False)

    direction: Mapped[str] = mapped_column(String(16), nullable=False)  # DELIVERED, RECEIVED
    cylinder_label: Mapped[str] = mapped_column(String(64), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unit_price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    delivered_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    bill_created_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    delivery_date: Mapped[date] = mapped_column(Date, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
