from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.nexus.models import Base


class Bill(Base):
    __tablename__ = "bills"
    __table_args__ = (
        Index("idx_bills_admin_id", "admin_id"),
        Index("idx_bills_customer_id", "customer_id"),
        Index("idx_bills_period", "bill_start_date", "bill_end_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    admin_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id", ondelete="CASCADE"), nullable=False)

    bill_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    bill_end_date: Mapped[date] = mapped_column(Date, nullable=False)
    last_month_remaining: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_month_bill: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cylinders: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    customer = relationship("Customer", lazy="joined")
    payments: Mapped[list["Payment"]] = relationship(
        "Payment",
        back_populates="bill",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
        order_by="Payment.paid_on",
    )

    @property
    def total_amount(self) -> int:
        return self.last_month_remaining + self.current_month_bill

    @property
    def paid_amount(self) -> int:
        return sum(p.amount for p in self.payments)

    @property
    def remaining_amount(self) -> int:
        return self.total_amount - self.paid_amount

    @property
    def status(self) -> str:
        paid = self.paid_amount
        if paid <= 0:
            return "NOT_PAID"
        if paid >= self.total_amount:
            return "PAID"
        return "PARTIALLY_PAID"


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (
        Index("idx_payments_admin_id", "admin_id"),
        Index("idx_payments_bill_id", "bill_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    admin_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    bill_id: Mapped[int] = mapped_column(ForeignKey("bills.id", ondelete="CASCADE"), nullable=False)

    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    paid_on: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    method: Mapped[str] = mapped_column(String(64), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    bill: Mapped[Bill] = relationship("Bill", back_populates="payments")


class PaymentLog(Base):
    """
    Event log of bill/payment changes. Rows keep the customer name/code and
    the bill period as text so they survive deletion of the bill or payment.
    """

    __tablename__ = "payment_logs"
    __table_args__ = (
        Index("idx_payment_logs_admin_id", "admin_id"),
        Index("idx_payment_logs_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    admin_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    event_type: Mapped[str] = mapped_column(String(32), nullable=False)

    bill_id: Mapped[int | None] = mapped_column(ForeignKey("bills.id", ondelete="SET NULL"), nullable=True)
    payment_id: Mapped[int | None] = mapped_column(ForeignKey("payments.id", ondelete="SET NULL"), nullable=True)
    customer_name: Mapped[str] = mapped_column(String(128), nullable=False)
    customer_code: Mapped[int | None] = mapped_column(Integer, nullable=True)
    amount: Mapped[int | None] = mapped_column(Integer, nullable=True)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    bill_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    bill_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    performed_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
