from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from app.nexus.audit import record_event
from app.nexus.constants import EXPENSE_CUSTOM, EXPENSE_TYPE_CATEGORIES
from app.nexus.utils import clean_str, date_errors, int_errors, parse_date, parse_int, str_field

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.nexus.models import User
    from app.nexus.modules.expenses.models import Expense

MAX_AMOUNT = 50_000_000


def expense_category(expense_type: str) -> str:
    return EXPENSE_TYPE_CATEGORIES.get(expense_type, "HOME")


def validate_expense_payload(payload: dict, *, partial: bool = False) -> list[str]:
    errors = []
    expense_type = str_field(payload, "expense_type")
    if not partial or "expense_type" in payload:
        if not (2 <= len(expense_type) <= 80):
            errors.append("Select expense type.")
        if expense_type == EXPENSE_CUSTOM and len(str_field(payload, "custom_expense_type")) < 2:
            errors.append("Please enter a custom expense type (minimum 2 characters).")

    if not partial or "amount" in payload:
        amount_errors = int_errors(payload, "amount", required=True, minimum=1)
        errors.extend(amount_errors)
        if not amount_errors and parse_int(payload.get("amount")) > MAX_AMOUNT:
            errors.append(f"amount must be at most {MAX_AMOUNT}.")

    if not partial and not payload.get("expense_date"):
        errors.append("Select expense date.")
    errors.extend(date_errors(payload, "expense_date"))

    if len(str_field(payload, "description", strip=False)) > 240:
        errors.append("description must be at most 240 characters.")
    return errors


def create_expense(s: "Session", payload: dict, user: "User", admin_id: int) -> "Expense":
    from app.nexus.modules.expenses.models import Expense

    expense_type = str_field(payload, "expense_type")
    custom = clean_str(payload.get("custom_expense_type")) if expense_type == EXPENSE_CUSTOM else None
    now = datetime.utcnow()
    expense = Expense(
        admin_id=admin_id,
        expense_type=expense_type,
        custom_expense_type=custom,
        category=expense_category(custom or expense_type),
        amount=parse_int(payload.get("amount")),
        expense_date=parse_date(payload.get("expense_date")),
        description=clean_str(payload.get("description")),
        created_at=now,
        updated_at=now,
    )
    s.add(expense)
    s.flush()
    record_event(
        s,
        actor=user,
        action="expense.create",
        entity_type="Expense",
        entity_id=str(expense.id),
        admin_id=admin_id,
        metadata={"type": custom or expense_type, "amount": expense.amount},
    )
    return expense


def update_expense(s: "Session", expense: "Expense", payload: dict, user: "User") -> "Expense":
    changes = {}
    if "expense_type" in payload:
        new_type = str_field(payload, "expense_type")
        custom = clean_str(payload.get("custom_expense_type")) if new_type == EXPENSE_CUSTOM else None
        if (new_type, custom) != (expense.expense_type, expense.custom_expense_type):
            changes["expense_type"] = {"old": expense.custom_expense_type or expense.expense_type, "new": custom or new_type}
            expense.expense_type = new_type
            expense.custom_expense_type = custom
            expense.category = expense_category(custom or new_type)
    if "amount" in payload:
        new_amount = parse_int(payload.get("amount"))
        if new_amount != expense.amount:
            changes["amount"] = {"old": expense.amount, "new": new_amount}
            expense.amount = new_amount
    if payload.get("expense_date"):
        new_date = parse_date(payload["expense_date"])
        if new_date != expense.expense_date:
            changes["expense_date"] = {"old": str(expense.expense_date), "new": str(new_date)}
            expense.expense_date = new_date
    if "description" in payload:
        expense.description = clean_str(payload.get("description"))

    expense.updated_at = datetime.utcnow()
    if changes:
        record_event(
            s,
            actor=user,
            action="expense.update",
            entity_type="Expense",
            entity_id=str(expense.id),
            admin_id=expense.admin_id,
            metadata={"changes": changes},
        )
    return expense


def delete_expense(s: "Session", expense: "Expense", user: "User") -> None:
    record_event(
        s,
        actor=user,
        action="expense.delete",
        entity_type="Expense",
        entity_id=str(expense.id),
        admin_id=expense.admin_id,
        metadata={"amount": expense.amount},
    )
    s.delete(expense)
    s.flush()
