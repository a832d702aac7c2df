from __future__ import annotations

from flask import Blueprint, g, request
from sqlalchemy import func

from app.nexus.api import created, json_body, ok, serialize
from app.nexus.db import db_session
from app.nexus.errors import ValidationError, raise_for_errors
from app.nexus.modules.expenses.models import Expense
from app.nexus.modules.expenses.service import (
    create_expense,
    delete_expense,
    update_expense,
    validate_expense_payload,
)
from app.nexus.pagination import page_payload, paginate, parse_pagination, text_search
from app.nexus.rbac import require_module_access
from app.nexus.tenancy import get_scoped_or_404, requested_admin_id, scoped_query, tenant_id_for_create
from app.nexus.utils import parse_date

bp = Blueprint("expenses", __name__)


@bp.get("/expenses")
@require_module_access("expenses")
def expenses_list():
    s = db_session()
    pagination = parse_pagination(request.args, max_page_size=50)

    q = scoped_query(s, Expense, g.current_user)
    q = text_search(q, pagination.q, Expense.expense_type, Expense.custom_expense_type, Expense.description)
    category = (request.args.get("category") or "").strip().upper()
    if category:
        if category not in ("HOME", "OTHER"):
            raise ValidationError("category must be HOME or OTHER")
        q = q.filter(Expense.category == category)
    try:
        on_date = parse_date(request.args.get("date"))
    except ValueError:
        raise ValidationError("date must be YYYY-MM-DD")
    if on_date:
        q = q.filter(Expense.expense_date == on_date)

    total_amount = q.with_entities(func.coalesce(func.sum(Expense.amount), 0)).scalar()
    items, total = paginate(q.order_by(Expense.expense_date.desc(), Expense.id.desc()), pagination)
    payload = page_payload([serialize(e) for e in items], pagination, total)
    payload["total_amount"] = int(total_amount or 0)
    return ok(payload)


@bp.post("/expenses")
@require_module_access("expenses", edit=True)
def expenses_create():
    s = db_session()
    payload = json_body()
    raise_for_errors(validate_expense_payload(payload))
    admin_id = tenant_id_for_create(s, g.current_user, requested_admin_id(payload))
    expense = create_expense(s, payload, g.current_user, admin_id)
    s.commit()
    return created(serialize(expense))


@bp.patch("/expenses/<int:expense_id>")
@require_module_access("expenses", edit=True)
def expense_update(expense_id: int):
    s = db_session()
    expense = get_scoped_or_404(s, Expense, expense_id, g.current_user, "Expense")
    payload = json_body()
    raise_for_errors(validate_expense_payload(payload, partial=True))
    update_expense(s, expense, payload, g.current_user)
    s.commit()
    return ok(serialize(expense))


@bp.delete("/expenses/<int:expense_id>")
@require_module_access("expenses", edit=True)
def expense_delete(expense_id: int):
    s = db_session()
    expense = get_scoped_or_404(s, Expense, expense_id, g.current_user, "Expense")
    delete_expense(s, expense, g.current_user)
    s.commit()
    return ok({"deleted": True, "id": expense_id})
