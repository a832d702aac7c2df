from __future__ import annotations

from datetime import date

from flask import Blueprint, g, request

from app.nexus.api import ok
from app.nexus.db import db_session
from app.nexus.errors import ValidationError
from app.nexus.modules.payments.service import month_bounds
from app.nexus.modules.reports.service import overview
from app.nexus.rbac import require_module_access
from app.nexus.tenancy import is_super_admin, requested_admin_id, tenant_filter
from app.nexus.utils import parse_date

bp = Blueprint("reports", __name__)


@bp.get("/reports/overview")
@require_module_access("reports")
def reports_overview():
    try:
        start = parse_date(request.args.get("from"))
        end = parse_date(request.args.get("to"))
    except ValueError:
        raise ValidationError("from/to must be dates (YYYY-MM-DD)")
    default_start, default_end = month_bounds(date.today())
    start = start or default_start
    end = end or default_end
    if end < start:
        raise ValidationError("to must not be before from")

    flt = tenant_filter(g.current_user)
    # A super admin may narrow the report to one tenant.
    if is_super_admin(g.current_user):
        admin_id = requested_admin_id(request.args)
        if admin_id:
            flt = {"admin_id": admin_id}
    return ok(overview(db_session(), flt, start, end))
