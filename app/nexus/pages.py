"""
Server-rendered pages.

Layout and forms live in the frontend; these pages only carry the access
guard so a direct visit to a module path behaves the same as in-app
navigation.
"""
from __future__ import annotations

from flask import Blueprint, g, redirect, render_template, request, url_for

from app.nexus.constants import NO_ACCESS, ROUTE_MODULE_MAP
from app.nexus.rbac import enforce_page_permission, module_for_path

bp = Blueprint("pages", __name__)


def _render_module_page():
    if not getattr(g, "current_user", None):
        return redirect(url_for("pages.login", next=request.path))
    level = enforce_page_permission(request.path)
    return render_template(
        "pages/module.html",
        module_id=module_for_path(request.path),
        access_level=level,
        restricted=level == NO_ACCESS,
    )


for _path, _module in ROUTE_MODULE_MAP.items():
    bp.add_url_rule(_path, endpoint=f"module_{_module}", view_func=_render_module_page)


@bp.get("/login")
def login():
    if getattr(g, "current_user", None):
        return redirect(url_for("pages.module_dashboard"))
    return render_template("pages/login.html", next_url=request.args.get("next") or "/")


@bp.get("/access-denied")
def access_denied():
    return render_template("pages/access_denied.html"), 403
