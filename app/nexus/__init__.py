import logging
import os

from flask import Flask, g, render_template, request
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from app.nexus.api import fail
from app.nexus.config import load_config
from app.nexus.db import init_db, teardown_db_session
from app.nexus.errors import ApiError
from app.nexus.routes import bp as routes_bp
from app.nexus.pages import bp as pages_bp
from app.nexus.auth import bp as auth_bp, clear_stale_auth_cookie, load_current_user
from app.nexus.modules.customers.api import bp as customers_bp
from app.nexus.modules.cylinders.api import bp as cylinders_bp
from app.nexus.modules.inventory.api import bp as inventory_bp
from app.nexus.modules.expenses.api import bp as expenses_bp
from app.nexus.modules.payments.api import bp as payments_bp
from app.nexus.modules.notes.api import bp as notes_bp
from app.nexus.modules.settings.api import bp as settings_bp
from app.nexus.modules.reports.api import bp as reports_bp
from app.nexus.modules.team.api import bp as team_bp
from app.nexus.modules.backup.api import bp as backup_bp
from app.nexus.modules.super_admin.api import bp as super_admin_bp
from app.nexus.modules.profile.api import bp as profile_bp

_UNTRACKED_PREFIXES = ("/static/", "/health", "/healthz")


def _wants_json() -> bool:
    return request.path.startswith("/api/")


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_mapping(load_config())

    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.logger.setLevel(app.config["LOG_LEVEL"])

    from app.nexus.security import csrf_required, ensure_csrf_token, validate_csrf

    @app.context_processor
    def _inject_template_globals() -> dict:
        return {
            "csrf_token": ensure_csrf_token(),
            "current_user": getattr(g, "current_user", None),
        }

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")
        if not app.config.get("BACKUP_CRON_TOKEN"):
            app.logger.warning("BACKUP_CRON_TOKEN is not set; automatic backups are disabled.")

    proxies = app.config.get("TRUSTED_PROXIES") or 0
    if proxies > 0:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=proxies, x_proto=proxies)  # type: ignore[method-assign]
        app.logger.info("Trusting X-Forwarded-For from %d proxy hop(s)", proxies)

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.register_blueprint(routes_bp)
    app.register_blueprint(pages_bp)
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    for module_bp in (
        customers_bp,
        cylinders_bp,
        inventory_bp,
        expenses_bp,
        payments_bp,
        notes_bp,
        settings_bp,
        reports_bp,
        team_bp,
        backup_bp,
        super_admin_bp,
        profile_bp,
    ):
        app.register_blueprint(module_bp, url_prefix="/api")

    def _load_user_wrapper():
        if request.path.startswith(_UNTRACKED_PREFIXES):
            g.current_user = None
            return None
        return load_current_user()

    app.before_request(_load_user_wrapper)

    @app.before_request
    def _csrf_guard():
        if not app.config.get("CSRF_ENABLED"):
            return None
        if request.path.startswith(_UNTRACKED_PREFIXES):
            return None
        if csrf_required(request) and not validate_csrf(request):
            app.logger.warning("CSRF rejected: path=%s request_id=%s", request.path, getattr(g, "request_id", None))
            return fail("CSRF token missing or invalid.", 403, code="CSRF_FAILED")
        return None

    app.after_request(clear_stale_auth_cookie)
    app.teardown_appcontext(teardown_db_session)

    @app.errorhandler(ApiError)
    def _api_error(e: ApiError):
        if e.status_code == 403:
            missing = getattr(g, "missing_permission", None)
            if missing:
                app.logger.warning("Forbidden: missing_permission=%s request_id=%s", missing, getattr(g, "request_id", None))
        return fail(e.message, e.status_code, code=e.code, details=e.details)

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        if _wants_json():
            return fail("Not found", 404, code="NOT_FOUND")
        return render_template("errors/404.html"), 404

    @app.errorhandler(405)
    def _err_405(e):  # type: ignore[no-redef]
        if _wants_json():
            return fail("Method not allowed", 405, code="METHOD_NOT_ALLOWED")
        return e

    @app.errorhandler(413)
    def _err_413(e):  # type: ignore[no-redef]
        return fail("File too large. Maximum size is 25MB.", 413, code="PAYLOAD_TOO_LARGE")

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        # Ensure stack trace shows in the platform logs.
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        if _wants_json():
            return fail("Internal server error", 500, code="INTERNAL_ERROR")
        return render_template("errors/500.html"), 500

    @app.errorhandler(Exception)
    def _unhandled(e: Exception):  # type: ignore[no-redef]
        if isinstance(e, HTTPException):
            return e
        return _err_500(e)

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
