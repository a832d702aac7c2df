from __future__ import annotations

from contextlib import contextmanager
from collections.abc import Generator
from typing import Any

from flask import Flask, current_app, g
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    # ON DELETE CASCADE / SET NULL are ignored by sqlite unless enabled per connection
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, _record):  # type: ignore[no-redef]
        cur = dbapi_connection.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.close()


def build_engine(url: str, *, pool_size: int = 5, max_overflow: int = 10) -> Engine:
    """Engine shared by the app and the maintenance scripts."""
    options: dict[str, Any] = {"future": True, "pool_pre_ping": True}
    if url.startswith("postgres"):
        options.update(pool_size=pool_size, max_overflow=max_overflow, pool_recycle=1800, pool_timeout=30)
    elif url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
    engine = create_engine(url, **options)
    if url.startswith("sqlite"):
        _enable_sqlite_foreign_keys(engine)
    return engine


def make_sessionmaker(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, future=True)


def init_db(app: Flask) -> None:
    engine = build_engine(
        app.config["DATABASE_URL"],
        pool_size=app.config.get("DB_POOL_SIZE", 5),
        max_overflow=app.config.get("DB_MAX_OVERFLOW", 10),
    )
    app.extensions["sqlalchemy_engine"] = engine
    app.extensions["sqlalchemy_sessionmaker"] = make_sessionmaker(engine)


def db_session() -> Session:
    """
    Session bound to the current request; closed in teardown.
    Handlers commit explicitly, nothing is committed implicitly.
    """
    s: Session | None = g.get("db_session")
    if s is None:
        s = current_app.extensions["sqlalchemy_sessionmaker"]()
        g.db_session = s
    return s


def teardown_db_session(_exc: BaseException | None) -> None:
    s: Session | None = g.pop("db_session", None)
    if s is not None:
        s.close()


@contextmanager
def session_scope(app: Flask) -> Generator[Session, None, None]:
    """Commit-or-rollback session outside a request (scripts, tests, cron)."""
    s: Session = app.extensions["sqlalchemy_sessionmaker"]()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
