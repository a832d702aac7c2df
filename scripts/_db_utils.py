from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from app.nexus.db import build_engine, make_sessionmaker


def database_url_from_env(database_url: str | None = None) -> str:
    return (database_url or os.environ.get("DATABASE_URL") or "sqlite:///lpg_nexus.db").strip()


def create_script_engine(db_url: str) -> Engine:
    # one short-lived connection is enough for maintenance scripts
    return build_engine(db_url, pool_size=1, max_overflow=0)


@contextmanager
def script_session(db_url: str) -> Iterator[Session]:
    engine = create_script_engine(db_url)
    s = make_sessionmaker(engine)()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()
