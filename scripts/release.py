"""
Release step, run once per deploy before workers start.

Creates missing tables, then seeds role-default permissions and the super
admin. Both steps are idempotent; an existing super admin keeps its password.

Usage:
  python scripts/release.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def run_release() -> None:
    db_url = (os.environ.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("DATABASE_URL must be set for the release step.")
    env = (os.environ.get("ENV") or "").strip().lower()
    if env in ("prod", "production") and db_url.startswith("sqlite"):
        raise RuntimeError("sqlite is not supported in production; point DATABASE_URL at Postgres.")

    from scripts.init_db import create_schema, seed_only

    print(f"[release] env={env or 'development'} creating tables", flush=True)
    create_schema(db_url)
    print("[release] seeding role defaults and super admin", flush=True)
    seed_only(database_url=db_url)
    print("[release] done", flush=True)


if __name__ == "__main__":
    run_release()
