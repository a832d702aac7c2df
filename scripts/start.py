#!/usr/bin/env python3
"""
Container entrypoint: create tables and seed, then hand the process to gunicorn.

Environment:
  PORT              listen port (default 8080)
  WEB_CONCURRENCY   gunicorn workers (default 2); login/OTP rate limits are per worker
  GUNICORN_TIMEOUT  worker timeout in seconds (default 60); large restores need more

Usage:
    python scripts/start.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _port() -> str:
    raw = os.environ.get("PORT", "").strip() or "8080"
    if not raw.isdigit() or not 1 <= int(raw) <= 65535:
        print(f"ERROR: PORT must be an integer 1-65535 (got {raw!r}).", flush=True)
        sys.exit(1)
    return raw


def gunicorn_argv(port: str) -> list[str]:
    return [
        "gunicorn",
        "app.wsgi:app",
        "--bind", f"0.0.0.0:{port}",
        "--workers", os.environ.get("WEB_CONCURRENCY", "2"),
        "--timeout", os.environ.get("GUNICORN_TIMEOUT", "60"),
        "--preload",
        "--access-logfile", "-",
        "--error-logfile", "-",
    ]


def main() -> None:
    port = _port()

    from scripts.release import run_release

    try:
        run_release()
    except Exception as e:
        print(f"Release failed: {e}", flush=True)
        sys.exit(1)

    argv = gunicorn_argv(port)
    print(f"Starting LPG Nexus: {' '.join(argv)}", flush=True)
    os.execvp(argv[0], argv)


if __name__ == "__main__":
    main()
