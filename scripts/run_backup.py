"""
Writes one backup file per tenant to a directory.

For hosts without an HTTP cron; the web equivalent is POST /api/backup/automatic.

Usage:
  python scripts/run_backup.py [output_dir]
"""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.nexus.constants import ROLE_ADMIN
from app.nexus.models import User
from app.nexus.modules.backup.service import dump_document, generate_backup
from scripts._db_utils import database_url_from_env, script_session


def run_backups(out_dir: Path, *, database_url: str | None = None) -> list[Path]:
    out_dir.mkdir(parents=True, exist_ok=True)
    written: list[Path] = []
    with script_session(database_url_from_env(database_url)) as s:
        admins = s.query(User).filter(User.role == ROLE_ADMIN).order_by(User.id.asc()).all()
        for admin in admins:
            document, record = generate_backup(s, None, admin.id, is_automatic=True)
            path = out_dir / f"tenant-{admin.id}-{record.file_name}"
            path.write_text(dump_document(document), encoding="utf-8")
            written.append(path)
            print(f"admin_id={admin.id} -> {path}", flush=True)
    return written


def main() -> None:
    out_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else ROOT / "backups"
    paths = run_backups(out_dir)
    print(f"Wrote {len(paths)} backup file(s).")


if __name__ == "__main__":
    main()
