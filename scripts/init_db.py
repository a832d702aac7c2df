import os
import sys
from pathlib import Path

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.nexus.constants import ROLE_SUPER_ADMIN, STATUS_ACTIVE
from app.nexus.models import Base, User
from app.nexus.rbac import seed_role_defaults
from app.nexus.users import create_user, find_user_by_email
from scripts._db_utils import create_script_engine, database_url_from_env, script_session


def create_schema(database_url: str) -> None:
    engine = create_script_engine(database_url)
    try:
        Base.metadata.create_all(bind=engine)
    finally:
        engine.dispose()


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed the role-default permission table and the super admin in an idempotent way.
    Does NOT overwrite an existing super admin's password.
    """
    email = (os.environ.get("SUPER_ADMIN_EMAIL") or "superadmin@lpgnexus.local").strip().lower()
    password = os.environ.get("SUPER_ADMIN_PASSWORD") or "change-me-now"
    name = (os.environ.get("SUPER_ADMIN_NAME") or "Super Admin").strip()

    db_url = database_url_from_env(database_url)
    with script_session(db_url) as s:
        created = seed_role_defaults(s)

        user = find_user_by_email(s, email)
        if not user:
            user = create_user(
                s,
                {"name": name, "email": email, "password": password},
                role=ROLE_SUPER_ADMIN,
                admin_id=None,
                actor=None,
                is_verified=True,
            )
        elif user.role != ROLE_SUPER_ADMIN:
            raise RuntimeError(f"{email} already exists with role {user.role}; refusing to promote it.")
        if user.status != STATUS_ACTIVE:
            user.status = STATUS_ACTIVE

    print("Initialized database (seed_only).")
    print(f"Role default rows created: {created}")
    print(f"Super admin email: {email}")
    print("Super admin password: (from SUPER_ADMIN_PASSWORD)")


def main() -> None:
    db_url = database_url_from_env()
    create_schema(db_url)
    seed_only(database_url=db_url)


if __name__ == "__main__":
    main()
