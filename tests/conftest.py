import re

import pytest
from werkzeug.security import generate_password_hash

from app.nexus import create_app
from app.nexus.constants import ROLE_ADMIN, ROLE_SUPER_ADMIN, STATUS_ACTIVE
from app.nexus.db import session_scope
from app.nexus.mail import outbox
from app.nexus.models import Base, User
from app.nexus.ratelimit import limiter
from app.nexus.rbac import seed_role_defaults

PASSWORD = "password123"


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("CSRF_ENABLED", "0")
    for k in ("JWT_SECRET", "BACKUP_CRON_TOKEN", "LOGIN_RATE_LIMIT", "OTP_RATE_LIMIT", "TRUSTED_PROXIES"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    app.config["TESTING"] = True
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)
    with session_scope(app) as s:
        seed_role_defaults(s)

    limiter.clear()
    outbox.clear()
    yield app
    limiter.clear()
    outbox.clear()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def make_user(app):
    """Insert a user directly; ADMIN users become their own tenant. Returns the user id."""

    def _make(email, *, role=ROLE_ADMIN, admin_id=None, status=STATUS_ACTIVE, is_verified=True, name=None):
        with session_scope(app) as s:
            u = User(
                name=name or email.split("@")[0].title(),
                email=email,
                password_hash=generate_password_hash(PASSWORD),
                role=role,
                status=status,
                is_verified=is_verified,
                admin_id=None if role in (ROLE_ADMIN, ROLE_SUPER_ADMIN) else admin_id,
            )
            s.add(u)
            s.flush()
            if role == ROLE_ADMIN:
                u.admin_id = u.id
            return u.id

    return _make


@pytest.fixture()
def login():
    def _login(client, email, password=PASSWORD):
        r = client.post("/api/auth/login", json={"email": email, "password": password})
        assert r.status_code == 200, r.json
        return r

    return _login


def last_code(email: str) -> str:
    """Code from the latest OTP mail sent to ``email``."""
    for msg in reversed(outbox):
        if msg.to == email:
            return re.search(r"code is (\d+)", msg.body).group(1)
    raise AssertionError(f"no OTP mail sent to {email}")


CUSTOMER = {
    "name": "Ali Traders",
    "contact_number": "03001234567",
    "cylinder_type": "11.8kg",
    "bill_type": "Monthly",
    "address": "12 Mall Road",
    "area": "Gulberg",
    "city": "Lahore",
    "country": "Pakistan",
}
