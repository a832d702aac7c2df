from app.nexus.constants import ROLE_STAFF, ROLE_VIEWER
from app.nexus.db import session_scope
from app.nexus.models import AuditEvent

from conftest import PASSWORD


def _staff(client, make_user, login, role=ROLE_STAFF):
    admin_id = make_user("owner@example.com")
    make_user("staff@example.com", role=role, admin_id=admin_id)
    login(client, "staff@example.com")


def test_get_own_profile(client, make_user, login):
    _staff(client, make_user, login)
    r = client.get("/api/profile")
    assert r.status_code == 200
    data = r.json["data"]
    assert data["email"] == "staff@example.com"
    assert data["role"] == ROLE_STAFF
    assert data["permissions"]["profile"] == "EDIT"


def test_profile_requires_session(client):
    assert client.get("/api/profile").status_code == 401


def test_update_profile_fields(client, app, make_user, login):
    _staff(client, make_user, login)
    r = client.patch("/api/profile", json={"name": "Bilal Khan", "phone": "03001234567", "username": "bilal.k"})
    assert r.status_code == 200
    assert r.json["data"]["name"] == "Bilal Khan"
    assert r.json["data"]["username"] == "bilal.k"
    assert client.get("/api/auth/me").json["data"]["user"]["phone"] == "03001234567"
    with session_scope(app) as s:
        assert s.query(AuditEvent).filter(AuditEvent.action == "user.update").count() == 1


def test_profile_cannot_change_role_or_status(client, make_user, login):
    _staff(client, make_user, login)
    r = client.patch("/api/profile", json={"name": "Bilal", "role": "ADMIN", "status": "ACTIVE"})
    assert r.status_code == 400
    assert r.json["details"] == ["role", "status"]
    assert client.get("/api/profile").json["data"]["role"] == ROLE_STAFF


def test_profile_validation(client, make_user, login):
    _staff(client, make_user, login)
    assert client.patch("/api/profile", json={"name": 123}).status_code == 400
    assert client.patch("/api/profile", json={"name": "x"}).status_code == 400
    client.patch("/api/profile", json={"username": "taken_name"})
    client.post("/api/auth/logout")
    login(client, "owner@example.com")
    r = client.patch("/api/profile", json={"username": "taken_name"})
    assert r.status_code == 400
    assert "already taken" in r.json["error"]


def test_view_only_profile_cannot_edit(client, make_user, login):
    _staff(client, make_user, login, role=ROLE_VIEWER)
    assert client.get("/api/profile").status_code == 200
    assert client.patch("/api/profile", json={"name": "Someone"}).status_code == 403
    r = client.post("/api/profile/change-password", json={"current_password": PASSWORD, "new_password": "x" * 10})
    assert r.status_code == 403


def test_change_password(client, make_user, login):
    _staff(client, make_user, login)
    r = client.post(
        "/api/profile/change-password",
        json={"current_password": "not-my-password", "new_password": "fresh-pass-1"},
    )
    assert r.status_code == 400
    assert r.json["code"] == "INVALID_PASSWORD"

    r = client.post(
        "/api/profile/change-password",
        json={"current_password": PASSWORD, "new_password": "fresh-pass-1"},
    )
    assert r.status_code == 200

    client.post("/api/auth/logout")
    r = client.post("/api/auth/login", json={"email": "staff@example.com", "password": PASSWORD})
    assert r.status_code == 401
    login(client, "staff@example.com", password="fresh-pass-1")


def test_change_password_rules(client, make_user, login):
    _staff(client, make_user, login)
    r = client.post("/api/profile/change-password", json={"current_password": PASSWORD})
    assert r.status_code == 400
    r = client.post("/api/profile/change-password", json={"current_password": PASSWORD, "new_password": PASSWORD})
    assert "must be different" in r.json["error"]
    r = client.post("/api/profile/change-password", json={"current_password": PASSWORD, "new_password": "short"})
    assert r.status_code == 400
