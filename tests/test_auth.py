from app.nexus.constants import ROLE_ADMIN, ROLE_STAFF, STATUS_SUSPENDED

from conftest import PASSWORD, last_code


def test_login_sets_http_only_cookie(client, make_user):
    make_user("owner@example.com")
    r = client.post("/api/auth/login", json={"email": "owner@example.com", "password": PASSWORD})
    assert r.status_code == 200
    cookie = r.headers["Set-Cookie"]
    assert cookie.startswith("token=")
    assert "HttpOnly" in cookie
    assert r.json["data"]["user"]["email"] == "owner@example.com"


def test_login_by_username(client, app, make_user):
    from app.nexus.db import session_scope
    from app.nexus.models import User

    uid = make_user("owner@example.com")
    with session_scope(app) as s:
        s.get(User, uid).username = "owner"
    r = client.post("/api/auth/login", json={"username": "owner", "password": PASSWORD})
    assert r.status_code == 200


def test_login_wrong_password(client, make_user):
    make_user("owner@example.com")
    r = client.post("/api/auth/login", json={"email": "owner@example.com", "password": "nope-nope"})
    assert r.status_code == 401
    assert r.json["success"] is False


def test_login_suspended_user_forbidden(client, make_user):
    make_user("owner@example.com", status=STATUS_SUSPENDED)
    r = client.post("/api/auth/login", json={"email": "owner@example.com", "password": PASSWORD})
    assert r.status_code == 403
    assert "suspended" in r.json["error"]


def test_login_unverified_user_forbidden(client, make_user):
    make_user("owner@example.com", is_verified=False)
    r = client.post("/api/auth/login", json={"email": "owner@example.com", "password": PASSWORD})
    assert r.status_code == 403


def test_login_rate_limited(client, make_user):
    make_user("owner@example.com")
    for _ in range(5):
        r = client.post("/api/auth/login", json={"email": "owner@example.com", "password": "wrong-pass"})
        assert r.status_code == 401
    r = client.post("/api/auth/login", json={"email": "owner@example.com", "password": PASSWORD})
    assert r.status_code == 429


def test_me_and_logout(client, make_user, login):
    make_user("owner@example.com")
    login(client, "owner@example.com")
    r = client.get("/api/auth/me")
    assert r.status_code == 200
    data = r.json["data"]["user"]
    assert data["role"] == ROLE_ADMIN
    assert data["permissions"]["addCustomer"] == "EDIT"

    r = client.post("/api/auth/logout")
    assert r.status_code == 200
    assert client.get("/api/auth/me").status_code == 401


def test_tampered_cookie_is_cleared(client, make_user):
    client.set_cookie("token", "not-a-jwt")
    r = client.get("/api/auth/me")
    assert r.status_code == 401
    assert "token=;" in r.headers.get("Set-Cookie", "")


def test_suspended_after_login_loses_session(client, app, make_user, login):
    from app.nexus.db import session_scope
    from app.nexus.models import User

    uid = make_user("staff@example.com", role=ROLE_ADMIN)
    login(client, "staff@example.com")
    with session_scope(app) as s:
        s.get(User, uid).status = STATUS_SUSPENDED
    assert client.get("/api/auth/me").status_code == 401


def test_register_verify_then_login(client):
    r = client.post(
        "/api/auth/register",
        json={"name": "New Owner", "email": "new@example.com", "password": PASSWORD, "business_name": "Gas Co"},
    )
    assert r.status_code == 201
    user = r.json["data"]["user"]
    assert user["role"] == ROLE_ADMIN
    assert user["admin_id"] == user["id"]
    assert user["is_verified"] is False

    r = client.post("/api/auth/login", json={"email": "new@example.com", "password": PASSWORD})
    assert r.status_code == 403

    r = client.post("/api/otp/verify", json={"email": "new@example.com", "code": last_code("new@example.com")})
    assert r.status_code == 200
    assert r.json["data"]["user_verified"] is True

    r = client.post("/api/auth/login", json={"email": "new@example.com", "password": PASSWORD})
    assert r.status_code == 200


def test_register_duplicate_email(client, make_user):
    make_user("owner@example.com")
    r = client.post("/api/auth/register", json={"name": "Dup", "email": "owner@example.com", "password": PASSWORD})
    assert r.status_code == 400
    assert "already exists" in r.json["error"]


def test_forgot_and_reset_password(client, make_user):
    make_user("owner@example.com")
    r = client.post("/api/auth/forgot-password", json={"email": "owner@example.com"})
    assert r.status_code == 200
    code = last_code("owner@example.com")

    r = client.post(
        "/api/auth/reset-password",
        json={"email": "owner@example.com", "code": code, "new_password": "brand-new-pass"},
    )
    assert r.status_code == 200
    r = client.post("/api/auth/login", json={"email": "owner@example.com", "password": "brand-new-pass"})
    assert r.status_code == 200


def test_forgot_password_unknown_email_same_answer(client):
    from app.nexus.mail import outbox

    r = client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})
    assert r.status_code == 200
    assert "If an account exists" in r.json["data"]["message"]
    assert len(outbox) == 0


def test_reset_password_wrong_code(client, make_user):
    make_user("owner@example.com")
    client.post("/api/auth/forgot-password", json={"email": "owner@example.com"})
    code = last_code("owner@example.com")
    wrong = "0" * len(code) if code != "0" * len(code) else "1" * len(code)
    r = client.post(
        "/api/auth/reset-password",
        json={"email": "owner@example.com", "code": wrong, "new_password": "brand-new-pass"},
    )
    assert r.status_code == 400
    assert r.json["code"] == "INVALID"


def test_staff_login_gets_role_defaults(client, make_user, login):
    admin_id = make_user("owner@example.com")
    make_user("staff@example.com", role=ROLE_STAFF, admin_id=admin_id)
    login(client, "staff@example.com")
    perms = client.get("/api/permissions/me").json["data"]["permissions"]
    assert perms["addCylinder"] == "EDIT"
    assert perms["backup"] == "NOT_SHOW"
    assert perms["settings"] == "NO_ACCESS"


def test_non_string_credentials_are_rejected(client, make_user):
    make_user("owner@example.com")
    r = client.post("/api/auth/login", json={"email": 5, "password": PASSWORD})
    assert r.status_code == 400
    assert r.json["code"] == "VALIDATION_ERROR"
    r = client.post("/api/auth/login", json={"email": "owner@example.com", "password": 12345678})
    assert r.status_code == 400
    r = client.post("/api/auth/register", json={"name": ["A"], "email": "new@example.com", "password": PASSWORD})
    assert r.status_code == 400
