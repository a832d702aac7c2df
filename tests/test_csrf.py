import pytest

from conftest import CUSTOMER


@pytest.fixture()
def csrf_client(app):
    app.config["CSRF_ENABLED"] = True
    return app.test_client()


def test_mutation_without_token_rejected(csrf_client, make_user, login):
    make_user("a@example.com")
    login(csrf_client, "a@example.com")
    r = csrf_client.post("/api/customers", json=CUSTOMER)
    assert r.status_code == 403
    assert r.json["code"] == "CSRF_FAILED"


def test_mutation_with_header_token(csrf_client, make_user, login):
    make_user("a@example.com")
    login(csrf_client, "a@example.com")
    token = csrf_client.get("/api/csrf-token").json["data"]["csrf_token"]
    r = csrf_client.post("/api/customers", json=CUSTOMER, headers={"X-CSRF-Token": token})
    assert r.status_code == 201


def test_auth_endpoints_exempt(csrf_client, make_user):
    make_user("a@example.com")
    r = csrf_client.post("/api/auth/login", json={"email": "a@example.com", "password": "password123"})
    assert r.status_code == 200


def test_reads_not_checked(csrf_client, make_user, login):
    make_user("a@example.com")
    login(csrf_client, "a@example.com")
    assert csrf_client.get("/api/customers").status_code == 200
