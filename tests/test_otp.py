from datetime import datetime, timedelta

import pytest

from app.nexus.db import session_scope
from app.nexus.models import Otp
from app.nexus.otp import EXPIRED, INVALID, OtpError, generate_numeric_code, issue_otp, verify_otp

from conftest import last_code

NOW = datetime(2024, 5, 1, 12, 0, 0)


def _wrong(code):
    return "1" * len(code) if code != "1" * len(code) else "2" * len(code)


def test_generate_numeric_code():
    for _ in range(50):
        code = generate_numeric_code(6)
        assert len(code) == 6 and code.isdigit() and code[0] != "0"


def test_issue_and_verify(app):
    with session_scope(app) as s:
        issued = issue_otp(s, " Owner@Example.com ", now=NOW)
        assert issued.email == "owner@example.com"
        assert issued.expires_at == NOW + timedelta(minutes=10)
        record = verify_otp(s, "owner@example.com", issued.code, now=NOW + timedelta(minutes=1))
        assert record.consumed_at is not None


def test_code_is_single_use(app):
    with session_scope(app) as s:
        issued = issue_otp(s, "owner@example.com", now=NOW)
        verify_otp(s, "owner@example.com", issued.code, now=NOW)
        with pytest.raises(OtpError) as exc:
            verify_otp(s, "owner@example.com", issued.code, now=NOW)
        assert exc.value.reason == INVALID


def test_expired_code(app):
    with session_scope(app) as s:
        issued = issue_otp(s, "owner@example.com", ttl_minutes=10, now=NOW)
        with pytest.raises(OtpError) as exc:
            verify_otp(s, "owner@example.com", issued.code, now=NOW + timedelta(minutes=11))
        assert exc.value.reason == EXPIRED


def test_wrong_code_before_expiry_is_invalid(app):
    with session_scope(app) as s:
        issued = issue_otp(s, "owner@example.com", now=NOW)
        with pytest.raises(OtpError) as exc:
            verify_otp(s, "owner@example.com", _wrong(issued.code), now=NOW)
        assert exc.value.reason == INVALID
        # the right code still works
        verify_otp(s, "owner@example.com", issued.code, now=NOW)


def test_no_code_issued_is_invalid(app):
    with session_scope(app) as s:
        with pytest.raises(OtpError) as exc:
            verify_otp(s, "nobody@example.com", "123456", now=NOW)
        assert exc.value.reason == INVALID


def test_reissue_supersedes_previous_code(app):
    with session_scope(app) as s:
        first = issue_otp(s, "owner@example.com", now=NOW)
        second = issue_otp(s, "owner@example.com", now=NOW + timedelta(seconds=30))
        if first.code != second.code:
            with pytest.raises(OtpError):
                verify_otp(s, "owner@example.com", first.code, now=NOW + timedelta(minutes=1))
        verify_otp(s, "owner@example.com", second.code, now=NOW + timedelta(minutes=1))
        assert s.query(Otp).filter(Otp.superseded_at.isnot(None)).count() == 1


def test_code_burned_after_max_attempts(app):
    with session_scope(app) as s:
        issued = issue_otp(s, "owner@example.com", now=NOW)
        for _ in range(3):
            with pytest.raises(OtpError):
                verify_otp(s, "owner@example.com", _wrong(issued.code), max_attempts=3, now=NOW)
        with pytest.raises(OtpError) as exc:
            verify_otp(s, "owner@example.com", issued.code, max_attempts=3, now=NOW)
        assert exc.value.reason == INVALID


def test_otp_endpoints_keep_attempt_count(client, app):
    r = client.post("/api/otp/request", json={"email": "owner@example.com"})
    assert r.status_code == 200
    code = last_code("owner@example.com")

    r = client.post("/api/otp/verify", json={"email": "owner@example.com", "code": _wrong(code)})
    assert r.status_code == 400
    assert r.json["code"] == INVALID
    with session_scope(app) as s:
        assert s.query(Otp).one().attempts == 1

    r = client.post("/api/otp/verify", json={"email": "owner@example.com", "code": code})
    assert r.status_code == 200
    assert r.json["data"] == {"verified": True, "user_verified": False}


def test_otp_request_validates_email(client):
    assert client.post("/api/otp/request", json={"email": "not-an-email"}).status_code == 400


def test_otp_request_rate_limited(client):
    for _ in range(3):
        assert client.post("/api/otp/request", json={"email": "owner@example.com"}).status_code == 200
    r = client.post("/api/otp/request", json={"email": "owner@example.com"})
    assert r.status_code == 429


def test_otp_endpoints_reject_non_string_email(client):
    r = client.post("/api/otp/request", json={"email": 123})
    assert r.status_code == 400
    assert r.json["error"] == "email must be a string."
    assert client.post("/api/otp/verify", json={"email": 123, "code": "123456"}).status_code == 400


def test_rate_limit_ignores_spoofed_forwarded_for(client):
    for i in range(3):
        headers = {"X-Forwarded-For": f"10.0.0.{i}"}
        assert client.post("/api/otp/request", json={"email": "owner@example.com"}, headers=headers).status_code == 200
    headers = {"X-Forwarded-For": "10.0.0.9"}
    assert client.post("/api/otp/request", json={"email": "owner@example.com"}, headers=headers).status_code == 429


def test_rate_limit_per_client_behind_trusted_proxy(app, monkeypatch):
    from app.nexus import create_app

    monkeypatch.setenv("TRUSTED_PROXIES", "1")
    proxied = create_app().test_client()

    def request_from(ip):
        return proxied.post("/api/otp/request", json={"email": "owner@example.com"}, headers={"X-Forwarded-For": ip})

    assert [request_from("203.0.113.5").status_code for _ in range(4)] == [200, 200, 200, 429]
    assert request_from("198.51.100.7").status_code == 200


def test_outbox_only_collects_under_testing(app):
    from app.nexus.mail import OUTBOX_SIZE, outbox, send_otp_email

    app.config["TESTING"] = False
    with app.app_context():
        send_otp_email("owner@example.com", "123456", NOW)
    assert len(outbox) == 0

    app.config["TESTING"] = True
    with app.app_context():
        for _ in range(OUTBOX_SIZE + 5):
            send_otp_email("owner@example.com", "654321", NOW)
    assert len(outbox) == OUTBOX_SIZE
    assert last_code("owner@example.com") == "654321"
