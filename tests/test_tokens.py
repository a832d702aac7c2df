from datetime import datetime, timedelta, timezone

import pytest

from app.nexus.tokens import parse_expires_in, sign_token, verify_token


@pytest.mark.parametrize(
    "raw,expected",
    [("24h", 86400), ("30d", 30 * 86400), ("15m", 900), ("45s", 45), ("3600", 3600), (120, 120), ("soon", 86400)],
)
def test_parse_expires_in(raw, expected):
    assert parse_expires_in(raw) == expected


def test_sign_and_verify():
    token = sign_token({"user_id": 7, "role": "ADMIN"}, secret="s3cret", issuer="lpg-nexus")
    claims = verify_token(token, secret="s3cret", issuer="lpg-nexus")
    assert claims["user_id"] == 7
    assert claims["iss"] == "lpg-nexus"


def test_wrong_secret_or_issuer_rejected():
    token = sign_token({"user_id": 7}, secret="s3cret", issuer="lpg-nexus")
    assert verify_token(token, secret="other", issuer="lpg-nexus") is None
    assert verify_token(token, secret="s3cret", issuer="someone-else") is None


def test_expired_token_rejected():
    issued = datetime.now(timezone.utc) - timedelta(hours=2)
    token = sign_token({"user_id": 7}, secret="s3cret", issuer="lpg-nexus", expires_in="1h", now=issued)
    assert verify_token(token, secret="s3cret", issuer="lpg-nexus") is None


def test_garbage_rejected():
    assert verify_token("abc.def.ghi", secret="s3cret", issuer="lpg-nexus") is None
