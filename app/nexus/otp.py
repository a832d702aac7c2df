"""
Email one-time codes.

One active code per email: issuing a code supersedes every earlier unconsumed
code for that address. A code is consumed with a conditional UPDATE so two
concurrent verifications of the same code cannot both succeed, and a code is
burned after too many wrong attempts.
"""
from __future__ import annotations

import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.nexus.models import Otp

logger = logging.getLogger(__name__)

OTP_EXPIRATION_MINUTES = 10
OTP_LENGTH = 6
OTP_MAX_ATTEMPTS = 5

EXPIRED = "EXPIRED"
INVALID = "INVALID"


class OtpError(Exception):
    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


@dataclass(frozen=True)
class IssuedOtp:
    email: str
    code: str
    expires_at: datetime


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def generate_numeric_code(length: int = OTP_LENGTH) -> str:
    """Random fixed-length numeric code; never starts with 0."""
    low = 10 ** (length - 1)
    high = 10**length - 1
    return str(low + secrets.randbelow(high - low + 1))


def issue_otp(
    s: Session,
    email: str,
    *,
    length: int = OTP_LENGTH,
    ttl_minutes: int = OTP_EXPIRATION_MINUTES,
    now: datetime | None = None,
) -> IssuedOtp:
    email = normalize_email(email)
    now = now or datetime.utcnow()

    s.execute(
        update(Otp)
        .where(Otp.email == email, Otp.consumed_at.is_(None), Otp.superseded_at.is_(None))
        .values(superseded_at=now)
    )

    code = generate_numeric_code(length)
    expires_at = now + timedelta(minutes=ttl_minutes)
    s.add(Otp(email=email, code=code, expires_at=expires_at, attempts=0, created_at=now))
    s.flush()
    logger.info("OTP issued for %s (expires %s)", email, expires_at.isoformat())
    return IssuedOtp(email=email, code=code, expires_at=expires_at)


def _active_otp(s: Session, email: str) -> Otp | None:
    return (
        s.query(Otp)
        .filter(Otp.email == email, Otp.consumed_at.is_(None), Otp.superseded_at.is_(None))
        .order_by(Otp.created_at.desc(), Otp.id.desc())
        .first()
    )


def verify_otp(
    s: Session,
    email: str,
    code: str,
    *,
    max_attempts: int = OTP_MAX_ATTEMPTS,
    now: datetime | None = None,
) -> Otp:
    """
    Consume the active code for ``email``.

    Raises OtpError(INVALID) when there is no active code or it does not match,
    and OtpError(EXPIRED) when the matching code has lapsed.
    """
    email = normalize_email(email)
    code = (code or "").strip()
    now = now or datetime.utcnow()

    record = _active_otp(s, email)
    if record is None:
        raise OtpError(INVALID)

    if not hmac.compare_digest(record.code, code):
        record.attempts = (record.attempts or 0) + 1
        if record.attempts >= max_attempts:
            record.superseded_at = now
            logger.warning("OTP for %s burned after %s failed attempts", email, record.attempts)
        s.flush()
        raise OtpError(INVALID)

    if record.expires_at < now:
        raise OtpError(EXPIRED)

    result = s.execute(
        update(Otp)
        .where(Otp.id == record.id, Otp.consumed_at.is_(None), Otp.superseded_at.is_(None))
        .values(consumed_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        # Consumed or superseded by a concurrent request between lookup and update.
        raise OtpError(INVALID)
    record.consumed_at = now
    return record
