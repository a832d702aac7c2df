"""
Outbound mail.

Delivery is handled outside this service; messages are written to the log
(the code itself only outside production). Under ``TESTING`` the most recent
messages are also kept in ``outbox`` so tests can read the codes back.
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app

logger = logging.getLogger(__name__)

OUTBOX_SIZE = 100


@dataclass
class OutboundMessage:
    to: str
    subject: str
    body: str
    created_at: datetime = field(default_factory=datetime.utcnow)


outbox: deque[OutboundMessage] = deque(maxlen=OUTBOX_SIZE)


def send_otp_email(email: str, code: str, expires_at: datetime, *, purpose: str = "verification") -> OutboundMessage:
    subject = f"Your LPG Nexus {purpose} code"
    body = (
        f"Your {purpose} code is {code}. "
        f"It expires at {expires_at.strftime('%Y-%m-%d %H:%M')} UTC and can be used once."
    )
    msg = OutboundMessage(to=email, subject=subject, body=body)
    if current_app.config.get("TESTING"):
        outbox.append(msg)
    if current_app.config.get("ENV") in ("prod", "production"):
        logger.info("OTP mail queued to=%s purpose=%s", email, purpose)
    else:
        logger.info("OTP mail queued to=%s purpose=%s code=%s", email, purpose, code)
    return msg
