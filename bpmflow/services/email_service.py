"""Email delivery through the mail bridge (an HTTP front for SMTP).

The bridge receives the message plus optional SMTP overrides so each
organization can send through its own server.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import httpx

from bpmflow.config import settings

logger = logging.getLogger(__name__)


class EmailDispatchError(Exception):
    """Raised when a message cannot be handed to the mail bridge."""


@dataclass
class SmtpOverride:
    host: str = ""
    port: int | None = None
    user: str = ""
    password: str = ""
    secure: bool = False

    def to_dict(self) -> dict:
        return {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "pass": self.password,
            "secure": self.secure,
        }


@dataclass
class EmailMessage:
    to: str
    subject: str = ""
    body: str = ""
    cc: str = ""
    smtp: SmtpOverride = field(default_factory=SmtpOverride)


async def dispatch_email(
    client: httpx.AsyncClient,
    message: EmailMessage,
    bridge_url: str | None = None,
) -> dict:
    """Hand ``message`` to the mail bridge. Raises EmailDispatchError on any failure."""
    if not message.to.strip():
        raise EmailDispatchError("Destinatario (to) es obligatorio")

    url = bridge_url or settings.MAIL_BRIDGE_URL
    if not url:
        raise EmailDispatchError("Mail bridge is not configured")

    headers = {"Content-Type": "application/json"}
    if settings.MAIL_BRIDGE_TOKEN:
        headers["Authorization"] = f"Bearer {settings.MAIL_BRIDGE_TOKEN}"

    resp = await client.post(
        url,
        json={
            "to": message.to,
            "cc": message.cc,
            "subject": message.subject,
            "body": message.body,
            "smtp": message.smtp.to_dict(),
        },
        headers=headers,
    )
    if not resp.is_success:
        raise EmailDispatchError(f"HTTP {resp.status_code}: {resp.text}")

    logger.info("Email handed to mail bridge for %s: %s", message.to, message.subject)
    try:
        return resp.json()
    except ValueError:
        return {"status": resp.status_code}
