"""
Mail transports for notification delivery.

Two implementations of one capability:
- `SmtpMailTransport` sends real mail through `aiosmtplib`.
- `SimulatedMailTransport` logs what would be sent and waits a little,
  so the pipeline can run end to end without SMTP credentials.

`build_mail_transport` picks one once, at consumer startup.
"""

from __future__ import annotations

import asyncio
import logging
from email.message import EmailMessage
from email.utils import formatdate, make_msgid
from typing import Protocol

import aiosmtplib

from chat_backend.core.config import Settings

logger = logging.getLogger(__name__)

IMPLICIT_TLS_PORT = 465


class MailTransport(Protocol):
    """Outbound mail capability used by the notification dispatcher."""

    async def send_email(self, to: str, subject: str, body: str) -> bool:
        """Send a plain-text email. Returns True on success."""
        ...

    def is_configured(self) -> bool:
        ...


class SmtpMailTransport:
    """
    SMTP transport.

    Args:
        host: SMTP server host.
        port: SMTP port; 465 uses implicit TLS, anything else STARTTLS.
        username: Login user, also the default sender address.
        password: Login password.
        sender: Optional From address (defaults to `username`).
        timeout: Per-operation timeout in seconds.
    """

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        sender: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._sender = sender or username
        self._timeout = timeout

    def is_configured(self) -> bool:
        return bool(self._host and self._username and self._password and self._port > 0)

    def build_message(self, to: str, subject: str, body: str) -> EmailMessage:
        """Build an RFC 5322 plain-text message."""
        msg = EmailMessage()
        msg["Date"] = formatdate(localtime=True)
        msg["To"] = to
        msg["From"] = self._sender
        msg["Subject"] = subject
        msg["Message-ID"] = make_msgid()
        msg.set_content(body, charset="utf-8")
        return msg

    async def send_email(self, to: str, subject: str, body: str) -> bool:
        message = self.build_message(to, subject, body)
        implicit_tls = self._port == IMPLICIT_TLS_PORT
        try:
            await aiosmtplib.send(
                message,
                hostname=self._host,
                port=self._port,
                username=self._username,
                password=self._password,
                use_tls=implicit_tls,
                start_tls=False if implicit_tls else True,
                timeout=self._timeout,
            )
        except (aiosmtplib.SMTPException, OSError) as exc:
            logger.error("SMTP error sending to %s: %r", to, exc)
            return False

        logger.info("Email sent successfully to %s", to)
        return True


class SimulatedMailTransport:
    """Stand-in transport used when SMTP credentials are missing."""

    def __init__(self, delay_seconds: float = 1.5) -> None:
        self._delay = delay_seconds

    def is_configured(self) -> bool:
        return False

    async def send_email(self, to: str, subject: str, body: str) -> bool:
        logger.info("SMTP not configured - simulating email send")
        logger.info("To: %s", to)
        logger.info("Subject: %s", subject)
        logger.info("Body:\n%s", body)
        await asyncio.sleep(self._delay)
        logger.info("Email simulated successfully (SMTP not configured)")
        return True


def build_mail_transport(settings: Settings) -> MailTransport:
    """Select the real SMTP transport when fully configured, else simulation."""
    if settings.smtp_configured:
        logger.info(
            "SMTP configured: %s:%s as %s",
            settings.smtp_host,
            settings.smtp_port,
            settings.smtp_user,
        )
        return SmtpMailTransport(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user,
            password=settings.smtp_password,
            sender=settings.smtp_from or None,
            timeout=settings.smtp_timeout_seconds,
        )

    logger.warning(
        "SMTP credentials not found (set SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASSWORD); "
        "email sending will be simulated"
    )
    return SimulatedMailTransport(delay_seconds=settings.simulated_email_delay_seconds)
