"""
Outbound email.

Workflows depend on the :class:`Mailer` protocol only; the production
implementation talks SMTP through aiosmtplib and is constructed once in the
application lifespan.
"""
from __future__ import annotations

import asyncio
import logging
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

import aiosmtplib
from fastapi import Request

from readstack.config import Settings
from readstack.errors import MailDeliveryError

logger = logging.getLogger(__name__)


class Mailer(Protocol):
    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> None:
        """Deliver one message or raise MailDeliveryError."""
        ...


class SMTPMailer:
    """SMTP transport with a per-send timeout and a bounded number of attempts."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_address: str,
        from_name: str,
        *,
        use_tls: bool = True,
        timeout: float = 10.0,
        max_attempts: int = 3,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address
        self.from_name = from_name
        self.use_tls = use_tls
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SMTPMailer":
        return cls(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            from_address=settings.MAIL_FROM_ADDRESS,
            from_name=settings.MAIL_FROM_NAME,
            use_tls=settings.SMTP_USE_TLS,
            timeout=settings.SMTP_TIMEOUT,
            max_attempts=settings.SMTP_MAX_ATTEMPTS,
        )

    def _build(self, to_email: str, subject: str, html_body: str, text_body: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = f"{self.from_name} <{self.from_address}>"
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))
        return msg

    async def send(self, to_email: str, subject: str, html_body: str, text_body: str) -> None:
        msg = self._build(to_email, subject, html_body, text_body)
        tls_context = ssl.create_default_context() if self.use_tls else None

        for attempt in range(1, self.max_attempts + 1):
            try:
                await aiosmtplib.send(
                    msg,
                    hostname=self.host,
                    port=self.port,
                    username=self.username or None,
                    password=self.password or None,
                    start_tls=self.use_tls,
                    tls_context=tls_context,
                    timeout=self.timeout,
                )
                logger.info("Email sent to %s (%s)", to_email, subject)
                return
            except (aiosmtplib.SMTPException, OSError) as exc:
                logger.warning(
                    "SMTP send to %s failed (attempt %d/%d): %s",
                    to_email, attempt, self.max_attempts, exc,
                )
                if attempt == self.max_attempts:
                    raise MailDeliveryError(f"Could not deliver email to {to_email}") from exc
                await asyncio.sleep(0.5 * 2 ** (attempt - 1))


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer
