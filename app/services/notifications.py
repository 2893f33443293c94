"""Notification sinks for outbound email.

The auth service renders message content and hands it to a sink. Sinks raise
NotificationError when delivery fails; retrying is up to the sink.
"""

import logging
import smtplib
from dataclasses import dataclass, field
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

from app.clock import utcnow
from app.config import get_settings
from app.errors import NotificationError

logger = logging.getLogger("product_admin")


class NotificationSink(Protocol):
    def send(self, to_address: str, subject: str, body_html: str) -> None: ...


@dataclass
class SentMessage:
    """Record of a logged message."""

    to_address: str
    subject: str
    body_html: str
    logged_at: datetime


@dataclass
class LogNotificationSink:
    """Logs messages instead of sending them. Used in development and tests."""

    sent: list[SentMessage] = field(default_factory=list)
    log_level: int = logging.INFO

    def send(self, to_address: str, subject: str, body_html: str) -> None:
        self.sent.append(SentMessage(to_address, subject, body_html, utcnow()))
        logger.log(self.log_level, "EMAIL (dev): To=%s, Subject=%s, Body=%s", to_address, subject, body_html.strip())

    def get_last_message(self) -> SentMessage | None:
        return self.sent[-1] if self.sent else None

    def clear(self) -> None:
        self.sent.clear()


class SmtpNotificationSink:
    """Sends HTML email over SMTP, upgrading with STARTTLS when configured."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str = "",
        password: str = "",
        from_address: str = "no-reply@localhost",
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address
        self.use_tls = use_tls
        self.timeout = timeout

    def send(self, to_address: str, subject: str, body_html: str) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_address
        msg["To"] = to_address
        msg.attach(MIMEText(body_html, "html"))

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("SMTP delivery to %s failed: %s", to_address, e)
            raise NotificationError(to_address, str(e)) from e

        logger.info("Sent email '%s' to %s", subject, to_address)


_notification_sink: NotificationSink | None = None


def get_notification_sink() -> NotificationSink:
    """Get singleton notification sink. SMTP when SMTP_HOST is configured, logging otherwise."""
    global _notification_sink
    if _notification_sink is None:
        settings = get_settings()
        if settings.SMTP_HOST:
            _notification_sink = SmtpNotificationSink(
                host=settings.SMTP_HOST,
                port=settings.SMTP_PORT,
                username=settings.SMTP_USER,
                password=settings.SMTP_PASSWORD,
                from_address=settings.SMTP_FROM,
                use_tls=settings.SMTP_USE_TLS,
            )
        else:
            _notification_sink = LogNotificationSink()
    return _notification_sink
