"""
Outbound mail over SMTP.
"""
import smtplib
from email.message import EmailMessage
from typing import List, Optional

import structlog

from ..config import Settings


log = structlog.get_logger(__name__)


class MailConfigurationError(RuntimeError):
    pass


class MailDeliveryError(RuntimeError):
    def __init__(self, message: str, provider_detail: Optional[str] = None):
        super().__init__(message if not provider_detail else f"{message}: {provider_detail}")
        self.provider_detail = provider_detail


class SmtpMailer:
    """Sends one HTML message to a list of recipients in a single SMTP transaction."""

    def __init__(self, settings: Settings):
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.username = settings.smtp_user
        self.password = settings.smtp_password
        self.sender = settings.mail_from or settings.smtp_user

    def ensure_configured(self) -> None:
        missing = [
            name
            for name, value in (
                ("SMTP_HOST", self.host),
                ("SMTP_PORT", self.port),
                ("SMTP_USER", self.username),
                ("SMTP_PASS", self.password),
            )
            if not value
        ]
        if missing:
            log.error("smtp_not_configured", missing=missing)
            raise MailConfigurationError("SMTP configuration is missing on the server.")

    def send_html(self, to: List[str], subject: str, html: str) -> None:
        self.ensure_configured()

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = f'"MediStock Alert" <{self.sender}>'
        msg["To"] = ", ".join(to)
        msg.set_content("This message requires an HTML capable mail client.")
        msg.add_alternative(html, subtype="html")

        port = int(self.port)
        try:
            # 465 is implicit TLS; everything else upgrades with STARTTLS
            if port == 465:
                with smtplib.SMTP_SSL(self.host, port) as s:
                    s.login(self.username, self.password)
                    s.send_message(msg)
            else:
                with smtplib.SMTP(self.host, port) as s:
                    s.starttls()
                    s.login(self.username, self.password)
                    s.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            log.error("smtp_send_failed", error=str(e), recipients=len(to))
            raise MailDeliveryError("Failed to send email via SMTP", provider_detail=str(e)) from e

        log.info("smtp_sent", recipients=len(to), subject=subject)
