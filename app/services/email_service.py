"""Transactional email over SMTP with Jinja2 templates."""

from __future__ import annotations

import asyncio
import logging
import re
import smtplib
import ssl
from dataclasses import dataclass
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from enum import Enum
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, Undefined, select_autoescape

from app.core.config import settings
from app.services.settings_service import AdminSettingsService

logger = logging.getLogger(__name__)

SSL_PORT = 465
TEMPLATE_DIR = Path(__file__).parent.parent / "templates" / "emails"


class EmailTemplate(str, Enum):
    """Available email templates."""

    AUTO_RENEWAL_ATTEMPT = "auto_renewal_attempt"
    SUBSCRIPTION_RENEWED = "subscription_renewed"
    AUTO_RENEWAL_FAILED = "auto_renewal_failed"
    RENEWAL_REMINDER = "renewal_reminder"
    EXPIRY_WARNING = "expiry_warning"
    GRACE_PERIOD = "grace_period"
    SUBSCRIPTION_EXPIRED = "subscription_expired"
    PAYMENT_SUCCESS = "payment_success"
    ADMIN_NEW_SUBSCRIPTION = "admin_new_subscription"
    ADMIN_PAYMENT_FAILED = "admin_payment_failed"
    ADMIN_SYSTEM_ERROR = "admin_system_error"


TEMPLATE_SUBJECTS: dict[EmailTemplate, str] = {
    EmailTemplate.AUTO_RENEWAL_ATTEMPT: "Your subscription will renew automatically",
    EmailTemplate.SUBSCRIPTION_RENEWED: "Your subscription has been renewed",
    EmailTemplate.AUTO_RENEWAL_FAILED: "We could not renew your subscription",
    EmailTemplate.RENEWAL_REMINDER: "Action needed: renew your subscription",
    EmailTemplate.EXPIRY_WARNING: "Your subscription expires soon",
    EmailTemplate.GRACE_PERIOD: "Your subscription is in its grace period",
    EmailTemplate.SUBSCRIPTION_EXPIRED: "Your subscription has expired",
    EmailTemplate.PAYMENT_SUCCESS: "Payment received",
    EmailTemplate.ADMIN_NEW_SUBSCRIPTION: "New subscription",
    EmailTemplate.ADMIN_PAYMENT_FAILED: "Payment failed",
    EmailTemplate.ADMIN_SYSTEM_ERROR: "System error",
}


class EmailDeliveryError(Exception):
    """Raised when a message could not be handed to the SMTP server."""


@dataclass
class SmtpConfig:
    host: str
    port: int
    user: str
    password: str
    from_address: str
    from_name: str
    timeout: float = 20.0

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.user and self.password)

    @property
    def sender(self) -> str:
        return formataddr((self.from_name, self.from_address or self.user))


async def load_smtp_config(settings_service: AdminSettingsService) -> SmtpConfig:
    stored = await settings_service.get_stored()

    def value(key: str, fallback: str) -> str:
        return stored.get(key) or fallback

    try:
        port = int(value("smtpPort", str(settings.SMTP_PORT)))
    except ValueError:
        port = settings.SMTP_PORT

    return SmtpConfig(
        host=value("smtpHost", settings.SMTP_HOST),
        port=port,
        user=value("smtpUser", settings.SMTP_USER),
        password=value("smtpPass", settings.SMTP_PASSWORD),
        from_address=value("smtpFrom", settings.SMTP_FROM),
        from_name=value("smtpFromName", settings.SMTP_FROM_NAME),
        timeout=settings.SMTP_TIMEOUT_SECONDS,
    )


def format_rupees(paise: Any) -> str:
    if paise is None or isinstance(paise, Undefined):
        return ""
    try:
        return f"₹{int(paise) / 100:,.2f}"
    except (TypeError, ValueError):
        return str(paise)


def format_date(value: Any) -> str:
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    if isinstance(value, datetime):
        return value.strftime("%d %b %Y")
    return "" if value is None else str(value)


def html_to_text(html: str) -> str:
    text = re.sub(r"<(br|/p|/div|/h[1-6]|/li|/tr)\s*/?>", "\n", html, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", "", text)
    lines = [re.sub(r"[ \t]+", " ", line).strip() for line in text.splitlines()]
    return "\n".join(line for line in lines if line)


class EmailService:
    """Renders templates and delivers them through SMTP in a worker thread."""

    def __init__(
        self,
        settings_service: AdminSettingsService | None = None,
        template_dir: Path | None = None,
    ):
        self.settings_service = settings_service or AdminSettingsService()
        self.jinja_env = Environment(
            loader=FileSystemLoader(str(template_dir or TEMPLATE_DIR)),
            autoescape=select_autoescape(["html", "xml"]),
        )
        self.jinja_env.filters["rupees"] = format_rupees
        self.jinja_env.filters["date"] = format_date

    def render(
        self, template: EmailTemplate, context: dict[str, Any]
    ) -> tuple[str, str, str]:
        """Return subject, HTML body and plain-text body."""
        subject = context.get("subject") or TEMPLATE_SUBJECTS[template]
        html = self.jinja_env.get_template(f"{template.value}.html").render(
            subject=subject, site_url=settings.SITE_URL, **context
        )
        return subject, html, html_to_text(html)

    @staticmethod
    def build_message(
        config: SmtpConfig, to: list[str], subject: str, html: str, text: str
    ) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = config.sender
        message["To"] = ", ".join(to)
        message.attach(MIMEText(text, "plain", "utf-8"))
        message.attach(MIMEText(html, "html", "utf-8"))
        return message

    def _send_via(self, config: SmtpConfig, port: int, message: MIMEMultipart) -> None:
        context = ssl.create_default_context()
        if port == SSL_PORT:
            with smtplib.SMTP_SSL(config.host, port, timeout=config.timeout, context=context) as server:
                server.login(config.user, config.password)
                server.send_message(message)
            return

        with smtplib.SMTP(config.host, port, timeout=config.timeout) as server:
            server.starttls(context=context)
            server.login(config.user, config.password)
            server.send_message(message)

    def _deliver(self, config: SmtpConfig, message: MIMEMultipart) -> None:
        try:
            self._send_via(config, config.port, message)
        except (smtplib.SMTPException, OSError) as first_error:
            if config.port == SSL_PORT:
                raise EmailDeliveryError(f"SMTP delivery failed: {first_error}") from first_error
            logger.warning(
                "SMTP delivery failed, retrying over implicit TLS",
                extra={"smtp_host": config.host, "smtp_port": config.port, "error": str(first_error)},
            )
            try:
                self._send_via(config, SSL_PORT, message)
            except (smtplib.SMTPException, OSError) as e:
                raise EmailDeliveryError(f"SMTP delivery failed: {e}") from e

    async def send_email(self, to: str | list[str], subject: str, html: str, text: str | None = None) -> None:
        """
        Send one message.

        Raises:
            EmailDeliveryError: If SMTP is not configured or delivery failed
        """
        recipients = [to] if isinstance(to, str) else list(to)
        config = await load_smtp_config(self.settings_service)
        if not config.is_configured:
            raise EmailDeliveryError("SMTP is not configured")

        message = self.build_message(config, recipients, subject, html, text or html_to_text(html))
        await asyncio.to_thread(self._deliver, config, message)
        logger.info("Email sent", extra={"subject": subject, "recipient_count": len(recipients)})

    async def send_template(
        self, to: str | list[str], template: EmailTemplate, context: dict[str, Any]
    ) -> None:
        subject, html, text = self.render(template, context)
        await self.send_email(to, subject, html, text)
