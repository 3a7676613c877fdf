"""Test cases for email rendering and SMTP delivery."""

import smtplib
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest

from app.services.email_service import (
    SSL_PORT,
    EmailDeliveryError,
    EmailService,
    EmailTemplate,
    SmtpConfig,
    format_date,
    format_rupees,
    html_to_text,
    load_smtp_config,
)
from app.services.settings_service import AdminSettingsService, SettingsCache


def smtp_config(**overrides) -> SmtpConfig:
    data = {
        "host": "smtp.example.com",
        "port": 587,
        "user": "mailer@example.com",
        "password": "app-password",
        "from_address": "billing@example.com",
        "from_name": "Classroom",
    }
    data.update(overrides)
    return SmtpConfig(**data)


@pytest.fixture
def email_service():
    return EmailService(settings_service=MagicMock())


class TestFilters:
    @pytest.mark.parametrize(
        "paise,expected", [(7500, "₹75.00"), (123456, "₹1,234.56"), ("abc", "abc"), (None, "")]
    )
    def test_format_rupees(self, paise, expected):
        assert format_rupees(paise) == expected

    def test_format_date(self):
        assert format_date(datetime(2024, 2, 29)) == "29 Feb 2024"
        assert format_date("2024-02-29T10:00:00") == "29 Feb 2024"
        assert format_date(None) == ""

    def test_html_to_text(self):
        html = "<h1>Hello</h1><p>Line   one<br>Line two</p><ul><li>a</li></ul>"

        assert html_to_text(html) == "Hello\nLine one\nLine two\na"


class TestRender:
    @pytest.mark.parametrize("template", list(EmailTemplate))
    def test_every_template_renders(self, email_service, template):
        subject, html, text = email_service.render(
            template,
            {
                "userName": "Asha",
                "className": "Class 10",
                "subjectName": "Physics",
                "amount": 7500,
                "endDate": "2024-03-15T00:00:00",
                "daysLeft": 3,
            },
        )

        assert subject
        assert "<" in html
        assert "<" not in text

    def test_renewal_email_content(self, email_service):
        subject, html, text = email_service.render(
            EmailTemplate.SUBSCRIPTION_RENEWED,
            {
                "userName": "Asha",
                "className": "Class 10",
                "subjectName": "Physics",
                "amount": 7500,
                "newEndDate": "2024-04-15T08:00:00",
                "paymentId": "pay_1",
            },
        )

        assert subject == "Your subscription has been renewed"
        assert "₹75.00" in text
        assert "15 Apr 2024" in text

    def test_context_is_escaped(self, email_service):
        _, html, _ = email_service.render(
            EmailTemplate.PAYMENT_SUCCESS, {"userName": "<script>x</script>", "amount": 1}
        )

        assert "<script>" not in html

    def test_build_message_has_text_and_html_parts(self):
        message = EmailService.build_message(
            smtp_config(), ["asha@example.com"], "Hi", "<p>Hi</p>", "Hi"
        )

        assert message["From"] == "Classroom <billing@example.com>"
        assert [part.get_content_type() for part in message.get_payload()] == [
            "text/plain",
            "text/html",
        ]


class TestDelivery:
    async def test_unconfigured_smtp_raises(self, beanie_db):
        service = EmailService(settings_service=AdminSettingsService(cache=SettingsCache(300)))

        with patch("app.services.email_service.load_smtp_config", return_value=smtp_config(host="")):
            with pytest.raises(EmailDeliveryError):
                await service.send_email("asha@example.com", "Hi", "<p>Hi</p>")

    async def test_admin_settings_override_environment(self, beanie_db):
        settings_service = AdminSettingsService(cache=SettingsCache(300))
        await settings_service.update({"smtpHost": "smtp.admin.test", "smtpPort": "2525"})

        config = await load_smtp_config(settings_service)

        assert config.host == "smtp.admin.test"
        assert config.port == 2525

    def test_starttls_failure_falls_back_to_implicit_tls(self, email_service):
        config = smtp_config(port=587)
        ports = []

        def send_via(cfg, port, message):
            ports.append(port)
            if port == 587:
                raise smtplib.SMTPServerDisconnected("closed")

        with patch.object(email_service, "_send_via", side_effect=send_via):
            email_service._deliver(config, MagicMock())

        assert ports == [587, SSL_PORT]

    def test_implicit_tls_failure_is_not_retried(self, email_service):
        config = smtp_config(port=SSL_PORT)

        with patch.object(
            email_service, "_send_via", side_effect=OSError("connection refused")
        ) as send_via:
            with pytest.raises(EmailDeliveryError):
                email_service._deliver(config, MagicMock())

        assert send_via.call_count == 1

    async def test_send_template_delivers_rendered_message(self, email_service):
        with (
            patch("app.services.email_service.load_smtp_config", return_value=smtp_config()),
            patch.object(email_service, "_deliver") as deliver,
        ):
            await email_service.send_template(
                "asha@example.com", EmailTemplate.PAYMENT_SUCCESS, {"userName": "Asha", "amount": 100}
            )

        config, message = deliver.call_args.args
        assert message["To"] == "asha@example.com"
        assert message["Subject"] == "Payment received"
