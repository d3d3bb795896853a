"""Tests for the quote notification email.

Covers:
- Template rendering (escaping, file list, services)
- No recipient configured → skipped
- Development: logged only, reported as sent
- Production: SMTP send with STARTTLS and login; SMTP / network errors reported
"""

from __future__ import annotations

import smtplib
from datetime import date, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.config import NotificationSettings
from src.notifications import NotificationService, render_quote_email
from src.quotes.files import SavedFile
from src.schemas.events import EventType
from src.schemas.quote import QuoteSubmission

RECIPIENT = NotificationSettings(
    notification_email="sales@acme.com",
    smtp_host="smtp.acme.com",
    smtp_username="mailer",
    smtp_password="secret",
)


def _submission(description: str = "Laser cut and bent mounting brackets") -> QuoteSubmission:
    return QuoteSubmission.model_validate({
        "contact": {
            "firstName": "Jane",
            "lastName": "Doe",
            "email": "jane@acme.com",
            "phone": "416-555-1234",
            "company": "Acme Corp",
        },
        "project": {
            "projectName": "Bracket run",
            "projectType": "small-batch",
            "material": "aluminum",
            "quantity": 120,
            "requiredDate": (date.today() + timedelta(days=20)).isoformat(),
            "description": description,
        },
        "services": {
            "laserCutting": True,
            "metalBending": False,
            "welding": True,
            "assembly": False,
            "finishing": False,
            "design": False,
        },
    })


class TestRender:
    def test_contents(self):
        html = render_quote_email(_submission(), "CMF-1-ABC", [SavedFile("a.pdf", "/tmp/a.pdf", 2048)])

        assert "New Quote Request - CMF-1-ABC" in html
        assert "Jane Doe" in html
        assert "<li>Laser Cutting</li>" in html
        assert "<li>Welding</li>" in html
        assert "a.pdf (2.00 KB)" in html
        assert "1 file(s) uploaded" in html
        assert "Not specified" in html

    def test_user_text_is_escaped(self):
        html = render_quote_email(_submission("<script>alert(1)</script> brackets"), "CMF-1-ABC")
        assert "<script>" not in html
        assert "&lt;script&gt;" in html


class TestNotifyQuote:
    @pytest.mark.asyncio()
    async def test_no_recipient(self):
        service = NotificationService(NotificationSettings(notification_email=""), production=True)

        with patch("src.notifications.email.smtplib.SMTP") as mock_smtp:
            assert await service.notify_quote(_submission(), "CMF-1-ABC") is False

        mock_smtp.assert_not_called()

    @pytest.mark.asyncio()
    async def test_development_only_logs(self):
        service = NotificationService(RECIPIENT, production=False)

        with (
            patch("src.notifications.email.smtplib.SMTP") as mock_smtp,
            patch("src.notifications.email.emit", new_callable=AsyncMock) as mock_emit,
        ):
            assert await service.notify_quote(_submission(), "CMF-1-ABC") is True

        mock_smtp.assert_not_called()
        event = mock_emit.await_args.args[0]
        assert event.event_type == EventType.NOTIFICATION_SENT
        assert event.data == {"delivery": "logged"}

    @pytest.mark.asyncio()
    async def test_production_sends(self):
        service = NotificationService(RECIPIENT, production=True)

        with patch("src.notifications.email.smtplib.SMTP") as mock_smtp:
            assert await service.notify_quote(_submission(), "CMF-1-ABC") is True

        mock_smtp.assert_called_once_with("smtp.acme.com", 587, timeout=30)
        smtp = mock_smtp.return_value.__enter__.return_value
        smtp.starttls.assert_called_once()
        smtp.login.assert_called_once_with("mailer", "secret")
        msg = smtp.send_message.call_args.args[0]
        assert msg["Subject"] == "New Quote Request - CMF-1-ABC"
        assert msg["To"] == "sales@acme.com"

    @pytest.mark.asyncio()
    async def test_smtp_error(self):
        service = NotificationService(RECIPIENT, production=True)

        with (
            patch("src.notifications.email.smtplib.SMTP") as mock_smtp,
            patch("src.notifications.email.emit", new_callable=AsyncMock) as mock_emit,
        ):
            smtp = mock_smtp.return_value.__enter__.return_value
            smtp.send_message.side_effect = smtplib.SMTPException("rejected")
            assert await service.notify_quote(_submission(), "CMF-1-ABC") is False

        assert mock_emit.await_args.args[0].event_type == EventType.NOTIFICATION_FAILED

    @pytest.mark.asyncio()
    async def test_network_error(self):
        service = NotificationService(RECIPIENT, production=True)

        with patch("src.notifications.email.smtplib.SMTP", MagicMock(side_effect=OSError("refused"))):
            assert await service.notify_quote(_submission(), "CMF-1-ABC") is False
