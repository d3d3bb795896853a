"""Quote notification email.

Rendered from a Jinja2 template. Outside production the rendered message is
only logged; in production it is sent over SMTP in a worker thread. A failed
send is logged and reported, never raised.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from collections.abc import Sequence
from datetime import datetime, timezone
from email.message import EmailMessage
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from src.config import NotificationSettings, settings
from src.events.bus import emit
from src.quotes.files import SavedFile
from src.schemas.events import EventType, SystemEvent
from src.schemas.quote import QuoteSubmission

logger = logging.getLogger(__name__)

_template_dir = Path(__file__).parent / "templates"
_env = Environment(
    loader=FileSystemLoader(str(_template_dir)),
    autoescape=select_autoescape(["html"]),
)


def render_quote_email(
    submission: QuoteSubmission,
    quote_id: str,
    saved_files: Sequence[SavedFile] = (),
) -> str:
    template = _env.get_template("quote_notification.html")
    return template.render(
        quote_id=quote_id,
        contact=submission.contact,
        project=submission.project,
        services=submission.services.selected_labels,
        saved_files=list(saved_files),
        file_count=len(saved_files) if saved_files else len(submission.files),
        submitted_on=datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC"),
    )


class NotificationService:
    """Tells the sales inbox about a new quote."""

    def __init__(
        self,
        notification_settings: NotificationSettings | None = None,
        *,
        production: bool | None = None,
    ) -> None:
        self._settings = notification_settings or settings.notifications
        self._production = settings.is_production if production is None else production

    async def notify_quote(
        self,
        submission: QuoteSubmission,
        quote_id: str,
        saved_files: Sequence[SavedFile] = (),
    ) -> bool:
        """Returns True when the notification was sent (or logged in development)."""
        recipient = self._settings.notification_email
        if not recipient:
            logger.info("Email notifications not configured")
            return False

        html = render_quote_email(submission, quote_id, saved_files)
        subject = f"New Quote Request - {quote_id}"

        if not self._production:
            logger.info("Email notification would be sent to: %s", recipient)
            logger.debug("Email content:\n%s", html)
            await self._emit(EventType.NOTIFICATION_SENT, quote_id, {"delivery": "logged"})
            return True

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self._settings.smtp_from
        msg["To"] = recipient
        msg.set_content(f"New quote request {quote_id}. View this message as HTML.")
        msg.add_alternative(html, subtype="html")

        try:
            await asyncio.to_thread(self._dispatch_smtp, msg)
        except smtplib.SMTPException as exc:
            logger.error("SMTP error sending quote %s to %s: %s", quote_id, recipient, exc)
            await self._emit(EventType.NOTIFICATION_FAILED, quote_id, {"reason": str(exc)})
            return False
        except OSError as exc:
            logger.error(
                "Network error connecting to %s:%d: %s",
                self._settings.smtp_host,
                self._settings.smtp_port,
                exc,
            )
            await self._emit(EventType.NOTIFICATION_FAILED, quote_id, {"reason": str(exc)})
            return False

        logger.info("Quote notification sent to %s", recipient)
        await self._emit(EventType.NOTIFICATION_SENT, quote_id, {"delivery": "smtp"})
        return True

    def _dispatch_smtp(self, msg: EmailMessage) -> None:
        """Open an SMTP connection, authenticate if configured, send and close."""
        with smtplib.SMTP(self._settings.smtp_host, self._settings.smtp_port, timeout=30) as smtp:
            if self._settings.smtp_use_tls:
                smtp.starttls()
            if self._settings.smtp_username:
                smtp.login(self._settings.smtp_username, self._settings.smtp_password)
            smtp.send_message(msg)

    @staticmethod
    async def _emit(event_type: EventType, quote_id: str, data: dict[str, str]) -> None:
        await emit(SystemEvent(
            event_type=event_type,
            quote_id=quote_id,
            data=data,
            source_module="notifications.email",
        ))


# Module-level singleton
notification_service = NotificationService()
