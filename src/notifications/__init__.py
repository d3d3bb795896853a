"""New-quote email notifications."""

from __future__ import annotations

from src.notifications.email import NotificationService, notification_service, render_quote_email

__all__ = ["NotificationService", "notification_service", "render_quote_email"]
