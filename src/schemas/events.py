"""SystemEvent schema: the event type that flows through the quote pipeline.

Every notable step of a submission emits a SystemEvent. Subscribers (the
structured audit logger, for now) consume these events asynchronously.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """All event types emitted by the system."""

    # Submission lifecycle
    QUOTE_RECEIVED = "quote.received"
    QUOTE_VALIDATION_FAILED = "quote.validation_failed"
    QUOTE_ACCEPTED = "quote.accepted"
    QUOTE_FAILED = "quote.failed"

    # Files
    FILE_SAVED = "file.saved"
    FILE_SAVE_FAILED = "file.save_failed"

    # CRM
    CRM_REQUEST = "crm.request"
    CRM_RESPONSE = "crm.response"
    CRM_FALLBACK = "crm.fallback"

    # Notifications
    NOTIFICATION_SENT = "notification.sent"
    NOTIFICATION_FAILED = "notification.failed"

    # Client-side flow
    WIZARD_SUBMITTED = "wizard.submitted"

    # System
    SYSTEM_STARTUP = "system.startup"
    SYSTEM_SHUTDOWN = "system.shutdown"


class SystemEvent(BaseModel):
    """Immutable record of something that happened to a quote."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    event_type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Context (not every event belongs to a quote yet)
    quote_id: str | None = None

    # Flexible payload
    data: dict[str, Any] = Field(default_factory=dict)

    # Metadata
    source_module: str | None = Field(default=None, description="Module that emitted this event")

    model_config = {"frozen": True}
