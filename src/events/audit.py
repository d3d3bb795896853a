"""Structured audit trail for quote events.

Subscribes to every SystemEvent and writes one structlog line per event.
Quote payloads stay out of the log: only the event data dict is bound,
under ``data``, and emitters keep that to ids, counts and short reasons.
"""

from __future__ import annotations

import structlog

from src.events.bus import subscribe, unsubscribe
from src.schemas.events import EventType, SystemEvent

audit_log = structlog.get_logger("audit")

_WARNING_EVENTS = frozenset({
    EventType.QUOTE_FAILED,
    EventType.FILE_SAVE_FAILED,
    EventType.CRM_FALLBACK,
    EventType.NOTIFICATION_FAILED,
})


async def record_event(event: SystemEvent) -> None:
    """Write one audit line for an event."""
    log = audit_log.bind(
        event_id=str(event.id),
        quote_id=event.quote_id,
        source=event.source_module,
        data=event.data,
    )
    if event.event_type in _WARNING_EVENTS:
        log.warning(event.event_type.value)
    else:
        log.info(event.event_type.value)


def register_audit_logger() -> None:
    subscribe(record_event)


def unregister_audit_logger() -> None:
    unsubscribe(record_event)
