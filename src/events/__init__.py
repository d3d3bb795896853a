"""In-process event bus and its subscribers."""

from __future__ import annotations

from src.events.bus import emit, start_event_system, stop_event_system, subscribe, unsubscribe

__all__ = ["emit", "start_event_system", "stop_event_system", "subscribe", "unsubscribe"]
