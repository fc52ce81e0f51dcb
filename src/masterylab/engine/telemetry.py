"""Append-only telemetry log of session and learner-action events."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Protocol

from loguru import logger

from masterylab.state.store import KeyValueStore, telemetry_key

SESSION_START = "session_start"
HINT_SHOWN = "hint_shown"
ATTEMPT = "attempt"
SESSION_COMPLETE = "session_complete"
SESSION_RESTART = "session_restart"


@dataclass(frozen=True)
class TelemetryEvent:
    type: str
    timestamp: str
    fields: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"type": self.type, "timestamp": self.timestamp, **self.fields}


class TelemetrySink(Protocol):
    def record(self, event_type: str, **fields) -> TelemetryEvent:
        ...

    def events(self) -> list[dict]:
        ...


class TelemetryLog:
    """Telemetry sink backed by the key-value store.

    Events are mirrored in memory so a failing store never loses the events
    of the running session. Write failures are logged, never raised.
    """

    def __init__(self, store: Optional[KeyValueStore] = None, course_id: str = "default"):
        self.store = store
        self.key = telemetry_key(course_id)
        self._events: list[TelemetryEvent] = []

    def record(self, event_type: str, **fields) -> TelemetryEvent:
        event = TelemetryEvent(
            type=event_type,
            timestamp=datetime.now(timezone.utc).isoformat(),
            fields=copy.deepcopy({k: v for k, v in fields.items() if v is not None}),
        )
        self._events.append(event)
        if self.store is not None:
            try:
                self.store.append(self.key, event.to_dict())
            except Exception as e:
                logger.warning(f"Telemetry write failed for {event_type}: {e}")
        logger.debug(f"[telemetry] {event.to_dict()}")
        return event

    def events(self) -> list[dict]:
        """All persisted events, or this session's events if the store is unreadable."""
        if self.store is not None:
            try:
                stored = self.store.get(self.key)
                if isinstance(stored, list):
                    return stored
            except Exception as e:
                logger.warning(f"Telemetry read failed: {e}")
        return [e.to_dict() for e in self._events]
