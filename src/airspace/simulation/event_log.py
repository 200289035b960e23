"""Bounded event log and separation alerts.

Events are kept most-recent-first and capped at ``EventLog.MAX_ENTRIES``;
the oldest entry is dropped on every insertion past the cap.  Alerts are
not logged here: the engine rebuilds its alert list from scratch each tick.
"""

from __future__ import annotations

import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Iterator

# Event types
EVENT_INFO = "info"
EVENT_NEAR_MISS = "near_miss"
EVENT_CONFLICT_PREDICTED = "conflict_predicted"
EVENT_AVOIDANCE_APPLIED = "avoidance_applied"
EVENT_RESET = "reset"
EVENT_ERROR = "error"

EVENT_TYPES = (
    EVENT_INFO,
    EVENT_NEAR_MISS,
    EVENT_CONFLICT_PREDICTED,
    EVENT_AVOIDANCE_APPLIED,
    EVENT_RESET,
    EVENT_ERROR,
)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class Event:
    """A single simulation state transition."""

    event_type: str
    message: str
    id: str = field(default_factory=_new_id)
    ts: int = field(default_factory=_now_ms)  # epoch milliseconds

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.event_type,
            "message": self.message,
            "ts": self.ts,
        }


@dataclass(frozen=True)
class Alert:
    """An advisory for one aircraft pair, valid for the current tick only."""

    a1: str
    a2: str
    advisory: str
    id: str = field(default_factory=_new_id)
    ts: int = field(default_factory=_now_ms)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "a1": self.a1,
            "a2": self.a2,
            "advisory": self.advisory,
        }


class EventLog:
    """Most-recent-first event history with a fixed capacity."""

    MAX_ENTRIES: int = 200

    def __init__(self, max_entries: int | None = None) -> None:
        self._entries: deque[Event] = deque(maxlen=max_entries or self.MAX_ENTRIES)

    def add(self, event_type: str, message: str) -> Event:
        event = Event(event_type=event_type, message=message)
        self._entries.appendleft(event)
        return event

    def clear(self) -> None:
        self._entries.clear()

    def to_list(self) -> list[dict]:
        return [e.to_dict() for e in self._entries]

    def of_type(self, event_type: str) -> list[Event]:
        return [e for e in self._entries if e.event_type == event_type]

    def __iter__(self) -> Iterator[Event]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
