"""
events.py - Notification stream for external auditors and indexers

The ledger never reads its own events; they exist for observers.

Core concepts:
1. LedgerEvent: Immutable, timestamped, sequenced notification
2. EventLog: Append-only list plus subscriber callbacks

Subscribers run synchronously inside the operation that emitted the event.
A subscriber that calls back into a mutating ledger operation is rejected
with ReentrantCall. If a subscriber raises, the emitting operation is rolled
back and its events are removed from the log.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .core import EventType, PendingEvent


@dataclass(frozen=True, slots=True)
class LedgerEvent:
    """
    Immutable published notification.

    Attributes:
        sequence: Monotonic position in the stream (0-based)
        event_type: Which notification this is
        timestamp: Clock reading of the emitting operation
        operation: Name of the emitting operation
        params: Identities and amounts as a frozen tuple of (key, value) pairs
    """
    sequence: int
    event_type: EventType
    timestamp: datetime
    operation: str
    params: tuple = ()

    @property
    def params_dict(self) -> Dict[str, Any]:
        return dict(self.params)

    def get(self, key: str, default: Any = None) -> Any:
        return self.params_dict.get(key, default)

    def __repr__(self) -> str:
        body = ", ".join(f"{k}={v}" for k, v in self.params)
        return f"{self.event_type.value}#{self.sequence}({body})"


Subscriber = Callable[[LedgerEvent], None]


class EventLog:
    """
    Append-only event stream.

    Design:
    - publish() stamps pending events with sequence and timestamp
    - subscribers are called in registration order for each event
    - subscriber exceptions propagate to the caller of the ledger operation
    """

    def __init__(self):
        self._events: List[LedgerEvent] = []
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        self._subscribers.remove(callback)

    def publish(
        self,
        pending: PendingEvent,
        timestamp: datetime,
        operation: str,
    ) -> LedgerEvent:
        event = LedgerEvent(
            sequence=len(self._events),
            event_type=pending.event_type,
            timestamp=timestamp,
            operation=operation,
            params=pending.params,
        )
        self._events.append(event)
        for callback in list(self._subscribers):
            callback(event)
        return event

    def events(self, event_type: Optional[EventType] = None) -> List[LedgerEvent]:
        """Return published events, optionally filtered by type."""
        if event_type is None:
            return list(self._events)
        return [e for e in self._events if e.event_type == event_type]

    def truncate(self, length: int) -> None:
        """Drop events past `length` (used when an operation is rolled back)."""
        del self._events[length:]

    def last(self) -> Optional[LedgerEvent]:
        return self._events[-1] if self._events else None

    def copy(self) -> EventLog:
        """Copy of the stream without subscribers."""
        cloned = EventLog()
        cloned._events = list(self._events)
        return cloned

    def __len__(self) -> int:
        return len(self._events)
