"""Audit event log for registry and engine observations.

Events are appended only after the operation that produced them has
committed its state change. Subscribers (indexers, alerting) are notified
synchronously; a failing subscriber is logged and never affects the
component that emitted the event.

The log keeps only the most recent events in memory; durable history is the
decision ledger in the state store, and subscribers that need every event
should persist what they receive.
"""
from __future__ import annotations

import fnmatch
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


DEFAULT_HISTORY_LIMIT = 1000


class EventType(str, Enum):
    """Observable events."""
    COMMITMENT_UPDATED = "commitment.updated"
    POLICY_UPDATED = "policy.updated"
    MEMBERSHIP_CHECKED = "membership.checked"
    SANCTIONED_MATCH_DETECTED = "membership.sanctioned_match"
    DECISION_RECORDED = "decision.recorded"
    OWNERSHIP_TRANSFERRED = "ownership.transferred"


@dataclass(frozen=True)
class Event:
    """A single emitted observation."""
    sequence: int
    event_type: EventType
    data: dict[str, Any]
    emitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "sequence": self.sequence,
            "event_type": self.event_type.value,
            "data": dict(self.data),
            "emitted_at": self.emitted_at.isoformat(),
        }


class EventLog:
    """Ordered, append-only event journal with pattern subscriptions.

    Example:
        log = EventLog()
        log.subscribe("decision.*", indexer.on_decision)
        log.subscribe("membership.sanctioned_match", alerts.page)
    """

    def __init__(self, history_limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        """
        Args:
            history_limit: Number of recent events kept for inspection
        """
        if history_limit < 1:
            raise ValueError("history_limit must be at least 1")
        self._events: deque[Event] = deque(maxlen=history_limit)
        self._sequence = 0
        self._subscribers: dict[str, list[Callable[[Event], Any]]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event_pattern: str, handler: Callable[[Event], Any]) -> None:
        """Subscribe to events matching a pattern (wildcards like 'decision.*')."""
        handlers = self._subscribers.setdefault(event_pattern, [])
        if handler not in handlers:
            handlers.append(handler)
            logger.debug("Subscribed %s to %s", getattr(handler, "__name__", handler), event_pattern)

    def unsubscribe(self, event_pattern: str, handler: Callable[[Event], Any]) -> None:
        handlers = self._subscribers.get(event_pattern)
        if handlers and handler in handlers:
            handlers.remove(handler)
            if not handlers:
                del self._subscribers[event_pattern]

    def emit(self, event_type: EventType, data: dict[str, Any]) -> Event:
        """Append an event and notify matching subscribers."""
        with self._lock:
            self._sequence += 1
            event = Event(sequence=self._sequence, event_type=event_type, data=data)
            self._events.append(event)

        for pattern, handlers in list(self._subscribers.items()):
            if not fnmatch.fnmatch(event_type.value, pattern):
                continue
            for handler in list(handlers):
                try:
                    handler(event)
                except Exception as e:
                    logger.error(
                        "Handler %s failed for %s: %s",
                        getattr(handler, "__name__", handler),
                        event_type.value,
                        e,
                        exc_info=True,
                    )
        return event

    def events(self, pattern: Optional[str] = None) -> list[Event]:
        """Retained events in order, optionally filtered by pattern."""
        with self._lock:
            snapshot = list(self._events)
        if pattern is None:
            return snapshot
        return [e for e in snapshot if fnmatch.fnmatch(e.event_type.value, pattern)]

    @property
    def last_sequence(self) -> int:
        """Sequence number of the most recent event, 0 if none."""
        return self._sequence

    def __len__(self) -> int:
        return len(self._events)


__all__ = [
    "DEFAULT_HISTORY_LIMIT",
    "EventType",
    "Event",
    "EventLog",
]
