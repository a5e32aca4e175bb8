from __future__ import annotations

from collections import defaultdict, deque
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from engagement.core.context import get_correlation_id


@dataclass(frozen=True)
class InternalEvent:
    name: str
    payload: dict[str, Any]


EventHandler = Callable[[InternalEvent], None]


class InProcessEventBus:
    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, handler: EventHandler, *event_names: str) -> None:
        for name in event_names:
            if handler not in self._handlers[name]:
                self._handlers[name].append(handler)

    def unsubscribe(self, handler: EventHandler, *event_names: str) -> None:
        for name in event_names:
            handlers = self._handlers.get(name, [])
            if handler in handlers:
                handlers.remove(handler)

    def dispatch(self, event: InternalEvent) -> None:
        for handler in list(self._handlers.get(event.name, [])):
            handler(event)


event_bus = InProcessEventBus()

PUBLISHED_HISTORY_LIMIT = 1000

# Most recent envelopes published in this process, oldest first.
published_events: deque[dict[str, Any]] = deque(maxlen=PUBLISHED_HISTORY_LIMIT)


def publish(envelope: dict[str, Any]) -> None:
    """Stamp an e-sign envelope with correlation id and time, then fan it out.

    Envelopes without an ``event_type`` are recorded but not dispatched.
    """
    if envelope.get("correlation_id") is None:
        envelope["correlation_id"] = get_correlation_id()
    envelope.setdefault("occurred_at", datetime.now(timezone.utc).isoformat())

    published_events.append(envelope)
    event_type = envelope.get("event_type")
    if isinstance(event_type, str) and event_type:
        event_bus.dispatch(InternalEvent(name=event_type, payload=envelope))
