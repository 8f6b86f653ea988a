"""Trigger events between the host and the engine.

Why This Module Exists
----------------------
The engine reacts to things that happen in the host: an entity was saved, a
registry-wide refresh happened, a request finished. Rather than reaching into
global hooks, the core exposes an explicit bus. The host (or the reference
in-memory store) publishes; the service subscribes.

Delivery is synchronous and in subscription order; the engine is
single-threaded and there is no scheduling layer to defer work to.

Usage::

    from schemaspine.core.events import EventBus, FIELD_SAVED

    bus = EventBus()
    bus.subscribe("field.*", lambda event: print(event.event_type))
    bus.emit(FIELD_SAVED, source="store", payload={"name": "body"})

Well-known event types
----------------------
field.saved / field.deleted       a field was created, changed or removed
type.saved / type.deleted         a composite type was created, changed or removed
registry.refreshed                the host refreshed its component registry
recorder.configured               recorder settings changed
request.finished                  one unit of work is complete
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from schemaspine.core.logging import get_logger

logger = get_logger(__name__)

FIELD_SAVED = "field.saved"
FIELD_DELETED = "field.deleted"
TYPE_SAVED = "type.saved"
TYPE_DELETED = "type.deleted"
REGISTRY_REFRESHED = "registry.refreshed"
RECORDER_CONFIGURED = "recorder.configured"
REQUEST_FINISHED = "request.finished"

__all__ = [
    "Event",
    "EventBus",
    "EventHandler",
    "FIELD_SAVED",
    "FIELD_DELETED",
    "TYPE_SAVED",
    "TYPE_DELETED",
    "REGISTRY_REFRESHED",
    "RECORDER_CONFIGURED",
    "REQUEST_FINISHED",
]


@dataclass
class Event:
    """Immutable event payload.

    Attributes:
        event_type: Dot-separated type (e.g. ``field.saved``)
        source: Origin component
        payload: Event-specific data
        timestamp: When the event occurred (UTC)
        event_id: Unique event identifier
    """

    event_type: str
    source: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def matches(self, pattern: str) -> bool:
        """Check if event type matches a pattern (supports wildcards).

        Examples:
            - ``field.*`` matches ``field.saved``, ``field.deleted``
            - ``*`` matches everything
            - ``field.saved`` matches exactly ``field.saved``
        """
        if pattern == "*":
            return True
        if pattern.endswith(".*"):
            prefix = pattern[:-2]
            return self.event_type.startswith(prefix + ".")
        return self.event_type == pattern


EventHandler = Callable[[Event], None]


@dataclass
class Subscription:
    """Internal subscription record."""

    id: str
    pattern: str
    handler: EventHandler


class EventBus:
    """In-process synchronous event bus.

    Handlers run in subscription order on the publishing thread. With
    ``strict=False`` a failing handler is logged and delivery continues; with
    ``strict=True`` the exception propagates to the publisher.
    """

    def __init__(self, *, strict: bool = False) -> None:
        self._subscriptions: dict[str, Subscription] = {}
        self.strict = strict

    def publish(self, event: Event) -> None:
        """Deliver an event to all matching subscribers."""
        handlers = [
            sub for sub in self._subscriptions.values() if event.matches(sub.pattern)
        ]
        for sub in handlers:
            try:
                sub.handler(event)
            except Exception as e:
                if self.strict:
                    raise
                logger.warning(
                    "event_handler_error",
                    subscription_id=sub.id,
                    event_type=event.event_type,
                    error=str(e),
                )

    def emit(
        self,
        event_type: str,
        source: str = "host",
        payload: dict[str, Any] | None = None,
    ) -> Event:
        """Build and publish an event in one call."""
        event = Event(event_type=event_type, source=source, payload=payload or {})
        self.publish(event)
        return event

    def subscribe(self, event_type: str, handler: EventHandler) -> str:
        """Subscribe to events matching a pattern.

        Returns:
            Subscription ID for :meth:`unsubscribe`
        """
        sub_id = f"sub_{uuid.uuid4().hex[:12]}"
        self._subscriptions[sub_id] = Subscription(
            id=sub_id, pattern=event_type, handler=handler
        )
        return sub_id

    def unsubscribe(self, subscription_id: str) -> None:
        """Remove a subscription."""
        self._subscriptions.pop(subscription_id, None)

    @property
    def subscription_count(self) -> int:
        """Number of active subscriptions."""
        return len(self._subscriptions)
