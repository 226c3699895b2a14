"""
Event bus for initiative-sync state changes.

Lets the renderer and other observers react to sync and write-back
activity without the engines knowing about them.

Usage:
    bus = EventBus()
    bus.on(EventType.RECORDS_SYNCED, my_handler)

    # Emitted by the sync engine after each merge
    bus.emit(EventType.RECORDS_SYNCED, count=4, merged=True)

    def my_handler(event: TrackerEvent):
        print(f"{event.data['count']} participants")

Each tracker owns its own bus; there is no process-wide instance.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Events the tracker publishes."""

    # Read path
    RECORDS_SYNCED = "records.synced"
    ORDER_CHANGED = "records.order_changed"

    # Write path
    EDIT_COMMITTED = "edit.committed"
    WRITE_FAILED = "edit.write_failed"

    # Groups
    GROUP_CREATED = "group.created"
    GROUP_DELETED = "group.deleted"
    GROUP_STAGED = "group.staged"
    GROUP_OPERATION_FAILED = "group.failed"

    # Turns
    COMBAT_STARTED = "combat.started"
    TURN_ADVANCED = "combat.turn_advanced"
    COMBAT_ENDED = "combat.ended"


@dataclass
class TrackerEvent:
    """
    Event payload for the event bus.

    Attributes:
        type: The event type
        data: Event-specific payload
        timestamp: When the event was emitted
    """

    type: EventType
    data: dict = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def __str__(self) -> str:
        return f"[{self.type.value}] {self.data}"


EventHandler = Callable[[TrackerEvent], None]


class EventBus:
    """
    Synchronous event bus.

    Listeners run inside emit(). A failing listener is logged and the
    remaining listeners still run.
    """

    def __init__(self, history_limit: int = 100):
        self._listeners: dict[EventType, list[EventHandler]] = {}
        self._history: list[TrackerEvent] = []
        self._history_limit = history_limit

    def on(self, event_type: EventType, handler: EventHandler) -> None:
        """Subscribe to an event type. Subscribing twice is a no-op."""
        if event_type not in self._listeners:
            self._listeners[event_type] = []
        if handler not in self._listeners[event_type]:
            self._listeners[event_type].append(handler)

    def off(self, event_type: EventType, handler: EventHandler) -> None:
        """Unsubscribe from an event type."""
        if event_type in self._listeners and handler in self._listeners[event_type]:
            self._listeners[event_type].remove(handler)

    def emit(self, event_type: EventType, **data) -> TrackerEvent:
        """
        Emit an event to all subscribers.

        Returns:
            The emitted TrackerEvent (for chaining/testing)
        """
        event = TrackerEvent(type=event_type, data=data)

        self._history.append(event)
        if len(self._history) > self._history_limit:
            self._history = self._history[-self._history_limit :]

        for handler in list(self._listeners.get(event_type, [])):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in handler for {event_type.value}: {e}")

        return event

    def clear(self) -> None:
        """Clear all listeners."""
        self._listeners.clear()

    def get_history(self, event_type: EventType | None = None) -> list[TrackerEvent]:
        """Recent events, optionally filtered by type."""
        if event_type is None:
            return list(self._history)
        return [e for e in self._history if e.type == event_type]

    def listener_count(self, event_type: EventType) -> int:
        return len(self._listeners.get(event_type, []))
