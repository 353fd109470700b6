"""
Broadcast sink for state-change events.

Semantics:
- Asynchronous, in-process
- Fire-and-forget: publishing never waits on a subscriber
- Every event carries the house it belongs to; subscribers decide
  who in that house receives it
- No retry, no cross-publisher ordering guarantee
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Event names pushed to connected clients."""

    # Device events
    DEVICE_ADDED = "deviceAdded"
    DEVICE_UPDATED = "deviceUpdated"
    DEVICE_APPROVED = "deviceApproved"
    DEVICE_REMOVED = "deviceRemoved"

    # Room events
    ROOM_REMOVED = "roomRemoved"
    ROOM_MOOD_APPLIED = "roomMoodApplied"

    # Member events
    USER_DELETED = "userDeleted"

    # System
    HEARTBEAT = "heartbeat"


@dataclass
class Event:
    """Broadcast event with routing metadata."""

    event_type: EventType
    payload: Dict[str, Any]
    house_name: str
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    user_id: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.event_type, EventType):
            raise TypeError(f"event_type must be EventType, got {type(self.event_type)}")
        if not isinstance(self.payload, dict):
            raise TypeError(f"payload must be dict, got {type(self.payload)}")

    def to_message(self) -> Dict[str, Any]:
        """Wire form sent to clients."""
        return {
            "event": self.event_type.value,
            "payload": self.payload,
            "ts": self.timestamp.isoformat(),
        }


class EventBus:
    """
    Asynchronous event bus.

    Events are queued by `publish` and delivered by a single worker task.
    A failing or slow subscriber only delays later deliveries, never the
    publisher.
    """

    def __init__(self):
        self._subscribers: Dict[EventType, List[Callable]] = {}
        self._all_subscribers: List[Callable] = []
        self._running = False
        self._event_queue: asyncio.Queue = asyncio.Queue()
        self._worker_task: Optional[asyncio.Task] = None

    async def start(self):
        """Start the event bus worker."""
        if self._running:
            return
        self._running = True
        self._worker_task = asyncio.create_task(self._process_events())
        logger.info("Event bus started")

    async def stop(self):
        """Stop the event bus worker."""
        self._running = False
        if self._worker_task:
            self._worker_task.cancel()
            try:
                await self._worker_task
            except asyncio.CancelledError:
                pass
            self._worker_task = None
        logger.info("Event bus stopped")

    def subscribe(self, event_type: EventType, handler: Callable):
        """Subscribe to a specific event type."""
        self._subscribers.setdefault(event_type, []).append(handler)
        logger.debug(f"Handler subscribed to {event_type.value}")

    def subscribe_all(self, handler: Callable):
        """Subscribe to all events."""
        self._all_subscribers.append(handler)

    def unsubscribe(self, event_type: EventType, handler: Callable):
        """Unsubscribe from an event type."""
        if event_type in self._subscribers:
            self._subscribers[event_type] = [
                h for h in self._subscribers[event_type] if h != handler
            ]

    async def publish(self, event: Event):
        """Queue an event for delivery and return immediately."""
        if not isinstance(event, Event):
            raise TypeError(f"Can only publish Event instances, got {type(event)}")

        self._event_queue.put_nowait(event)
        logger.debug(
            f"Event published: {event.event_type.value} "
            f"house={event.house_name} ({event.event_id})"
        )

    async def _process_events(self):
        """Worker that processes events from the queue."""
        while self._running:
            try:
                event = await asyncio.wait_for(
                    self._event_queue.get(),
                    timeout=1.0
                )
                await self._dispatch_event(event)
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error processing event: {e}")

    async def _dispatch_event(self, event: Event):
        """Dispatch event to all relevant subscribers."""
        handlers = self._subscribers.get(event.event_type, []) + self._all_subscribers

        for handler in handlers:
            try:
                result = handler(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Handler failed for {event.event_type.value}: {e}")


# Global event bus instance
event_bus = EventBus()


def get_event_bus() -> EventBus:
    """Dependency returning the process-wide event bus."""
    return event_bus
