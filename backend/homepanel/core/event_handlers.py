"""
Event Bus Handlers - server-side subscribers for broadcast events.

Provides an operational trail of every state change pushed to clients.
"""

import logging

from homepanel.core.event_bus import Event, EventBus, EventType

logger = logging.getLogger(__name__)


async def handle_device_event(event: Event) -> None:
    """Log device lifecycle and state changes."""
    payload = event.payload
    logger.info(
        f"{event.event_type.value} in house {event.house_name}: "
        f"device={payload.get('id', payload.get('device_id'))} "
        f"status={payload.get('status', '-')}"
    )


async def handle_room_removed(event: Event) -> None:
    """Log room deletions."""
    logger.info(
        f"Room {event.payload.get('room_id')} removed in house {event.house_name}"
    )


async def handle_room_mood_applied(event: Event) -> None:
    """Log mood scenes with the number of devices touched."""
    devices = event.payload.get("devices", [])
    logger.info(
        f"Mood {event.payload.get('mood')} applied to room "
        f"{event.payload.get('room')} in house {event.house_name}: "
        f"{len(devices)} devices"
    )


async def handle_user_deleted(event: Event) -> None:
    """Log member removal."""
    logger.info(
        f"User {event.payload.get('user_id')} deleted from house {event.house_name}"
    )


def register_handlers(event_bus: EventBus) -> None:
    """
    Register all event handlers with the event bus.

    Called during application startup to set up event subscriptions.
    """
    logger.info("Registering event handlers...")

    device_events = (
        EventType.DEVICE_ADDED,
        EventType.DEVICE_UPDATED,
        EventType.DEVICE_APPROVED,
        EventType.DEVICE_REMOVED,
    )
    for event_type in device_events:
        event_bus.subscribe(event_type, handle_device_event)

    event_bus.subscribe(EventType.ROOM_REMOVED, handle_room_removed)
    event_bus.subscribe(EventType.ROOM_MOOD_APPLIED, handle_room_mood_applied)
    event_bus.subscribe(EventType.USER_DELETED, handle_user_deleted)

    logger.info(f"Registered {len(device_events) + 3} event handlers")
