"""
WebSocket Handler

Real-time event delivery to panel clients. Each connection belongs to
the house of the principal that opened it and only receives events
published for that house.
"""

import asyncio
import json
import logging
from typing import Dict, Optional, Tuple
from uuid import uuid4

from fastapi import WebSocket

from homepanel.config import get_settings
from homepanel.core.event_bus import Event, EventBus, EventType
from homepanel.core.tenancy import Principal

logger = logging.getLogger(__name__)


class BroadcastManager:
    """Manages WebSocket connections and house-scoped fan-out."""

    def __init__(self, bus: EventBus, heartbeat_interval: Optional[int] = None):
        self._bus = bus
        self._heartbeat_interval = heartbeat_interval or get_settings().ws_heartbeat_interval
        self._connections: Dict[str, Tuple[WebSocket, Principal]] = {}  # connection_id -> (ws, principal)
        self._heartbeat_tasks: Dict[str, asyncio.Task] = {}
        self._attached = False

    def attach(self) -> None:
        """Start receiving every bus event."""
        if not self._attached:
            self._bus.subscribe_all(self.dispatch)
            self._attached = True

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket, principal: Principal) -> str:
        """Accept a connection and start its heartbeat. Returns the connection id."""
        await websocket.accept()
        connection_id = str(uuid4())
        self._connections[connection_id] = (websocket, principal)
        self._heartbeat_tasks[connection_id] = asyncio.create_task(
            self._heartbeat_loop(connection_id)
        )
        logger.info(
            f"WebSocket connected: user={principal.user_id} house={principal.house_name}"
        )
        return connection_id

    async def disconnect(self, connection_id: str) -> None:
        """Clean up on disconnect."""
        task = self._heartbeat_tasks.pop(connection_id, None)
        if task:
            task.cancel()

        entry = self._connections.pop(connection_id, None)
        if entry:
            logger.info(f"WebSocket disconnected: user={entry[1].user_id}")

    async def dispatch(self, event: Event) -> None:
        """Fan an event out to every connection of its house."""
        message = json.dumps(event.to_message())
        targets = [
            connection_id
            for connection_id, (_, principal) in list(self._connections.items())
            if principal.house_name == event.house_name
        ]
        for connection_id in targets:
            await self._send(connection_id, message)

    async def handle_message(self, connection_id: str, message: str) -> None:
        """Handle an incoming client message. Only pings are understood."""
        try:
            data = json.loads(message)
        except json.JSONDecodeError:
            logger.error(f"Invalid JSON message: {message[:100]}")
            return

        msg_type = data.get("type") if isinstance(data, dict) else None
        if msg_type == "ping":
            await self._send(connection_id, json.dumps({
                "event": EventType.HEARTBEAT.value,
                "payload": {"pong": True},
            }))
        else:
            logger.warning(f"Unknown message type: {msg_type}")

    async def close_all(self) -> None:
        for connection_id in list(self._connections):
            await self.disconnect(connection_id)

    async def _send(self, connection_id: str, message: str) -> bool:
        entry = self._connections.get(connection_id)
        if not entry:
            return False

        websocket, principal = entry
        try:
            await websocket.send_text(message)
            return True
        except Exception as e:
            logger.error(f"Error sending to {principal.user_id}: {e}")
            await self.disconnect(connection_id)
            return False

    async def _heartbeat_loop(self, connection_id: str) -> None:
        """Send periodic heartbeat to keep connection alive."""
        while True:
            try:
                await asyncio.sleep(self._heartbeat_interval)
                sent = await self._send(connection_id, json.dumps({
                    "event": EventType.HEARTBEAT.value,
                    "payload": {},
                }))
                if not sent:
                    break
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Heartbeat error for {connection_id}: {e}")
                break
