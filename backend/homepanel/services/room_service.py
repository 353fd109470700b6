"""
Room / Mood Orchestrator.

Rooms own their devices by name: a device is in a room when its
location equals the room name in the same house. Applying a mood is a
bulk scene change and bypasses the per-field idempotence of the single
setters. Deleting a room deletes its devices.
"""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from homepanel.core.errors import ConflictError, InvalidInputError, NotFoundError
from homepanel.core.event_bus import EventBus, EventType, event_bus
from homepanel.core.tenancy import Principal, ensure_same_house, require_admin
from homepanel.models.device import Device
from homepanel.models.room import Room
from homepanel.schemas.device import DeviceSnapshot
from homepanel.schemas.room import RoomSnapshot
from homepanel.services.audit_service import AuditService
from homepanel.services.device_service import publish_event, stamp_mutation
from homepanel.services.moods import get_mood
from homepanel.services.room_reconciler import get_or_create_room, reconcile_rooms

logger = logging.getLogger(__name__)


class RoomService:
    """Room operations for one request."""

    def __init__(self, db: AsyncSession, bus: EventBus = event_bus):
        self._db = db
        self._bus = bus
        self._audit = AuditService(db)

    async def get_room(self, principal: Principal, room_id: str) -> Room:
        """Load a room and verify it belongs to the caller's house."""
        room = await self._db.get(Room, room_id)
        if room is None:
            raise NotFoundError("Room not found")
        ensure_same_house(principal, room.house_name, "Room")
        return room

    async def create_room(self, principal: Principal, name: str) -> RoomSnapshot:
        """Create a room, or return the existing one with the same name."""
        trimmed = (name or "").strip()
        if not trimmed:
            raise InvalidInputError("Room name is required")

        room, created = await get_or_create_room(
            self._db, principal.house_name, trimmed, principal.user_id
        )
        if created:
            logger.info(f"Room created: {trimmed} in {principal.house_name}")
        return RoomSnapshot.model_validate(room)

    async def list_rooms(self, principal: Principal) -> List[RoomSnapshot]:
        """
        Rooms of the house, after repairing orphan device locations.

        Oldest first; when the repair created rooms the whole list is
        ordered by name instead.
        """
        created = await reconcile_rooms(self._db, principal.house_name, principal.user_id)
        return await self._select_rooms(principal.house_name, by_name=bool(created))

    async def reconcile(self, principal: Principal) -> List[str]:
        """Run the reconciler on demand."""
        require_admin(principal, "reconcile rooms")
        return await reconcile_rooms(self._db, principal.house_name, principal.user_id)

    async def apply_mood(self, principal: Principal, room_id: str, mood_key: str) -> List[DeviceSnapshot]:
        """Apply a mood preset to every applicable device in a room."""
        preset = get_mood(mood_key)
        room = await self.get_room(principal, room_id)
        room_name = room.name

        devices = await self._room_devices(principal.house_name, room_name)
        updated: List[Device] = []
        for device in devices:
            settings = preset.get(device.device_type)
            if not settings:
                continue
            for attribute, value in settings.items():
                setattr(device, attribute, value)
                if attribute == "temperature":
                    device.value = value
            stamp_mutation(device, principal, f"{mood_key} mood applied")
            updated.append(device)

        if not updated:
            logger.info(f"Mood {mood_key} in {room_name}: no applicable devices")
        else:
            try:
                await self._db.commit()
            except StaleDataError:
                await self._db.rollback()
                raise ConflictError("A device in this room was changed by another request, please retry")

        snapshots = []
        for device in updated:
            await self._db.refresh(device)
            snapshots.append(DeviceSnapshot.model_validate(device))

        if snapshots:
            await self._audit.record(
                principal.house_name,
                f"{mood_key} mode activated in {room_name}",
                user_id=principal.user_id,
                device_id=snapshots[0].id,
            )

        for snapshot in snapshots:
            await publish_event(self._bus, principal, EventType.DEVICE_UPDATED, snapshot.to_payload())
        await publish_event(self._bus, principal, EventType.ROOM_MOOD_APPLIED, {
            "room": room_id,
            "room_name": room_name,
            "mood": mood_key,
            "devices": [s.to_payload() for s in snapshots],
        })

        logger.info(f"Mood {mood_key} applied in {room_name}: {len(snapshots)} devices")
        return snapshots

    async def delete_room(self, principal: Principal, room_id: str) -> int:
        """Delete a room and every device located in it. Returns the device count."""
        require_admin(principal, "delete rooms")
        room = await self.get_room(principal, room_id)
        room_name = room.name

        devices = await self._room_devices(principal.house_name, room_name)
        removed = [{"id": d.id, "device_id": d.device_id} for d in devices]
        for device in devices:
            await self._db.delete(device)
        await self._db.delete(room)
        try:
            await self._db.commit()
        except StaleDataError:
            await self._db.rollback()
            raise ConflictError("A device in this room was changed by another request, please retry")

        logger.info(f"Cascade deleted {len(removed)} devices in room {room_name} ({principal.house_name})")

        await self._audit.record(
            principal.house_name,
            f"Room {room_name} deleted with {len(removed)} devices",
            user_id=principal.user_id,
        )
        for payload in removed:
            await publish_event(self._bus, principal, EventType.DEVICE_REMOVED, payload)
        await publish_event(self._bus, principal, EventType.ROOM_REMOVED, {"room_id": room_id})
        return len(removed)

    async def _room_devices(self, house_name: str, room_name: str) -> List[Device]:
        result = await self._db.execute(
            select(Device)
            .where(Device.house_name == house_name, Device.location == room_name)
            .order_by(Device.device_id)
        )
        return list(result.scalars().all())

    async def _select_rooms(self, house_name: str, by_name: bool = False) -> List[RoomSnapshot]:
        order = (Room.name,) if by_name else (Room.created_at, Room.name)
        result = await self._db.execute(
            select(Room)
            .where(Room.house_name == house_name)
            .order_by(*order)
        )
        return [RoomSnapshot.model_validate(r) for r in result.scalars().all()]
