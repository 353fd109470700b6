"""
Room endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from homepanel.core.database import get_db
from homepanel.core.event_bus import EventBus, get_event_bus
from homepanel.core.security import get_current_principal
from homepanel.core.tenancy import Principal
from homepanel.schemas.room import (
    MoodRequest,
    MoodResponse,
    RoomCreate,
    RoomListResponse,
    RoomResponse,
)
from homepanel.services.room_service import RoomService

router = APIRouter()


def get_room_service(
    db: AsyncSession = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
) -> RoomService:
    return RoomService(db, bus)


@router.get("", response_model=RoomListResponse)
async def list_rooms(
    principal: Principal = Depends(get_current_principal),
    service: RoomService = Depends(get_room_service),
):
    """Rooms of the house. Missing rooms referenced by devices are created first."""
    return RoomListResponse(rooms=await service.list_rooms(principal))


@router.post("", response_model=RoomResponse, status_code=201)
async def create_room(
    request: RoomCreate,
    principal: Principal = Depends(get_current_principal),
    service: RoomService = Depends(get_room_service),
):
    """Create a room; an existing room with the same name is returned as is."""
    return RoomResponse(room=await service.create_room(principal, request.name))


@router.post("/reconcile")
async def reconcile_rooms(
    principal: Principal = Depends(get_current_principal),
    service: RoomService = Depends(get_room_service),
):
    created = await service.reconcile(principal)
    return {"created": created}


@router.post("/{room_id}/apply-mood", response_model=MoodResponse)
async def apply_mood(
    room_id: str,
    request: MoodRequest,
    principal: Principal = Depends(get_current_principal),
    service: RoomService = Depends(get_room_service),
):
    """Apply a mood preset to every applicable device in the room."""
    updates = await service.apply_mood(principal, room_id, request.mood)
    return MoodResponse(message=f"{request.mood} mood applied", updates=updates)


@router.delete("/{room_id}")
async def delete_room(
    room_id: str,
    principal: Principal = Depends(get_current_principal),
    service: RoomService = Depends(get_room_service),
):
    """Delete a room and every device in it (admin only)."""
    removed = await service.delete_room(principal, room_id)
    return {"status": "deleted", "devices_removed": removed}
