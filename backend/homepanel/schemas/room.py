"""
Room-related schemas.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from homepanel.schemas.device import DeviceSnapshot


class RoomCreate(BaseModel):
    """Schema for creating a room."""
    name: str


class RoomSnapshot(BaseModel):
    """Room response."""
    id: str
    name: str
    house_name: str
    created_by: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class RoomResponse(BaseModel):
    room: RoomSnapshot


class RoomListResponse(BaseModel):
    rooms: List[RoomSnapshot]


class MoodRequest(BaseModel):
    """Request to apply a mood preset to a room."""
    mood: str


class MoodResponse(BaseModel):
    """Result of a mood application."""
    message: str
    updates: List[DeviceSnapshot]
