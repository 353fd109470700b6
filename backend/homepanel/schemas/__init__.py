"""
Pydantic schemas for API validation.
"""

from homepanel.schemas.device import (
    DeviceCreate,
    DeviceSnapshot,
    DeviceSummary,
)
from homepanel.schemas.room import RoomCreate, RoomSnapshot
from homepanel.schemas.user import UserSnapshot

__all__ = [
    "DeviceCreate",
    "DeviceSnapshot",
    "DeviceSummary",
    "RoomCreate",
    "RoomSnapshot",
    "UserSnapshot",
]
