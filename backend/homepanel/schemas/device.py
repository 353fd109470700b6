"""
Device-related schemas.

DeviceSnapshot is the full state sent to callers and broadcast to
subscribers; clients replace their cached copy with it wholesale.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, StrictInt

from homepanel.models.device import DeviceType


class UserRef(BaseModel):
    """Minimal user reference embedded in snapshots."""
    id: str
    name: str

    class Config:
        from_attributes = True


class ActivityEntry(BaseModel):
    """One activity log entry."""
    user_id: Optional[str] = None
    user_name: str
    action: str
    timestamp: datetime

    class Config:
        from_attributes = True


class DeviceSnapshot(BaseModel):
    """Full device state."""
    id: str
    device_id: int
    name: str
    device_type: str
    location: str
    status: str
    approved: bool
    temperature: Optional[int] = None
    brightness: Optional[int] = None
    color: Optional[str] = None
    speed: Optional[int] = None
    value: int = 0
    house_name: str
    owner: Optional[UserRef] = None
    last_toggled_by: Optional[UserRef] = None
    last_updated: datetime
    version: int
    activity_log: List[ActivityEntry] = []

    class Config:
        from_attributes = True

    def to_payload(self) -> Dict[str, Any]:
        """JSON-safe dict for event payloads."""
        return self.model_dump(mode="json")


class DeviceSummary(BaseModel):
    """Short descriptive form used to disambiguate name conflicts."""
    id: str
    device_id: int
    name: str
    device_type: str
    location: str
    status: str

    class Config:
        from_attributes = True


class DeviceCreate(BaseModel):
    """Schema for creating a device."""
    name: str
    device_type: DeviceType = Field(alias="type")
    location: str

    class Config:
        populate_by_name = True


class TemperatureUpdate(BaseModel):
    temperature: StrictInt


class BrightnessUpdate(BaseModel):
    brightness: StrictInt


class ColorUpdate(BaseModel):
    color: str


class SpeedUpdate(BaseModel):
    speed: StrictInt


class DeviceResponse(BaseModel):
    """Single device response."""
    device: DeviceSnapshot


class DeviceListResponse(BaseModel):
    """List of devices."""
    devices: List[DeviceSnapshot]


class DeviceActivityResponse(BaseModel):
    """Device with its activity log."""
    device: DeviceSnapshot
    activity_log: List[ActivityEntry]
