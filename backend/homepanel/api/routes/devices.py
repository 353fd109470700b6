"""
Device endpoints.

Reads are open to every member of the house. Power and attribute
changes are open to every member once the device is approved; adding
devices is reserved to the admin.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from homepanel.core.database import get_db
from homepanel.core.event_bus import EventBus, get_event_bus
from homepanel.core.security import get_current_principal
from homepanel.core.tenancy import Principal
from homepanel.schemas.device import (
    BrightnessUpdate,
    ColorUpdate,
    DeviceCreate,
    DeviceListResponse,
    DeviceResponse,
    SpeedUpdate,
    TemperatureUpdate,
)
from homepanel.services.device_service import DeviceService

router = APIRouter()


def get_device_service(
    db: AsyncSession = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
) -> DeviceService:
    return DeviceService(db, bus)


@router.get("", response_model=DeviceListResponse)
async def list_devices(
    principal: Principal = Depends(get_current_principal),
    service: DeviceService = Depends(get_device_service),
):
    """All devices of the caller's house."""
    return DeviceListResponse(devices=await service.list_devices(principal))


@router.post("", response_model=DeviceResponse, status_code=201)
async def add_device(
    request: DeviceCreate,
    principal: Principal = Depends(get_current_principal),
    service: DeviceService = Depends(get_device_service),
):
    """Add a device (admin only)."""
    device = await service.add_device(
        principal, request.name, request.device_type, request.location
    )
    return DeviceResponse(device=device)


@router.put("/{device_id}/toggle", response_model=DeviceResponse)
async def toggle_device(
    device_id: str,
    principal: Principal = Depends(get_current_principal),
    service: DeviceService = Depends(get_device_service),
):
    return DeviceResponse(device=await service.toggle(principal, device_id))


@router.put("/{device_id}/temperature", response_model=DeviceResponse)
async def set_temperature(
    device_id: str,
    request: TemperatureUpdate,
    principal: Principal = Depends(get_current_principal),
    service: DeviceService = Depends(get_device_service),
):
    return DeviceResponse(
        device=await service.set_temperature(principal, device_id, request.temperature)
    )


@router.put("/{device_id}/brightness", response_model=DeviceResponse)
async def set_brightness(
    device_id: str,
    request: BrightnessUpdate,
    principal: Principal = Depends(get_current_principal),
    service: DeviceService = Depends(get_device_service),
):
    return DeviceResponse(
        device=await service.set_brightness(principal, device_id, request.brightness)
    )


@router.put("/{device_id}/color", response_model=DeviceResponse)
async def set_color(
    device_id: str,
    request: ColorUpdate,
    principal: Principal = Depends(get_current_principal),
    service: DeviceService = Depends(get_device_service),
):
    return DeviceResponse(
        device=await service.set_color(principal, device_id, request.color)
    )


@router.put("/{device_id}/speed", response_model=DeviceResponse)
async def set_speed(
    device_id: str,
    request: SpeedUpdate,
    principal: Principal = Depends(get_current_principal),
    service: DeviceService = Depends(get_device_service),
):
    return DeviceResponse(
        device=await service.set_speed(principal, device_id, request.speed)
    )
