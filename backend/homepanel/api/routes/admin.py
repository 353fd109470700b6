"""
Admin endpoints: device approval, membership and security logs.

Every route here is admin-only; the services enforce the role so the
same rules hold for any other caller of them.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from homepanel.core.database import get_db
from homepanel.core.event_bus import EventBus, get_event_bus
from homepanel.core.security import get_current_principal
from homepanel.core.tenancy import Principal
from homepanel.schemas.audit import AuditLogListResponse
from homepanel.schemas.device import (
    DeviceActivityResponse,
    DeviceListResponse,
    DeviceResponse,
)
from homepanel.schemas.user import (
    AddUserRequest,
    RoleUpdateRequest,
    UserListResponse,
    UserSnapshot,
)
from homepanel.services.audit_service import AuditService
from homepanel.services.device_service import DeviceService
from homepanel.services.member_service import MemberService

router = APIRouter()


def get_device_service(
    db: AsyncSession = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
) -> DeviceService:
    return DeviceService(db, bus)


def get_member_service(
    db: AsyncSession = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
) -> MemberService:
    return MemberService(db, bus)


# ----------------------------------------------------------------------
# Devices
# ----------------------------------------------------------------------

@router.get("/pending", response_model=DeviceListResponse)
async def list_pending_devices(
    principal: Principal = Depends(get_current_principal),
    service: DeviceService = Depends(get_device_service),
):
    return DeviceListResponse(devices=await service.list_pending(principal))


@router.put("/approve/{device_id}", response_model=DeviceResponse)
async def approve_device(
    device_id: str,
    principal: Principal = Depends(get_current_principal),
    service: DeviceService = Depends(get_device_service),
):
    return DeviceResponse(device=await service.approve_device(principal, device_id))


@router.delete("/device/{device_id}")
async def delete_device(
    device_id: str,
    principal: Principal = Depends(get_current_principal),
    service: DeviceService = Depends(get_device_service),
):
    await service.delete_device(principal, device_id)
    return {"status": "deleted", "id": device_id}


@router.get("/device/{device_id}/activity", response_model=DeviceActivityResponse)
async def get_device_activity(
    device_id: str,
    principal: Principal = Depends(get_current_principal),
    service: DeviceService = Depends(get_device_service),
):
    """Device with its full, ordered activity log."""
    device, entries = await service.get_activity(principal, device_id)
    return DeviceActivityResponse(device=device, activity_log=entries)


# ----------------------------------------------------------------------
# Members
# ----------------------------------------------------------------------

@router.get("/users", response_model=UserListResponse)
async def list_users(
    principal: Principal = Depends(get_current_principal),
    service: MemberService = Depends(get_member_service),
):
    return UserListResponse(users=await service.list_users(principal))


@router.post("/users", response_model=UserSnapshot, status_code=201)
async def add_user(
    request: AddUserRequest,
    principal: Principal = Depends(get_current_principal),
    service: MemberService = Depends(get_member_service),
):
    """Add a pre-authorized member to the house."""
    return await service.add_user(
        principal,
        request.name,
        request.email,
        request.password,
        role=request.role,
        photo=request.photo,
    )


@router.put("/users/{user_id}/authorize", response_model=UserSnapshot)
async def authorize_user(
    user_id: str,
    principal: Principal = Depends(get_current_principal),
    service: MemberService = Depends(get_member_service),
):
    return await service.authorize_user(principal, user_id)


@router.put("/users/{user_id}/role", response_model=UserSnapshot)
async def update_user_role(
    user_id: str,
    request: RoleUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    service: MemberService = Depends(get_member_service),
):
    return await service.update_role(principal, user_id, request.role)


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    principal: Principal = Depends(get_current_principal),
    service: MemberService = Depends(get_member_service),
):
    """Remove a member. Devices stay with the house."""
    await service.delete_user(principal, user_id)
    return {"status": "deleted", "id": user_id}


# ----------------------------------------------------------------------
# Logs
# ----------------------------------------------------------------------

@router.get("/security-logs", response_model=AuditLogListResponse)
async def list_security_logs(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    return AuditLogListResponse(logs=await AuditService(db).list_security_logs(principal))
