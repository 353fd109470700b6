"""
Device State Engine - validated, audited, broadcast device mutations.

Every mutation follows the same path:
load -> tenancy check -> type/state validation -> idempotence check ->
mutate -> activity entry -> persist -> audit -> broadcast -> snapshot.

Setters short-circuit when the requested value equals the current one:
no activity entry, no audit entry and no broadcast. Slider drags repeat
the same value many times and must not flood the logs.

Concurrency:
- Device rows carry a version counter; a write based on a stale read
  fails with Conflict instead of overwriting silently.
- device_id is allocated by scanning the house max and incrementing.
  That is racy, so a duplicate-key failure gets one retry with a
  recomputed id, falling back to a clock-derived id when the recomputed
  value did not move. Liveness is preferred over a gap-free sequence.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from homepanel.core.errors import (
    ConflictError,
    InvalidInputError,
    InvalidTypeError,
    NotApprovedError,
    NotFoundError,
    OutOfRangeError,
)
from homepanel.core.event_bus import Event, EventBus, EventType, event_bus
from homepanel.core.tenancy import Principal, ensure_same_house, require_admin
from homepanel.models.device import Device, DeviceActivity, DeviceStatus, DeviceType
from homepanel.schemas.device import ActivityEntry, DeviceSnapshot, DeviceSummary
from homepanel.services.audit_service import AuditService

logger = logging.getLogger(__name__)

# Inclusive bounds
TEMPERATURE_RANGE = (16, 30)
BRIGHTNESS_RANGE = (1, 100)  # percent
SPEED_RANGE = (1, 5)


def clock_device_id() -> int:
    """Coarse fallback id derived from wall-clock milliseconds."""
    return int(time.time() * 1000)


class DeviceService:
    """Device operations for one request."""

    def __init__(self, db: AsyncSession, bus: EventBus = event_bus):
        self._db = db
        self._bus = bus
        self._audit = AuditService(db)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_device(self, principal: Principal, device_pk: str) -> Device:
        """Load a device and verify it belongs to the caller's house."""
        device = await self._db.get(Device, device_pk)
        if device is None:
            raise NotFoundError("Device not found")
        ensure_same_house(principal, device.house_name, "Device")
        return device

    async def list_devices(self, principal: Principal) -> List[DeviceSnapshot]:
        """All devices of the caller's house."""
        result = await self._db.execute(
            select(Device)
            .where(Device.house_name == principal.house_name)
            .order_by(Device.device_id)
        )
        return [DeviceSnapshot.model_validate(d) for d in result.scalars().all()]

    async def list_pending(self, principal: Principal) -> List[DeviceSnapshot]:
        """Devices of the house still waiting for approval."""
        require_admin(principal, "view pending devices")
        result = await self._db.execute(
            select(Device)
            .where(Device.house_name == principal.house_name, Device.approved.is_(False))
            .order_by(Device.device_id)
        )
        return [DeviceSnapshot.model_validate(d) for d in result.scalars().all()]

    async def get_activity(
        self, principal: Principal, device_pk: str
    ) -> Tuple[DeviceSnapshot, List[ActivityEntry]]:
        """Device snapshot and its ordered activity log."""
        require_admin(principal, "view device activity")
        device = await self.get_device(principal, device_pk)
        snapshot = DeviceSnapshot.model_validate(device)
        return snapshot, list(snapshot.activity_log)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def add_device(
        self,
        principal: Principal,
        name: str,
        device_type: DeviceType,
        location: str,
    ) -> DeviceSnapshot:
        """Create a device in the caller's house."""
        require_admin(principal, "add devices")

        trimmed = (name or "").strip()
        location = (location or "").strip()
        if not trimmed or not location:
            raise InvalidInputError("Name, type, and location are required")
        try:
            device_type = DeviceType(device_type)
        except ValueError:
            raise InvalidInputError(
                f"Unknown device type: {device_type}",
                details={"allowed": [t.value for t in DeviceType]},
            )

        existing = await self._find_by_name(principal.house_name, trimmed)
        if existing is not None:
            raise self._duplicate_name(trimmed, existing)

        candidate = await self._next_device_id(principal.house_name)
        for attempt in range(2):
            device = Device(
                device_id=candidate,
                name=trimmed,
                device_type=device_type.value,
                location=location,
                house_name=principal.house_name,
                owner_id=principal.user_id,
                approved=True,
            )
            self._db.add(device)
            try:
                await self._db.commit()
                break
            except IntegrityError as e:
                await self._db.rollback()

                existing = await self._find_by_name(principal.house_name, trimmed)
                if existing is not None:
                    raise self._duplicate_name(trimmed, existing)
                if attempt == 1:
                    logger.error(f"device_id allocation failed twice in {principal.house_name}: {e}")
                    raise ConflictError(
                        "Could not allocate a device id, please try again",
                        details={"device_id": candidate},
                    )

                recomputed = await self._next_device_id(principal.house_name)
                logger.warning(
                    f"device_id {candidate} taken in {principal.house_name}, "
                    f"retrying with {recomputed if recomputed != candidate else 'clock id'}"
                )
                candidate = recomputed if recomputed != candidate else clock_device_id()

        await self._db.refresh(device)
        snapshot = DeviceSnapshot.model_validate(device)
        logger.info(f"Device added: #{device.device_id} {device.name} in {device.house_name}")

        await self._audit.record(
            principal.house_name, "Device added by admin",
            user_id=principal.user_id, device_id=snapshot.id,
        )
        await self._publish(principal, EventType.DEVICE_ADDED, snapshot.to_payload())
        return snapshot

    async def approve_device(self, principal: Principal, device_pk: str) -> DeviceSnapshot:
        """Mark a device as approved for control."""
        require_admin(principal, "approve devices")
        device = await self.get_device(principal, device_pk)
        device.approved = True
        await self._commit(device)

        snapshot = DeviceSnapshot.model_validate(device)
        await self._audit.record(
            principal.house_name, "Device approved",
            user_id=principal.user_id, device_id=snapshot.id,
        )
        await self._publish(principal, EventType.DEVICE_APPROVED, snapshot.to_payload())
        return snapshot

    async def delete_device(self, principal: Principal, device_pk: str) -> None:
        """Remove a device and its activity log."""
        require_admin(principal, "remove devices")
        device = await self.get_device(principal, device_pk)
        removed = {"id": device.id, "device_id": device.device_id}

        await self._db.delete(device)
        try:
            await self._db.commit()
        except StaleDataError:
            await self._db.rollback()
            raise ConflictError("Device was changed by another request, please retry")
        logger.info(f"Device removed: {removed} from {principal.house_name}")

        await self._audit.record(
            principal.house_name, "Device removed by admin",
            user_id=principal.user_id, device_id=removed["id"],
        )
        await self._publish(principal, EventType.DEVICE_REMOVED, removed)

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    async def toggle(self, principal: Principal, device_pk: str) -> DeviceSnapshot:
        """Flip the power state of an approved device."""
        device = await self.get_device(principal, device_pk)
        if not device.approved:
            raise NotApprovedError("Device not approved")

        device.status = (
            DeviceStatus.OFF.value if device.status == DeviceStatus.ON.value
            else DeviceStatus.ON.value
        )
        return await self._apply(
            principal, device,
            activity=f"turned {device.status}",
            audit=f"Toggled: {device.status}",
        )

    async def set_temperature(self, principal: Principal, device_pk: str, temperature: int) -> DeviceSnapshot:
        return await self._set_attribute(
            principal, device_pk, "temperature", temperature,
            DeviceType.AC_HEATER, TEMPERATURE_RANGE,
            activity=f"Temperature set to {temperature}°C",
            audit=f"Temperature set to {temperature}",
        )

    async def set_brightness(self, principal: Principal, device_pk: str, brightness: int) -> DeviceSnapshot:
        return await self._set_attribute(
            principal, device_pk, "brightness", brightness,
            DeviceType.LIGHTS, BRIGHTNESS_RANGE,
            activity=f"Brightness set to {brightness}",
            audit=f"Brightness set to {brightness}",
        )

    async def set_color(self, principal: Principal, device_pk: str, color: str) -> DeviceSnapshot:
        if not isinstance(color, str) or not color.strip():
            raise InvalidInputError("Color is required")
        # Generic text: color pickers emit a stream of distinct values
        return await self._set_attribute(
            principal, device_pk, "color", color.strip(),
            DeviceType.LIGHTS, None,
            activity="Color changed",
            audit="Color changed",
        )

    async def set_speed(self, principal: Principal, device_pk: str, speed: int) -> DeviceSnapshot:
        return await self._set_attribute(
            principal, device_pk, "speed", speed,
            DeviceType.FAN, SPEED_RANGE,
            activity=f"Speed set to {speed}",
            audit=f"Speed set to {speed}",
        )

    async def _set_attribute(
        self,
        principal: Principal,
        device_pk: str,
        attribute: str,
        value: Any,
        required_type: DeviceType,
        bounds: Optional[Tuple[int, int]],
        activity: str,
        audit: str,
    ) -> DeviceSnapshot:
        device = await self.get_device(principal, device_pk)

        if device.device_type != required_type.value:
            raise InvalidTypeError(
                f"{attribute.capitalize()} can only be set on {required_type.value} devices",
                details={"device_type": device.device_type},
            )

        if bounds is not None:
            low, high = bounds
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidInputError(f"{attribute.capitalize()} must be an integer")
            if not low <= value <= high:
                raise OutOfRangeError(
                    f"{attribute.capitalize()} must be between {low} and {high}",
                    details={"min": low, "max": high},
                )

        if getattr(device, attribute) == value:
            return DeviceSnapshot.model_validate(device)

        setattr(device, attribute, value)
        if attribute == "temperature":
            device.value = value

        return await self._apply(principal, device, activity=activity, audit=audit)

    # ------------------------------------------------------------------
    # Shared mutation tail
    # ------------------------------------------------------------------

    async def _apply(
        self,
        principal: Principal,
        device: Device,
        activity: str,
        audit: str,
    ) -> DeviceSnapshot:
        """Stamp, persist, audit and broadcast one device mutation."""
        stamp_mutation(device, principal, activity)
        await self._commit(device)

        snapshot = DeviceSnapshot.model_validate(device)
        logger.info(f"Device #{device.device_id} in {device.house_name}: {activity} by {principal.display_name}")

        await self._audit.record(
            principal.house_name, audit,
            user_id=principal.user_id, device_id=snapshot.id,
        )
        await self._publish(principal, EventType.DEVICE_UPDATED, snapshot.to_payload())
        return snapshot

    async def _commit(self, device: Device) -> None:
        try:
            await self._db.commit()
        except StaleDataError:
            await self._db.rollback()
            raise ConflictError("Device was changed by another request, please retry")
        await self._db.refresh(device)

    async def _publish(self, principal: Principal, event_type: EventType, payload: dict) -> None:
        await publish_event(self._bus, principal, event_type, payload)

    async def _find_by_name(self, house_name: str, name: str) -> Optional[Device]:
        result = await self._db.execute(
            select(Device).where(Device.house_name == house_name, Device.name == name)
        )
        return result.scalar_one_or_none()

    async def _next_device_id(self, house_name: str) -> int:
        result = await self._db.execute(
            select(func.max(Device.device_id)).where(Device.house_name == house_name)
        )
        current = result.scalar_one_or_none()
        return current + 1 if current is not None else 1

    @staticmethod
    def _duplicate_name(name: str, existing: Device) -> ConflictError:
        return ConflictError(
            f'Device "{name}" already exists in your house',
            details={"existing_device": DeviceSummary.model_validate(existing).model_dump(mode="json")},
        )


def stamp_mutation(device: Device, principal: Principal, activity: str) -> None:
    """Record who changed the device, when, and append the activity entry."""
    now = datetime.now(timezone.utc)
    device.last_toggled_by_id = principal.user_id
    device.last_updated = now
    device.activity_log.append(
        DeviceActivity(
            user_id=principal.user_id,
            user_name=principal.display_name,
            action=activity,
            timestamp=now,
        )
    )


async def publish_event(bus: EventBus, principal: Principal, event_type: EventType, payload: dict) -> None:
    """Fire-and-forget publish to the caller's house channel."""
    try:
        await bus.publish(Event(
            event_type=event_type,
            payload=payload,
            house_name=principal.house_name,
            user_id=principal.user_id,
        ))
    except Exception as e:
        logger.error(f"Broadcast of {event_type.value} failed: {e}")
