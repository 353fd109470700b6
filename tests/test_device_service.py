"""Tests for the device state engine."""

import pytest
from sqlalchemy import func, select

from homepanel.core.errors import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    InvalidTypeError,
    NotApprovedError,
    NotFoundError,
    OutOfRangeError,
    UnauthorizedError,
)
from homepanel.core.event_bus import EventType
from homepanel.models.audit_log import AuditLog
from homepanel.models.device import Device, DeviceType
from homepanel.services import device_service as device_module
from homepanel.services.device_service import DeviceService


@pytest.fixture
def service(db, bus):
    return DeviceService(db, bus)


@pytest.fixture
async def light(service, admin):
    return await service.add_device(admin, "Hall Light", DeviceType.LIGHTS, "Hall")


@pytest.fixture
async def heater(service, admin):
    return await service.add_device(admin, "Bedroom AC", DeviceType.AC_HEATER, "Bedroom")


@pytest.fixture
async def fan(service, admin):
    return await service.add_device(admin, "Ceiling Fan", DeviceType.FAN, "Bedroom")


async def audit_count(db) -> int:
    return (await db.execute(select(func.count(AuditLog.id)))).scalar_one()


class TestAddDevice:
    """Device creation and id allocation."""

    async def test_first_device_gets_id_one(self, light, bus):
        assert light.device_id == 1
        assert light.approved is True
        assert light.status == "off"
        assert light.house_name == "Acacia"
        assert [e.event_type for e in bus.events] == [EventType.DEVICE_ADDED]

    async def test_ids_increment_per_house(self, service, admin, outsider, light):
        second = await service.add_device(admin, "Desk Lamp", DeviceType.LIGHTS, "Study")
        foreign = await service.add_device(outsider, "Porch Light", DeviceType.LIGHTS, "Porch")

        assert second.device_id == 2
        assert foreign.device_id == 1

    async def test_name_is_trimmed(self, service, admin):
        device = await service.add_device(admin, "  Lamp  ", DeviceType.LIGHTS, " Study ")
        assert device.name == "Lamp"
        assert device.location == "Study"

    async def test_duplicate_name_returns_existing_snapshot(self, service, admin, light):
        with pytest.raises(ConflictError) as exc_info:
            await service.add_device(admin, "Hall Light", DeviceType.FAN, "Kitchen")

        existing = exc_info.value.details["existing_device"]
        assert existing["id"] == light.id
        assert existing["device_id"] == 1
        assert existing["location"] == "Hall"

    async def test_same_name_allowed_in_other_house(self, service, outsider, light):
        device = await service.add_device(outsider, "Hall Light", DeviceType.LIGHTS, "Hall")
        assert device.house_name == "Birch"

    async def test_member_cannot_add(self, service, member):
        with pytest.raises(UnauthorizedError):
            await service.add_device(member, "Lamp", DeviceType.LIGHTS, "Study")

    async def test_missing_fields_rejected(self, service, admin):
        with pytest.raises(InvalidInputError):
            await service.add_device(admin, "   ", DeviceType.LIGHTS, "Study")
        with pytest.raises(InvalidInputError):
            await service.add_device(admin, "Lamp", DeviceType.LIGHTS, "")

    async def test_unknown_type_rejected(self, service, admin):
        with pytest.raises(InvalidInputError) as exc_info:
            await service.add_device(admin, "Toaster", "Toaster", "Kitchen")
        assert "Lights" in exc_info.value.details["allowed"]

    async def test_id_race_retries_with_recomputed_id(self, service, admin, db, light, monkeypatch):
        # Stale max read: the first candidate collides with device #1
        calls = []
        original = DeviceService._next_device_id

        async def stale_then_real(self, house_name):
            calls.append(house_name)
            if len(calls) == 1:
                return 1
            return await original(self, house_name)

        monkeypatch.setattr(DeviceService, "_next_device_id", stale_then_real)
        device = await service.add_device(admin, "Desk Lamp", DeviceType.LIGHTS, "Study")

        assert device.device_id == 2
        assert len(calls) == 2

    async def test_id_race_falls_back_to_clock_id(self, service, admin, light, monkeypatch):
        async def always_stale(self, house_name):
            return 1

        monkeypatch.setattr(DeviceService, "_next_device_id", always_stale)
        monkeypatch.setattr(device_module, "clock_device_id", lambda: 1_700_000_000_000)

        device = await service.add_device(admin, "Desk Lamp", DeviceType.LIGHTS, "Study")
        assert device.device_id == 1_700_000_000_000

    async def test_id_race_twice_is_conflict(self, service, admin, light, monkeypatch):
        async def always_stale(self, house_name):
            return 1

        monkeypatch.setattr(DeviceService, "_next_device_id", always_stale)
        monkeypatch.setattr(device_module, "clock_device_id", lambda: 1)

        with pytest.raises(ConflictError):
            await service.add_device(admin, "Desk Lamp", DeviceType.LIGHTS, "Study")


class TestToggle:
    """Power state transitions."""

    async def test_toggle_records_actor_and_activity(self, service, member, member_user, light, bus):
        bus.clear()
        device = await service.toggle(member, light.id)

        assert device.status == "on"
        assert device.last_toggled_by.id == member_user.id
        assert [a.action for a in device.activity_log] == ["turned on"]
        assert device.activity_log[0].user_name == "Bob Member"
        assert [e.event_type for e in bus.events] == [EventType.DEVICE_UPDATED]
        assert bus.events[0].house_name == "Acacia"

    async def test_toggle_twice_returns_to_off(self, service, member, light):
        await service.toggle(member, light.id)
        device = await service.toggle(member, light.id)

        assert device.status == "off"
        assert [a.action for a in device.activity_log] == ["turned on", "turned off"]

    async def test_toggle_bumps_version(self, service, member, light):
        device = await service.toggle(member, light.id)
        assert device.version == light.version + 1

    async def test_unapproved_device_cannot_be_toggled(self, service, member, light, db):
        row = await db.get(Device, light.id)
        row.approved = False
        await db.commit()

        with pytest.raises(NotApprovedError):
            await service.toggle(member, light.id)

    async def test_other_house_is_forbidden(self, service, outsider, light):
        with pytest.raises(ForbiddenError):
            await service.toggle(outsider, light.id)

    async def test_unknown_device(self, service, member):
        with pytest.raises(NotFoundError):
            await service.toggle(member, "does-not-exist")


class TestSetters:
    """Typed attribute setters."""

    async def test_set_temperature(self, service, member, heater, db):
        before = await audit_count(db)
        device = await service.set_temperature(member, heater.id, 22)

        assert device.temperature == 22
        assert device.value == 22
        assert device.activity_log[-1].action == "Temperature set to 22°C"
        assert await audit_count(db) == before + 1

    async def test_temperature_out_of_range_leaves_state(self, service, member, heater, db, bus):
        bus.clear()
        before = await audit_count(db)

        with pytest.raises(OutOfRangeError) as exc_info:
            await service.set_temperature(member, heater.id, 35)

        assert exc_info.value.details == {"min": 16, "max": 30}
        row = await db.get(Device, heater.id)
        assert row.temperature is None
        assert row.activity_log == []
        assert await audit_count(db) == before
        assert bus.events == []

    async def test_brightness_on_fan_is_wrong_type(self, service, member, fan, db):
        with pytest.raises(InvalidTypeError):
            await service.set_brightness(member, fan.id, 50)

        row = await db.get(Device, fan.id)
        assert row.brightness is None

    async def test_out_of_range_is_invalid_input(self, service, member, fan):
        with pytest.raises(InvalidInputError):
            await service.set_speed(member, fan.id, 9)

    async def test_non_integer_rejected(self, service, member, light):
        with pytest.raises(InvalidInputError):
            await service.set_brightness(member, light.id, "bright")
        with pytest.raises(InvalidInputError):
            await service.set_brightness(member, light.id, True)

    async def test_brightness_bounds(self, service, member, light):
        assert (await service.set_brightness(member, light.id, 1)).brightness == 1
        assert (await service.set_brightness(member, light.id, 100)).brightness == 100
        with pytest.raises(OutOfRangeError):
            await service.set_brightness(member, light.id, 0)

    @pytest.mark.parametrize("device_type,setter,attribute,first,repeat", [
        (DeviceType.FAN, "set_speed", "speed", 3, 3),
        (DeviceType.AC_HEATER, "set_temperature", "temperature", 22, 22),
        (DeviceType.LIGHTS, "set_brightness", "brightness", 70, 70),
        (DeviceType.LIGHTS, "set_color", "color", "#ff0000", "#ff0000"),
        (DeviceType.LIGHTS, "set_color", "color", "#00ff00", "  #00ff00 "),
    ])
    async def test_repeated_value_is_a_no_op(
        self, service, admin, member, db, bus, device_type, setter, attribute, first, repeat
    ):
        created = await service.add_device(admin, "Slider Device", device_type, "Study")
        await getattr(service, setter)(member, created.id, first)
        bus.clear()
        before = await audit_count(db)

        device = await getattr(service, setter)(member, created.id, repeat)

        assert getattr(device, attribute) == first
        assert len(device.activity_log) == 1
        assert device.version == created.version + 1
        assert await audit_count(db) == before
        assert bus.events == []

    async def test_color_activity_is_generic(self, service, member, light):
        device = await service.set_color(member, light.id, "#ff0000")

        assert device.color == "#ff0000"
        assert device.activity_log[-1].action == "Color changed"

    async def test_empty_color_rejected(self, service, member, light):
        with pytest.raises(InvalidInputError):
            await service.set_color(member, light.id, "  ")

    async def test_setters_allowed_on_unapproved_device(self, service, member, heater, db):
        row = await db.get(Device, heater.id)
        row.approved = False
        await db.commit()

        device = await service.set_temperature(member, heater.id, 20)
        assert device.temperature == 20


class TestLifecycle:
    """Approval, removal and admin reads."""

    async def test_pending_and_approve(self, service, admin, light, db, bus):
        row = await db.get(Device, light.id)
        row.approved = False
        await db.commit()

        pending = await service.list_pending(admin)
        assert [d.id for d in pending] == [light.id]

        bus.clear()
        device = await service.approve_device(admin, light.id)
        assert device.approved is True
        assert await service.list_pending(admin) == []
        assert [e.event_type for e in bus.events] == [EventType.DEVICE_APPROVED]

    async def test_member_cannot_approve(self, service, member, light):
        with pytest.raises(UnauthorizedError):
            await service.approve_device(member, light.id)

    async def test_delete_device(self, service, admin, member, light, db, bus):
        await service.toggle(member, light.id)
        bus.clear()

        await service.delete_device(admin, light.id)

        assert await db.get(Device, light.id) is None
        assert [e.event_type for e in bus.events] == [EventType.DEVICE_REMOVED]
        assert bus.events[0].payload == {"id": light.id, "device_id": 1}

    async def test_activity_is_ordered(self, service, admin, member, light):
        await service.toggle(member, light.id)
        await service.set_brightness(member, light.id, 70)

        device, entries = await service.get_activity(admin, light.id)
        assert [e.action for e in entries] == ["turned on", "Brightness set to 70"]
        assert device.id == light.id

    async def test_list_devices_is_house_scoped(self, service, admin, outsider, light):
        await service.add_device(outsider, "Porch Light", DeviceType.LIGHTS, "Porch")

        devices = await service.list_devices(admin)
        assert [d.name for d in devices] == ["Hall Light"]
