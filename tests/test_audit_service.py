"""Tests for the audit trail."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from homepanel.core.errors import UnauthorizedError
from homepanel.models.audit_log import AuditLog, AuditLogType
from homepanel.models.device import Device, DeviceType
from homepanel.services.audit_service import AuditService
from homepanel.services.device_service import DeviceService


@pytest.fixture
def audit(db):
    return AuditService(db)


async def add_entry(db, house_name, action, log_type=AuditLogType.INFO, minutes_ago=0, user_id=None):
    db.add(AuditLog(
        house_name=house_name,
        action=action,
        log_type=log_type.value,
        user_id=user_id,
        timestamp=datetime.now(timezone.utc) - timedelta(minutes=minutes_ago),
    ))
    await db.commit()


class TestListLogs:
    """Reading the house trail."""

    async def test_newest_first_with_user_names(self, audit, admin, admin_user, db):
        await add_entry(db, "Acacia", "older", minutes_ago=5, user_id=admin_user.id)
        await add_entry(db, "Acacia", "newer", minutes_ago=1)

        logs = await audit.list_logs(admin)

        assert [l.action for l in logs] == ["newer", "older"]
        assert logs[0].user_name == "System"
        assert logs[1].user_name == "Alice Admin"

    async def test_scoped_to_house(self, audit, admin, db):
        await add_entry(db, "Birch", "not ours")
        assert await audit.list_logs(admin) == []

    async def test_members_never_see_password_requests(self, audit, admin, member, db):
        await add_entry(db, "Acacia", "reset please", log_type=AuditLogType.PASSWORD_REQUEST)
        await add_entry(db, "Acacia", "toggled")

        assert [l.action for l in await audit.list_logs(member)] == ["toggled"]
        assert len(await audit.list_logs(admin)) == 2

    async def test_filter_and_limit(self, audit, admin, db):
        for i in range(3):
            await add_entry(db, "Acacia", f"info {i}", minutes_ago=i)
        await add_entry(db, "Acacia", "warned", log_type=AuditLogType.WARNING)

        assert [l.action for l in await audit.list_logs(admin, log_type="warning")] == ["warned"]
        assert len(await audit.list_logs(admin, limit=2)) == 2


class TestSecurityLogs:
    """Admin-only security trail."""

    async def test_security_and_password_entries_only(self, audit, admin, db):
        await add_entry(db, "Acacia", "member added", log_type=AuditLogType.SECURITY)
        await add_entry(db, "Acacia", "reset please", log_type=AuditLogType.PASSWORD_REQUEST)
        await add_entry(db, "Acacia", "toggled")

        actions = {l.action for l in await audit.list_security_logs(admin)}
        assert actions == {"member added", "reset please"}

    async def test_member_denied(self, audit, member):
        with pytest.raises(UnauthorizedError):
            await audit.list_security_logs(member)


class TestBestEffortAppend:
    """A failed audit write never undoes the state change."""

    async def test_toggle_survives_audit_failure(self, admin, member, db, bus, monkeypatch):
        devices = DeviceService(db, bus)
        lamp = await devices.add_device(admin, "Hall Light", DeviceType.LIGHTS, "Hall")
        audits_before = (await db.execute(select(func.count(AuditLog.id)))).scalar_one()

        real_commit = db.commit

        async def failing_audit_commit():
            if any(isinstance(obj, AuditLog) for obj in db.new):
                raise OperationalError("INSERT INTO audit_logs", {}, Exception("disk I/O error"))
            await real_commit()

        monkeypatch.setattr(db, "commit", failing_audit_commit)

        snapshot = await devices.toggle(member, lamp.id)

        assert snapshot.status == "on"
        stored = (await db.execute(select(Device.status).where(Device.id == lamp.id))).scalar_one()
        assert stored == "on"
        audits_after = (await db.execute(select(func.count(AuditLog.id)))).scalar_one()
        assert audits_after == audits_before
        assert len(bus.events) == 2
