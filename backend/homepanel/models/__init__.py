"""
Database models for HomePanel.
"""

from homepanel.models.user import PasswordResetStatus, User, UserRole
from homepanel.models.device import Device, DeviceActivity, DeviceStatus, DeviceType
from homepanel.models.room import Room
from homepanel.models.audit_log import AuditLog, AuditLogType

__all__ = [
    "User",
    "UserRole",
    "PasswordResetStatus",
    "Device",
    "DeviceActivity",
    "DeviceStatus",
    "DeviceType",
    "Room",
    "AuditLog",
    "AuditLogType",
]
