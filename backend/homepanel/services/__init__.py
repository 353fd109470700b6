"""
Business services.
"""

from homepanel.services.audit_service import AuditService
from homepanel.services.auth_service import AuthService
from homepanel.services.device_service import DeviceService
from homepanel.services.member_service import MemberService
from homepanel.services.room_service import RoomService

__all__ = [
    "AuditService",
    "AuthService",
    "DeviceService",
    "MemberService",
    "RoomService",
]
