"""
Member Service - house membership managed by the admin.

Users are never cascade-deleted with devices, and deleting a user never
deletes devices: devices belong to the house. Only the weak
last_toggled_by reference is cleared.
"""

import logging
from typing import List, Optional

from sqlalchemy import case, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from homepanel.core.errors import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    UnauthorizedError,
)
from homepanel.core.event_bus import EventBus, EventType, event_bus
from homepanel.core.security import hash_password
from homepanel.core.tenancy import Principal, ensure_same_house, require_admin
from homepanel.models.audit_log import AuditLogType
from homepanel.models.device import Device
from homepanel.models.user import User, UserRole
from homepanel.schemas.user import UserSnapshot
from homepanel.services.audit_service import AuditService
from homepanel.services.auth_service import email_taken, house_has_admin, validate_password
from homepanel.services.device_service import publish_event

logger = logging.getLogger(__name__)

FAMILY_HEAD_EXISTS = "Household already has a Family Head."


class MemberService:
    """Membership operations for one request."""

    def __init__(self, db: AsyncSession, bus: EventBus = event_bus):
        self._db = db
        self._bus = bus
        self._audit = AuditService(db)

    async def get_user(self, principal: Principal, user_id: str) -> User:
        """Load a user and verify they belong to the caller's house."""
        user = await self._db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        ensure_same_house(principal, user.house_name, "User")
        return user

    async def get_me(self, principal: Principal) -> UserSnapshot:
        return UserSnapshot.model_validate(await self.get_user(principal, principal.user_id))

    async def update_profile(
        self,
        principal: Principal,
        display_name: Optional[str] = None,
        photo: Optional[str] = None,
    ) -> UserSnapshot:
        """Change the caller's display name and/or photo path."""
        user = await self.get_user(principal, principal.user_id)
        if display_name is not None:
            display_name = display_name.strip()
            if not display_name:
                raise InvalidInputError("Display name cannot be empty")
            user.name = display_name
        if photo is not None:
            user.photo = photo or None
        await self._db.commit()
        return UserSnapshot.model_validate(user)

    async def list_family_members(self, principal: Principal) -> List[UserSnapshot]:
        """Everyone in the house, admin first, then by name."""
        result = await self._db.execute(
            select(User)
            .where(User.house_name == principal.house_name)
            .order_by(case((User.role == UserRole.ADMIN.value, 0), else_=1), User.name)
        )
        return [UserSnapshot.model_validate(u) for u in result.scalars().all()]

    async def list_users(self, principal: Principal) -> List[UserSnapshot]:
        """Non-admin members of the house."""
        require_admin(principal, "list users")
        result = await self._db.execute(
            select(User)
            .where(User.house_name == principal.house_name, User.role == UserRole.USER.value)
            .order_by(User.name)
        )
        return [UserSnapshot.model_validate(u) for u in result.scalars().all()]

    async def add_user(
        self,
        principal: Principal,
        name: str,
        email: str,
        password: str,
        role: UserRole = UserRole.USER,
        photo: Optional[str] = None,
    ) -> UserSnapshot:
        """Add a pre-authorized member to the caller's house."""
        require_admin(principal, "add users")
        name = (name or "").strip()
        if not name or not email:
            raise InvalidInputError("Name, email, and password are required")
        validate_password(password)

        if await email_taken(self._db, email):
            raise ConflictError("Email already registered")
        role = UserRole(role)
        if role == UserRole.ADMIN and await house_has_admin(self._db, principal.house_name):
            raise ConflictError(FAMILY_HEAD_EXISTS)

        user = User(
            name=name,
            email=email,
            password_hash=hash_password(password),
            role=role.value,
            house_name=principal.house_name,
            authorized=True,
            photo=photo,
        )
        self._db.add(user)
        try:
            await self._db.commit()
        except IntegrityError:
            await self._db.rollback()
            raise ConflictError("Email already registered or house already has a Family Head")

        snapshot = UserSnapshot.model_validate(user)
        logger.info(f"Member added: {email} to {principal.house_name}")
        await self._audit.record(
            principal.house_name, f"New member added: {snapshot.name}",
            user_id=principal.user_id, log_type=AuditLogType.SECURITY,
        )
        return snapshot

    async def authorize_user(self, principal: Principal, user_id: str) -> UserSnapshot:
        """Let a pending member log in."""
        require_admin(principal, "authorize users")
        user = await self.get_user(principal, user_id)
        if user.is_admin:
            raise InvalidInputError("Admin users are already authorized")

        user.authorized = True
        await self._db.commit()

        snapshot = UserSnapshot.model_validate(user)
        await self._audit.record(
            principal.house_name, f"User {snapshot.email} authorized by admin",
            user_id=principal.user_id,
        )
        return snapshot

    async def update_role(self, principal: Principal, user_id: str, role: UserRole) -> UserSnapshot:
        """Change another member's role; a house keeps at most one admin."""
        require_admin(principal, "change user roles")
        role = UserRole(role)
        target = await self.get_user(principal, user_id)
        if target.id == principal.user_id:
            raise InvalidInputError("Cannot change your own role directly")
        if role == UserRole.ADMIN and await house_has_admin(self._db, principal.house_name):
            raise ConflictError(FAMILY_HEAD_EXISTS)

        target.role = role.value
        if role == UserRole.ADMIN:
            target.authorized = True
        try:
            await self._db.commit()
        except IntegrityError:
            await self._db.rollback()
            raise ConflictError(FAMILY_HEAD_EXISTS)

        snapshot = UserSnapshot.model_validate(target)
        await self._audit.record(
            principal.house_name, f"User {snapshot.email} role changed to {role.value}",
            user_id=principal.user_id, log_type=AuditLogType.SECURITY,
        )
        return snapshot

    async def delete_user(self, principal: Principal, user_id: str) -> None:
        """Remove a member. Their devices stay with the house."""
        require_admin(principal, "delete users")
        user = await self.get_user(principal, user_id)
        if user.is_admin:
            raise UnauthorizedError("Cannot delete admin users")
        email = user.email

        await self._db.execute(
            update(Device)
            .where(Device.last_toggled_by_id == user_id)
            .values(last_toggled_by_id=None)
            .execution_options(synchronize_session=False)
        )
        await self._db.delete(user)
        await self._db.commit()
        logger.info(f"Member deleted: {email} from {principal.house_name}")

        await self._audit.record(
            principal.house_name, f"User {email} deleted",
            user_id=principal.user_id, log_type=AuditLogType.SECURITY,
        )
        await publish_event(self._bus, principal, EventType.USER_DELETED, {"user_id": user_id})
