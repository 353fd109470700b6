"""
House registration and login.

Self-registration always creates the admin (family head) of a new house.
Members are added by that admin, never by themselves.
"""

import logging
from typing import Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from homepanel.core.errors import (
    ConflictError,
    InvalidInputError,
    UnauthenticatedError,
    UnauthorizedError,
)
from homepanel.core.security import hash_password, token_for_user, verify_password
from homepanel.models.user import User, UserRole

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def validate_password(password: str) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInputError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")


class AuthService:
    """Registration and credential checks."""

    def __init__(self, db: AsyncSession):
        self._db = db

    async def register_house(
        self,
        name: str,
        email: str,
        password: str,
        house_name: str,
    ) -> Tuple[User, str]:
        """Create the admin of a new house. Returns (user, token)."""
        name = (name or "").strip()
        house_name = (house_name or "").strip()
        if not name or not email or not house_name:
            raise InvalidInputError("Name, email, password, and house name are required")
        validate_password(password)

        if await house_has_admin(self._db, house_name):
            raise ConflictError(
                "An admin already exists for this house name. Please choose a "
                "different house name or contact the existing admin."
            )
        if await email_taken(self._db, email):
            raise ConflictError("Email already registered")

        user = User(
            name=name,
            email=email,
            password_hash=hash_password(password),
            role=UserRole.ADMIN.value,
            house_name=house_name,
            authorized=True,
        )
        self._db.add(user)
        try:
            await self._db.commit()
        except IntegrityError:
            await self._db.rollback()
            raise ConflictError("An admin already exists for this house name.")

        logger.info(f"House registered: {house_name} (admin {email})")
        return user, token_for_user(user)

    async def login(
        self,
        email: str,
        password: str,
        house_name: str,
        role: str,
    ) -> Tuple[User, str]:
        """Check credentials within a house. Returns (user, token)."""
        result = await self._db.execute(
            select(User).where(User.email == email, User.house_name == (house_name or "").strip())
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise UnauthenticatedError(
                "Invalid credentials or house name. Please check your house name and credentials."
            )
        if user.role != role:
            raise UnauthenticatedError("Invalid role for this account")
        if not verify_password(password, user.password_hash):
            raise UnauthenticatedError("Invalid credentials")
        if not user.authorized and not user.is_admin:
            raise UnauthorizedError(
                "Your account is pending authorization from the family head (admin). "
                "Please contact your admin."
            )

        logger.info(f"Login: {email} ({user.role}@{user.house_name})")
        return user, token_for_user(user)


async def house_has_admin(db: AsyncSession, house_name: str) -> bool:
    result = await db.execute(
        select(User.id).where(User.house_name == house_name, User.role == UserRole.ADMIN.value)
    )
    return result.first() is not None


async def email_taken(db: AsyncSession, email: str) -> bool:
    result = await db.execute(select(User.id).where(User.email == email))
    return result.first() is not None
