"""
Security module for authentication.

Resolves a bearer JWT to a Principal. Password hashing uses bcrypt.
Everything downstream trusts the resolved Principal and performs no
credential checks of its own.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from homepanel.config import get_settings
from homepanel.core.database import get_db
from homepanel.core.errors import UnauthenticatedError, UnauthorizedError
from homepanel.core.tenancy import Principal

logger = logging.getLogger(__name__)

settings = get_settings()
security = HTTPBearer(auto_error=False)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class TokenData(BaseModel):
    """JWT token payload."""
    user_id: str
    house_name: Optional[str] = None
    role: Optional[str] = None


class TokenResponse(BaseModel):
    """Response containing access token."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int = settings.access_token_expire_minutes * 60


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> Optional[TokenData]:
    """Verify and decode a JWT token."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
        user_id: str = payload.get("sub")
        if user_id is None:
            return None
        return TokenData(
            user_id=user_id,
            house_name=payload.get("house_name"),
            role=payload.get("role"),
        )
    except JWTError as e:
        logger.warning(f"Token verification failed: {e}")
        return None


def token_for_user(user) -> str:
    """Issue a token for a User row."""
    return create_access_token({
        "sub": user.id,
        "house_name": user.house_name,
        "role": user.role,
    })


def principal_from_user(user) -> Principal:
    return Principal(
        user_id=user.id,
        role=user.role,
        house_name=user.house_name,
        authorized=user.authorized or user.is_admin,
        display_name=user.name,
    )


async def resolve_principal(token: Optional[str], db: AsyncSession) -> Principal:
    """
    Resolve a raw token to a Principal.

    Role and house are read from the stored user, not the token, so a
    role change takes effect on the next request.
    """
    from homepanel.models.user import User

    if not token:
        raise UnauthenticatedError("Not authenticated")

    token_data = verify_token(token)
    if token_data is None:
        raise UnauthenticatedError("Invalid or expired token")

    user = await db.get(User, token_data.user_id)
    if user is None:
        raise UnauthenticatedError("User not found")

    return principal_from_user(user)


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Principal:
    """Dependency: the authenticated, authorized caller."""
    principal = await resolve_principal(
        credentials.credentials if credentials else None, db
    )
    if not principal.authorized:
        raise UnauthorizedError(
            "Your account is pending authorization from the family head (admin)"
        )
    return principal


def hash_password(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)
