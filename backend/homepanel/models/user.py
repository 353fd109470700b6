"""
User model - an identity bound to exactly one house.

Ownership Rules:
- A house has at most one admin (enforced by a partial unique index)
- Admins are always authorized; members are authorized by the admin
- Deleting a user never deletes devices
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from homepanel.core.database import Base


class UserRole(str, Enum):
    """House roles."""
    ADMIN = "admin"
    USER = "user"


class PasswordResetStatus(str, Enum):
    """State of the embedded password reset request."""
    NONE = "none"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class User(Base):
    """User account model."""

    __tablename__ = "users"
    __table_args__ = (
        Index(
            "uq_users_house_admin",
            "house_name",
            unique=True,
            sqlite_where=text("role = 'admin'"),
            postgresql_where=text("role = 'admin'"),
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    name: Mapped[str] = mapped_column(String(255))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255))

    # Membership
    house_name: Mapped[str] = mapped_column(String(255), index=True)
    role: Mapped[str] = mapped_column(String(20), default=UserRole.USER.value)
    authorized: Mapped[bool] = mapped_column(Boolean, default=False)

    # Opaque path owned by photo storage
    photo: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Password reset request (workflow handled elsewhere)
    password_reset_status: Mapped[str] = mapped_column(
        String(20),
        default=PasswordResetStatus.NONE.value
    )
    password_reset_requested_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )
    password_reset_resolved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    # Timestamps (UTC)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role}@{self.house_name})>"
