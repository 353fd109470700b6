"""
Room model.

Devices join a room by matching Device.location to Room.name within the
same house; there is no foreign key between them.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from homepanel.core.database import Base


class Room(Base):
    """Named room within a house."""

    __tablename__ = "rooms"
    __table_args__ = (
        UniqueConstraint("house_name", "name", name="uq_rooms_house_name"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    name: Mapped[str] = mapped_column(String(255))
    house_name: Mapped[str] = mapped_column(String(255), index=True)
    created_by: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    # Timestamps (UTC)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self) -> str:
        return f"<Room {self.name}@{self.house_name}>"
