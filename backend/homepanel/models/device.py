"""
Device model - a controllable appliance inside one house.

Ownership Rules:
- (house_name, name) and (house_name, device_id) are unique
- location is a free-text room name, not a foreign key
- activity_log is append-only
- last_toggled_by is a weak back-reference, cleared when the user goes away
"""

from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, List, Optional
from uuid import uuid4

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from homepanel.core.database import Base

if TYPE_CHECKING:
    from homepanel.models.user import User


UNKNOWN_LOCATION = "Unknown"


class DeviceType(str, Enum):
    """Supported appliance types."""
    AC_HEATER = "AC/Heater"
    LIGHTS = "Lights"
    FAN = "Fan"


class DeviceStatus(str, Enum):
    """Power state."""
    ON = "on"
    OFF = "off"


class Device(Base):
    """Smart home device model."""

    __tablename__ = "devices"
    __table_args__ = (
        UniqueConstraint("house_name", "name", name="uq_devices_house_name"),
        UniqueConstraint("house_name", "device_id", name="uq_devices_house_device_id"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    # House-scoped sequence, not globally unique
    device_id: Mapped[int] = mapped_column(BigInteger)
    house_name: Mapped[str] = mapped_column(String(255), index=True)

    # Device info
    name: Mapped[str] = mapped_column(String(255))
    device_type: Mapped[str] = mapped_column(String(20))
    location: Mapped[str] = mapped_column(
        String(255),
        default=UNKNOWN_LOCATION,
        index=True
    )
    status: Mapped[str] = mapped_column(String(10), default=DeviceStatus.OFF.value)
    approved: Mapped[bool] = mapped_column(Boolean, default=True)

    # Type specific attributes
    temperature: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    brightness: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    speed: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    # Legacy mirror of temperature
    value: Mapped[int] = mapped_column(Integer, default=0)

    # People
    owner_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    last_toggled_by_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )

    # Optimistic lock counter
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # Timestamps (UTC)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    owner: Mapped[Optional["User"]] = relationship(
        foreign_keys=[owner_id],
        lazy="selectin"
    )
    last_toggled_by: Mapped[Optional["User"]] = relationship(
        foreign_keys=[last_toggled_by_id],
        lazy="selectin"
    )
    activity_log: Mapped[List["DeviceActivity"]] = relationship(
        back_populates="device",
        cascade="all, delete-orphan",
        order_by="DeviceActivity.timestamp",
        lazy="selectin"
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<Device #{self.device_id} {self.name} ({self.device_type})>"


class DeviceActivity(Base):
    """One entry of a device's append-only activity log."""

    __tablename__ = "device_activity"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    device_pk: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("devices.id", ondelete="CASCADE"),
        index=True
    )
    user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    # Name snapshot at the time of the action
    user_name: Mapped[str] = mapped_column(String(255))
    action: Mapped[str] = mapped_column(String(255))
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )

    device: Mapped["Device"] = relationship(back_populates="activity_log")

    def __repr__(self) -> str:
        return f"<DeviceActivity {self.user_name}: {self.action}>"
