"""
Audit log model - house-wide append-only event history.

Rows are never updated or deleted. Device and user references are
plain ids so entries outlive the entities they mention.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from homepanel.core.database import Base


class AuditLogType(str, Enum):
    """Audit entry categories."""
    INFO = "info"
    ERROR = "error"
    WARNING = "warning"
    PASSWORD_REQUEST = "PASSWORD_REQUEST"
    SYSTEM = "SYSTEM"
    SECURITY = "SECURITY"


class AuditLog(Base):
    """Audit log entry."""

    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    house_name: Mapped[str] = mapped_column(String(255), index=True)
    device_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    action: Mapped[str] = mapped_column(String(500))
    log_type: Mapped[str] = mapped_column(
        String(32),
        default=AuditLogType.INFO.value,
        index=True
    )
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True
    )

    def __repr__(self) -> str:
        return f"<AuditLog {self.log_type}: {self.action}>"
