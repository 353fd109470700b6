"""
Audit Service - append-only house audit trail.

Appends are best-effort: they run after the primary state change has
been committed, and a failed append is logged and dropped rather than
undoing that change.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from homepanel.config import get_settings
from homepanel.core.tenancy import Principal, require_admin
from homepanel.models.audit_log import AuditLog, AuditLogType
from homepanel.models.user import User
from homepanel.schemas.audit import AuditLogEntry

logger = logging.getLogger(__name__)
settings = get_settings()

SECURITY_LOG_TYPES = (AuditLogType.SECURITY.value, AuditLogType.PASSWORD_REQUEST.value)


class AuditService:
    """Writes and reads the audit log of one house."""

    def __init__(self, db: AsyncSession):
        self._db = db

    async def record(
        self,
        house_name: str,
        action: str,
        user_id: Optional[str] = None,
        device_id: Optional[str] = None,
        log_type: AuditLogType = AuditLogType.INFO,
    ) -> Optional[AuditLog]:
        """Append one entry. Returns None if the write failed."""
        entry = AuditLog(
            house_name=house_name,
            action=action,
            user_id=user_id,
            device_id=device_id,
            log_type=log_type.value,
        )
        self._db.add(entry)
        try:
            await self._db.commit()
        except SQLAlchemyError as e:
            await self._db.rollback()
            logger.warning(f"Audit log append failed (non-critical) for '{action}': {e}")
            return None
        return entry

    async def list_logs(
        self,
        principal: Principal,
        log_type: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[AuditLogEntry]:
        """Most recent entries of the caller's house, newest first."""
        query = select(AuditLog, User.name).outerjoin(User, User.id == AuditLog.user_id)
        query = query.where(AuditLog.house_name == principal.house_name)

        if log_type:
            query = query.where(AuditLog.log_type == log_type)
        # Members never see password requests
        if not principal.is_admin:
            query = query.where(AuditLog.log_type != AuditLogType.PASSWORD_REQUEST.value)

        return await self._fetch(query, limit)

    async def list_security_logs(self, principal: Principal) -> List[AuditLogEntry]:
        """SECURITY and PASSWORD_REQUEST entries for the admin."""
        require_admin(principal, "view security logs")
        query = (
            select(AuditLog, User.name)
            .outerjoin(User, User.id == AuditLog.user_id)
            .where(
                AuditLog.house_name == principal.house_name,
                AuditLog.log_type.in_(SECURITY_LOG_TYPES),
            )
        )
        return await self._fetch(query, None)

    async def _fetch(self, query, limit: Optional[int]) -> List[AuditLogEntry]:
        query = query.order_by(AuditLog.timestamp.desc()).limit(limit or settings.audit_log_limit)
        result = await self._db.execute(query)
        return [
            AuditLogEntry(
                id=log.id,
                action=log.action,
                log_type=log.log_type,
                timestamp=log.timestamp,
                device_id=log.device_id,
                user_id=log.user_id,
                user_name=user_name or "System",
            )
            for log, user_name in result.all()
        ]
