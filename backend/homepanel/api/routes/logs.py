"""
Audit log endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from homepanel.core.database import get_db
from homepanel.core.security import get_current_principal
from homepanel.core.tenancy import Principal
from homepanel.schemas.audit import AuditLogListResponse
from homepanel.services.audit_service import AuditService

router = APIRouter()


@router.get("", response_model=AuditLogListResponse)
async def list_logs(
    log_type: Optional[str] = Query(None, alias="type"),
    limit: Optional[int] = Query(None, ge=1, le=500),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Recent audit entries of the caller's house, newest first."""
    logs = await AuditService(db).list_logs(principal, log_type=log_type, limit=limit)
    return AuditLogListResponse(logs=logs)
