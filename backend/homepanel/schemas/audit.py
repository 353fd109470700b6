"""
Audit log schemas.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class AuditLogEntry(BaseModel):
    """Single audit entry."""
    id: str
    action: str
    log_type: str
    timestamp: datetime
    device_id: Optional[str] = None
    user_id: Optional[str] = None
    user_name: str = "System"


class AuditLogListResponse(BaseModel):
    logs: List[AuditLogEntry]
