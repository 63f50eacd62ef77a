from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class AuditLogEntry(BaseModel):
    id: str
    userId: Optional[str] = None
    userEmail: str
    userName: str = ""
    action: str
    resource: str
    resourceId: Optional[str] = None
    details: Dict[str, Any] = {}
    ipAddress: Optional[str] = None
    userAgent: Optional[str] = None
    status: str
    errorMessage: Optional[str] = None
    timestamp: datetime


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    totalPages: int


class AuditLogPage(BaseModel):
    logs: List[AuditLogEntry]
    pagination: Pagination


class AuditLogStatistics(BaseModel):
    total: int
    byAction: Dict[str, int]
    byResource: Dict[str, int]
    byStatus: Dict[str, int]
