from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pymongo.database import Database

from school_portal.core.database import get_db, serialize_doc
from school_portal.core.security import require_permission
from school_portal.models.audit_schemas import AuditLogPage, AuditLogStatistics
from school_portal.services.audit_log import AuditLogService

router = APIRouter(
    prefix="/audit-logs",
    tags=["Audit Logs"],
    dependencies=[Depends(require_permission("audit_logs.read"))],
)


def _filters(userId, userEmail, action, resource, resourceId, status, startDate, endDate) -> dict:
    return {
        "userId": userId,
        "userEmail": userEmail,
        "action": action,
        "resource": resource,
        "resourceId": resourceId,
        "status": status,
        "startDate": startDate,
        "endDate": endDate,
    }


@router.get("", response_model=AuditLogPage)
def list_audit_logs(
    userId: str | None = None,
    userEmail: str | None = None,
    action: str | None = None,
    resource: str | None = None,
    resourceId: str | None = None,
    status: str | None = None,
    startDate: datetime | None = None,
    endDate: datetime | None = None,
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1, le=500),
    db: Database = Depends(get_db),
):
    filters = _filters(userId, userEmail, action, resource, resourceId, status, startDate, endDate)
    result = AuditLogService(db).list(filters, page=page, limit=limit)
    logs = []
    for doc in result["logs"]:
        entry = serialize_doc(doc)
        entry["id"] = entry.pop("_id")
        logs.append(entry)
    return {"logs": logs, "pagination": result["pagination"]}


@router.get("/statistics", response_model=AuditLogStatistics)
def audit_log_statistics(
    startDate: datetime | None = None,
    endDate: datetime | None = None,
    db: Database = Depends(get_db),
):
    filters = _filters(None, None, None, None, None, None, startDate, endDate)
    return AuditLogService(db).statistics(filters)
