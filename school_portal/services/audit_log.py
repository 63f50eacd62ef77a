# school_portal/services/audit_log.py
import math
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pymongo.database import Database
from pymongo.errors import PyMongoError

from school_portal.core.config import CONFIG
from school_portal.core.logger import get_logger

logger = get_logger(__name__)


class AuditLogService:
    def __init__(self, database: Database):
        self._col = database["audit_logs"]

    def log(
        self,
        user: Optional[dict],
        action: str,
        resource: str,
        resource_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status: str = "success",
        error_message: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        """Write one entry. A failed write is logged and never breaks the calling request."""
        user = user or {}
        entry = {
            "userId": str(user["_id"]) if user.get("_id") is not None else None,
            "userEmail": user.get("email", "anonymous"),
            "userName": f"{user.get('firstName', '')} {user.get('lastName', '')}".strip(),
            "action": action,
            "resource": resource,
            "resourceId": resource_id,
            "details": details or {},
            "ipAddress": ip_address,
            "userAgent": user_agent,
            "status": status,
            "errorMessage": error_message,
            "timestamp": datetime.now(timezone.utc),
        }
        try:
            self._col.insert_one(entry)
        except PyMongoError as e:
            logger.error("Failed to write audit log %s/%s: %s", resource, action, e)

    def log_success(self, user, action, resource, **kwargs) -> None:
        self.log(user, action, resource, status="success", **kwargs)

    def log_failure(self, user, action, resource, error_message: str, **kwargs) -> None:
        self.log(user, action, resource, status="failure", error_message=error_message, **kwargs)

    def _query(self, filters: Dict[str, Any]) -> dict:
        query: dict = {}
        for key in ("userId", "userEmail", "action", "resource", "resourceId", "status"):
            if filters.get(key):
                query[key] = filters[key]
        if filters.get("startDate") or filters.get("endDate"):
            ts = {}
            if filters.get("startDate"):
                ts["$gte"] = filters["startDate"]
            if filters.get("endDate"):
                ts["$lte"] = filters["endDate"]
            query["timestamp"] = ts
        return query

    def list(self, filters: Dict[str, Any], page: int = 1, limit: Optional[int] = None) -> dict:
        limit = limit or CONFIG.AUDIT_LOG_PAGE_LIMIT
        page = max(1, page)
        query = self._query(filters)
        total = self._col.count_documents(query)
        logs = list(
            self._col.find(query).sort("timestamp", -1).skip((page - 1) * limit).limit(limit)
        )
        return {
            "logs": logs,
            "pagination": {
                "total": total,
                "page": page,
                "limit": limit,
                "totalPages": math.ceil(total / limit) if limit else 0,
            },
        }

    def statistics(self, filters: Dict[str, Any]) -> dict:
        query = self._query(filters)
        stats = {"total": self._col.count_documents(query)}
        for field, key in (("action", "byAction"), ("resource", "byResource"), ("status", "byStatus")):
            pipeline = [
                {"$match": query},
                {"$group": {"_id": f"${field}", "count": {"$sum": 1}}},
            ]
            stats[key] = {str(r["_id"]): r["count"] for r in self._col.aggregate(pipeline)}
        return stats


def audit(database: Database, request, user: Optional[dict], action: str, resource: str,
          resource_id: Optional[str] = None, **kwargs) -> None:
    """Route helper: log a successful action with the caller's address and user agent."""
    AuditLogService(database).log_success(
        user,
        action,
        resource,
        resource_id=resource_id,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        **kwargs,
    )
