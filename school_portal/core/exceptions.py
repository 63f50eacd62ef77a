"""
Domain exceptions for the school portal.

Services raise these; `register_exception_handlers` turns them into JSON
responses of the form {"detail": ..., "code": ...}.
"""

from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class PortalError(Exception):
    """Base exception for all school portal errors"""

    status_code = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body = {"detail": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(PortalError):
    """Requested document does not exist"""

    status_code = 404

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            f"{resource} not found.",
            code="NOT_FOUND",
            details={"resource": resource, "id": resource_id},
        )


class ValidationFailed(PortalError):
    """Payload or uploaded file could not be accepted"""

    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="VALIDATION_FAILED", details=details)


class ExternalServiceError(PortalError):
    """Model-serving endpoint failed or was unreachable"""

    status_code = 502

    def __init__(self, message: str):
        super().__init__(message, code="EXTERNAL_SERVICE_ERROR")


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(PortalError)
    async def _portal_error_handler(request: Request, exc: PortalError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
