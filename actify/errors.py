"""
Domain exceptions raised by the service layer.

Routers translate these into HTTP responses with ``to_http_exception`` so the
services stay free of FastAPI imports.
"""
from typing import Any, Dict, List, Optional

from fastapi import HTTPException


class ActifyError(Exception):
    status_code = 400
    code = "ERROR"

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(ActifyError):
    status_code = 400
    code = "VALIDATION_ERROR"


class PermissionDenied(ActifyError):
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(ActifyError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(ActifyError):
    status_code = 409
    code = "CONFLICT"


class CalendarConflictError(ConflictError):
    code = "CALENDAR_CONFLICT"

    def __init__(self, message: str, *, conflicts: Optional[List[Dict[str, Any]]] = None,
                 outside_business_hours: bool = False):
        super().__init__(message)
        self.conflicts = conflicts or []
        self.outside_business_hours = outside_business_hours


def to_http_exception(exc: ActifyError) -> HTTPException:
    if isinstance(exc, CalendarConflictError):
        return HTTPException(
            status_code=exc.status_code,
            detail={
                "error": exc.message,
                "code": exc.code,
                "conflicts": exc.conflicts,
                "outsideBusinessHours": exc.outside_business_hours,
            },
        )
    return HTTPException(status_code=exc.status_code, detail=exc.message)


__all__ = [
    "ActifyError",
    "ValidationError",
    "PermissionDenied",
    "NotFoundError",
    "ConflictError",
    "CalendarConflictError",
    "to_http_exception",
]
