"""
Domain error kinds for the outlet subsystem.

Forbidden means the caller may never do this (role or identity), while
InvalidOperation means the session's kind or current state rules it out.
Callers are expected to treat them differently: never retry the former,
maybe retry the latter after the state changes.
"""
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from backend.app.core.logging import get_logger

logger = get_logger(__name__)


class OutletError(Exception):
    """Base class for every error raised by the outlet core."""

    code = "outlet_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(OutletError):
    """Unknown session id (or a session that belongs to another org)."""

    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ForbiddenError(OutletError):
    """RBAC denial."""

    code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class InvalidOperationError(OutletError):
    """Kind or state constraint violation."""

    code = "invalid_operation"
    status_code = status.HTTP_409_CONFLICT


class OutletValidationError(OutletError):
    """Malformed input that slipped past request-schema validation."""

    code = "validation_error"
    status_code = 422


class DependencyError(OutletError):
    """An external collaborator (reply generator) failed or is unavailable."""

    code = "dependency_error"
    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, detail: str, dependency: Optional[str] = None):
        super().__init__(detail)
        self.dependency = dependency


async def outlet_error_handler(request: Request, exc: OutletError) -> JSONResponse:
    level = logger.warning if exc.status_code >= 500 else logger.info
    level(
        f"{exc.code}: {exc.detail}",
        extra={
            "extra_data": {
                "path": request.url.path,
                "status_code": exc.status_code,
                "error": exc.code,
            }
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": exc.code},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OutletError, outlet_error_handler)
