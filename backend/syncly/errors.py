"""Domain exceptions and their HTTP mapping.

WHAT:
    Small exception hierarchy raised by services (shop scope, plan gate,
    messenger, AI chat) plus `register_exception_handlers` which maps them to
    `{"detail": ...}` JSON responses.

WHY:
    Services stay free of HTTP concerns; routers can still raise
    `HTTPException` directly for request-level problems.

Taxonomy:
    UnauthenticatedError   -> 401
    ValidationError        -> 400
    PlanLimitError         -> 403
    ResourceNotFoundError  -> 404 (also for failed ownership checks)
    UpstreamError          -> 502
    anything else          -> 500 generic message
"""

import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class SynclyError(Exception):
    """Base class for domain errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"detail": self.message}
        if self.details:
            payload.update(self.details)
        return payload


class UnauthenticatedError(SynclyError):
    status_code = status.HTTP_401_UNAUTHORIZED


class ValidationError(SynclyError):
    status_code = status.HTTP_400_BAD_REQUEST


class PlanLimitError(SynclyError):
    """Raised when the current plan does not allow an action."""

    status_code = status.HTTP_403_FORBIDDEN


class ResourceNotFoundError(SynclyError):
    """Raised when a row does not exist or is not owned by the resolved shop."""

    status_code = status.HTTP_404_NOT_FOUND


class UpstreamError(SynclyError):
    """Raised when Facebook Graph or the LLM provider call fails.

    The provider's raw error is logged, never returned to the client.
    """

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, message: str, provider: Optional[str] = None):
        self.provider = provider
        super().__init__(message)


def register_exception_handlers(app: FastAPI, *, expose_details: bool = False) -> None:
    """Install JSON handlers for domain, validation and unexpected errors."""

    @app.exception_handler(SynclyError)
    async def handle_domain_error(request: Request, exc: SynclyError):
        if exc.status_code >= 500:
            logger.error(f"[ERROR] {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception(f"[ERROR] Unhandled error on {request.method} {request.url.path}")
        content: Dict[str, Any] = {"detail": "Internal Server Error"}
        if expose_details:
            content["traceback"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)
