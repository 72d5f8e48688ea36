"""Domain error taxonomy shared by every domain.

Services raise these; ``register_error_handlers`` renders them as
``{"detail": ..., "reason": ...}`` JSON with the matching HTTP status.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class DomainError(Exception):
    """Base class for errors that map onto an HTTP response"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    reason = "internal_error"

    def __init__(self, message: Optional[str] = None, *, reason: Optional[str] = None):
        self.message = message or self.reason.replace("_", " ")
        if reason:
            self.reason = reason
        super().__init__(self.message)


class AuthenticationError(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED
    reason = "unauthenticated"


class AuthorizationError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    reason = "forbidden"


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    reason = "not_found"


class InvalidStateError(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    reason = "invalid_state"


class ValidationError(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    reason = "validation_failed"


class ConflictError(InvalidStateError):
    status_code = status.HTTP_409_CONFLICT
    reason = "already_exists"


class ExternalServiceError(DomainError):
    status_code = status.HTTP_502_BAD_GATEWAY
    reason = "external_service_error"


class PaymentReconciliationError(ExternalServiceError):
    """Funds were captured but the local unlock could not be recorded."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    reason = "reconciliation_required"


async def _domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            f"{type(exc).__name__} | path={request.url.path} | reason={exc.reason} | {exc.message}"
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "reason": exc.reason},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, _domain_error_handler)
