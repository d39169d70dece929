from __future__ import annotations

import enum
import logging
import uuid
from typing import Any, ClassVar

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    detail: str | None = None
    status_code: int
    context: dict[str, Any] | None = None


class AppError(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Leave engine error taxonomy
# ---------------------------------------------------------------------------


class ErrorKind(enum.StrEnum):
    """Broad class of a leave error, used to decide how it is surfaced and logged."""

    VALIDATION = "validation"
    BUSINESS = "business"
    AUTHORIZATION = "authorization"
    CONCURRENCY = "concurrency"
    INVARIANT = "invariant"


class LeaveError(AppError):
    """An expected failure of a leave operation.

    Subclasses fix the kind and default HTTP status. ``context`` carries the
    details a caller needs to explain the refusal (remaining balance,
    conflicting request id, ...).
    """

    kind: ClassVar[ErrorKind] = ErrorKind.VALIDATION
    default_status: ClassVar[int] = status.HTTP_400_BAD_REQUEST
    default_message: ClassVar[str] = "Invalid leave operation"

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        **context: Any,
    ) -> None:
        super().__init__(message or self.default_message, status_code or self.default_status)
        self.context = {k: str(v) if isinstance(v, uuid.UUID) else v for k, v in context.items()}

    @property
    def code(self) -> str:
        return type(self).__name__


class InvalidDateRange(LeaveError):
    default_message = "Invalid leave date range"


class SpanTooLong(LeaveError):
    default_message = "Requested leave span exceeds the maximum allowed"


class EmptyReason(LeaveError):
    default_message = "A reason is required"


class ReasonTooLong(LeaveError):
    default_message = "Reason is too long"


class CommentRequired(LeaveError):
    default_message = "A comment is required when rejecting a request"


class InvalidApprover(LeaveError):
    default_message = "Invalid approver for this request"


class AllocationBelowUsage(LeaveError):
    default_message = "Allocation cannot be lower than the days already used"


class OverlappingRequest(LeaveError):
    kind = ErrorKind.BUSINESS
    default_message = "Request overlaps with an existing pending or approved request"


class InsufficientBalance(LeaveError):
    kind = ErrorKind.BUSINESS
    default_message = "Insufficient leave balance"


class CancellationWindowClosed(LeaveError):
    kind = ErrorKind.BUSINESS
    default_message = "Approved leave that has already started cannot be cancelled"


class Forbidden(LeaveError):
    kind = ErrorKind.AUTHORIZATION
    default_status = status.HTTP_403_FORBIDDEN
    default_message = "Not permitted to perform this action"


class NotFound(LeaveError):
    kind = ErrorKind.AUTHORIZATION
    default_status = status.HTTP_404_NOT_FOUND
    default_message = "Leave request not found"


class InvalidState(LeaveError):
    kind = ErrorKind.CONCURRENCY
    default_status = status.HTTP_409_CONFLICT
    default_message = "Request is not in a state that allows this action"


class ConcurrentModification(LeaveError):
    kind = ErrorKind.CONCURRENCY
    default_status = status.HTTP_409_CONFLICT
    default_message = "Request was modified concurrently; reload and retry"


class InvariantViolation(LeaveError):
    kind = ErrorKind.INVARIANT
    default_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Ledger invariant violated"


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    context = exc.context if isinstance(exc, LeaveError) else None
    if isinstance(exc, LeaveError) and exc.kind is ErrorKind.INVARIANT:
        logger.error("Invariant violation on %s %s: %s %s", request.method, request.url.path, exc.message, context)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            detail=exc.message,
            status_code=exc.status_code,
            context=context or None,
        ).model_dump(),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="ValidationError",
            detail=str(exc.errors()),
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        ).model_dump(),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
