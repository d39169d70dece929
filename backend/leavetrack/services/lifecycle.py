"""Leave request state machine.

States::

    pending --approve--> approved --cancel (before start)--> cancelled
       +--reject--> rejected
       +--cancel--> cancelled

``rejected`` and ``cancelled`` are terminal. An approved request whose start
date has been reached can no longer change. Guards are pure: they look at a
request (or a draft) and the current date and return the error that blocks
the transition, or ``None``. Ledger effects are applied by the coordinator.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from leavetrack.config import get_settings
from leavetrack.exceptions import (
    CancellationWindowClosed,
    CommentRequired,
    EmptyReason,
    InvalidApprover,
    InvalidDateRange,
    InvalidState,
    InvariantViolation,
    LeaveError,
    ReasonTooLong,
    SpanTooLong,
)
from leavetrack.models.enums import RequestStatus
from leavetrack.services.duration import calculate_requested_half_days, days_to_half_days, half_days_to_days

if TYPE_CHECKING:
    import uuid
    from datetime import date

    from leavetrack.models.request import LeaveRequest

TERMINAL_STATUSES = frozenset({RequestStatus.REJECTED, RequestStatus.CANCELLED})

# Allowed (from, to) status pairs.
TRANSITIONS: frozenset[tuple[RequestStatus, RequestStatus]] = frozenset(
    {
        (RequestStatus.PENDING, RequestStatus.APPROVED),
        (RequestStatus.PENDING, RequestStatus.REJECTED),
        (RequestStatus.PENDING, RequestStatus.CANCELLED),
        (RequestStatus.APPROVED, RequestStatus.CANCELLED),
    }
)


def can_transition(current: RequestStatus | str, target: RequestStatus | str) -> bool:
    return (RequestStatus(current), RequestStatus(target)) in TRANSITIONS


def is_immutable(request: LeaveRequest, today: date) -> bool:
    """Terminal states, and approved leave that has already started."""
    status = RequestStatus(request.status)
    if status in TERMINAL_STATUSES:
        return True
    return status is RequestStatus.APPROVED and request.start_date <= today


def validate_reason(reason: str | None) -> LeaveError | None:
    max_length = get_settings().reason_max_length
    if reason is None or not reason.strip():
        return EmptyReason()
    if len(reason) > max_length:
        return ReasonTooLong(f"Reason must be at most {max_length} characters", max_length=max_length)
    return None


def validate_submission(
    *,
    start_date: date,
    end_date: date,
    is_half_day: bool,
    reason: str | None,
    today: date,
) -> LeaveError | None:
    """Input rules for a new request: date order, no backdating, span, reason."""
    if start_date > end_date:
        return InvalidDateRange("start_date cannot be after end_date")
    if start_date < today:
        return InvalidDateRange("Cannot apply for leave in the past", today=today.isoformat())
    if is_half_day and start_date != end_date:
        return InvalidDateRange("A half-day request must start and end on the same date")

    max_span_days = get_settings().max_span_days
    requested = calculate_requested_half_days(start_date, end_date, is_half_day)
    if requested > days_to_half_days(max_span_days):
        return SpanTooLong(
            f"Leave cannot span more than {max_span_days} days",
            max_span_days=max_span_days,
            requested=half_days_to_days(requested),
        )
    return validate_reason(reason)


def _invalid_state(request: LeaveRequest) -> LeaveError:
    return InvalidState(f"Request is {request.status}", request_id=request.id, status=request.status)


def _require_transition(request: LeaveRequest, target: RequestStatus) -> LeaveError | None:
    if not can_transition(request.status, target):
        return _invalid_state(request)
    return None


def _require_pending(request: LeaveRequest) -> LeaveError | None:
    if RequestStatus(request.status) is not RequestStatus.PENDING:
        return _invalid_state(request)
    return None


def guard_approve(request: LeaveRequest) -> LeaveError | None:
    if error := _require_transition(request, RequestStatus.APPROVED):
        return error
    expected = calculate_requested_half_days(request.start_date, request.end_date, request.is_half_day)
    if expected != request.requested_half_days:
        return InvariantViolation(
            "Stored day count does not match the request dates",
            request_id=request.id,
            stored=request.requested_half_days,
            expected=expected,
        )
    return None


def guard_reject(request: LeaveRequest, comment: str | None) -> LeaveError | None:
    if error := _require_transition(request, RequestStatus.REJECTED):
        return error
    if comment is None or not comment.strip():
        return CommentRequired()
    return None


def guard_cancel(request: LeaveRequest, today: date) -> LeaveError | None:
    if error := _require_transition(request, RequestStatus.CANCELLED):
        return error
    if is_immutable(request, today):
        return CancellationWindowClosed(request_id=request.id, start_date=request.start_date.isoformat())
    return None


def guard_edit(request: LeaveRequest, reason: str | None) -> LeaveError | None:
    if error := _require_pending(request):
        return error
    if reason is not None:
        return validate_reason(reason)
    return None


def guard_reassign(request: LeaveRequest, approver_id: uuid.UUID) -> LeaveError | None:
    if error := _require_pending(request):
        return error
    if approver_id == request.employee_id:
        return InvalidApprover("An employee cannot approve their own leave")
    return None
