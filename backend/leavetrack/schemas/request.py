# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field

from leavetrack.models.enums import Decision, HalfDaySession, LeaveCategory, RequestStatus

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class SubmitRequestPayload(BaseModel):
    """Request body for submitting a new leave request.

    Date ordering, span and reason rules are enforced by the lifecycle guards
    so they surface as typed leave errors rather than schema errors.
    """

    category: LeaveCategory
    start_date: date
    end_date: date
    reason: str = ""
    is_half_day: bool = False
    half_day_session: HalfDaySession | None = None
    contact_during_leave: str | None = Field(default=None, max_length=255)
    idempotency_key: str | None = Field(default=None, max_length=255)


class DecisionPayload(BaseModel):
    """Request body for approve/reject actions."""

    decision: Decision
    comment: str | None = Field(default=None, max_length=1000)


class UpdateRequestPayload(BaseModel):
    """Fields the owner may change while a request is pending."""

    reason: str | None = None
    contact_during_leave: str | None = Field(default=None, max_length=255)


class ReassignApproverPayload(BaseModel):
    """Request body for moving a pending request to another approver."""

    approver_id: uuid.UUID


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class RequestResponse(BaseModel):
    """Response schema for a single leave request."""

    id: uuid.UUID
    employee_id: uuid.UUID
    approver_id: uuid.UUID | None
    category: LeaveCategory
    start_date: date
    end_date: date
    is_half_day: bool
    half_day_session: HalfDaySession | None
    day_count: float
    reason: str
    contact_during_leave: str | None
    status: RequestStatus
    decision_comment: str | None
    decided_at: datetime | None
    decided_by: uuid.UUID | None
    applied_at: datetime
    idempotency_key: str | None
    version: int


class RequestListResponse(BaseModel):
    """Paginated list of leave requests."""

    items: list[RequestResponse]
    total: int
