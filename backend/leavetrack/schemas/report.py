# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from pydantic import BaseModel

from leavetrack.models.enums import HalfDaySession, LeaveCategory, RequestStatus
from leavetrack.schemas.request import RequestResponse

# ---------------------------------------------------------------------------
# Team calendar
# ---------------------------------------------------------------------------


class CalendarEntry(BaseModel):
    """One pending or approved request that touches the calendar window."""

    request_id: uuid.UUID
    employee_id: uuid.UUID
    employee_name: str | None
    category: LeaveCategory
    status: RequestStatus
    start_date: date
    end_date: date
    is_half_day: bool
    half_day_session: HalfDaySession | None
    day_count: float
    # Portion of the request that falls inside the window.
    days_in_window: float


class TeamCalendarResponse(BaseModel):
    start: date
    end: date
    items: list[CalendarEntry]
    total: int


# ---------------------------------------------------------------------------
# Leave summary
# ---------------------------------------------------------------------------


class StatusSummary(BaseModel):
    """Count and total days of the caller's own requests in one status."""

    status: RequestStatus
    count: int
    days: float


class TeamMemberSummary(BaseModel):
    """Year-to-date leave of one direct report."""

    employee_id: uuid.UUID
    name: str
    requests: int
    days: float
    on_leave_today: bool


class LeaveSummaryResponse(BaseModel):
    """Dashboard view of the caller's leave, approvals and team."""

    today: date
    by_status: list[StatusSummary]
    recent: list[RequestResponse]
    upcoming: list[RequestResponse]
    pending_approvals: list[RequestResponse]
    pending_approval_count: int
    team: list[TeamMemberSummary]
