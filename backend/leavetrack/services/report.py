"""Reporting service: team leave calendar and the per-user leave summary.

Both views are read-only and scoped with the same rules as request reads:
a caller only ever sees requests ``can_view`` would let them open.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlmodel import col

from leavetrack.config import get_settings
from leavetrack.exceptions import Forbidden, InvalidDateRange
from leavetrack.models.enums import HalfDaySession, LeaveCategory, RequestStatus
from leavetrack.models.request import LeaveRequest
from leavetrack.result import Err, Ok
from leavetrack.schemas.report import (
    CalendarEntry,
    LeaveSummaryResponse,
    StatusSummary,
    TeamCalendarResponse,
    TeamMemberSummary,
)
from leavetrack.services.authorization import decision_clause, is_elevated, visibility_clause
from leavetrack.services.clock import get_clock
from leavetrack.services.duration import calculate_requested_half_days, half_days_to_days
from leavetrack.services.employee import get_employee_directory
from leavetrack.services.overlap import ACTIVE_STATUSES, ranges_overlap
from leavetrack.services.request import build_request_response

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leavetrack.result import Result
    from leavetrack.schemas.auth import AuthContext

RECENT_LIMIT = 5
UPCOMING_LIMIT = 5
PENDING_APPROVALS_LIMIT = 10


async def _team_names(auth: AuthContext) -> dict[uuid.UUID, str | None]:
    """The caller and their direct reports, keyed by employee id."""
    directory = get_employee_directory()
    me = await directory.get_employee(auth.user_id)
    names: dict[uuid.UUID, str | None] = {auth.user_id: me.name if me is not None else None}
    for report in await directory.list_reports(auth.user_id):
        names[report.id] = report.name
    return names


def _days_in_window(request: LeaveRequest, start: date, end: date) -> float:
    clipped_start = max(request.start_date, start)
    clipped_end = min(request.end_date, end)
    return half_days_to_days(calculate_requested_half_days(clipped_start, clipped_end, request.is_half_day))


async def get_team_calendar(
    session: AsyncSession,
    auth: AuthContext,
    start: date,
    end: date,
    employee_id: uuid.UUID | None = None,
) -> Result[TeamCalendarResponse]:
    """Pending and approved leave of the caller's team overlapping ``[start, end]``.

    The team is the caller plus their direct reports in the employee
    directory; elevated roles see everyone. A request that began before the
    window but is still running inside it is included.
    """
    if start > end:
        return Err(InvalidDateRange("start cannot be after end"))
    max_days = get_settings().calendar_max_days
    if (end - start).days + 1 > max_days:
        return Err(InvalidDateRange(f"Calendar window cannot exceed {max_days} days", max_days=max_days))

    elevated = is_elevated(auth)
    names = await _team_names(auth)
    if employee_id is not None and not elevated and employee_id not in names:
        return Err(Forbidden())

    filters = [
        visibility_clause(auth),
        col(LeaveRequest.status).in_(ACTIVE_STATUSES),
        col(LeaveRequest.start_date) <= end,
        col(LeaveRequest.end_date) >= start,
    ]
    if employee_id is not None:
        filters.append(col(LeaveRequest.employee_id) == employee_id)
    elif not elevated:
        filters.append(col(LeaveRequest.employee_id).in_(list(names)))

    result = await session.execute(
        select(LeaveRequest)
        .where(*filters)
        .order_by(col(LeaveRequest.start_date), col(LeaveRequest.employee_id))
    )
    requests = list(result.scalars().all())

    directory = get_employee_directory()
    for request in requests:
        if request.employee_id not in names:
            employee = await directory.get_employee(request.employee_id)
            names[request.employee_id] = employee.name if employee is not None else None

    items = [
        CalendarEntry(
            request_id=r.id,
            employee_id=r.employee_id,
            employee_name=names[r.employee_id],
            category=LeaveCategory(r.category),
            status=RequestStatus(r.status),
            start_date=r.start_date,
            end_date=r.end_date,
            is_half_day=r.is_half_day,
            half_day_session=HalfDaySession(r.half_day_session) if r.half_day_session else None,
            day_count=half_days_to_days(r.requested_half_days),
            days_in_window=_days_in_window(r, start, end),
        )
        for r in requests
    ]
    return Ok(TeamCalendarResponse(start=start, end=end, items=items, total=len(items)))


async def _status_breakdown(session: AsyncSession, employee_id: uuid.UUID) -> list[StatusSummary]:
    result = await session.execute(
        select(
            col(LeaveRequest.status),
            func.count(),
            func.coalesce(func.sum(col(LeaveRequest.requested_half_days)), 0),
        )
        .where(col(LeaveRequest.employee_id) == employee_id)
        .group_by(col(LeaveRequest.status))
    )
    totals = {status: (count, half_days) for status, count, half_days in result.all()}
    return [
        StatusSummary(
            status=status,
            count=totals.get(status.value, (0, 0))[0],
            days=half_days_to_days(totals.get(status.value, (0, 0))[1]),
        )
        for status in RequestStatus
    ]


async def _team_summary(session: AsyncSession, auth: AuthContext, today: date) -> list[TeamMemberSummary]:
    reports = sorted(await get_employee_directory().list_reports(auth.user_id), key=lambda e: e.name)
    if not reports:
        return []

    year_start = date(today.year, 1, 1)
    result = await session.execute(
        select(LeaveRequest).where(
            visibility_clause(auth),
            col(LeaveRequest.employee_id).in_([e.id for e in reports]),
            col(LeaveRequest.status).in_(ACTIVE_STATUSES),
            col(LeaveRequest.end_date) >= year_start,
        )
    )
    by_employee: dict[uuid.UUID, list[LeaveRequest]] = {}
    for request in result.scalars().all():
        by_employee.setdefault(request.employee_id, []).append(request)

    summaries = []
    for report in reports:
        requests = by_employee.get(report.id, [])
        this_year = [r for r in requests if r.start_date >= year_start]
        summaries.append(
            TeamMemberSummary(
                employee_id=report.id,
                name=report.name,
                requests=len(this_year),
                days=half_days_to_days(sum(r.requested_half_days for r in this_year)),
                on_leave_today=any(
                    r.status == RequestStatus.APPROVED.value and ranges_overlap(r.start_date, r.end_date, today, today)
                    for r in requests
                ),
            )
        )
    return summaries


async def get_leave_summary(session: AsyncSession, auth: AuthContext) -> Result[LeaveSummaryResponse]:
    """Dashboard for the caller.

    - ``by_status``: count and days of the caller's own requests per status
    - ``recent``: the caller's latest applications
    - ``upcoming``: approved leave starting today or later that the caller may view
    - ``pending_approvals``: oldest pending requests waiting on the caller
    - ``team``: year-to-date pending and approved leave of direct reports
    """
    today = get_clock().today()

    recent_result = await session.execute(
        select(LeaveRequest)
        .where(col(LeaveRequest.employee_id) == auth.user_id)
        .order_by(col(LeaveRequest.applied_at).desc())
        .limit(RECENT_LIMIT)
    )
    upcoming_result = await session.execute(
        select(LeaveRequest)
        .where(
            visibility_clause(auth),
            col(LeaveRequest.status) == RequestStatus.APPROVED.value,
            col(LeaveRequest.start_date) >= today,
        )
        .order_by(col(LeaveRequest.start_date))
        .limit(UPCOMING_LIMIT)
    )

    pending_filters = [decision_clause(auth), col(LeaveRequest.status) == RequestStatus.PENDING.value]
    pending_count = await session.execute(select(func.count()).select_from(LeaveRequest).where(*pending_filters))
    pending_result = await session.execute(
        select(LeaveRequest)
        .where(*pending_filters)
        .order_by(col(LeaveRequest.applied_at))
        .limit(PENDING_APPROVALS_LIMIT)
    )

    return Ok(
        LeaveSummaryResponse(
            today=today,
            by_status=await _status_breakdown(session, auth.user_id),
            recent=[build_request_response(r) for r in recent_result.scalars().all()],
            upcoming=[build_request_response(r) for r in upcoming_result.scalars().all()],
            pending_approvals=[build_request_response(r) for r in pending_result.scalars().all()],
            pending_approval_count=pending_count.scalar_one(),
            team=await _team_summary(session, auth, today),
        )
    )
