# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Query

from leavetrack.api.deps import AuthDep
from leavetrack.db import SessionDep
from leavetrack.schemas.report import LeaveSummaryResponse, TeamCalendarResponse
from leavetrack.services import report as report_service

reports_router = APIRouter(prefix="/reports", tags=["reports"])


@reports_router.get("/team-calendar", response_model=TeamCalendarResponse)
async def get_team_calendar(
    session: SessionDep,
    auth: AuthDep,
    start: date = Query(),
    end: date = Query(),
    employee_id: uuid.UUID | None = Query(default=None),
) -> TeamCalendarResponse:
    """Pending and approved leave of the caller's team inside a date window."""
    result = await report_service.get_team_calendar(session, auth, start, end, employee_id)
    return result.unwrap()


@reports_router.get("/leave-summary", response_model=LeaveSummaryResponse)
async def get_leave_summary(session: SessionDep, auth: AuthDep) -> LeaveSummaryResponse:
    """Status totals, recent and upcoming leave, pending approvals and team overview."""
    result = await report_service.get_leave_summary(session, auth)
    return result.unwrap()
