# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from leavetrack.models.enums import RequestStatus
from leavetrack.models.request import LeaveRequest

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

# Requests in these states hold their calendar days.
ACTIVE_STATUSES = (RequestStatus.PENDING.value, RequestStatus.APPROVED.value)


def ranges_overlap(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    """Inclusive overlap: the ranges share at least one calendar day."""
    return start_a <= end_b and end_a >= start_b


async def find_conflict(
    session: AsyncSession,
    employee_id: uuid.UUID,
    start_date: date,
    end_date: date,
    exclude_request_id: uuid.UUID | None = None,
) -> LeaveRequest | None:
    """Return the earliest active request of the employee overlapping the range.

    Conflicts are checked across all categories: the employee's days are the
    scarce resource, not the category label.
    """
    query = select(LeaveRequest).where(
        col(LeaveRequest.employee_id) == employee_id,
        col(LeaveRequest.status).in_(ACTIVE_STATUSES),
        col(LeaveRequest.start_date) <= end_date,
        col(LeaveRequest.end_date) >= start_date,
    )
    if exclude_request_id is not None:
        query = query.where(col(LeaveRequest.id) != exclude_request_id)

    result = await session.execute(query.order_by(col(LeaveRequest.start_date)).limit(1))
    return result.scalar_one_or_none()


async def has_conflict(
    session: AsyncSession,
    employee_id: uuid.UUID,
    start_date: date,
    end_date: date,
    exclude_request_id: uuid.UUID | None = None,
) -> bool:
    """Whether the range overlaps any pending or approved request of the employee."""
    return await find_conflict(session, employee_id, start_date, end_date, exclude_request_id) is not None
