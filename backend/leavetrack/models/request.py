# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlmodel import Field

from leavetrack.models.base import TimestampMixin, UUIDBase
from leavetrack.models.enums import RequestStatus


class LeaveRequest(UUIDBase, TimestampMixin, table=True):
    """An employee's leave request with approval workflow state."""

    __tablename__ = "leave_request"
    __table_args__ = (
        sa.Index("ix_leave_request_employee_dates", "employee_id", "start_date", "end_date"),
        sa.UniqueConstraint("employee_id", "idempotency_key", name="uq_leave_request_idempotency"),
    )

    employee_id: uuid.UUID = Field(index=True)
    approver_id: uuid.UUID | None = Field(default=None, index=True)
    category: str = Field(max_length=50)
    start_date: date
    end_date: date
    is_half_day: bool = Field(default=False)
    half_day_session: str | None = Field(default=None, max_length=20)
    # Frozen at submission; half-day units (a full day is 2).
    requested_half_days: int
    reason: str
    contact_during_leave: str | None = Field(default=None, max_length=255)
    status: str = Field(
        default=RequestStatus.PENDING, max_length=20, index=True, sa_column_kwargs={"server_default": "pending"}
    )
    decision_comment: str | None = None
    decided_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    decided_by: uuid.UUID | None = None
    applied_at: datetime = Field(sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    idempotency_key: str | None = Field(default=None, max_length=255)
    version: int = Field(default=1, sa_column_kwargs={"server_default": "1"})
