# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from leavetrack.models.base import utc_timestamp_field


class LeaveBalance(SQLModel, table=True):
    """Allocated and used leave per employee and category.

    Remaining is always ``allocated_half_days - used_half_days`` and is never
    stored. Rows are only mutated by conditional updates in the balance service.
    """

    __tablename__ = "leave_balance"
    __table_args__ = (
        sa.PrimaryKeyConstraint("employee_id", "category"),
        sa.CheckConstraint("used_half_days >= 0", name="ck_leave_balance_used_non_negative"),
        sa.CheckConstraint("used_half_days <= allocated_half_days", name="ck_leave_balance_used_within_allocation"),
    )

    employee_id: uuid.UUID
    category: str = Field(max_length=50)
    allocated_half_days: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    used_half_days: int = Field(default=0, sa_column_kwargs={"server_default": "0"})
    updated_at: datetime = utc_timestamp_field(onupdate=True)
    version: int = Field(default=1, sa_column_kwargs={"server_default": "1"})
