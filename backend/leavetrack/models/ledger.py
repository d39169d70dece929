# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from leavetrack.models.base import UUIDBase, utc_timestamp_field


class LeaveLedgerEntry(UUIDBase, table=True):
    """Append-only ledger entry that records every balance-affecting event.

    ``(source_type, source_id, entry_type)`` is the idempotency token of a
    mutation: a request is debited at most once and credited at most once.
    """

    __tablename__ = "leave_ledger_entry"
    __table_args__ = (
        sa.Index("ix_ledger_employee_category", "employee_id", "category"),
        sa.UniqueConstraint("source_type", "source_id", "entry_type", name="uq_ledger_idempotency"),
    )

    employee_id: uuid.UUID = Field(index=True)
    category: str = Field(max_length=50)
    entry_type: str = Field(max_length=50)
    amount_half_days: int
    source_type: str = Field(max_length=50)
    source_id: str = Field(max_length=255)
    actor_id: uuid.UUID | None = None
    effective_at: datetime = Field(sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    metadata_json: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    created_at: datetime = utc_timestamp_field()
