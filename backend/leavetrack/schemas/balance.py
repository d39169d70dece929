# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from leavetrack.models.enums import LeaveCategory, LedgerEntryType, LedgerSourceType

# ---------------------------------------------------------------------------
# Balance response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    """Balance for a single leave category, in days."""

    category: LeaveCategory
    allocated: float
    used: float
    remaining: float
    updated_at: datetime | None


class BalanceListResponse(BaseModel):
    """All category balances for an employee."""

    employee_id: uuid.UUID
    items: list[BalanceResponse]
    total: int


# ---------------------------------------------------------------------------
# Ledger response schemas
# ---------------------------------------------------------------------------


class LedgerEntryResponse(BaseModel):
    """A single ledger entry."""

    id: uuid.UUID
    category: LeaveCategory
    entry_type: LedgerEntryType
    amount: float
    source_type: LedgerSourceType
    source_id: str
    actor_id: uuid.UUID | None
    effective_at: datetime
    metadata_json: dict[str, Any] | None
    created_at: datetime


class LedgerListResponse(BaseModel):
    """Paginated ledger entries."""

    items: list[LedgerEntryResponse]
    total: int


# ---------------------------------------------------------------------------
# Allocation request schema
# ---------------------------------------------------------------------------


class SetAllocationPayload(BaseModel):
    """Request body for setting an employee's allocation for one category."""

    allocated: float = Field(ge=0, multiple_of=0.5, description="Days; whole or half days")
    reason: str | None = Field(default=None, max_length=1000)
