# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query

from leavetrack.api.deps import AuthDep
from leavetrack.db import SessionDep
from leavetrack.models.enums import LeaveCategory
from leavetrack.schemas.balance import (
    BalanceListResponse,
    BalanceResponse,
    LedgerListResponse,
    SetAllocationPayload,
)
from leavetrack.services import balance as balance_service

employee_balance_router = APIRouter(
    prefix="/employees/{employee_id}",
    tags=["balances"],
)


@employee_balance_router.get("/balances", response_model=BalanceListResponse)
async def get_employee_balances(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> BalanceListResponse:
    """Allocated, used and remaining days per leave category."""
    result = await balance_service.get_employee_balances(session, auth, employee_id)
    return result.unwrap()


@employee_balance_router.put("/balances/{category}", response_model=BalanceResponse)
async def set_allocation(
    employee_id: uuid.UUID,
    category: LeaveCategory,
    payload: SetAllocationPayload,
    session: SessionDep,
    auth: AuthDep,
) -> BalanceResponse:
    """Set an employee's allocation for one category (elevated role only)."""
    result = await balance_service.set_allocation(session, auth, employee_id, category, payload)
    return result.unwrap()


@employee_balance_router.get("/ledger", response_model=LedgerListResponse)
async def get_employee_ledger(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    category: LeaveCategory | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> LedgerListResponse:
    """Paginated ledger history for an employee."""
    result = await balance_service.get_employee_ledger(session, auth, employee_id, category, offset, limit)
    return result.unwrap()
