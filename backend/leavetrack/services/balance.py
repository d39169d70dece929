"""Balance ledger: allocated/used counters per employee and leave category.

Every mutation is a single conditional ``UPDATE`` whose ``WHERE`` clause
carries the invariant (``0 <= used <= allocated``), so concurrent debits for
the same employee and category are serialized by the database and can never
both consume the same remaining days. Each mutation also appends a ledger
entry whose ``(source_type, source_id, entry_type)`` is unique, which makes
the mutation idempotent per request transition.

Mutating functions never commit and never roll back: the caller owns the
transaction and must roll it back when an ``Err`` is returned.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from leavetrack.config import get_settings
from leavetrack.exceptions import (
    AllocationBelowUsage,
    ConcurrentModification,
    Forbidden,
    InsufficientBalance,
    InvariantViolation,
    LeaveError,
)
from leavetrack.models.balance import LeaveBalance
from leavetrack.models.enums import (
    AuditAction,
    AuditEntityType,
    LeaveCategory,
    LedgerEntryType,
    LedgerSourceType,
)
from leavetrack.models.ledger import LeaveLedgerEntry
from leavetrack.result import Err, Ok
from leavetrack.schemas.balance import (
    BalanceListResponse,
    BalanceResponse,
    LedgerEntryResponse,
    LedgerListResponse,
)
from leavetrack.services.audit import model_to_audit_dict, write_audit_log
from leavetrack.services.authorization import can_view_balances, is_elevated
from leavetrack.services.clock import get_clock
from leavetrack.services.duration import days_to_half_days, half_days_to_days
from leavetrack.services.employee import get_employee_directory

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leavetrack.result import Result
    from leavetrack.schemas.auth import AuthContext
    from leavetrack.schemas.balance import SetAllocationPayload

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_balance_response(
    category: LeaveCategory,
    allocated_half_days: int,
    used_half_days: int,
    updated_at: datetime | None,
) -> BalanceResponse:
    return BalanceResponse(
        category=category,
        allocated=half_days_to_days(allocated_half_days),
        used=half_days_to_days(used_half_days),
        remaining=half_days_to_days(allocated_half_days - used_half_days),
        updated_at=updated_at,
    )


def _build_ledger_entry_response(entry: LeaveLedgerEntry) -> LedgerEntryResponse:
    """Map a ledger entry model to its response schema."""
    return LedgerEntryResponse(
        id=entry.id,
        category=LeaveCategory(entry.category),
        entry_type=LedgerEntryType(entry.entry_type),
        amount=half_days_to_days(entry.amount_half_days),
        source_type=LedgerSourceType(entry.source_type),
        source_id=entry.source_id,
        actor_id=entry.actor_id,
        effective_at=entry.effective_at,
        metadata_json=entry.metadata_json,
        created_at=entry.created_at,
    )


def _balance_key(employee_id: uuid.UUID, category: LeaveCategory | str) -> list:
    return [
        col(LeaveBalance.employee_id) == employee_id,
        col(LeaveBalance.category) == LeaveCategory(category).value,
    ]


async def _get_balance(
    session: AsyncSession,
    employee_id: uuid.UUID,
    category: LeaveCategory | str,
) -> LeaveBalance | None:
    """Read the balance row, bypassing any stale copy in the identity map."""
    result = await session.execute(
        select(LeaveBalance)
        .where(*_balance_key(employee_id, category))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _default_allocation(employee_id: uuid.UUID, category: LeaveCategory | str) -> int:
    """Allocation in half-days for a balance that has never been opened."""
    category = LeaveCategory(category)
    employee = await get_employee_directory().get_employee(employee_id)
    if employee is not None and employee.allocations and category in employee.allocations:
        return days_to_half_days(employee.allocations[category])
    return days_to_half_days(get_settings().default_allocations.get(category.value, 0))


async def _allocated(session: AsyncSession, employee_id: uuid.UUID, category: LeaveCategory | str) -> tuple[int, int]:
    """Return (allocated, used) without creating a row."""
    balance = await _get_balance(session, employee_id, category)
    if balance is None:
        return await _default_allocation(employee_id, category), 0
    return balance.allocated_half_days, balance.used_half_days


async def _get_or_create_balance(
    session: AsyncSession,
    employee_id: uuid.UUID,
    category: LeaveCategory | str,
) -> Result[LeaveBalance]:
    """Get the balance row, opening it with the default allocation if absent."""
    balance = await _get_balance(session, employee_id, category)
    if balance is not None:
        return Ok(balance)

    balance = LeaveBalance(
        employee_id=employee_id,
        category=LeaveCategory(category).value,
        allocated_half_days=await _default_allocation(employee_id, category),
        used_half_days=0,
        version=1,
    )
    try:
        async with session.begin_nested():
            session.add(balance)
            await session.flush()
    except IntegrityError:
        # Another transaction opened the same balance first; use its row.
        existing = await _get_balance(session, employee_id, category)
        if existing is None:
            return Err(ConcurrentModification("Balance was opened concurrently; retry"))
        return Ok(existing)
    return Ok(balance)


async def _append_entry(
    session: AsyncSession,
    *,
    employee_id: uuid.UUID,
    category: LeaveCategory | str,
    entry_type: LedgerEntryType,
    amount_half_days: int,
    source_type: LedgerSourceType,
    source_id: str,
    actor_id: uuid.UUID | None,
    effective_at: datetime,
    metadata: dict | None = None,
) -> LeaveError | None:
    entry = LeaveLedgerEntry(
        employee_id=employee_id,
        category=LeaveCategory(category).value,
        entry_type=entry_type.value,
        amount_half_days=amount_half_days,
        source_type=source_type.value,
        source_id=source_id,
        actor_id=actor_id,
        effective_at=effective_at,
        metadata_json=metadata,
    )
    # Savepoint: a duplicate only discards this insert, not the caller's transaction.
    try:
        async with session.begin_nested():
            session.add(entry)
            await session.flush()
    except IntegrityError:
        return _duplicate_entry(entry_type, source_type, source_id)
    return None


def _duplicate_entry(entry_type: LedgerEntryType, source_type: LedgerSourceType, source_id: str) -> LeaveError:
    logger.info("Ledger %s for %s %s already recorded", entry_type.value, source_type.value, source_id)
    return ConcurrentModification(
        "Balance change for this request was already applied",
        source_id=source_id,
        entry_type=entry_type.value,
    )


async def _already_applied(
    session: AsyncSession,
    entry_type: LedgerEntryType,
    source_type: LedgerSourceType,
    source_id: str,
) -> LeaveError | None:
    """Check the idempotency token before touching the balance.

    A concurrent writer can still slip in between; ``_append_entry`` catches
    that case through the unique constraint.
    """
    result = await session.execute(
        select(func.count())
        .select_from(LeaveLedgerEntry)
        .where(
            col(LeaveLedgerEntry.source_type) == source_type.value,
            col(LeaveLedgerEntry.source_id) == source_id,
            col(LeaveLedgerEntry.entry_type) == entry_type.value,
        )
    )
    if result.scalar_one():
        return _duplicate_entry(entry_type, source_type, source_id)
    return None


# ---------------------------------------------------------------------------
# Ledger contract
# ---------------------------------------------------------------------------


async def remaining(session: AsyncSession, employee_id: uuid.UUID, category: LeaveCategory | str) -> int:
    """Remaining half-days: allocated minus used."""
    allocated, used = await _allocated(session, employee_id, category)
    return allocated - used


async def reserve_check(
    session: AsyncSession,
    employee_id: uuid.UUID,
    category: LeaveCategory | str,
    half_days: int,
) -> bool:
    """Read-only check that a request fits within the allocated amount.

    Pending requests are not debited, so submission is checked against the
    allocation; the remaining amount is enforced at approval by ``debit``.
    """
    allocated, _ = await _allocated(session, employee_id, category)
    return half_days <= allocated


async def debit(
    session: AsyncSession,
    employee_id: uuid.UUID,
    category: LeaveCategory | str,
    half_days: int,
    *,
    source_id: str,
    actor_id: uuid.UUID | None,
    effective_at: datetime,
) -> Result[LeaveBalance]:
    """Consume ``half_days`` of the balance: ``used += half_days``.

    The balance update and the ledger entry share the caller's transaction;
    on any ``Err`` the caller must roll back.
    """
    opened = await _get_or_create_balance(session, employee_id, category)
    if isinstance(opened, Err):
        return opened
    if error := await _already_applied(session, LedgerEntryType.DEBIT, LedgerSourceType.REQUEST, source_id):
        return Err(error)

    result = await session.execute(
        update(LeaveBalance)
        .where(
            *_balance_key(employee_id, category),
            col(LeaveBalance.used_half_days) + half_days <= col(LeaveBalance.allocated_half_days),
        )
        .values(
            used_half_days=col(LeaveBalance.used_half_days) + half_days,
            version=col(LeaveBalance.version) + 1,
        )
        .execution_options(synchronize_session=False)
    )
    balance = opened.value
    await session.refresh(balance)
    if result.rowcount != 1:  # type: ignore[attr-defined]
        available = balance.allocated_half_days - balance.used_half_days
        return Err(
            InsufficientBalance(
                f"Insufficient {LeaveCategory(category).value} leave balance. "
                f"Available: {half_days_to_days(available):g} days",
                status_code=409,
                category=LeaveCategory(category).value,
                remaining=half_days_to_days(available),
                requested=half_days_to_days(half_days),
            )
        )

    if error := await _append_entry(
        session,
        employee_id=employee_id,
        category=category,
        entry_type=LedgerEntryType.DEBIT,
        amount_half_days=-half_days,
        source_type=LedgerSourceType.REQUEST,
        source_id=source_id,
        actor_id=actor_id,
        effective_at=effective_at,
    ):
        return Err(error)
    return Ok(balance)


async def credit(
    session: AsyncSession,
    employee_id: uuid.UUID,
    category: LeaveCategory | str,
    half_days: int,
    *,
    source_id: str,
    actor_id: uuid.UUID | None,
    effective_at: datetime,
) -> Result[LeaveBalance]:
    """Refund ``half_days`` to the balance: ``used -= half_days``.

    A refund that would push ``used`` below zero means a transition bypassed
    the coordinator; it is reported as an ``InvariantViolation``.
    """
    if error := await _already_applied(session, LedgerEntryType.CREDIT, LedgerSourceType.REQUEST, source_id):
        return Err(error)

    result = await session.execute(
        update(LeaveBalance)
        .where(
            *_balance_key(employee_id, category),
            col(LeaveBalance.used_half_days) - half_days >= 0,
        )
        .values(
            used_half_days=col(LeaveBalance.used_half_days) - half_days,
            version=col(LeaveBalance.version) + 1,
        )
        .execution_options(synchronize_session=False)
    )
    balance = await _get_balance(session, employee_id, category)
    if result.rowcount != 1 or balance is None:  # type: ignore[attr-defined]
        logger.error(
            "Ledger invariant violated: credit of %d half-days for employee=%s category=%s source=%s "
            "would make used negative (used=%s)",
            half_days,
            employee_id,
            LeaveCategory(category).value,
            source_id,
            balance.used_half_days if balance is not None else None,
        )
        return Err(
            InvariantViolation(
                "Refund would make used balance negative",
                employee_id=employee_id,
                category=LeaveCategory(category).value,
                source_id=source_id,
            )
        )

    if error := await _append_entry(
        session,
        employee_id=employee_id,
        category=category,
        entry_type=LedgerEntryType.CREDIT,
        amount_half_days=half_days,
        source_type=LedgerSourceType.REQUEST,
        source_id=source_id,
        actor_id=actor_id,
        effective_at=effective_at,
    ):
        return Err(error)
    return Ok(balance)


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


async def get_employee_balances(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID,
) -> Result[BalanceListResponse]:
    """All category balances of an employee; unopened categories show their default allocation."""
    employee = await get_employee_directory().get_employee(employee_id)
    if not can_view_balances(auth, employee_id, employee.approver_id if employee else None):
        return Err(Forbidden())

    result = await session.execute(
        select(LeaveBalance)
        .where(col(LeaveBalance.employee_id) == employee_id)
        .execution_options(populate_existing=True)
    )
    rows = {row.category: row for row in result.scalars().all()}

    items: list[BalanceResponse] = []
    for category in LeaveCategory:
        row = rows.get(category.value)
        if row is not None:
            items.append(
                _build_balance_response(category, row.allocated_half_days, row.used_half_days, row.updated_at)
            )
        else:
            items.append(_build_balance_response(category, await _default_allocation(employee_id, category), 0, None))

    return Ok(BalanceListResponse(employee_id=employee_id, items=items, total=len(items)))


async def get_employee_ledger(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID,
    category: LeaveCategory | None = None,
    offset: int = 0,
    limit: int = 50,
) -> Result[LedgerListResponse]:
    """Paginated ledger entries for an employee, newest first."""
    employee = await get_employee_directory().get_employee(employee_id)
    if not can_view_balances(auth, employee_id, employee.approver_id if employee else None):
        return Err(Forbidden())

    base_filter = [col(LeaveLedgerEntry.employee_id) == employee_id]
    if category is not None:
        base_filter.append(col(LeaveLedgerEntry.category) == category.value)

    count_result = await session.execute(select(func.count()).select_from(LeaveLedgerEntry).where(*base_filter))
    total = count_result.scalar_one()

    entries_result = await session.execute(
        select(LeaveLedgerEntry)
        .where(*base_filter)
        .order_by(
            col(LeaveLedgerEntry.effective_at).desc(),
            col(LeaveLedgerEntry.created_at).desc(),
        )
        .offset(offset)
        .limit(limit)
    )
    entries = list(entries_result.scalars().all())

    return Ok(
        LedgerListResponse(
            items=[_build_ledger_entry_response(e) for e in entries],
            total=total,
        )
    )


# ---------------------------------------------------------------------------
# Write path: allocations
# ---------------------------------------------------------------------------


async def set_allocation(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID,
    category: LeaveCategory,
    payload: SetAllocationPayload,
) -> Result[BalanceResponse]:
    """Set an employee's allocation for one category (elevated roles only).

    The new allocation may not be lower than what is already used.
    """
    if not is_elevated(auth):
        return Err(Forbidden())

    new_allocated = days_to_half_days(payload.allocated)
    opened = await _get_or_create_balance(session, employee_id, category)
    if isinstance(opened, Err):
        await session.rollback()
        return opened
    before = model_to_audit_dict(opened.value)
    previous_allocated = opened.value.allocated_half_days

    result = await session.execute(
        update(LeaveBalance)
        .where(
            *_balance_key(employee_id, category),
            col(LeaveBalance.used_half_days) <= new_allocated,
        )
        .values(allocated_half_days=new_allocated, version=col(LeaveBalance.version) + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:  # type: ignore[attr-defined]
        balance = await _get_balance(session, employee_id, category)
        used = balance.used_half_days if balance is not None else 0
        await session.rollback()
        return Err(
            AllocationBelowUsage(
                f"Allocation cannot be lower than the {half_days_to_days(used):g} days already used",
                used=half_days_to_days(used),
            )
        )

    entry_id = uuid.uuid4()
    if error := await _append_entry(
        session,
        employee_id=employee_id,
        category=category,
        entry_type=LedgerEntryType.ALLOCATION,
        amount_half_days=new_allocated - previous_allocated,
        source_type=LedgerSourceType.ADMIN,
        source_id=str(entry_id),
        actor_id=auth.user_id,
        effective_at=get_clock().now(),
        metadata={"reason": payload.reason, "allocated_half_days": new_allocated},
    ):
        await session.rollback()
        return Err(error)

    balance = opened.value
    await session.refresh(balance)
    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.BALANCE,
        entity_id=f"{employee_id}:{category.value}",
        action=AuditAction.ALLOCATE,
        before_json=before,
        after_json=model_to_audit_dict(balance),
    )

    await session.commit()
    logger.info(
        "Allocation for employee=%s category=%s set to %d half-days by %s",
        employee_id,
        category.value,
        new_allocated,
        auth.user_id,
    )
    return Ok(
        _build_balance_response(category, balance.allocated_half_days, balance.used_half_days, balance.updated_at)
    )
