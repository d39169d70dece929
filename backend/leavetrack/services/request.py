# ruff: noqa: TC003
"""Approval coordinator: the single entry point for leave request state changes.

Every transition runs the same steps:

1. Load the request (row-locked where the database supports it).
2. Check the actor with the authorization scoper.
3. Check the state machine guard.
4. Write the status as a compare-and-swap on ``version``, then apply the
   ledger effect, in one transaction. If anything fails the whole
   transaction is rolled back.
5. Return ``Ok(response)`` or ``Err(error)``.

Transitions on the same request id are serialized in-process by a per-id
lock; across processes the row lock and the version check keep them
linearizable. The coordinator never retries on its own.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
import weakref
from collections.abc import Hashable
from datetime import date
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from leavetrack.exceptions import (
    ConcurrentModification,
    ErrorKind,
    Forbidden,
    InsufficientBalance,
    LeaveError,
    NotFound,
    OverlappingRequest,
)
from leavetrack.models.enums import (
    AuditAction,
    AuditEntityType,
    Decision,
    HalfDaySession,
    LeaveCategory,
    RequestStatus,
)
from leavetrack.models.request import LeaveRequest
from leavetrack.result import Err, Ok
from leavetrack.schemas.audit import AuditEntryResponse, AuditHistoryResponse
from leavetrack.schemas.request import RequestListResponse, RequestResponse
from leavetrack.services import balance as ledger
from leavetrack.services.audit import list_audit_entries, model_to_audit_dict, write_audit_log
from leavetrack.services.authorization import (
    can_cancel,
    can_decide,
    can_edit,
    can_reassign,
    can_view,
    visibility_clause,
)
from leavetrack.services.clock import get_clock
from leavetrack.services.duration import calculate_requested_half_days, half_days_to_days
from leavetrack.services.employee import get_employee_directory
from leavetrack.services.lifecycle import (
    guard_approve,
    guard_cancel,
    guard_edit,
    guard_reassign,
    guard_reject,
    validate_submission,
)
from leavetrack.services.overlap import find_conflict

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leavetrack.result import Result
    from leavetrack.schemas.auth import AuthContext
    from leavetrack.schemas.request import (
        DecisionPayload,
        ReassignApproverPayload,
        SubmitRequestPayload,
        UpdateRequestPayload,
    )

logger = logging.getLogger(__name__)

_locks: weakref.WeakValueDictionary[Hashable, asyncio.Lock] = weakref.WeakValueDictionary()


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _lock_for(key: Hashable) -> asyncio.Lock:
    """Return the process-wide lock for ``key``; it lives while someone holds it."""
    lock = _locks.get(key)
    if lock is None:
        lock = asyncio.Lock()
        _locks[key] = lock
    return lock


def build_request_response(request: LeaveRequest) -> RequestResponse:
    """Map a request model to its response schema."""
    return RequestResponse(
        id=request.id,
        employee_id=request.employee_id,
        approver_id=request.approver_id,
        category=LeaveCategory(request.category),
        start_date=request.start_date,
        end_date=request.end_date,
        is_half_day=request.is_half_day,
        half_day_session=HalfDaySession(request.half_day_session) if request.half_day_session else None,
        day_count=half_days_to_days(request.requested_half_days),
        reason=request.reason,
        contact_during_leave=request.contact_during_leave,
        status=RequestStatus(request.status),
        decision_comment=request.decision_comment,
        decided_at=request.decided_at,
        decided_by=request.decided_by,
        applied_at=request.applied_at,
        idempotency_key=request.idempotency_key,
        version=request.version,
    )


async def _load_request(
    session: AsyncSession,
    request_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> LeaveRequest | None:
    query = (
        select(LeaveRequest)
        .where(col(LeaveRequest.id) == request_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def _find_by_idempotency_key(
    session: AsyncSession,
    employee_id: uuid.UUID,
    idempotency_key: str,
) -> LeaveRequest | None:
    result = await session.execute(
        select(LeaveRequest).where(
            col(LeaveRequest.employee_id) == employee_id,
            col(LeaveRequest.idempotency_key) == idempotency_key,
        )
    )
    return result.scalar_one_or_none()


async def _compare_and_set(session: AsyncSession, request: LeaveRequest, **values: Any) -> bool:
    """Write ``values`` only if the row still has the version read at load time."""
    result = await session.execute(
        update(LeaveRequest)
        .where(
            col(LeaveRequest.id) == request.id,
            col(LeaveRequest.version) == request.version,
        )
        .values(**values, version=request.version + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1  # type: ignore[attr-defined]


async def _fail(
    session: AsyncSession,
    operation: str,
    request_id: uuid.UUID | None,
    error: LeaveError,
) -> Err:
    """Roll back the transition and return the error."""
    await session.rollback()
    if error.kind is ErrorKind.INVARIANT:
        logger.error(
            "Leave %s on request %s hit an invariant violation: %s %s",
            operation,
            request_id,
            error.message,
            error.context,
        )
    elif error.kind is ErrorKind.CONCURRENCY:
        logger.info("Leave %s on request %s refused: %s", operation, request_id, error.code)
    else:
        logger.debug("Leave %s on request %s refused: %s", operation, request_id, error.code)
    return Err(error)


async def _commit_transition(
    session: AsyncSession,
    auth: AuthContext,
    request: LeaveRequest,
    before: dict[str, Any],
    action: AuditAction,
) -> RequestResponse:
    """Audit the transition, commit it, and return the fresh request."""
    await session.refresh(request)
    await write_audit_log(
        session,
        actor_id=auth.user_id,
        entity_type=AuditEntityType.REQUEST,
        entity_id=request.id,
        action=action,
        before_json=before,
        after_json=model_to_audit_dict(request),
    )
    await session.commit()
    logger.info("Leave request %s: %s by %s (status=%s)", request.id, action.value, auth.user_id, request.status)
    return build_request_response(request)


async def _load_for_transition(
    session: AsyncSession,
    request_id: uuid.UUID,
    operation: str,
) -> Result[LeaveRequest]:
    request = await _load_request(session, request_id, for_update=True)
    if request is None:
        return await _fail(session, operation, request_id, NotFound(request_id=request_id))
    return Ok(request)


# ---------------------------------------------------------------------------
# Public API: transitions
# ---------------------------------------------------------------------------


async def submit_request(
    session: AsyncSession,
    auth: AuthContext,
    payload: SubmitRequestPayload,
) -> Result[RequestResponse]:
    """Submit a leave request for the acting employee.

    Flow:
    1. Replay a previous submission with the same idempotency key
    2. Validate dates, span and reason
    3. Check for overlapping pending/approved requests (any category)
    4. Check the request fits the category allocation (nothing is debited yet)
    5. Resolve the approver from the employee directory
    6. Create the request (pending), audit, commit
    """
    clock = get_clock()
    employee_id = auth.user_id

    async with _lock_for(("submit", employee_id)):
        # 1. Idempotent replay.
        if payload.idempotency_key is not None:
            existing = await _find_by_idempotency_key(session, employee_id, payload.idempotency_key)
            if existing is not None:
                return Ok(build_request_response(existing))

        # 2. Input rules.
        if error := validate_submission(
            start_date=payload.start_date,
            end_date=payload.end_date,
            is_half_day=payload.is_half_day,
            reason=payload.reason,
            today=clock.today(),
        ):
            return await _fail(session, "submit", None, error)
        requested = calculate_requested_half_days(payload.start_date, payload.end_date, payload.is_half_day)

        # 3. Overlap.
        conflict = await find_conflict(session, employee_id, payload.start_date, payload.end_date)
        if conflict is not None:
            return await _fail(
                session,
                "submit",
                None,
                OverlappingRequest(
                    "You already have leave during this period",
                    conflicting_request_id=conflict.id,
                    conflicting_status=conflict.status,
                ),
            )

        # 4. Allocation check.
        if not await ledger.reserve_check(session, employee_id, payload.category, requested):
            available = await ledger.remaining(session, employee_id, payload.category)
            return await _fail(
                session,
                "submit",
                None,
                InsufficientBalance(
                    f"Request of {half_days_to_days(requested):g} days exceeds the "
                    f"{payload.category.value} leave allocation",
                    category=payload.category.value,
                    remaining=half_days_to_days(available),
                    requested=half_days_to_days(requested),
                ),
            )

        # 5. Resolve approver.
        employee = await get_employee_directory().get_employee(employee_id)
        approver_id = employee.approver_id if employee is not None else None
        if approver_id == employee_id:
            logger.warning("Employee %s is listed as their own approver; leaving request unassigned", employee_id)
            approver_id = None

        # 6. Create.
        now = clock.now()
        leave_request = LeaveRequest(
            employee_id=employee_id,
            approver_id=approver_id,
            category=payload.category.value,
            start_date=payload.start_date,
            end_date=payload.end_date,
            is_half_day=payload.is_half_day,
            half_day_session=(
                (payload.half_day_session or HalfDaySession.FIRST_HALF).value if payload.is_half_day else None
            ),
            requested_half_days=requested,
            reason=payload.reason.strip(),
            contact_during_leave=payload.contact_during_leave,
            status=RequestStatus.PENDING.value,
            applied_at=now,
            idempotency_key=payload.idempotency_key,
        )
        session.add(leave_request)
        try:
            await session.flush()
        except IntegrityError:
            await session.rollback()
            if payload.idempotency_key is not None:
                existing = await _find_by_idempotency_key(session, employee_id, payload.idempotency_key)
                if existing is not None:
                    return Ok(build_request_response(existing))
            return Err(ConcurrentModification("Duplicate request"))

        await write_audit_log(
            session,
            actor_id=auth.user_id,
            entity_type=AuditEntityType.REQUEST,
            entity_id=leave_request.id,
            action=AuditAction.SUBMIT,
            after_json=model_to_audit_dict(leave_request),
        )
        await session.commit()
        await session.refresh(leave_request)
        logger.info(
            "Leave request %s submitted by %s: %s %s..%s (%g days)",
            leave_request.id,
            employee_id,
            leave_request.category,
            leave_request.start_date,
            leave_request.end_date,
            half_days_to_days(requested),
        )
        return Ok(build_request_response(leave_request))


async def decide_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    payload: DecisionPayload,
) -> Result[RequestResponse]:
    """Approve or reject a pending request.

    Approval debits the ledger and sets the status in one transaction. If the
    balance was consumed by another approval in the meantime the debit fails
    with ``InsufficientBalance`` and the request stays pending.
    """
    operation = "approve" if payload.decision is Decision.APPROVED else "reject"
    async with _lock_for(request_id):
        loaded = await _load_for_transition(session, request_id, operation)
        if isinstance(loaded, Err):
            return loaded
        request = loaded.value

        if not can_decide(auth, request):
            return await _fail(session, operation, request_id, Forbidden())

        if payload.decision is Decision.APPROVED:
            return await _approve(session, auth, request, payload.comment)
        return await _reject(session, auth, request, payload.comment)


async def _approve(
    session: AsyncSession,
    auth: AuthContext,
    request: LeaveRequest,
    comment: str | None,
) -> Result[RequestResponse]:
    request_id = request.id
    if error := guard_approve(request):
        return await _fail(session, "approve", request_id, error)

    before = model_to_audit_dict(request)
    now = get_clock().now()

    # Status first: the debit below runs inside an already open transaction.
    if not await _compare_and_set(
        session,
        request,
        status=RequestStatus.APPROVED.value,
        decided_at=now,
        decided_by=auth.user_id,
        decision_comment=comment,
    ):
        return await _fail(session, "approve", request_id, ConcurrentModification(request_id=request_id))

    debited = await ledger.debit(
        session,
        request.employee_id,
        request.category,
        request.requested_half_days,
        source_id=str(request_id),
        actor_id=auth.user_id,
        effective_at=now,
    )
    if isinstance(debited, Err):
        return await _fail(session, "approve", request_id, debited.error)

    return Ok(await _commit_transition(session, auth, request, before, AuditAction.APPROVE))


async def _reject(
    session: AsyncSession,
    auth: AuthContext,
    request: LeaveRequest,
    comment: str | None,
) -> Result[RequestResponse]:
    if error := guard_reject(request, comment):
        return await _fail(session, "reject", request.id, error)

    before = model_to_audit_dict(request)
    if not await _compare_and_set(
        session,
        request,
        status=RequestStatus.REJECTED.value,
        decided_at=get_clock().now(),
        decided_by=auth.user_id,
        decision_comment=comment.strip() if comment else comment,
    ):
        return await _fail(session, "reject", request.id, ConcurrentModification(request_id=request.id))

    return Ok(await _commit_transition(session, auth, request, before, AuditAction.REJECT))


async def cancel_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
) -> Result[RequestResponse]:
    """Cancel a pending request, or an approved one that has not started yet.

    Cancelling an approved request refunds its days to the ledger in the same
    transaction as the status change.
    """
    async with _lock_for(request_id):
        loaded = await _load_for_transition(session, request_id, "cancel")
        if isinstance(loaded, Err):
            return loaded
        request = loaded.value

        if not can_cancel(auth, request):
            return await _fail(session, "cancel", request_id, Forbidden())

        clock = get_clock()
        if error := guard_cancel(request, clock.today()):
            return await _fail(session, "cancel", request_id, error)

        before = model_to_audit_dict(request)
        now = clock.now()
        was_approved = RequestStatus(request.status) is RequestStatus.APPROVED

        if not await _compare_and_set(
            session,
            request,
            status=RequestStatus.CANCELLED.value,
            decided_at=now,
            decided_by=auth.user_id,
        ):
            return await _fail(session, "cancel", request_id, ConcurrentModification(request_id=request_id))

        if was_approved:
            credited = await ledger.credit(
                session,
                request.employee_id,
                request.category,
                request.requested_half_days,
                source_id=str(request_id),
                actor_id=auth.user_id,
                effective_at=now,
            )
            if isinstance(credited, Err):
                return await _fail(session, "cancel", request_id, credited.error)

        return Ok(await _commit_transition(session, auth, request, before, AuditAction.CANCEL))


async def update_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    payload: UpdateRequestPayload,
) -> Result[RequestResponse]:
    """Let the owner change the reason or contact details of a pending request.

    Dates and category are frozen once submitted.
    """
    async with _lock_for(request_id):
        loaded = await _load_for_transition(session, request_id, "update")
        if isinstance(loaded, Err):
            return loaded
        request = loaded.value

        if not can_edit(auth, request):
            return await _fail(session, "update", request_id, Forbidden())
        if error := guard_edit(request, payload.reason):
            return await _fail(session, "update", request_id, error)

        changes = payload.model_dump(exclude_unset=True)
        if "reason" in changes and changes["reason"] is not None:
            changes["reason"] = changes["reason"].strip()
        elif "reason" in changes:
            del changes["reason"]
        if not changes:
            unchanged = build_request_response(request)
            await session.rollback()
            return Ok(unchanged)

        before = model_to_audit_dict(request)
        if not await _compare_and_set(session, request, **changes):
            return await _fail(session, "update", request_id, ConcurrentModification(request_id=request_id))

        return Ok(await _commit_transition(session, auth, request, before, AuditAction.UPDATE))


async def reassign_approver(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    payload: ReassignApproverPayload,
) -> Result[RequestResponse]:
    """Move a pending request to another approver (elevated roles only)."""
    async with _lock_for(request_id):
        loaded = await _load_for_transition(session, request_id, "reassign")
        if isinstance(loaded, Err):
            return loaded
        request = loaded.value

        if not can_reassign(auth):
            return await _fail(session, "reassign", request_id, Forbidden())
        if error := guard_reassign(request, payload.approver_id):
            return await _fail(session, "reassign", request_id, error)

        before = model_to_audit_dict(request)
        if not await _compare_and_set(session, request, approver_id=payload.approver_id):
            return await _fail(session, "reassign", request_id, ConcurrentModification(request_id=request_id))

        return Ok(await _commit_transition(session, auth, request, before, AuditAction.REASSIGN))


# ---------------------------------------------------------------------------
# Public API: reads
# ---------------------------------------------------------------------------


async def get_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
) -> Result[RequestResponse]:
    """Get a single request the actor is allowed to see."""
    request = await _load_request(session, request_id)
    if request is None:
        return Err(NotFound(request_id=request_id))
    if not can_view(auth, request):
        return Err(Forbidden())
    return Ok(build_request_response(request))


async def list_requests(
    session: AsyncSession,
    auth: AuthContext,
    status_filter: RequestStatus | None = None,
    category: LeaveCategory | None = None,
    employee_id: uuid.UUID | None = None,
    approver_id: uuid.UUID | None = None,
    start_from: date | None = None,
    start_to: date | None = None,
    offset: int = 0,
    limit: int = 50,
) -> Result[RequestListResponse]:
    """List requests visible to the actor, newest application first."""
    base_filters = [visibility_clause(auth)]

    if status_filter is not None:
        base_filters.append(col(LeaveRequest.status) == status_filter.value)
    if category is not None:
        base_filters.append(col(LeaveRequest.category) == category.value)
    if employee_id is not None:
        base_filters.append(col(LeaveRequest.employee_id) == employee_id)
    if approver_id is not None:
        base_filters.append(col(LeaveRequest.approver_id) == approver_id)
    if start_from is not None:
        base_filters.append(col(LeaveRequest.start_date) >= start_from)
    if start_to is not None:
        base_filters.append(col(LeaveRequest.start_date) <= start_to)

    count_result = await session.execute(select(func.count()).select_from(LeaveRequest).where(*base_filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveRequest)
        .where(*base_filters)
        .order_by(col(LeaveRequest.applied_at).desc(), col(LeaveRequest.created_at).desc())
        .offset(offset)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    requests = list(result.scalars().all())

    return Ok(
        RequestListResponse(
            items=[build_request_response(r) for r in requests],
            total=total,
        )
    )


async def get_request_history(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
) -> Result[AuditHistoryResponse]:
    """Audit trail of a request, visible to whoever may see the request."""
    request = await _load_request(session, request_id)
    if request is None:
        return Err(NotFound(request_id=request_id))
    if not can_view(auth, request):
        return Err(Forbidden())

    entries = await list_audit_entries(session, AuditEntityType.REQUEST, request_id)
    return Ok(
        AuditHistoryResponse(
            items=[AuditEntryResponse.model_validate(e, from_attributes=True) for e in entries],
            total=len(entries),
        )
    )
