"""Capability predicates deciding who may read or change a leave request.

All predicates are pure functions of the actor (id and role) and the
request's owner/approver fields. Ownership never grants decision rights.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from sqlalchemy import or_, true
from sqlmodel import col

from leavetrack.config import get_settings
from leavetrack.models.request import LeaveRequest

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.sql.elements import ColumnElement

    from leavetrack.schemas.auth import AuthContext


class ScopedRequest(Protocol):
    employee_id: uuid.UUID
    approver_id: uuid.UUID | None


def is_elevated(actor: AuthContext) -> bool:
    """Whether the actor's role bypasses owner/approver scoping."""
    return actor.role in get_settings().elevated_roles


def is_owner(actor: AuthContext, request: ScopedRequest) -> bool:
    return actor.user_id == request.employee_id


def is_approver(actor: AuthContext, request: ScopedRequest) -> bool:
    return request.approver_id is not None and actor.user_id == request.approver_id


def can_view(actor: AuthContext, request: ScopedRequest) -> bool:
    return is_owner(actor, request) or is_approver(actor, request) or is_elevated(actor)


def can_decide(actor: AuthContext, request: ScopedRequest) -> bool:
    return is_approver(actor, request) or is_elevated(actor)


def can_cancel(actor: AuthContext, request: ScopedRequest) -> bool:
    return is_owner(actor, request) or is_elevated(actor)


def can_edit(actor: AuthContext, request: ScopedRequest) -> bool:
    return is_owner(actor, request)


def can_reassign(actor: AuthContext) -> bool:
    return is_elevated(actor)


def can_view_balances(
    actor: AuthContext,
    employee_id: uuid.UUID,
    employee_approver_id: uuid.UUID | None = None,
) -> bool:
    """Owner, the employee's assigned approver, or an elevated role."""
    if actor.user_id == employee_id or is_elevated(actor):
        return True
    return employee_approver_id is not None and actor.user_id == employee_approver_id


def visibility_clause(actor: AuthContext) -> ColumnElement[bool]:
    """SQL form of ``can_view`` for list queries."""
    if is_elevated(actor):
        return true()
    return or_(
        col(LeaveRequest.employee_id) == actor.user_id,
        col(LeaveRequest.approver_id) == actor.user_id,
    )


def decision_clause(actor: AuthContext) -> ColumnElement[bool]:
    """SQL form of ``can_decide``: requests waiting on this actor's decision."""
    if is_elevated(actor):
        return true()
    return col(LeaveRequest.approver_id) == actor.user_id
