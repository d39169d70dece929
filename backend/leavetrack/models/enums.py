from __future__ import annotations

import enum


class LeaveCategory(enum.StrEnum):
    """Named bucket of time off with its own yearly allocation."""

    CASUAL = "casual"
    SICK = "sick"
    EARNED = "earned"


class RequestStatus(enum.StrEnum):
    """State machine for leave requests."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class Decision(enum.StrEnum):
    """Outcome an approver can give a pending request."""

    APPROVED = "approved"
    REJECTED = "rejected"


class HalfDaySession(enum.StrEnum):
    """Which half of the day a half-day request covers."""

    FIRST_HALF = "first_half"
    SECOND_HALF = "second_half"


class LedgerEntryType(enum.StrEnum):
    """Type of ledger entry affecting balance."""

    ALLOCATION = "ALLOCATION"
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class LedgerSourceType(enum.StrEnum):
    """Origin of a ledger entry."""

    REQUEST = "REQUEST"
    ADMIN = "ADMIN"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    REQUEST = "REQUEST"
    BALANCE = "BALANCE"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    SUBMIT = "SUBMIT"
    UPDATE = "UPDATE"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    CANCEL = "CANCEL"
    REASSIGN = "REASSIGN"
    ALLOCATE = "ALLOCATE"
