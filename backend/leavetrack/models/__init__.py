from sqlmodel import SQLModel

from leavetrack.models.audit import AuditLog
from leavetrack.models.balance import LeaveBalance
from leavetrack.models.base import TimestampMixin, UUIDBase
from leavetrack.models.enums import (
    AuditAction,
    AuditEntityType,
    Decision,
    HalfDaySession,
    LeaveCategory,
    LedgerEntryType,
    LedgerSourceType,
    RequestStatus,
)
from leavetrack.models.ledger import LeaveLedgerEntry
from leavetrack.models.request import LeaveRequest

__all__ = [
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "Decision",
    "HalfDaySession",
    "LeaveBalance",
    "LeaveCategory",
    "LeaveLedgerEntry",
    "LeaveRequest",
    "LedgerEntryType",
    "LedgerSourceType",
    "RequestStatus",
    "SQLModel",
    "TimestampMixin",
    "UUIDBase",
]
