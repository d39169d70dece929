# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from leavetrack.models.base import UUIDBase, utc_timestamp_field


class AuditLog(UUIDBase, table=True):
    """Append-only record of a leave request transition or an allocation change.

    ``entity_id`` is a request id, or ``"<employee_id>:<category>"`` for a
    balance. Snapshots are taken inside the transaction that made the change.
    """

    __tablename__ = "audit_log"
    __table_args__ = (sa.Index("ix_audit_entity", "entity_type", "entity_id"),)

    actor_id: uuid.UUID
    entity_type: str = Field(max_length=50)
    entity_id: str = Field(max_length=255)
    action: str = Field(max_length=50)
    before_json: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    after_json: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    created_at: datetime = utc_timestamp_field(index=True)
