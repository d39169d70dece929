# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel


class AuditEntryResponse(BaseModel):
    """A single audit log entry."""

    id: uuid.UUID
    actor_id: uuid.UUID
    entity_type: str
    entity_id: str
    action: str
    before_json: dict[str, Any] | None
    after_json: dict[str, Any] | None
    created_at: datetime


class AuditHistoryResponse(BaseModel):
    """Audit history of one entity, oldest first."""

    items: list[AuditEntryResponse]
    total: int
