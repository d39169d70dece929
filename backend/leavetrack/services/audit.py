from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlmodel import col

from leavetrack.models.audit import AuditLog

if TYPE_CHECKING:
    import uuid

    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlmodel import SQLModel

    from leavetrack.models.enums import AuditAction, AuditEntityType


def model_to_audit_dict(model: SQLModel) -> dict[str, Any]:
    """JSON-safe snapshot of a row for the audit log (UUIDs and dates as strings)."""
    return model.model_dump(mode="json")


async def write_audit_log(
    session: AsyncSession,
    *,
    actor_id: uuid.UUID,
    entity_type: AuditEntityType,
    entity_id: uuid.UUID | str,
    action: AuditAction,
    before_json: dict[str, Any] | None = None,
    after_json: dict[str, Any] | None = None,
) -> AuditLog:
    """Stage an audit entry in the caller's transaction; it commits or rolls back with the change."""
    entry = AuditLog(
        actor_id=actor_id,
        entity_type=entity_type.value,
        entity_id=str(entity_id),
        action=action.value,
        before_json=before_json,
        after_json=after_json,
    )
    session.add(entry)
    return entry


async def list_audit_entries(
    session: AsyncSession,
    entity_type: AuditEntityType,
    entity_id: uuid.UUID | str,
) -> list[AuditLog]:
    """Audit history of one entity, oldest first."""
    result = await session.execute(
        select(AuditLog)
        .where(
            col(AuditLog.entity_type) == entity_type.value,
            col(AuditLog.entity_id) == str(entity_id),
        )
        .order_by(col(AuditLog.created_at))
    )
    return list(result.scalars().all())
