from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    """Return the current UTC time."""
    return datetime.now(UTC)


def utc_timestamp_field(*, onupdate: bool = False, index: bool = False) -> Any:
    """A timezone-aware column defaulting to now, on both the client and the server."""
    column_kwargs: dict[str, Any] = {"server_default": sa.func.now()}
    if onupdate:
        column_kwargs["onupdate"] = sa.func.now()
    return Field(
        default_factory=utc_now,
        index=index,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
        sa_column_kwargs=column_kwargs,
    )


class UUIDBase(SQLModel):
    """Base model with a random UUID primary key."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, sa_type=sa.Uuid)


class TimestampMixin(SQLModel):
    """Mixin that adds a created_at timestamp."""

    created_at: datetime = utc_timestamp_field()
