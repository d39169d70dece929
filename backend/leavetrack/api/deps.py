# ruff: noqa: TC003
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Header

from leavetrack.schemas.auth import AuthContext

DEFAULT_ROLE = "employee"


def normalize_role(raw: str | None) -> str:
    """Lower-case and trim the role header; a blank value means a plain employee."""
    role = (raw or "").strip().lower()
    return role or DEFAULT_ROLE


async def get_auth_context(
    x_user_id: Annotated[uuid.UUID, Header(description="Acting employee id")],
    x_role: Annotated[str | None, Header(description="employee, manager, hr or admin")] = None,
) -> AuthContext:
    """Build the actor from dev auth headers. Identity is trusted as given."""
    return AuthContext(user_id=x_user_id, role=normalize_role(x_role))


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]
