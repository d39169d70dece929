# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Query, status

from leavetrack.api.deps import AuthDep
from leavetrack.db import SessionDep
from leavetrack.models.enums import LeaveCategory, RequestStatus
from leavetrack.schemas.audit import AuditHistoryResponse
from leavetrack.schemas.request import (
    DecisionPayload,
    ReassignApproverPayload,
    RequestListResponse,
    RequestResponse,
    SubmitRequestPayload,
    UpdateRequestPayload,
)
from leavetrack.services import request as request_service

requests_router = APIRouter(
    prefix="/leave-requests",
    tags=["leave-requests"],
)


@requests_router.post("", response_model=RequestResponse, status_code=status.HTTP_201_CREATED)
async def submit_request(
    payload: SubmitRequestPayload,
    session: SessionDep,
    auth: AuthDep,
) -> RequestResponse:
    """Submit a new leave request for the calling employee."""
    result = await request_service.submit_request(session, auth, payload)
    return result.unwrap()


@requests_router.get("", response_model=RequestListResponse)
async def list_requests(
    session: SessionDep,
    auth: AuthDep,
    status_filter: RequestStatus | None = Query(default=None, alias="status"),
    category: LeaveCategory | None = Query(default=None),
    employee_id: uuid.UUID | None = Query(default=None),
    approver_id: uuid.UUID | None = Query(default=None),
    start_from: date | None = Query(default=None),
    start_to: date | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> RequestListResponse:
    """List the leave requests the caller may see, with optional filters."""
    result = await request_service.list_requests(
        session, auth, status_filter, category, employee_id, approver_id, start_from, start_to, offset, limit
    )
    return result.unwrap()


@requests_router.get("/{request_id}", response_model=RequestResponse)
async def get_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> RequestResponse:
    """Get a single leave request."""
    result = await request_service.get_request(session, auth, request_id)
    return result.unwrap()


@requests_router.patch("/{request_id}", response_model=RequestResponse)
async def update_request(
    request_id: uuid.UUID,
    payload: UpdateRequestPayload,
    session: SessionDep,
    auth: AuthDep,
) -> RequestResponse:
    """Edit the reason or contact details of a pending request (owner only)."""
    result = await request_service.update_request(session, auth, request_id, payload)
    return result.unwrap()


@requests_router.put("/{request_id}/decision", response_model=RequestResponse)
async def decide_request(
    request_id: uuid.UUID,
    payload: DecisionPayload,
    session: SessionDep,
    auth: AuthDep,
) -> RequestResponse:
    """Approve or reject a pending request (assigned approver or elevated role)."""
    result = await request_service.decide_request(session, auth, request_id, payload)
    return result.unwrap()


@requests_router.put("/{request_id}/cancel", response_model=RequestResponse)
async def cancel_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> RequestResponse:
    """Cancel a pending request, or an approved one that has not started."""
    result = await request_service.cancel_request(session, auth, request_id)
    return result.unwrap()


@requests_router.put("/{request_id}/approver", response_model=RequestResponse)
async def reassign_approver(
    request_id: uuid.UUID,
    payload: ReassignApproverPayload,
    session: SessionDep,
    auth: AuthDep,
) -> RequestResponse:
    """Reassign a pending request to another approver (elevated role only)."""
    result = await request_service.reassign_approver(session, auth, request_id, payload)
    return result.unwrap()


@requests_router.get("/{request_id}/history", response_model=AuditHistoryResponse)
async def get_request_history(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> AuditHistoryResponse:
    """Audit trail of a leave request, oldest first."""
    result = await request_service.get_request_history(session, auth, request_id)
    return result.unwrap()
