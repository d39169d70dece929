"""Tests for the leave request workflow over HTTP: submit, approve, reject, cancel,
edit, reassign, overlap detection, balance effects, scoping, and audit.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy import select
from sqlmodel import col

from leavetrack.models.audit import AuditLog
from leavetrack.models.balance import LeaveBalance
from leavetrack.models.enums import LedgerEntryType
from leavetrack.models.ledger import LeaveLedgerEntry
from leavetrack.services.employee import EmployeeInfo

if TYPE_CHECKING:
    from httpx import AsyncClient, Response
    from sqlalchemy.ext.asyncio import AsyncSession

    from leavetrack.services.clock import FixedClock
    from leavetrack.services.employee import InMemoryEmployeeDirectory

EMPLOYEE_ID = uuid.uuid4()
COLLEAGUE_ID = uuid.uuid4()
MANAGER_ID = uuid.uuid4()
OTHER_MANAGER_ID = uuid.uuid4()
HR_ID = uuid.uuid4()

EMPLOYEE_HEADERS = {"X-User-Id": str(EMPLOYEE_ID), "X-Role": "employee"}
COLLEAGUE_HEADERS = {"X-User-Id": str(COLLEAGUE_ID), "X-Role": "employee"}
MANAGER_HEADERS = {"X-User-Id": str(MANAGER_ID), "X-Role": "manager"}
OTHER_MANAGER_HEADERS = {"X-User-Id": str(OTHER_MANAGER_ID), "X-Role": "manager"}
HR_HEADERS = {"X-User-Id": str(HR_ID), "X-Role": "hr"}

REQUESTS_URL = "/leave-requests"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _seed_directory(directory: InMemoryEmployeeDirectory) -> None:
    """Asha and Ben report to Carmen; Carmen and Dev report to HR."""
    directory.seed(EmployeeInfo(id=EMPLOYEE_ID, name="Asha", email="asha@example.com", approver_id=MANAGER_ID))
    directory.seed(EmployeeInfo(id=COLLEAGUE_ID, name="Ben", email="ben@example.com", approver_id=MANAGER_ID))
    directory.seed(EmployeeInfo(id=MANAGER_ID, name="Carmen", email="carmen@example.com", approver_id=HR_ID))
    directory.seed(EmployeeInfo(id=OTHER_MANAGER_ID, name="Dev", email="dev@example.com", approver_id=HR_ID))
    directory.seed(EmployeeInfo(id=HR_ID, name="Eli", email="eli@example.com"))


# ---------------------------------------------------------------------------
# Test helpers
# ---------------------------------------------------------------------------


async def _submit(
    client: AsyncClient,
    start: str = "2026-10-20",
    end: str = "2026-10-22",
    category: str = "casual",
    headers: dict[str, str] = EMPLOYEE_HEADERS,
    **extra: Any,
) -> Response:
    body: dict[str, Any] = {
        "category": category,
        "start_date": start,
        "end_date": end,
        "reason": "Family visit",
    }
    body.update(extra)
    return await client.post(REQUESTS_URL, json=body, headers=headers)


async def _submit_ok(client: AsyncClient, **kwargs: Any) -> str:
    resp = await _submit(client, **kwargs)
    assert resp.status_code == 201, resp.text
    request_id: str = resp.json()["id"]
    return request_id


async def _decide(
    client: AsyncClient,
    request_id: str,
    decision: str = "approved",
    comment: str | None = None,
    headers: dict[str, str] = MANAGER_HEADERS,
) -> Response:
    body: dict[str, Any] = {"decision": decision}
    if comment is not None:
        body["comment"] = comment
    return await client.put(f"{REQUESTS_URL}/{request_id}/decision", json=body, headers=headers)


async def _cancel(client: AsyncClient, request_id: str, headers: dict[str, str] = EMPLOYEE_HEADERS) -> Response:
    return await client.put(f"{REQUESTS_URL}/{request_id}/cancel", headers=headers)


async def _balance(client: AsyncClient, category: str = "casual") -> dict[str, Any]:
    resp = await client.get(f"/employees/{EMPLOYEE_ID}/balances", headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 200
    return next(item for item in resp.json()["items"] if item["category"] == category)


# ---------------------------------------------------------------------------
# Submit
# ---------------------------------------------------------------------------


async def test_submit_creates_pending_request(async_client: AsyncClient) -> None:
    resp = await _submit(async_client, contact_during_leave="+1 555 0100")
    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "pending"
    assert data["employee_id"] == str(EMPLOYEE_ID)
    assert data["approver_id"] == str(MANAGER_ID)
    assert data["category"] == "casual"
    assert data["day_count"] == 3.0
    assert data["is_half_day"] is False
    assert data["half_day_session"] is None
    assert data["contact_during_leave"] == "+1 555 0100"
    assert data["decided_at"] is None
    assert data["version"] == 1
    assert data["applied_at"].startswith("2026-10-17T09:30")


async def test_submit_does_not_touch_balance(async_client: AsyncClient) -> None:
    await _submit_ok(async_client)
    balance = await _balance(async_client)
    assert balance["used"] == 0.0
    assert balance["remaining"] == 12.0


async def test_submit_half_day(async_client: AsyncClient) -> None:
    resp = await _submit(async_client, start="2026-10-20", end="2026-10-20", is_half_day=True)
    assert resp.status_code == 201
    assert resp.json()["day_count"] == 0.5
    assert resp.json()["half_day_session"] == "first_half"

    resp = await _submit(
        async_client, start="2026-10-23", end="2026-10-23", is_half_day=True, half_day_session="second_half"
    )
    assert resp.json()["half_day_session"] == "second_half"


async def test_half_day_blocks_the_whole_day(async_client: AsyncClient) -> None:
    await _submit_ok(async_client, start="2026-10-20", end="2026-10-20", is_half_day=True)
    resp = await _submit(
        async_client, start="2026-10-20", end="2026-10-20", is_half_day=True, half_day_session="second_half"
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "OverlappingRequest"


async def test_submit_reason_is_trimmed(async_client: AsyncClient) -> None:
    resp = await _submit(async_client, reason="  Wedding  ")
    assert resp.json()["reason"] == "Wedding"


@pytest.mark.parametrize(
    ("overrides", "error"),
    [
        ({"start": "2026-10-22", "end": "2026-10-20"}, "InvalidDateRange"),
        ({"start": "2026-10-16", "end": "2026-10-18"}, "InvalidDateRange"),
        ({"start": "2026-10-20", "end": "2026-10-21", "is_half_day": True}, "InvalidDateRange"),
        ({"start": "2026-11-01", "end": "2026-12-01"}, "SpanTooLong"),
        ({"reason": "   "}, "EmptyReason"),
        ({"reason": "x" * 501}, "ReasonTooLong"),
    ],
)
async def test_submit_validation_errors(async_client: AsyncClient, overrides: dict[str, Any], error: str) -> None:
    resp = await _submit(async_client, **overrides)
    assert resp.status_code == 400
    assert resp.json()["error"] == error


async def test_submit_without_reason_field(async_client: AsyncClient) -> None:
    resp = await async_client.post(
        REQUESTS_URL,
        json={"category": "casual", "start_date": "2026-10-20", "end_date": "2026-10-20"},
        headers=EMPLOYEE_HEADERS,
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "EmptyReason"


async def test_submit_unknown_category_is_schema_error(async_client: AsyncClient) -> None:
    resp = await _submit(async_client, category="sabbatical")
    assert resp.status_code == 422
    assert resp.json()["error"] == "ValidationError"


async def test_submit_more_than_allocated(async_client: AsyncClient) -> None:
    resp = await _submit(async_client, start="2026-11-02", end="2026-11-14")
    assert resp.status_code == 400
    data = resp.json()
    assert data["error"] == "InsufficientBalance"
    assert data["context"] == {"category": "casual", "remaining": 12.0, "requested": 13.0}


async def test_submit_is_idempotent_per_key(async_client: AsyncClient, db_session: AsyncSession) -> None:
    first = await _submit(async_client, idempotency_key="form-42")
    second = await _submit(async_client, idempotency_key="form-42")
    assert first.status_code == 201
    assert second.status_code == 201
    assert first.json()["id"] == second.json()["id"]

    audits = (await db_session.execute(select(AuditLog).where(col(AuditLog.action) == "SUBMIT"))).scalars().all()
    assert len(audits) == 1


async def test_idempotency_keys_are_per_employee(async_client: AsyncClient) -> None:
    mine = await _submit(async_client, idempotency_key="form-1")
    theirs = await _submit(async_client, idempotency_key="form-1", headers=COLLEAGUE_HEADERS)
    assert mine.json()["id"] != theirs.json()["id"]


async def test_employee_outside_directory_has_no_approver(async_client: AsyncClient) -> None:
    outsider = {"X-User-Id": str(uuid.uuid4()), "X-Role": "employee"}
    resp = await _submit(async_client, headers=outsider)
    assert resp.status_code == 201
    assert resp.json()["approver_id"] is None

    request_id = resp.json()["id"]
    assert (await _decide(async_client, request_id)).status_code == 403
    assert (await _decide(async_client, request_id, headers=HR_HEADERS)).status_code == 200


async def test_self_listed_approver_is_dropped(
    async_client: AsyncClient, directory: InMemoryEmployeeDirectory
) -> None:
    directory.seed(EmployeeInfo(id=EMPLOYEE_ID, name="Asha", email="asha@example.com", approver_id=EMPLOYEE_ID))
    resp = await _submit(async_client)
    assert resp.status_code == 201
    assert resp.json()["approver_id"] is None
    assert (await _decide(async_client, resp.json()["id"], headers=EMPLOYEE_HEADERS)).status_code == 403


# ---------------------------------------------------------------------------
# Overlap
# ---------------------------------------------------------------------------


async def test_overlapping_submission_is_refused(async_client: AsyncClient) -> None:
    first_id = await _submit_ok(async_client)
    resp = await _submit(async_client, start="2026-10-22", end="2026-10-24", category="sick")
    assert resp.status_code == 400
    data = resp.json()
    assert data["error"] == "OverlappingRequest"
    assert data["context"]["conflicting_request_id"] == first_id
    assert data["context"]["conflicting_status"] == "pending"


async def test_overlap_with_approved_request(async_client: AsyncClient) -> None:
    first_id = await _submit_ok(async_client)
    await _decide(async_client, first_id)
    resp = await _submit(async_client, start="2026-10-18", end="2026-10-20")
    assert resp.status_code == 400
    assert resp.json()["context"]["conflicting_status"] == "approved"


async def test_rejected_and_cancelled_requests_free_their_days(async_client: AsyncClient) -> None:
    rejected_id = await _submit_ok(async_client)
    await _decide(async_client, rejected_id, "rejected", comment="Release week")
    cancelled_id = await _submit_ok(async_client)
    await _cancel(async_client, cancelled_id)

    resp = await _submit(async_client)
    assert resp.status_code == 201


async def test_other_employees_may_overlap(async_client: AsyncClient) -> None:
    await _submit_ok(async_client)
    resp = await _submit(async_client, headers=COLLEAGUE_HEADERS)
    assert resp.status_code == 201


# ---------------------------------------------------------------------------
# Approve / reject
# ---------------------------------------------------------------------------


async def test_approve_debits_balance(async_client: AsyncClient, db_session: AsyncSession) -> None:
    request_id = await _submit_ok(async_client)
    resp = await _decide(async_client, request_id, comment="Enjoy")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "approved"
    assert data["decided_by"] == str(MANAGER_ID)
    assert data["decided_at"] is not None
    assert data["decision_comment"] == "Enjoy"
    assert data["version"] == 2

    balance = await _balance(async_client)
    assert balance["used"] == 3.0
    assert balance["remaining"] == 9.0

    entries = (await db_session.execute(select(LeaveLedgerEntry))).scalars().all()
    assert len(entries) == 1
    assert entries[0].entry_type == LedgerEntryType.DEBIT
    assert entries[0].source_id == request_id
    assert entries[0].amount_half_days == -6


async def test_approve_twice_is_invalid_state(async_client: AsyncClient) -> None:
    request_id = await _submit_ok(async_client)
    assert (await _decide(async_client, request_id)).status_code == 200
    resp = await _decide(async_client, request_id)
    assert resp.status_code == 409
    assert resp.json()["error"] == "InvalidState"
    assert (await _balance(async_client))["used"] == 3.0


async def test_approval_refused_when_balance_consumed(async_client: AsyncClient, db_session: AsyncSession) -> None:
    db_session.add(LeaveBalance(employee_id=EMPLOYEE_ID, category="sick", allocated_half_days=20, used_half_days=18))
    await db_session.commit()

    request_id = await _submit_ok(async_client, category="sick", start="2026-10-20", end="2026-10-21")
    resp = await _decide(async_client, request_id)
    assert resp.status_code == 409
    data = resp.json()
    assert data["error"] == "InsufficientBalance"
    assert data["context"] == {"category": "sick", "remaining": 1.0, "requested": 2.0}

    resp = await async_client.get(f"{REQUESTS_URL}/{request_id}", headers=EMPLOYEE_HEADERS)
    assert resp.json()["status"] == "pending"
    assert resp.json()["version"] == 1
    sick = await _balance(async_client, "sick")
    assert sick["used"] == 9.0
    entries = (await db_session.execute(select(LeaveLedgerEntry))).scalars().all()
    assert entries == []


async def test_owner_cannot_approve_own_request(async_client: AsyncClient) -> None:
    request_id = await _submit_ok(async_client)
    resp = await _decide(async_client, request_id, headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Not permitted to perform this action"


async def test_other_manager_cannot_decide(async_client: AsyncClient) -> None:
    request_id = await _submit_ok(async_client)
    assert (await _decide(async_client, request_id, headers=OTHER_MANAGER_HEADERS)).status_code == 403


async def test_elevated_role_can_decide_any_request(async_client: AsyncClient) -> None:
    request_id = await _submit_ok(async_client)
    admin = {"X-User-Id": str(uuid.uuid4()), "X-Role": "Admin"}
    resp = await _decide(async_client, request_id, headers=admin)
    assert resp.status_code == 200
    assert resp.json()["status"] == "approved"


async def test_reject_requires_comment(async_client: AsyncClient) -> None:
    request_id = await _submit_ok(async_client)
    resp = await _decide(async_client, request_id, "rejected")
    assert resp.status_code == 400
    assert resp.json()["error"] == "CommentRequired"

    resp = await _decide(async_client, request_id, "rejected", comment="  Quarter close  ")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "rejected"
    assert data["decision_comment"] == "Quarter close"
    assert (await _balance(async_client))["used"] == 0.0


async def test_rejected_request_is_final(async_client: AsyncClient) -> None:
    request_id = await _submit_ok(async_client)
    await _decide(async_client, request_id, "rejected", comment="No cover")
    assert (await _decide(async_client, request_id)).status_code == 409
    assert (await _cancel(async_client, request_id)).status_code == 409


async def test_decide_unknown_request(async_client: AsyncClient) -> None:
    resp = await _decide(async_client, str(uuid.uuid4()))
    assert resp.status_code == 404
    assert resp.json()["error"] == "NotFound"


async def test_decide_invalid_decision_value(async_client: AsyncClient) -> None:
    request_id = await _submit_ok(async_client)
    resp = await _decide(async_client, request_id, "maybe")
    assert resp.status_code == 422


async def test_pending_request_past_start_can_be_approved(async_client: AsyncClient, clock: FixedClock) -> None:
    request_id = await _submit_ok(async_client)
    clock.set(datetime(2026, 10, 21, 8, 0, tzinfo=UTC))
    resp = await _decide(async_client, request_id)
    assert resp.status_code == 200


# ---------------------------------------------------------------------------
# Cancel
# ---------------------------------------------------------------------------


async def test_cancel_pending(async_client: AsyncClient, db_session: AsyncSession) -> None:
    request_id = await _submit_ok(async_client)
    resp = await _cancel(async_client, request_id)
    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"
    assert resp.json()["decided_by"] == str(EMPLOYEE_ID)
    entries = (await db_session.execute(select(LeaveLedgerEntry))).scalars().all()
    assert entries == []


async def test_cancel_approved_refunds_balance(async_client: AsyncClient, db_session: AsyncSession) -> None:
    request_id = await _submit_ok(async_client)
    await _decide(async_client, request_id)
    assert (await _balance(async_client))["used"] == 3.0

    resp = await _cancel(async_client, request_id)
    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"
    assert (await _balance(async_client))["used"] == 0.0

    entries = (
        (await db_session.execute(select(LeaveLedgerEntry).order_by(col(LeaveLedgerEntry.amount_half_days))))
        .scalars()
        .all()
    )
    assert [(e.entry_type, e.amount_half_days) for e in entries] == [
        (LedgerEntryType.DEBIT, -6),
        (LedgerEntryType.CREDIT, 6),
    ]


async def test_cancel_after_start_is_refused(async_client: AsyncClient, clock: FixedClock) -> None:
    request_id = await _submit_ok(async_client)
    await _decide(async_client, request_id)

    clock.set(datetime(2026, 10, 21, 8, 0, tzinfo=UTC))
    resp = await _cancel(async_client, request_id)
    assert resp.status_code == 400
    data = resp.json()
    assert data["error"] == "CancellationWindowClosed"
    assert data["context"]["start_date"] == "2026-10-20"
    assert (await _balance(async_client))["used"] == 3.0


async def test_cancel_on_start_day_is_refused(async_client: AsyncClient, clock: FixedClock) -> None:
    request_id = await _submit_ok(async_client)
    await _decide(async_client, request_id)
    clock.set(datetime(2026, 10, 20, 0, 5, tzinfo=UTC))
    assert (await _cancel(async_client, request_id)).status_code == 400


async def test_cancel_pending_after_start_is_allowed(async_client: AsyncClient, clock: FixedClock) -> None:
    request_id = await _submit_ok(async_client)
    clock.set(datetime(2026, 10, 25, tzinfo=UTC))
    assert (await _cancel(async_client, request_id)).status_code == 200


async def test_approver_cannot_cancel(async_client: AsyncClient) -> None:
    request_id = await _submit_ok(async_client)
    assert (await _cancel(async_client, request_id, headers=MANAGER_HEADERS)).status_code == 403


async def test_hr_can_cancel_on_behalf(async_client: AsyncClient) -> None:
    request_id = await _submit_ok(async_client)
    await _decide(async_client, request_id)
    resp = await _cancel(async_client, request_id, headers=HR_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["decided_by"] == str(HR_ID)
    assert (await _balance(async_client))["used"] == 0.0


async def test_cancel_twice(async_client: AsyncClient) -> None:
    request_id = await _submit_ok(async_client)
    await _cancel(async_client, request_id)
    resp = await _cancel(async_client, request_id)
    assert resp.status_code == 409
    assert resp.json()["error"] == "InvalidState"


async def test_cancel_unknown_request(async_client: AsyncClient) -> None:
    assert (await _cancel(async_client, str(uuid.uuid4()))).status_code == 404


# ---------------------------------------------------------------------------
# Edit and reassign
# ---------------------------------------------------------------------------


async def test_owner_edits_pending_request(async_client: AsyncClient) -> None:
    request_id = await _submit_ok(async_client)
    resp = await async_client.patch(
        f"{REQUESTS_URL}/{request_id}",
        json={"reason": "Moving house", "contact_during_leave": "asha@personal.example"},
        headers=EMPLOYEE_HEADERS,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["reason"] == "Moving house"
    assert data["contact_during_leave"] == "asha@personal.example"
    assert data["start_date"] == "2026-10-20"
    assert data["version"] == 2


async def test_edit_with_no_changes(async_client: AsyncClient) -> None:
    request_id = await _submit_ok(async_client)
    resp = await async_client.patch(f"{REQUESTS_URL}/{request_id}", json={}, headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["version"] == 1


async def test_edit_rules(async_client: AsyncClient) -> None:
    request_id = await _submit_ok(async_client)
    url = f"{REQUESTS_URL}/{request_id}"

    resp = await async_client.patch(url, json={"reason": " "}, headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 400
    assert resp.json()["error"] == "EmptyReason"

    resp = await async_client.patch(url, json={"reason": "Mine now"}, headers=MANAGER_HEADERS)
    assert resp.status_code == 403

    await _decide(async_client, request_id)
    resp = await async_client.patch(url, json={"reason": "Too late"}, headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 409


async def test_reassign_approver(async_client: AsyncClient) -> None:
    request_id = await _submit_ok(async_client)
    url = f"{REQUESTS_URL}/{request_id}/approver"

    resp = await async_client.put(url, json={"approver_id": str(OTHER_MANAGER_ID)}, headers=HR_HEADERS)
    assert resp.status_code == 200
    assert resp.json()["approver_id"] == str(OTHER_MANAGER_ID)

    assert (await _decide(async_client, request_id)).status_code == 403
    assert (await _decide(async_client, request_id, headers=OTHER_MANAGER_HEADERS)).status_code == 200


async def test_reassign_rules(async_client: AsyncClient) -> None:
    request_id = await _submit_ok(async_client)
    url = f"{REQUESTS_URL}/{request_id}/approver"

    resp = await async_client.put(url, json={"approver_id": str(OTHER_MANAGER_ID)}, headers=MANAGER_HEADERS)
    assert resp.status_code == 403

    resp = await async_client.put(url, json={"approver_id": str(EMPLOYEE_ID)}, headers=HR_HEADERS)
    assert resp.status_code == 400
    assert resp.json()["error"] == "InvalidApprover"


# ---------------------------------------------------------------------------
# Reads and scoping
# ---------------------------------------------------------------------------


async def test_get_request_scoping(async_client: AsyncClient) -> None:
    request_id = await _submit_ok(async_client)
    url = f"{REQUESTS_URL}/{request_id}"
    assert (await async_client.get(url, headers=EMPLOYEE_HEADERS)).status_code == 200
    assert (await async_client.get(url, headers=MANAGER_HEADERS)).status_code == 200
    assert (await async_client.get(url, headers=HR_HEADERS)).status_code == 200
    assert (await async_client.get(url, headers=COLLEAGUE_HEADERS)).status_code == 403
    assert (await async_client.get(url, headers=OTHER_MANAGER_HEADERS)).status_code == 403


async def test_get_unknown_request(async_client: AsyncClient) -> None:
    resp = await async_client.get(f"{REQUESTS_URL}/{uuid.uuid4()}", headers=HR_HEADERS)
    assert resp.status_code == 404


async def test_list_is_scoped_by_role(async_client: AsyncClient) -> None:
    mine = await _submit_ok(async_client)
    theirs = await _submit_ok(async_client, headers=COLLEAGUE_HEADERS)
    managers = await _submit_ok(async_client, headers=MANAGER_HEADERS)

    async def _ids(hdrs: dict[str, str]) -> set[str]:
        resp = await async_client.get(REQUESTS_URL, headers=hdrs)
        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == len(data["items"])
        return {item["id"] for item in data["items"]}

    assert await _ids(EMPLOYEE_HEADERS) == {mine}
    assert await _ids(COLLEAGUE_HEADERS) == {theirs}
    assert await _ids(MANAGER_HEADERS) == {mine, theirs, managers}
    assert await _ids(OTHER_MANAGER_HEADERS) == set()
    assert await _ids(HR_HEADERS) == {mine, theirs, managers}


async def test_list_filters(async_client: AsyncClient) -> None:
    casual_id = await _submit_ok(async_client)
    sick_id = await _submit_ok(async_client, category="sick", start="2026-11-02", end="2026-11-03")
    await _decide(async_client, sick_id)
    colleague_id = await _submit_ok(async_client, headers=COLLEAGUE_HEADERS, start="2026-12-01", end="2026-12-01")

    async def _ids(**params: str) -> list[str]:
        resp = await async_client.get(REQUESTS_URL, params=params, headers=HR_HEADERS)
        assert resp.status_code == 200
        return [item["id"] for item in resp.json()["items"]]

    assert set(await _ids(status="approved")) == {sick_id}
    assert set(await _ids(status="pending")) == {casual_id, colleague_id}
    assert set(await _ids(category="sick")) == {sick_id}
    assert set(await _ids(employee_id=str(COLLEAGUE_ID))) == {colleague_id}
    assert set(await _ids(approver_id=str(MANAGER_ID))) == {casual_id, sick_id, colleague_id}
    assert set(await _ids(start_from="2026-11-01", start_to="2026-11-30")) == {sick_id}


async def test_list_pagination(async_client: AsyncClient) -> None:
    for day in range(20, 25):
        await _submit_ok(async_client, start=f"2026-11-{day}", end=f"2026-11-{day}")
    resp = await async_client.get(REQUESTS_URL, params={"limit": 2, "offset": 4}, headers=EMPLOYEE_HEADERS)
    data = resp.json()
    assert data["total"] == 5
    assert len(data["items"]) == 1

    resp = await async_client.get(REQUESTS_URL, params={"limit": 0}, headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


async def test_transitions_are_audited(async_client: AsyncClient, db_session: AsyncSession) -> None:
    request_id = await _submit_ok(async_client)
    await async_client.patch(f"{REQUESTS_URL}/{request_id}", json={"reason": "Updated"}, headers=EMPLOYEE_HEADERS)
    await _decide(async_client, request_id)
    await _cancel(async_client, request_id)

    audits = (
        (
            await db_session.execute(
                select(AuditLog).where(col(AuditLog.entity_id) == request_id).order_by(col(AuditLog.created_at))
            )
        )
        .scalars()
        .all()
    )
    assert [a.action for a in audits] == ["SUBMIT", "UPDATE", "APPROVE", "CANCEL"]
    assert [a.actor_id for a in audits] == [EMPLOYEE_ID, EMPLOYEE_ID, MANAGER_ID, EMPLOYEE_ID]
    assert audits[0].before_json is None
    approve = audits[2]
    assert approve.before_json is not None and approve.after_json is not None
    assert approve.before_json["status"] == "pending"
    assert approve.after_json["status"] == "approved"


async def test_refused_transitions_are_not_audited(async_client: AsyncClient, db_session: AsyncSession) -> None:
    request_id = await _submit_ok(async_client)
    await _decide(async_client, request_id, headers=EMPLOYEE_HEADERS)
    await _decide(async_client, request_id, "rejected")

    audits = (await db_session.execute(select(AuditLog))).scalars().all()
    assert [a.action for a in audits] == ["SUBMIT"]


async def test_request_history_endpoint(async_client: AsyncClient) -> None:
    request_id = await _submit_ok(async_client)
    await _decide(async_client, request_id, "rejected", comment="Launch week")

    resp = await async_client.get(f"{REQUESTS_URL}/{request_id}/history", headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 200
    data = resp.json()
    assert data["total"] == 2
    assert [item["action"] for item in data["items"]] == ["SUBMIT", "REJECT"]
    assert data["items"][1]["actor_id"] == str(MANAGER_ID)
    assert data["items"][1]["after_json"]["decision_comment"] == "Launch week"

    resp = await async_client.get(f"{REQUESTS_URL}/{request_id}/history", headers=COLLEAGUE_HEADERS)
    assert resp.status_code == 403
    resp = await async_client.get(f"{REQUESTS_URL}/{uuid.uuid4()}/history", headers=HR_HEADERS)
    assert resp.status_code == 404
