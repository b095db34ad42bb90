# tests/domains/test_lims.py

"""
'lims' 도메인 (시험 의뢰, 시료, 시험 계획, 시험 결과) API 엔드포인트에 대한 통합 테스트 모듈입니다.
"""

import uuid
from datetime import datetime, timezone

import pytest
from httpx import AsyncClient
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from pvlims.core.exceptions import ConflictError
from pvlims.domains.lims import models as lims_models
from pvlims.domains.shared import crud as shared_crud
from pvlims.domains.shared import models as shared_models

LIMS = "/api/v1/lims"


async def _create_request(client: AsyncClient, **overrides) -> dict:
    payload = {"title": "IEC 61215 qualification", "manufacturer": "Sunrise", "rated_power_w": 410, **overrides}
    response = await client.post(f"{LIMS}/service-requests", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


async def _create_sample(client: AsyncClient, request_id: str, **overrides) -> dict:
    response = await client.post(f"{LIMS}/samples", json={"service_request_id": request_id, **overrides})
    assert response.status_code == 201, response.text
    return response.json()


async def _create_plan(client: AsyncClient, request_id: str, sample_id: str = None, name: str = "Thermal cycling") -> dict:
    response = await client.post(
        f"{LIMS}/test-plans", json={"service_request_id": request_id, "sample_id": sample_id, "name": name}
    )
    assert response.status_code == 201, response.text
    return response.json()


# =============================================================================
# 1. 시험 의뢰 (ServiceRequest)
# =============================================================================
@pytest.mark.asyncio
async def test_create_service_request_assigns_number(technician_client: AsyncClient):
    first = await _create_request(technician_client)
    second = await _create_request(technician_client, title="Second")

    year = datetime.now(timezone.utc).year
    assert first["status"] == "draft"
    assert first["request_number"] == f"SR-{year}-0001"
    assert second["request_number"] == f"SR-{year}-0002"


@pytest.mark.asyncio
async def test_service_request_lifecycle(technician_client: AsyncClient, lab_manager_client: AsyncClient):
    sr = await _create_request(technician_client, estimated_completion="2099-01-01")
    sr_id = sr["id"]

    response = await technician_client.post(f"{LIMS}/service-requests/{sr_id}/submit")
    assert response.status_code == 200
    assert response.json()["status"] == "submitted"

    # 관리자에게 제출 알림
    notices = (await lab_manager_client.get("/api/v1/shared/notifications")).json()
    assert notices["data"][0]["title"] == "Service request submitted"

    response = await technician_client.post(f"{LIMS}/service-requests/{sr_id}/start-review")
    assert response.json()["status"] == "in_review"

    response = await technician_client.post(f"{LIMS}/service-requests/{sr_id}/approve")
    assert response.status_code == 403

    response = await lab_manager_client.post(f"{LIMS}/service-requests/{sr_id}/approve")
    assert response.status_code == 200
    assert response.json()["status"] == "approved"

    # 작성자에게 승인 알림
    notices = (await technician_client.get("/api/v1/shared/notifications")).json()
    assert any(n["title"] == "Service request approved" for n in notices["data"])

    await technician_client.post(f"{LIMS}/service-requests/{sr_id}/start-progress")
    response = await technician_client.post(f"{LIMS}/service-requests/{sr_id}/complete")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "completed"
    assert body["actual_completion"] is not None


@pytest.mark.asyncio
async def test_service_request_invalid_transition(technician_client: AsyncClient):
    sr = await _create_request(technician_client)
    response = await technician_client.post(f"{LIMS}/service-requests/{sr['id']}/complete")
    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "invalid_state"
    assert body["current_status"] == "draft"


@pytest.mark.asyncio
async def test_service_request_status_via_update(technician_client: AsyncClient):
    sr = await _create_request(technician_client)
    sr_id = sr["id"]

    response = await technician_client.put(
        f"{LIMS}/service-requests/{sr_id}", json={"status": "submitted", "priority": "urgent"}
    )
    assert response.status_code == 200
    assert response.json()["status"] == "submitted"
    assert response.json()["priority"] == "urgent"

    # cancelled로 들어가는 전이는 없음
    response = await technician_client.put(f"{LIMS}/service-requests/{sr_id}", json={"status": "cancelled"})
    assert response.status_code == 409

    response = await technician_client.get(f"{LIMS}/service-requests/{sr_id}")
    assert response.json()["status"] == "submitted"


@pytest.mark.asyncio
async def test_service_request_update_rejects_null_title(technician_client: AsyncClient):
    sr = await _create_request(technician_client)
    response = await technician_client.put(f"{LIMS}/service-requests/{sr['id']}", json={"title": None})
    assert response.status_code == 422

    response = await technician_client.get(f"{LIMS}/service-requests/{sr['id']}")
    assert response.json()["title"] == "IEC 61215 qualification"


@pytest.mark.asyncio
async def test_service_request_detail_and_filters(technician_client: AsyncClient):
    sr = await _create_request(technician_client)
    await _create_request(technician_client, title="Other", priority="high")
    await _create_sample(technician_client, sr["id"])
    await _create_plan(technician_client, sr["id"])

    detail = (await technician_client.get(f"{LIMS}/service-requests/{sr['id']}")).json()
    assert len(detail["samples"]) == 1
    assert len(detail["test_plans"]) == 1

    page = (await technician_client.get(f"{LIMS}/service-requests", params={"priority": "high"})).json()
    assert page["pagination"]["total"] == 1
    assert page["data"][0]["title"] == "Other"


@pytest.mark.asyncio
async def test_delete_service_request_guards(technician_client: AsyncClient, lab_manager_client: AsyncClient):
    sr = await _create_request(technician_client)
    sr_id = sr["id"]
    await _create_sample(technician_client, sr_id)

    assert (await technician_client.delete(f"{LIMS}/service-requests/{sr_id}")).status_code == 403

    response = await lab_manager_client.delete(f"{LIMS}/service-requests/{sr_id}")
    assert response.status_code == 200
    samples = (await lab_manager_client.get(f"{LIMS}/samples", params={"service_request_id": sr_id})).json()
    assert samples["pagination"]["total"] == 0

    done = await _create_request(technician_client, title="Finished")
    for action in ("submit", "approve", "start-progress", "complete"):
        await lab_manager_client.post(f"{LIMS}/service-requests/{done['id']}/{action}")
    response = await lab_manager_client.delete(f"{LIMS}/service-requests/{done['id']}")
    assert response.status_code == 409
    assert response.json()["error"] == "conflict"


# =============================================================================
# 2. 시료 (Sample) 및 보관 이력
# =============================================================================
@pytest.mark.asyncio
async def test_sample_receive_and_transfer_custody(technician_client: AsyncClient):
    sr = await _create_request(technician_client)
    sample = await _create_sample(technician_client, sr["id"], serial_number="SN-001")
    sample_id = sample["id"]
    assert sample["status"] == "registered"
    assert sample["sample_code"].startswith("SMP-")

    response = await technician_client.post(
        f"{LIMS}/samples/{sample_id}/receive",
        json={"receiving_condition": "good", "storage_location": "Shelf A1"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "received"
    assert body["storage_location"] == "Shelf A1"
    assert body["received_by"] is not None

    response = await technician_client.post(
        f"{LIMS}/samples/{sample_id}/transfer", json={"to_location": "Chamber 3", "notes": "for TC200"}
    )
    assert response.status_code == 200
    assert response.json()["status"] == "received"
    assert response.json()["storage_location"] == "Chamber 3"

    custody = (await technician_client.get(f"{LIMS}/samples/{sample_id}/chain-of-custody")).json()
    assert [e["action"] for e in custody] == ["transferred", "received", "registered"]
    assert custody[0]["from_location"] == "Shelf A1"
    assert custody[0]["to_location"] == "Chamber 3"
    assert custody[2]["to_location"] == "System"


@pytest.mark.asyncio
async def test_receive_twice_is_rejected_and_custody_unchanged(technician_client: AsyncClient):
    sr = await _create_request(technician_client)
    sample_id = (await _create_sample(technician_client, sr["id"]))["id"]
    receive = {"receiving_condition": "damaged", "storage_location": "Quarantine"}

    assert (await technician_client.post(f"{LIMS}/samples/{sample_id}/receive", json=receive)).status_code == 200
    response = await technician_client.post(f"{LIMS}/samples/{sample_id}/receive", json=receive)
    assert response.status_code == 409
    assert response.json()["error"] == "invalid_state"

    custody = (await technician_client.get(f"{LIMS}/samples/{sample_id}/chain-of-custody")).json()
    assert len(custody) == 2


@pytest.mark.asyncio
async def test_receive_rolls_back_when_audit_fails(technician_client: AsyncClient, monkeypatch):
    sr = await _create_request(technician_client)
    sample_id = (await _create_sample(technician_client, sr["id"]))["id"]

    async def failing_record(*args, **kwargs):
        raise ConflictError("audit store unavailable")

    monkeypatch.setattr(shared_crud.audit_log, "record", failing_record)
    response = await technician_client.post(
        f"{LIMS}/samples/{sample_id}/receive",
        json={"receiving_condition": "good", "storage_location": "Shelf B2"},
    )
    assert response.status_code == 409
    monkeypatch.undo()

    sample = (await technician_client.get(f"{LIMS}/samples/{sample_id}")).json()
    assert sample["status"] == "registered"
    assert sample["storage_location"] is None
    custody = (await technician_client.get(f"{LIMS}/samples/{sample_id}/chain-of-custody")).json()
    assert [e["action"] for e in custody] == ["registered"]


@pytest.mark.asyncio
async def test_sample_for_unknown_request(technician_client: AsyncClient):
    response = await technician_client.post(
        f"{LIMS}/samples", json={"service_request_id": "00000000-0000-0000-0000-000000000000"}
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_sample_hold_and_release_via_update(technician_client: AsyncClient):
    sr = await _create_request(technician_client)
    sample_id = (await _create_sample(technician_client, sr["id"]))["id"]

    response = await technician_client.put(f"{LIMS}/samples/{sample_id}", json={"status": "on_hold"})
    assert response.json()["status"] == "on_hold"
    response = await technician_client.put(f"{LIMS}/samples/{sample_id}", json={"status": "received"})
    assert response.json()["status"] == "received"
    response = await technician_client.put(f"{LIMS}/samples/{sample_id}", json={"status": "in_testing"})
    assert response.status_code == 409


# =============================================================================
# 3. 시험 계획 (TestPlan) 및 시험 결과 (TestResult)
# =============================================================================
@pytest.mark.asyncio
async def test_add_result_starts_plan_and_sample(technician_client: AsyncClient):
    sr = await _create_request(technician_client)
    sample_id = (await _create_sample(technician_client, sr["id"]))["id"]
    await technician_client.post(
        f"{LIMS}/samples/{sample_id}/receive", json={"receiving_condition": "good", "storage_location": "A1"}
    )
    plan = await _create_plan(technician_client, sr["id"], sample_id)
    assert plan["status"] == "pending"

    response = await technician_client.post(
        f"{LIMS}/test-plans/{plan['id']}/results", json={"test_name": "Visual inspection", "status": "pass"}
    )
    assert response.status_code == 201
    result = response.json()
    assert result["sample_id"] == sample_id
    assert result["end_time"] is not None

    plan_now = (await technician_client.get(f"{LIMS}/test-plans/{plan['id']}")).json()
    assert plan_now["status"] == "in_progress"
    assert plan_now["actual_start"] is not None
    assert len(plan_now["results"]) == 1
    sample_now = (await technician_client.get(f"{LIMS}/samples/{sample_id}")).json()
    assert sample_now["status"] == "in_testing"


@pytest.mark.asyncio
async def test_complete_plan_requires_quality_role_and_no_pending(
    technician_client: AsyncClient, quality_engineer_client: AsyncClient
):
    sr = await _create_request(technician_client)
    plan = await _create_plan(technician_client, sr["id"])
    plan_id = plan["id"]
    pending = (await technician_client.post(
        f"{LIMS}/test-plans/{plan_id}/results", json={"test_name": "Insulation", "status": "pending"}
    )).json()

    assert (await technician_client.post(f"{LIMS}/test-plans/{plan_id}/complete")).status_code == 403

    response = await quality_engineer_client.post(f"{LIMS}/test-plans/{plan_id}/complete")
    assert response.status_code == 409
    assert response.json()["pending_count"] == 1

    await technician_client.put(f"{LIMS}/test-results/{pending['id']}", json={"status": "pass"})
    response = await quality_engineer_client.post(f"{LIMS}/test-plans/{plan_id}/complete")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "completed"
    assert body["reviewed_by"] is not None
    assert body["actual_end"] is not None


@pytest.mark.asyncio
async def test_complete_plan_with_failure_marks_failed_and_sample_tested(
    technician_client: AsyncClient, quality_engineer_client: AsyncClient
):
    sr = await _create_request(technician_client)
    sample_id = (await _create_sample(technician_client, sr["id"]))["id"]
    await technician_client.post(
        f"{LIMS}/samples/{sample_id}/receive", json={"receiving_condition": "good", "storage_location": "A1"}
    )
    plan_id = (await _create_plan(technician_client, sr["id"], sample_id))["id"]
    for name, verdict in (("Wet leakage", "pass"), ("Hot spot", "fail"), ("Mechanical load", "conditional")):
        await technician_client.post(f"{LIMS}/test-plans/{plan_id}/results", json={"test_name": name, "status": verdict})

    response = await quality_engineer_client.post(f"{LIMS}/test-plans/{plan_id}/complete")
    assert response.status_code == 200
    assert response.json()["status"] == "failed"

    sample = (await technician_client.get(f"{LIMS}/samples/{sample_id}")).json()
    assert sample["status"] == "tested"

    listing = (await technician_client.get(f"{LIMS}/test-plans", params={"service_request_id": sr["id"]})).json()
    item = listing["data"][0]
    assert (item["total_tests"], item["passed_tests"], item["failed_tests"]) == (3, 1, 1)

    # 종료된 계획에는 결과 추가 불가, 다시 완료도 불가
    response = await technician_client.post(
        f"{LIMS}/test-plans/{plan_id}/results", json={"test_name": "Late", "status": "pass"}
    )
    assert response.status_code == 409
    response = await quality_engineer_client.post(f"{LIMS}/test-plans/{plan_id}/complete")
    assert response.status_code == 409
    assert response.json()["error"] == "invalid_state"

    # 작성자에게 완료 알림
    notices = (await technician_client.get("/api/v1/shared/notifications", params={"unread_only": True})).json()
    assert any(n["title"] == "Test plan completed" and n["type"] == "warning" for n in notices["data"])


@pytest.mark.asyncio
async def test_results_of_completed_plan_are_frozen(
    technician_client: AsyncClient, quality_engineer_client: AsyncClient
):
    sr = await _create_request(technician_client)
    plan_id = (await _create_plan(technician_client, sr["id"]))["id"]
    response = await technician_client.post(
        f"{LIMS}/test-plans/{plan_id}/results", json={"test_name": "Insulation", "status": "pass"}
    )
    result_id = response.json()["id"]

    response = await quality_engineer_client.post(f"{LIMS}/test-plans/{plan_id}/complete")
    assert response.json()["status"] == "completed"

    response = await technician_client.put(f"{LIMS}/test-results/{result_id}", json={"status": "fail"})
    assert response.status_code == 409
    assert response.json()["error"] == "invalid_state"
    assert response.json()["current_status"] == "completed"

    plan = (await technician_client.get(f"{LIMS}/test-plans/{plan_id}")).json()
    assert plan["status"] == "completed"
    results = (await technician_client.get(f"{LIMS}/test-plans/{plan_id}/results")).json()
    assert [r["status"] for r in results] == ["pass"]


@pytest.mark.asyncio
async def test_delete_completed_plan_is_blocked(
    technician_client: AsyncClient, quality_engineer_client: AsyncClient, lab_manager_client: AsyncClient
):
    sr = await _create_request(technician_client)
    plan_id = (await _create_plan(technician_client, sr["id"]))["id"]
    await quality_engineer_client.post(f"{LIMS}/test-plans/{plan_id}/complete")

    response = await lab_manager_client.delete(f"{LIMS}/test-plans/{plan_id}")
    assert response.status_code == 409

    other_id = (await _create_plan(technician_client, sr["id"], name="Spare"))["id"]
    assert (await lab_manager_client.delete(f"{LIMS}/test-plans/{other_id}")).status_code == 200


@pytest.mark.asyncio
async def test_verify_result_requires_quality_role(
    technician_client: AsyncClient, quality_engineer_client: AsyncClient
):
    sr = await _create_request(technician_client)
    plan_id = (await _create_plan(technician_client, sr["id"]))["id"]
    result_id = (await technician_client.post(
        f"{LIMS}/test-plans/{plan_id}/results", json={"test_name": "I-V curve", "status": "pass"}
    )).json()["id"]

    payload = {"verification_notes": "Checked against calibration record"}
    assert (await technician_client.post(f"{LIMS}/test-results/{result_id}/verify", json=payload)).status_code == 403

    response = await quality_engineer_client.post(f"{LIMS}/test-results/{result_id}/verify", json=payload)
    assert response.status_code == 200
    body = response.json()
    assert body["verified_by"] is not None
    assert body["verification_notes"] == payload["verification_notes"]


@pytest.mark.asyncio
async def test_custody_entries_are_append_only(technician_client: AsyncClient, db_session: AsyncSession):
    sr = await _create_request(technician_client)
    sample_id = uuid.UUID((await _create_sample(technician_client, sr["id"]))["id"])

    entries = (await db_session.execute(
        select(lims_models.ChainOfCustodyEntry).where(lims_models.ChainOfCustodyEntry.sample_id == sample_id)
    )).scalars().all()
    assert len(entries) == 1

    entries[0].notes = "rewritten"
    with pytest.raises(ConflictError):
        await db_session.flush()
    await db_session.rollback()

    await db_session.delete(entries[0])
    with pytest.raises(ConflictError):
        await db_session.flush()
    await db_session.rollback()

    custody = (await technician_client.get(f"{LIMS}/samples/{sample_id}/chain-of-custody")).json()
    assert custody[0]["notes"] == "Sample registered in system"


# =============================================================================
# 4. 다단계 작업의 원자성
# =============================================================================
def _fail_step(monkeypatch, target, name: str) -> None:
    async def failing(*args, **kwargs):
        raise ConflictError("downstream store unavailable")

    monkeypatch.setattr(target, name, failing)


async def _audit_actions(db_session: AsyncSession, entity_id) -> list:
    result = await db_session.execute(
        select(shared_models.AuditLog.action).where(shared_models.AuditLog.entity_id == uuid.UUID(str(entity_id)))
    )
    return sorted(result.scalars().all())


async def _received_sample(client: AsyncClient, request_id: str) -> str:
    sample_id = (await _create_sample(client, request_id))["id"]
    response = await client.post(
        f"{LIMS}/samples/{sample_id}/receive", json={"receiving_condition": "good", "storage_location": "Shelf A1"}
    )
    assert response.status_code == 200, response.text
    return sample_id


@pytest.mark.asyncio
async def test_sample_create_rolls_back_when_audit_fails(
    technician_client: AsyncClient, db_session: AsyncSession, monkeypatch
):
    sr = await _create_request(technician_client)

    _fail_step(monkeypatch, shared_crud.audit_log, "record")
    response = await technician_client.post(f"{LIMS}/samples", json={"service_request_id": sr["id"]})
    assert response.status_code == 409
    monkeypatch.undo()

    listing = (await technician_client.get(f"{LIMS}/samples", params={"service_request_id": sr["id"]})).json()
    assert listing["pagination"]["total"] == 0
    entries = (await db_session.execute(select(lims_models.ChainOfCustodyEntry))).scalars().all()
    assert entries == []

    # 번호 채번도 함께 롤백되어 다음 시료가 첫 번호를 받습니다.
    sample = await _create_sample(technician_client, sr["id"])
    assert sample["sample_code"] == f"SMP-{datetime.now(timezone.utc).year}-0001"


@pytest.mark.asyncio
async def test_transfer_rolls_back_when_audit_fails(
    technician_client: AsyncClient, db_session: AsyncSession, monkeypatch
):
    sr = await _create_request(technician_client)
    sample_id = await _received_sample(technician_client, sr["id"])
    audit_before = await _audit_actions(db_session, sample_id)

    _fail_step(monkeypatch, shared_crud.audit_log, "record")
    response = await technician_client.post(
        f"{LIMS}/samples/{sample_id}/transfer", json={"to_location": "Climate chamber 2"}
    )
    assert response.status_code == 409
    monkeypatch.undo()

    sample = (await technician_client.get(f"{LIMS}/samples/{sample_id}")).json()
    assert sample["status"] == "received"
    assert sample["storage_location"] == "Shelf A1"
    custody = (await technician_client.get(f"{LIMS}/samples/{sample_id}/chain-of-custody")).json()
    assert [e["action"] for e in custody] == ["received", "registered"]
    assert await _audit_actions(db_session, sample_id) == audit_before


@pytest.mark.asyncio
async def test_add_result_rolls_back_when_audit_fails(
    technician_client: AsyncClient, db_session: AsyncSession, monkeypatch
):
    sr = await _create_request(technician_client)
    sample_id = await _received_sample(technician_client, sr["id"])
    plan_id = (await _create_plan(technician_client, sr["id"], sample_id))["id"]
    plan_audit_before = await _audit_actions(db_session, plan_id)

    _fail_step(monkeypatch, shared_crud.audit_log, "record")
    response = await technician_client.post(
        f"{LIMS}/test-plans/{plan_id}/results", json={"test_name": "Visual inspection", "status": "pass"}
    )
    assert response.status_code == 409
    monkeypatch.undo()

    plan = (await technician_client.get(f"{LIMS}/test-plans/{plan_id}")).json()
    assert plan["status"] == "pending"
    assert plan["actual_start"] is None
    sample = (await technician_client.get(f"{LIMS}/samples/{sample_id}")).json()
    assert sample["status"] == "received"
    assert (await technician_client.get(f"{LIMS}/test-plans/{plan_id}/results")).json() == []
    assert await _audit_actions(db_session, plan_id) == plan_audit_before


@pytest.mark.asyncio
async def test_complete_rolls_back_when_notification_fails(
    technician_client: AsyncClient, quality_engineer_client: AsyncClient, db_session: AsyncSession, monkeypatch
):
    sr = await _create_request(technician_client)
    sample_id = await _received_sample(technician_client, sr["id"])
    plan_id = (await _create_plan(technician_client, sr["id"], sample_id))["id"]
    await technician_client.post(f"{LIMS}/test-plans/{plan_id}/results", json={"test_name": "Hot spot", "status": "fail"})
    plan_audit_before = await _audit_actions(db_session, plan_id)

    _fail_step(monkeypatch, shared_crud.notification, "notify")
    response = await quality_engineer_client.post(f"{LIMS}/test-plans/{plan_id}/complete")
    assert response.status_code == 409
    monkeypatch.undo()

    plan = (await technician_client.get(f"{LIMS}/test-plans/{plan_id}")).json()
    assert plan["status"] == "in_progress"
    assert plan["actual_end"] is None
    sample = (await technician_client.get(f"{LIMS}/samples/{sample_id}")).json()
    assert sample["status"] == "in_testing"
    assert await _audit_actions(db_session, plan_id) == plan_audit_before
    notices = (await technician_client.get("/api/v1/shared/notifications")).json()
    assert not any(n["title"] == "Test plan completed" for n in notices["data"])
