# tests/domains/test_rpt.py

"""
'rpt' 도메인 (시험 보고서) API 엔드포인트에 대한 통합 테스트 모듈입니다.
"""

import pytest
from httpx import AsyncClient

RPT = "/api/v1/rpt/reports"


async def _plan_with_results(client: AsyncClient, verdicts) -> dict:
    sr = (await client.post(
        "/api/v1/lims/service-requests",
        json={"title": "Module certification", "manufacturer": "Sunrise", "model_number": "SR-410M"},
    )).json()
    plan = (await client.post(
        "/api/v1/lims/test-plans", json={"service_request_id": sr["id"], "name": "IEC 61215 sequence A"}
    )).json()
    for i, verdict in enumerate(verdicts, start=1):
        response = await client.post(
            f"/api/v1/lims/test-plans/{plan['id']}/results",
            json={"test_name": f"Test {i}", "test_sequence": i, "status": verdict},
        )
        assert response.status_code == 201
    return plan


async def _create_report(client: AsyncClient, **payload) -> dict:
    response = await client.post(RPT, json={"title": "Qualification report", **payload})
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_create_report_derives_results(technician_client: AsyncClient):
    plan = await _plan_with_results(technician_client, ["pass", "conditional", "pass"])
    report = await _create_report(technician_client, test_plan_id=plan["id"])

    assert report["status"] == "draft"
    assert report["version"] == 1
    assert report["report_number"].startswith("RPT-")
    assert report["service_request_id"] == plan["service_request_id"]
    assert report["overall_result"] == "conditional"
    assert report["test_results_summary"] == {"total": 3, "passed": 2, "failed": 0, "conditional": 1}


@pytest.mark.asyncio
async def test_create_report_without_plan(technician_client: AsyncClient):
    report = await _create_report(technician_client, report_type="summary")
    assert report["overall_result"] is None
    assert report["test_results_summary"] is None


@pytest.mark.asyncio
async def test_create_report_unknown_plan(technician_client: AsyncClient):
    response = await technician_client.post(
        RPT, json={"title": "Ghost", "test_plan_id": "00000000-0000-0000-0000-000000000000"}
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_content_edits_bump_version(technician_client: AsyncClient):
    report = await _create_report(technician_client)
    report_id = report["id"]

    response = await technician_client.put(f"{RPT}/{report_id}", json={"title": "Renamed"})
    assert response.json()["version"] == 1

    response = await technician_client.put(f"{RPT}/{report_id}", json={"conclusions": "All tests passed."})
    assert response.json()["version"] == 2

    response = await technician_client.put(
        f"{RPT}/{report_id}", json={"executive_summary": "Summary", "recommendations": "None"}
    )
    assert response.json()["version"] == 3

    # 빈 본문 값은 개정으로 보지 않음
    response = await technician_client.put(f"{RPT}/{report_id}", json={"recommendations": ""})
    assert response.status_code == 200
    assert response.json()["version"] == 3
    assert response.json()["recommendations"] == ""


@pytest.mark.asyncio
async def test_report_workflow_to_issue(
    technician_client: AsyncClient, quality_engineer_client: AsyncClient, lab_manager_client: AsyncClient
):
    plan = await _plan_with_results(technician_client, ["pass", "fail"])
    report = await _create_report(technician_client, test_plan_id=plan["id"], conclusions="Hot spot failure")
    report_id = report["id"]

    response = await technician_client.post(f"{RPT}/{report_id}/submit")
    assert response.status_code == 200
    assert response.json()["status"] == "review"

    # 반려 후 재제출
    response = await quality_engineer_client.post(
        f"{RPT}/{report_id}/review", json={"approved": False, "review_notes": "Add I-V data"}
    )
    assert response.status_code == 200
    assert response.json()["status"] == "draft"
    assert response.json()["review_notes"] == "Add I-V data"

    notices = (await technician_client.get("/api/v1/shared/notifications")).json()
    assert notices["data"][0]["title"] == "Report reviewed"
    assert notices["data"][0]["type"] == "warning"

    await technician_client.post(f"{RPT}/{report_id}/submit")
    assert (await technician_client.post(
        f"{RPT}/{report_id}/review", json={"approved": True}
    )).status_code == 403
    response = await quality_engineer_client.post(f"{RPT}/{report_id}/review", json={"approved": True})
    assert response.json()["status"] == "approved"
    assert response.json()["reviewed_by"] is not None

    assert (await quality_engineer_client.post(f"{RPT}/{report_id}/issue")).status_code == 403
    response = await lab_manager_client.post(f"{RPT}/{report_id}/issue")
    assert response.status_code == 200
    issued = response.json()
    assert issued["status"] == "issued"
    assert issued["approved_by"] is not None
    assert issued["approval_date"] is not None


@pytest.mark.asyncio
async def test_issue_requires_approved_report(lab_manager_client: AsyncClient):
    report = await _create_report(lab_manager_client)
    response = await lab_manager_client.post(f"{RPT}/{report['id']}/issue")
    assert response.status_code == 409
    assert response.json()["error"] == "invalid_state"


@pytest.mark.asyncio
async def test_issued_report_is_frozen(lab_manager_client: AsyncClient):
    report = await _create_report(lab_manager_client)
    report_id = report["id"]
    await lab_manager_client.post(f"{RPT}/{report_id}/submit")
    await lab_manager_client.post(f"{RPT}/{report_id}/review", json={"approved": True})
    await lab_manager_client.post(f"{RPT}/{report_id}/issue")

    response = await lab_manager_client.put(f"{RPT}/{report_id}", json={"conclusions": "Changed"})
    assert response.status_code == 409
    assert response.json()["error"] == "invalid_state"

    response = await lab_manager_client.delete(f"{RPT}/{report_id}")
    assert response.status_code == 409
    assert response.json()["error"] == "conflict"

    current = (await lab_manager_client.get(f"{RPT}/{report_id}")).json()
    assert current["status"] == "issued"
    assert current["version"] == 1


@pytest.mark.asyncio
async def test_delete_draft_report(lab_manager_client: AsyncClient, technician_client: AsyncClient):
    report = await _create_report(technician_client)
    assert (await technician_client.delete(f"{RPT}/{report['id']}")).status_code == 403
    assert (await lab_manager_client.delete(f"{RPT}/{report['id']}")).status_code == 200

    listing = (await lab_manager_client.get(RPT)).json()
    assert listing["pagination"]["total"] == 0


@pytest.mark.asyncio
async def test_download_report_document(technician_client: AsyncClient):
    plan = await _plan_with_results(technician_client, ["fail", "pass"])
    report = await _create_report(technician_client, test_plan_id=plan["id"], executive_summary="Hot spot found")

    response = await technician_client.get(f"{RPT}/{report['id']}/download")
    assert response.status_code == 200
    document = response.json()
    assert document["header"]["report_number"] == report["report_number"]
    assert document["product_info"]["model_number"] == "SR-410M"
    assert document["test_info"]["name"] == "IEC 61215 sequence A"
    assert [r["test_name"] for r in document["test_results"]] == ["Test 1", "Test 2"]
    assert document["summary"]["overall_result"] == "fail"
    assert document["approval"]["prepared_by"] == "Technician"
