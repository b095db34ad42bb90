# tests/domains/test_lab.py

"""
'lab' 도메인 (시험소, 시험 규격, 고객사) API 엔드포인트에 대한 통합 테스트 모듈입니다.
"""

import pytest
from httpx import AsyncClient

LAB_DATA = {
    "name": "PV Reliability Lab",
    "code": "PVR01",
    "facility_type": "internal",
    "city": "Daejeon",
    "capabilities": ["IEC 61215", "IEC 61730"],
}


async def _create_lab(client: AsyncClient, **overrides) -> dict:
    response = await client.post("/api/v1/lab/facilities", json={**LAB_DATA, **overrides})
    assert response.status_code == 201, response.text
    return response.json()


# =============================================================================
# 1. 시험소 (LabFacility)
# =============================================================================
@pytest.mark.asyncio
async def test_create_lab_facility_admin(admin_client: AsyncClient):
    lab = await _create_lab(admin_client)
    assert lab["code"] == "PVR01"
    assert lab["capabilities"] == ["IEC 61215", "IEC 61730"]
    assert lab["created_by"] is not None


@pytest.mark.asyncio
async def test_create_lab_facility_forbidden_for_manager(lab_manager_client: AsyncClient, client: AsyncClient):
    response = await lab_manager_client.post("/api/v1/lab/facilities", json=LAB_DATA)
    assert response.status_code == 403

    response = await client.post("/api/v1/lab/facilities", json=LAB_DATA)
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_lab_facility_duplicate_code(admin_client: AsyncClient):
    await _create_lab(admin_client)
    response = await admin_client.post("/api/v1/lab/facilities", json={**LAB_DATA, "name": "Another"})
    assert response.status_code == 409
    assert response.json()["error"] == "duplicate_key"


@pytest.mark.asyncio
async def test_update_lab_facility_by_manager(admin_client: AsyncClient, lab_manager_client: AsyncClient):
    lab = await _create_lab(admin_client)
    response = await lab_manager_client.put(f"/api/v1/lab/facilities/{lab['id']}", json={"city": "Ochang"})
    assert response.status_code == 200
    assert response.json()["city"] == "Ochang"
    assert response.json()["code"] == "PVR01"


@pytest.mark.asyncio
async def test_list_lab_facilities_with_activity(admin_client: AsyncClient):
    lab = await _create_lab(admin_client)
    await _create_lab(admin_client, code="EXT01", name="Partner Lab", facility_type="external")

    sr = (await admin_client.post(
        "/api/v1/lims/service-requests", json={"title": "Damp heat", "assigned_lab_id": lab["id"]}
    )).json()
    for action in ("submit", "approve"):
        assert (await admin_client.post(f"/api/v1/lims/service-requests/{sr['id']}/{action}")).status_code == 200

    response = await admin_client.get("/api/v1/lab/facilities", params={"facility_type": "internal"})
    assert response.status_code == 200
    page = response.json()
    assert page["pagination"]["total"] == 1
    assert page["data"][0]["active_requests"] == 1
    assert page["data"][0]["active_tests"] == 0


@pytest.mark.asyncio
async def test_lab_workload(admin_client: AsyncClient):
    lab = await _create_lab(admin_client)
    sr = (await admin_client.post("/api/v1/lims/service-requests", json={"title": "TC200"})).json()
    for name in ("Thermal cycling", "Humidity freeze"):
        response = await admin_client.post(
            "/api/v1/lims/test-plans",
            json={"service_request_id": sr["id"], "name": name, "assigned_lab_id": lab["id"]},
        )
        assert response.status_code == 201
    plan_id = response.json()["id"]
    await admin_client.put(f"/api/v1/lims/test-plans/{plan_id}", json={"status": "in_progress"})

    response = await admin_client.get(f"/api/v1/lab/facilities/{lab['id']}/workload")
    assert response.status_code == 200
    workload = response.json()
    assert workload["active_tests"] == 1
    assert workload["total_tests"] == 2
    assert workload["utilization_percent"] == 50.0
    assert [p["name"] for p in workload["upcoming_tests"]] == ["Thermal cycling"]


@pytest.mark.asyncio
async def test_delete_lab_blocked_by_active_requests(admin_client: AsyncClient):
    lab = await _create_lab(admin_client)
    sr = (await admin_client.post(
        "/api/v1/lims/service-requests", json={"title": "UV preconditioning", "assigned_lab_id": lab["id"]}
    )).json()
    for action in ("submit", "approve"):
        await admin_client.post(f"/api/v1/lims/service-requests/{sr['id']}/{action}")

    response = await admin_client.delete(f"/api/v1/lab/facilities/{lab['id']}")
    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "conflict"
    assert body["active_requests"] == 1

    assert (await admin_client.get(f"/api/v1/lab/facilities/{lab['id']}")).status_code == 200


@pytest.mark.asyncio
async def test_delete_idle_lab(admin_client: AsyncClient):
    lab = await _create_lab(admin_client)
    response = await admin_client.delete(f"/api/v1/lab/facilities/{lab['id']}")
    assert response.status_code == 200
    assert (await admin_client.get(f"/api/v1/lab/facilities/{lab['id']}")).status_code == 404


# =============================================================================
# 2. 시험 규격 (TestStandard)
# =============================================================================
@pytest.mark.asyncio
async def test_create_and_list_standards(lab_manager_client: AsyncClient):
    for code, active in (("IEC 61215", True), ("UL 1703", False)):
        response = await lab_manager_client.post(
            "/api/v1/lab/standards",
            json={"standard_code": code, "name": f"{code} test", "category": "safety", "is_active": active},
        )
        assert response.status_code == 201

    active_only = await lab_manager_client.get("/api/v1/lab/standards")
    assert [s["standard_code"] for s in active_only.json()] == ["IEC 61215"]

    everything = await lab_manager_client.get("/api/v1/lab/standards", params={"include_inactive": True})
    assert len(everything.json()) == 2


@pytest.mark.asyncio
async def test_create_standard_duplicate_and_forbidden(lab_manager_client: AsyncClient, technician_client: AsyncClient):
    payload = {"standard_code": "IEC 61730", "name": "Safety qualification"}
    assert (await lab_manager_client.post("/api/v1/lab/standards", json=payload)).status_code == 201
    assert (await lab_manager_client.post("/api/v1/lab/standards", json=payload)).status_code == 409
    assert (await technician_client.post("/api/v1/lab/standards", json=payload)).status_code == 403


# =============================================================================
# 3. 고객사 (Customer)
# =============================================================================
@pytest.mark.asyncio
async def test_customer_crud(lab_manager_client: AsyncClient):
    response = await lab_manager_client.post(
        "/api/v1/lab/customers", json={"company_name": "Sunrise Modules", "country": "KR"}
    )
    assert response.status_code == 201
    customer_id = response.json()["id"]

    response = await lab_manager_client.put(f"/api/v1/lab/customers/{customer_id}", json={"contact_name": "Kim"})
    assert response.status_code == 200
    assert response.json()["contact_name"] == "Kim"

    response = await lab_manager_client.get("/api/v1/lab/customers", params={"search": "sunrise"})
    assert response.json()["pagination"]["total"] == 1
