# tests/domains/test_cert.py

"""
'cert' 도메인 (인증서) API 엔드포인트와 만료 알림 태스크에 대한 통합 테스트 모듈입니다.
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient

from pvlims.core.derivations import today
from pvlims.domains.cert import tasks as cert_tasks

CERT = "/api/v1/cert/certifications"

CERT_DATA = {
    "certificate_type": "IEC",
    "standard_codes": ["IEC 61215", "IEC 61730"],
    "manufacturer": "Sunrise Modules",
    "model_numbers": ["SR-400M", "SR-410M"],
    "rated_power_range": "400-410 W",
}


async def _create_cert(client: AsyncClient, **overrides) -> dict:
    response = await client.post(CERT, json={**CERT_DATA, **overrides})
    assert response.status_code == 201, response.text
    return response.json()


async def _issued_cert(client: AsyncClient, **issue_body) -> dict:
    cert = await _create_cert(client)
    response = await client.post(f"{CERT}/{cert['id']}/issue", json=issue_body or None)
    assert response.status_code == 200, response.text
    return response.json()


# =============================================================================
# 1. 작성 / 수정
# =============================================================================
@pytest.mark.asyncio
async def test_create_certification_as_draft(quality_engineer_client: AsyncClient):
    cert = await _create_cert(quality_engineer_client)
    assert cert["status"] == "draft"
    assert cert["display_status"] == "draft"
    assert cert["certificate_number"].startswith("CERT-")
    assert cert["document_hash"] is None
    assert cert["issued_by"] is not None


@pytest.mark.asyncio
async def test_create_certification_requires_quality_role(technician_client: AsyncClient):
    response = await technician_client.post(CERT, json=CERT_DATA)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_certification_requires_standards(quality_engineer_client: AsyncClient):
    response = await quality_engineer_client.post(CERT, json={**CERT_DATA, "standard_codes": []})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_update_only_while_draft(lab_manager_client: AsyncClient):
    cert = await _create_cert(lab_manager_client)
    response = await lab_manager_client.put(f"{CERT}/{cert['id']}", json={"conditions": "Indoor storage only"})
    assert response.status_code == 200
    assert response.json()["conditions"] == "Indoor storage only"

    await lab_manager_client.post(f"{CERT}/{cert['id']}/issue")
    response = await lab_manager_client.put(f"{CERT}/{cert['id']}", json={"conditions": "Changed"})
    assert response.status_code == 409
    assert response.json()["error"] == "invalid_state"


@pytest.mark.asyncio
async def test_update_rejects_null_for_required_fields(lab_manager_client: AsyncClient):
    cert = await _create_cert(lab_manager_client)
    response = await lab_manager_client.put(f"{CERT}/{cert['id']}", json={"manufacturer": None})
    assert response.status_code == 422

    response = await lab_manager_client.put(f"{CERT}/{cert['id']}", json={"standard_codes": None})
    assert response.status_code == 422

    # null 허용 필드는 그대로 비울 수 있습니다.
    response = await lab_manager_client.put(f"{CERT}/{cert['id']}", json={"rated_power_range": None})
    assert response.status_code == 200
    body = response.json()
    assert body["manufacturer"] == "Sunrise Modules"
    assert body["rated_power_range"] is None


# =============================================================================
# 2. 발행 / 폐기
# =============================================================================
@pytest.mark.asyncio
async def test_issue_defaults_and_hash(lab_manager_client: AsyncClient):
    issued = await _issued_cert(lab_manager_client)
    assert issued["status"] == "issued"
    assert issued["issue_date"] == today().isoformat()
    assert issued["approved_by"] is not None
    assert len(issued["document_hash"]) == 64


@pytest.mark.asyncio
async def test_issue_twice_keeps_original_hash(lab_manager_client: AsyncClient):
    issued = await _issued_cert(lab_manager_client, expiry_date="2099-12-31")

    response = await lab_manager_client.post(f"{CERT}/{issued['id']}/issue", json={"expiry_date": "2100-01-01"})
    assert response.status_code == 409
    assert response.json()["error"] == "invalid_state"

    current = (await lab_manager_client.get(f"{CERT}/{issued['id']}")).json()
    assert current["document_hash"] == issued["document_hash"]
    assert current["expiry_date"] == "2099-12-31"


@pytest.mark.asyncio
async def test_issue_requires_manager(quality_engineer_client: AsyncClient):
    cert = await _create_cert(quality_engineer_client)
    response = await quality_engineer_client.post(f"{CERT}/{cert['id']}/issue")
    assert response.status_code == 403

    current = (await quality_engineer_client.get(f"{CERT}/{cert['id']}")).json()
    assert current["status"] == "draft"


@pytest.mark.asyncio
async def test_revoke_by_admin_only(lab_manager_client: AsyncClient, admin_client: AsyncClient):
    issued = await _issued_cert(lab_manager_client)
    cert_id = issued["id"]

    response = await lab_manager_client.post(f"{CERT}/{cert_id}/revoke", json={"reason": "Bill of materials changed"})
    assert response.status_code == 403

    response = await admin_client.post(f"{CERT}/{cert_id}/revoke", json={"reason": "Bill of materials changed"})
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "revoked"
    assert body["limitations"].endswith("REVOKED: Bill of materials changed")

    # 폐기는 되돌릴 수 없음
    response = await admin_client.post(f"{CERT}/{cert_id}/issue")
    assert response.status_code == 409


@pytest.mark.parametrize("limitations", [None, "Not valid for bifacial variants"])
@pytest.mark.asyncio
async def test_revoked_certificate_keeps_issued_hash(
    lab_manager_client: AsyncClient, admin_client: AsyncClient, client: AsyncClient, limitations
):
    cert = await _create_cert(lab_manager_client, limitations=limitations)
    await lab_manager_client.post(f"{CERT}/{cert['id']}/issue")

    response = await admin_client.post(f"{CERT}/{cert['id']}/revoke", json={"reason": "Factory audit failed"})
    body = response.json()
    assert body["revocation_reason"] == "Factory audit failed"
    assert body["revoked_at"] is not None

    verification = (await client.get(f"{CERT}/verify/{cert['certificate_number']}")).json()
    assert verification["valid"] is False
    assert verification["certificate"]["status"] == "revoked"
    assert verification["hash_matches"] is True


@pytest.mark.asyncio
async def test_revoke_draft_is_rejected(admin_client: AsyncClient):
    cert = await _create_cert(admin_client)
    response = await admin_client.post(f"{CERT}/{cert['id']}/revoke", json={"reason": "n/a"})
    assert response.status_code == 409


# =============================================================================
# 3. 공개 검증
# =============================================================================
@pytest.mark.asyncio
async def test_verify_issued_certificate(lab_manager_client: AsyncClient, client: AsyncClient):
    issued = await _issued_cert(lab_manager_client, expiry_date=(today() + timedelta(days=365)).isoformat())

    response = await client.get(f"{CERT}/verify/{issued['certificate_number']}")
    assert response.status_code == 200
    body = response.json()
    assert body["valid"] is True
    assert body["hash_matches"] is True
    assert body["certificate"]["status"] == "issued"
    assert body["certificate"]["manufacturer"] == "Sunrise Modules"
    assert "issued_by" not in body["certificate"]


@pytest.mark.asyncio
async def test_verify_draft_and_unknown(lab_manager_client: AsyncClient, client: AsyncClient):
    cert = await _create_cert(lab_manager_client)
    body = (await client.get(f"{CERT}/verify/{cert['certificate_number']}")).json()
    assert body["valid"] is False
    assert body["hash_matches"] is None

    response = await client.get(f"{CERT}/verify/CERT-1999-9999")
    assert response.status_code == 404
    assert response.json()["valid"] is False


@pytest.mark.asyncio
async def test_expired_certificate_is_invalid(lab_manager_client: AsyncClient, client: AsyncClient):
    yesterday = today() - timedelta(days=1)
    issued = await _issued_cert(
        lab_manager_client, issue_date=(yesterday - timedelta(days=365)).isoformat(), expiry_date=yesterday.isoformat()
    )
    assert issued["status"] == "issued"
    assert issued["display_status"] == "expired"
    assert issued["is_expired"] is True

    body = (await client.get(f"{CERT}/verify/{issued['certificate_number']}")).json()
    assert body["valid"] is False
    assert body["certificate"]["status"] == "expired"

    listing = (await client.get(CERT, params={"status": "issued"})).json()
    assert listing["data"][0]["display_status"] == "expired"


@pytest.mark.asyncio
async def test_download_certificate_document(lab_manager_client: AsyncClient):
    issued = await _issued_cert(lab_manager_client)
    document = (await lab_manager_client.get(f"{CERT}/{issued['id']}/download")).json()

    assert document["header"]["certificate_number"] == issued["certificate_number"]
    assert document["certification"]["standards"] == CERT_DATA["standard_codes"]
    assert document["validity"]["is_valid"] is True
    assert document["authorization"]["approved_by"] == "Lab Manager"
    assert document["verification"]["document_hash"] == issued["document_hash"]
    assert document["verification"]["verification_url"].endswith(f"/verify/{issued['certificate_number']}")


# =============================================================================
# 4. 만료 알림
# =============================================================================
@pytest.mark.asyncio
async def test_expiry_notice_task_is_idempotent_per_day(database, lab_manager_client: AsyncClient):
    soon = (today() + timedelta(days=10)).isoformat()
    await _issued_cert(lab_manager_client, expiry_date=soon)
    await _issued_cert(lab_manager_client, expiry_date=(today() + timedelta(days=400)).isoformat())

    ctx = {"database": database}
    first = await cert_tasks.notify_expiring_certifications_task(ctx)
    second = await cert_tasks.notify_expiring_certifications_task(ctx)
    assert first == {"status": "success", "notifications_sent": 1}
    assert second["notifications_sent"] == 0

    notices = (await lab_manager_client.get("/api/v1/shared/notifications")).json()
    expiring = [n for n in notices["data"] if n["title"] == "Certification expiring soon"]
    assert len(expiring) == 1
    assert expiring[0]["type"] == "warning"
    assert "10 day(s)" in expiring[0]["message"]


@pytest.mark.asyncio
async def test_expiry_notices_endpoint_runs_inline(admin_client: AsyncClient, lab_manager_client: AsyncClient):
    await _issued_cert(lab_manager_client, expiry_date=(today() + timedelta(days=5)).isoformat())

    assert (await lab_manager_client.post(f"{CERT}/expiry-notices")).status_code == 403

    response = await admin_client.post(f"{CERT}/expiry-notices")
    assert response.status_code == 202
    assert response.json()["notifications_sent"] == 1
