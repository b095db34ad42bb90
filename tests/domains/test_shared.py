# tests/domains/test_shared.py

"""
'shared' 도메인 (감사 로그, 알림) API 엔드포인트에 대한 통합 테스트 모듈입니다.
"""

import pytest
from httpx import AsyncClient
from sqlmodel.ext.asyncio.session import AsyncSession

from pvlims.domains.shared import crud as shared_crud
from pvlims.domains.usr import models as usr_models


# =============================================================================
# 1. 감사 로그
# =============================================================================
@pytest.mark.asyncio
async def test_audit_trail_for_service_request(admin_client: AsyncClient):
    sr = (await admin_client.post("/api/v1/lims/service-requests", json={"title": "Audit me"})).json()
    await admin_client.post(f"/api/v1/lims/service-requests/{sr['id']}/submit")

    response = await admin_client.get(
        "/api/v1/shared/audit-logs", params={"entity_type": "ServiceRequest", "entity_id": sr["id"]}
    )
    assert response.status_code == 200
    entries = response.json()["data"]
    assert {e["action"] for e in entries} == {"CREATE", "SUBMIT"}
    submit = next(e for e in entries if e["action"] == "SUBMIT")
    assert submit["old_values"] == {"status": "draft"}
    assert submit["new_values"] == {"status": "submitted"}
    assert submit["user_id"] is not None

    filtered = await admin_client.get("/api/v1/shared/audit-logs", params={"action": "submit"})
    assert filtered.json()["pagination"]["total"] == 1


@pytest.mark.asyncio
async def test_audit_logs_admin_only(lab_manager_client: AsyncClient):
    response = await lab_manager_client.get("/api/v1/shared/audit-logs")
    assert response.status_code == 403


# =============================================================================
# 2. 알림
# =============================================================================
@pytest.mark.asyncio
async def test_notifications_read_flow(
    technician_client: AsyncClient, db_session: AsyncSession, test_technician: usr_models.User
):
    technician_id = test_technician.id
    await shared_crud.notification.notify(
        db_session, user_ids=[technician_id, technician_id, None], title="First", message="one"
    )
    await shared_crud.notification.notify(db_session, user_ids=[technician_id], title="Second", message="two")
    await db_session.commit()

    page = (await technician_client.get("/api/v1/shared/notifications")).json()
    assert page["pagination"]["total"] == 2
    first_id = next(n["id"] for n in page["data"] if n["title"] == "First")

    response = await technician_client.post(f"/api/v1/shared/notifications/{first_id}/read")
    assert response.status_code == 200
    assert response.json()["is_read"] is True

    unread = (await technician_client.get("/api/v1/shared/notifications", params={"unread_only": True})).json()
    assert [n["title"] for n in unread["data"]] == ["Second"]

    response = await technician_client.post("/api/v1/shared/notifications/read-all")
    assert response.json() == {"updated": 1}
    unread = (await technician_client.get("/api/v1/shared/notifications", params={"unread_only": True})).json()
    assert unread["pagination"]["total"] == 0


@pytest.mark.asyncio
async def test_cannot_read_other_users_notification(
    technician_client: AsyncClient, db_session: AsyncSession, test_viewer: usr_models.User
):
    notices = await shared_crud.notification.notify(
        db_session, user_ids=[test_viewer.id], title="Private", message="for viewer only"
    )
    notice_id = notices[0].id
    await db_session.commit()

    response = await technician_client.post(f"/api/v1/shared/notifications/{notice_id}/read")
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"
