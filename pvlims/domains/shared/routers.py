# pvlims/domains/shared/routers.py

"""
'shared' 도메인 (감사 로그, 알림) 관련 API 엔드포인트를 정의하는 모듈입니다.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel.ext.asyncio.session import AsyncSession

from pvlims.core import dependencies as deps
from pvlims.core.crud_base import Page
from pvlims.core.exceptions import NotFoundError
from pvlims.domains.usr import models as usr_models

from . import crud as shared_crud
from . import schemas as shared_schemas

router = APIRouter(
    tags=["Shared (감사 로그 및 알림)"],
    responses={404: {"description": "Not found"}},
)


# =============================================================================
# 1. 감사 로그 (AuditLog) 라우터
# =============================================================================
@router.get("/audit-logs", response_model=Page[shared_schemas.AuditLogResponse], summary="감사 로그 조회 (관리자)")
async def read_audit_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    entity_type: Optional[str] = None,
    entity_id: Optional[uuid.UUID] = None,
    action: Optional[str] = None,
    db: AsyncSession = Depends(deps.get_db_session),
    current_admin_user: usr_models.User = Depends(deps.get_current_admin_user),
):
    """감사 로그를 최신순으로 조회합니다."""
    return await shared_crud.audit_log.get_page(
        db, page=page, limit=limit,
        filters={"entity_type": entity_type, "entity_id": entity_id, "action": action.upper() if action else None},
    )


# =============================================================================
# 2. 알림 (Notification) 라우터
# =============================================================================
@router.get("/notifications", response_model=Page[shared_schemas.NotificationResponse], summary="내 알림 조회")
async def read_my_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = False,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_active_user),
):
    return await shared_crud.notification.get_page(
        db, page=page, limit=limit,
        filters={"user_id": current_user.id, "is_read": False if unread_only else None},
    )


@router.post("/notifications/read-all", summary="내 알림 모두 읽음 처리")
async def mark_all_notifications_read(
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_active_user),
):
    updated = await shared_crud.notification.mark_all_read(db, user_id=current_user.id)
    return {"updated": updated}


@router.post("/notifications/{notification_id}/read", response_model=shared_schemas.NotificationResponse, summary="알림 읽음 처리")
async def mark_notification_read(
    notification_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_active_user),
):
    db_obj = await shared_crud.notification.get(db, notification_id)
    # 다른 사용자의 알림은 존재하지 않는 것으로 취급합니다.
    if db_obj is None or db_obj.user_id != current_user.id:
        raise NotFoundError("Notification not found")
    return await shared_crud.notification.mark_read(db, db_obj=db_obj)
