# pvlims/domains/cert/routers.py

"""
'cert' 도메인 (인증서) 관련 API 엔드포인트를 정의하는 모듈입니다.

`GET /certifications/verify/{certificate_number}`는 인증 없이 누구나 사용할 수 있는 공개 검증 엔드포인트입니다.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from sqlmodel.ext.asyncio.session import AsyncSession

from pvlims.core import dependencies as deps
from pvlims.core.config import settings
from pvlims.core.crud_base import Page, SortOrder
from pvlims.domains.usr import models as usr_models

from . import crud as cert_crud
from . import schemas as cert_schemas

router = APIRouter(
    tags=["Certifications (인증서)"],
    responses={404: {"description": "Not found"}},
)


@router.get("/certifications", response_model=Page[cert_schemas.CertificationResponse], summary="인증서 목록 조회")
async def read_certifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[cert_schemas.CertificationStatus] = None,
    certificate_type: Optional[str] = None,
    service_request_id: Optional[uuid.UUID] = None,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: SortOrder = "DESC",
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await cert_crud.certification.get_page_presented(
        db, page=page, limit=limit,
        filters={"status": status, "certificate_type": certificate_type, "service_request_id": service_request_id},
        search=search, sort_by=sort_by, sort_order=sort_order,
    )


@router.get(
    "/certifications/verify/{certificate_number}",
    response_model=cert_schemas.CertificateVerification,
    responses={404: {"description": "Certificate not found", "content": {"application/json": {"example": {"valid": False}}}}},
    summary="인증서 공개 검증",
)
async def verify_certification(certificate_number: str, db: AsyncSession = Depends(deps.get_db_session)):
    db_obj = await cert_crud.certification.get_by_number(db, certificate_number=certificate_number)
    if db_obj is None:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"valid": False, "detail": "Certificate not found"})
    return cert_crud.certification.verify(db_obj)


@router.post("/certifications/expiry-notices", status_code=status.HTTP_202_ACCEPTED, summary="인증서 만료 알림 실행 (관리자)")
async def trigger_expiry_notices(
    request: Request,
    db: AsyncSession = Depends(deps.get_db_session),
    current_admin_user: usr_models.User = Depends(deps.get_current_admin_user),
):
    """
    만료 임박 알림 작업을 ARQ 큐에 등록합니다.
    ARQ가 비활성화된 환경에서는 요청 안에서 바로 실행합니다.
    """
    task_queue_client = getattr(request.app.state, "redis", None)
    if task_queue_client is not None:
        job = await task_queue_client.enqueue_job("notify_expiring_certifications_task")
        return {"message": "Expiry notice job enqueued", "job_id": job.job_id if job else None}

    sent = await cert_crud.certification.send_expiry_notices(db, within_days=settings.CERT_EXPIRY_NOTICE_DAYS)
    return {"message": "Expiry notices sent", "notifications_sent": sent}


@router.get("/certifications/{cert_id}", response_model=cert_schemas.CertificationResponse, summary="인증서 상세 조회")
async def read_certification(cert_id: uuid.UUID, db: AsyncSession = Depends(deps.get_db_session)):
    db_obj = await cert_crud.certification.get_or_404(db, cert_id)
    return cert_crud.certification.present(db_obj)


@router.get("/certifications/{cert_id}/download", response_model=cert_schemas.CertificateDocument, summary="인증서 문서 다운로드")
async def download_certification(cert_id: uuid.UUID, db: AsyncSession = Depends(deps.get_db_session)):
    db_obj = await cert_crud.certification.get_or_404(db, cert_id)
    return await cert_crud.certification.document(db, db_obj=db_obj)


@router.post("/certifications", response_model=cert_schemas.CertificationResponse, status_code=status.HTTP_201_CREATED, summary="인증서 작성")
async def create_certification(
    cert_in: cert_schemas.CertificationCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_quality_user),
):
    db_obj = await cert_crud.certification.create(db, obj_in=cert_in, actor=current_user)
    return cert_crud.certification.present(db_obj)


@router.put("/certifications/{cert_id}", response_model=cert_schemas.CertificationResponse, summary="인증서 수정 (draft)")
async def update_certification(
    cert_id: uuid.UUID,
    cert_in: cert_schemas.CertificationUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_quality_user),
):
    db_obj = await cert_crud.certification.get_or_404(db, cert_id)
    db_obj = await cert_crud.certification.update(db, db_obj=db_obj, obj_in=cert_in, actor=current_user)
    return cert_crud.certification.present(db_obj)


@router.post("/certifications/{cert_id}/issue", response_model=cert_schemas.CertificationResponse, summary="인증서 발행")
async def issue_certification(
    cert_id: uuid.UUID,
    issue_in: Optional[cert_schemas.CertificationIssue] = None,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_active_user),
):
    """관리자 또는 실험실 관리자만 발행할 수 있습니다."""
    db_obj = await cert_crud.certification.get_or_404(db, cert_id)
    db_obj = await cert_crud.certification.issue(
        db, db_obj=db_obj, issue_in=issue_in or cert_schemas.CertificationIssue(), actor=current_user
    )
    return cert_crud.certification.present(db_obj)


@router.post("/certifications/{cert_id}/revoke", response_model=cert_schemas.CertificationResponse, summary="인증서 폐기 (관리자)")
async def revoke_certification(
    cert_id: uuid.UUID,
    revoke_in: cert_schemas.CertificationRevoke,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_active_user),
):
    db_obj = await cert_crud.certification.get_or_404(db, cert_id)
    db_obj = await cert_crud.certification.revoke(db, db_obj=db_obj, revoke_in=revoke_in, actor=current_user)
    return cert_crud.certification.present(db_obj)
