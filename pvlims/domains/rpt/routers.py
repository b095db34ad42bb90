# pvlims/domains/rpt/routers.py

"""
'rpt' 도메인 (시험 보고서) 관련 API 엔드포인트를 정의하는 모듈입니다.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from pvlims.core import dependencies as deps
from pvlims.core.crud_base import Page, SortOrder
from pvlims.domains.usr import models as usr_models

from . import crud as rpt_crud
from . import schemas as rpt_schemas

router = APIRouter(
    tags=["Reports (시험 보고서)"],
    responses={404: {"description": "Not found"}},
)


@router.get("/reports", response_model=Page[rpt_schemas.ReportResponse], summary="보고서 목록 조회")
async def read_reports(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[rpt_schemas.ReportStatus] = None,
    report_type: Optional[rpt_schemas.ReportType] = None,
    service_request_id: Optional[uuid.UUID] = None,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: SortOrder = "DESC",
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await rpt_crud.report.get_page(
        db, page=page, limit=limit,
        filters={"status": status, "report_type": report_type, "service_request_id": service_request_id},
        search=search, sort_by=sort_by, sort_order=sort_order,
    )


@router.get("/reports/{report_id}", response_model=rpt_schemas.ReportResponse, summary="보고서 상세 조회")
async def read_report(report_id: uuid.UUID, db: AsyncSession = Depends(deps.get_db_session)):
    return await rpt_crud.report.get_or_404(db, report_id)


@router.get("/reports/{report_id}/download", response_model=rpt_schemas.ReportDocument, summary="보고서 문서 다운로드")
async def download_report(report_id: uuid.UUID, db: AsyncSession = Depends(deps.get_db_session)):
    db_obj = await rpt_crud.report.get_or_404(db, report_id)
    return await rpt_crud.report.document(db, report=db_obj)


@router.post("/reports", response_model=rpt_schemas.ReportResponse, status_code=status.HTTP_201_CREATED, summary="보고서 작성")
async def create_report(
    report_in: rpt_schemas.ReportCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_active_user),
):
    return await rpt_crud.report.create(db, obj_in=report_in, actor=current_user)


@router.put("/reports/{report_id}", response_model=rpt_schemas.ReportResponse, summary="보고서 수정")
async def update_report(
    report_id: uuid.UUID,
    report_in: rpt_schemas.ReportUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_active_user),
):
    db_obj = await rpt_crud.report.get_or_404(db, report_id)
    return await rpt_crud.report.update(db, db_obj=db_obj, obj_in=report_in, actor=current_user)


@router.post("/reports/{report_id}/submit", response_model=rpt_schemas.ReportResponse, summary="보고서 검토 요청")
async def submit_report(
    report_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_active_user),
):
    db_obj = await rpt_crud.report.get_or_404(db, report_id)
    return await rpt_crud.report.update(db, db_obj=db_obj, obj_in=rpt_schemas.ReportUpdate(status="review"), actor=current_user)


@router.post("/reports/{report_id}/review", response_model=rpt_schemas.ReportResponse, summary="보고서 검토")
async def review_report(
    report_id: uuid.UUID,
    review_in: rpt_schemas.ReportReview,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_active_user),
):
    """승인(approved=true)이면 approved, 반려면 draft로 돌아갑니다. 품질 권한이 필요합니다."""
    db_obj = await rpt_crud.report.get_or_404(db, report_id)
    return await rpt_crud.report.review(db, db_obj=db_obj, review_in=review_in, actor=current_user)


@router.post("/reports/{report_id}/issue", response_model=rpt_schemas.ReportResponse, summary="보고서 발행")
async def issue_report(
    report_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_active_user),
):
    db_obj = await rpt_crud.report.get_or_404(db, report_id)
    return await rpt_crud.report.issue(db, db_obj=db_obj, actor=current_user)


@router.delete("/reports/{report_id}", summary="보고서 삭제")
async def delete_report(
    report_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_manager_user),
):
    db_obj = await rpt_crud.report.get_or_404(db, report_id)
    await rpt_crud.report.remove(db, db_obj=db_obj, actor=current_user)
    return {"message": "Report deleted successfully"}
