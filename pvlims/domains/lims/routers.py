# pvlims/domains/lims/routers.py

"""
'lims' 도메인 (시험 의뢰, 시료, 시험 계획, 시험 결과) 관련 API 엔드포인트를 정의하는 모듈입니다.

조회 엔드포인트는 인증 없이 사용할 수 있고, 상태를 바꾸는 작업은 Bearer 토큰이 필요합니다.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from pvlims.core import dependencies as deps
from pvlims.core.crud_base import Page, SortOrder
from pvlims.domains.usr import models as usr_models

from . import crud as lims_crud
from . import schemas as lims_schemas

router = APIRouter(
    tags=["LIMS (시험 의뢰, 시료, 시험 계획)"],
    responses={404: {"description": "Not found"}},
)


# =============================================================================
# 1. 시험 의뢰 (ServiceRequest) 라우터
# =============================================================================
@router.get("/service-requests", response_model=Page[lims_schemas.ServiceRequestResponse], summary="시험 의뢰 목록 조회")
async def read_service_requests(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[lims_schemas.ServiceRequestStatus] = None,
    request_type: Optional[lims_schemas.RequestType] = None,
    priority: Optional[lims_schemas.Priority] = None,
    customer_id: Optional[uuid.UUID] = None,
    assigned_lab_id: Optional[uuid.UUID] = None,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: SortOrder = "DESC",
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await lims_crud.service_request.get_page(
        db, page=page, limit=limit,
        filters={
            "status": status, "request_type": request_type, "priority": priority,
            "customer_id": customer_id, "assigned_lab_id": assigned_lab_id,
        },
        search=search, sort_by=sort_by, sort_order=sort_order,
    )


@router.get("/service-requests/{request_id}", response_model=lims_schemas.ServiceRequestDetail, summary="시험 의뢰 상세 조회")
async def read_service_request(request_id: uuid.UUID, db: AsyncSession = Depends(deps.get_db_session)):
    """의뢰와 함께 소속 시료 및 시험 계획을 반환합니다."""
    return await lims_crud.service_request.get_detail(db, request_id)


@router.post("/service-requests", response_model=lims_schemas.ServiceRequestResponse, status_code=status.HTTP_201_CREATED, summary="시험 의뢰 등록")
async def create_service_request(
    request_in: lims_schemas.ServiceRequestCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_active_user),
):
    return await lims_crud.service_request.create(db, obj_in=request_in, actor=current_user)


@router.put("/service-requests/{request_id}", response_model=lims_schemas.ServiceRequestResponse, summary="시험 의뢰 수정")
async def update_service_request(
    request_id: uuid.UUID,
    request_in: lims_schemas.ServiceRequestUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_active_user),
):
    """
    의뢰 정보를 부분 수정합니다.
    `status`를 함께 보내면 현재 상태에서 허용된 전이(submit, start_review, approve 등)로 처리됩니다.
    """
    db_obj = await lims_crud.service_request.get_or_404(db, request_id)
    return await lims_crud.service_request.update(db, db_obj=db_obj, obj_in=request_in, actor=current_user)


@router.delete("/service-requests/{request_id}", summary="시험 의뢰 삭제")
async def delete_service_request(
    request_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_manager_user),
):
    db_obj = await lims_crud.service_request.get_or_404(db, request_id)
    await lims_crud.service_request.remove(db, db_obj=db_obj, actor=current_user)
    return {"message": "Service request deleted successfully"}


async def _fire_service_request(db: AsyncSession, request_id: uuid.UUID, action: str, actor: usr_models.User):
    db_obj = await lims_crud.service_request.get_or_404(db, request_id)
    return await lims_crud.service_request.fire(db, db_obj=db_obj, action=action, actor=actor)


@router.post("/service-requests/{request_id}/submit", response_model=lims_schemas.ServiceRequestResponse, summary="시험 의뢰 제출")
async def submit_service_request(
    request_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_active_user),
):
    return await _fire_service_request(db, request_id, "submit", current_user)


@router.post("/service-requests/{request_id}/start-review", response_model=lims_schemas.ServiceRequestResponse, summary="시험 의뢰 검토 시작")
async def start_review_service_request(
    request_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_active_user),
):
    return await _fire_service_request(db, request_id, "start_review", current_user)


@router.post("/service-requests/{request_id}/approve", response_model=lims_schemas.ServiceRequestResponse, summary="시험 의뢰 승인")
async def approve_service_request(
    request_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_active_user),
):
    """관리자 또는 실험실 관리자만 승인할 수 있습니다 (전이 테이블에서 검사)."""
    return await _fire_service_request(db, request_id, "approve", current_user)


@router.post("/service-requests/{request_id}/start-progress", response_model=lims_schemas.ServiceRequestResponse, summary="시험 진행 시작")
async def start_progress_service_request(
    request_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_active_user),
):
    return await _fire_service_request(db, request_id, "start_progress", current_user)


@router.post("/service-requests/{request_id}/complete", response_model=lims_schemas.ServiceRequestResponse, summary="시험 의뢰 완료")
async def complete_service_request(
    request_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_active_user),
):
    return await _fire_service_request(db, request_id, "complete", current_user)


# =============================================================================
# 2. 시료 (Sample) 라우터
# =============================================================================
@router.get("/samples", response_model=Page[lims_schemas.SampleResponse], summary="시료 목록 조회")
async def read_samples(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[lims_schemas.SampleStatus] = None,
    sample_type: Optional[lims_schemas.SampleType] = None,
    service_request_id: Optional[uuid.UUID] = None,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: SortOrder = "DESC",
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await lims_crud.sample.get_page(
        db, page=page, limit=limit,
        filters={"status": status, "sample_type": sample_type, "service_request_id": service_request_id},
        search=search, sort_by=sort_by, sort_order=sort_order,
    )


@router.get("/samples/{sample_id}", response_model=lims_schemas.SampleResponse, summary="시료 상세 조회")
async def read_sample(sample_id: uuid.UUID, db: AsyncSession = Depends(deps.get_db_session)):
    return await lims_crud.sample.get_or_404(db, sample_id)


@router.get("/samples/{sample_id}/chain-of-custody", response_model=List[lims_schemas.CustodyEntryResponse], summary="시료 보관 이력 조회")
async def read_chain_of_custody(sample_id: uuid.UUID, db: AsyncSession = Depends(deps.get_db_session)):
    await lims_crud.sample.get_or_404(db, sample_id)
    return await lims_crud.sample.chain_of_custody(db, sample_id=sample_id)


@router.post("/samples", response_model=lims_schemas.SampleResponse, status_code=status.HTTP_201_CREATED, summary="시료 등록")
async def create_sample(
    sample_in: lims_schemas.SampleCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_active_user),
):
    return await lims_crud.sample.create(db, obj_in=sample_in, actor=current_user)


@router.put("/samples/{sample_id}", response_model=lims_schemas.SampleResponse, summary="시료 정보 수정")
async def update_sample(
    sample_id: uuid.UUID,
    sample_in: lims_schemas.SampleUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_active_user),
):
    db_obj = await lims_crud.sample.get_or_404(db, sample_id)
    return await lims_crud.sample.update(db, db_obj=db_obj, obj_in=sample_in, actor=current_user)


@router.post("/samples/{sample_id}/receive", response_model=lims_schemas.SampleResponse, summary="시료 수령")
async def receive_sample(
    sample_id: uuid.UUID,
    receive_in: lims_schemas.SampleReceive,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_active_user),
):
    db_obj = await lims_crud.sample.get_or_404(db, sample_id)
    return await lims_crud.sample.receive(db, db_obj=db_obj, receive_in=receive_in, actor=current_user)


@router.post("/samples/{sample_id}/transfer", response_model=lims_schemas.SampleResponse, summary="시료 보관 위치 이동")
async def transfer_sample(
    sample_id: uuid.UUID,
    transfer_in: lims_schemas.SampleTransfer,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_active_user),
):
    db_obj = await lims_crud.sample.get_or_404(db, sample_id)
    return await lims_crud.sample.transfer(db, db_obj=db_obj, transfer_in=transfer_in, actor=current_user)


@router.delete("/samples/{sample_id}", summary="시료 삭제")
async def delete_sample(
    sample_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_manager_user),
):
    db_obj = await lims_crud.sample.get_or_404(db, sample_id)
    await lims_crud.sample.remove(db, db_obj=db_obj, actor=current_user)
    return {"message": "Sample deleted successfully"}


# =============================================================================
# 3. 시험 계획 (TestPlan) 라우터
# =============================================================================
@router.get("/test-plans", response_model=Page[lims_schemas.TestPlanListItem], summary="시험 계획 목록 조회")
async def read_test_plans(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[lims_schemas.TestPlanStatus] = None,
    service_request_id: Optional[uuid.UUID] = None,
    sample_id: Optional[uuid.UUID] = None,
    test_standard_id: Optional[uuid.UUID] = None,
    assigned_lab_id: Optional[uuid.UUID] = None,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: SortOrder = "DESC",
    db: AsyncSession = Depends(deps.get_db_session),
):
    """시험 계획 목록과 계획별 결과 집계(total_tests, passed_tests, failed_tests)를 반환합니다."""
    return await lims_crud.test_plan.get_page_with_counts(
        db, page=page, limit=limit,
        filters={
            "status": status, "service_request_id": service_request_id, "sample_id": sample_id,
            "test_standard_id": test_standard_id, "assigned_lab_id": assigned_lab_id,
        },
        search=search, sort_by=sort_by, sort_order=sort_order,
    )


@router.get("/test-plans/{plan_id}", response_model=lims_schemas.TestPlanDetail, summary="시험 계획 상세 조회")
async def read_test_plan(plan_id: uuid.UUID, db: AsyncSession = Depends(deps.get_db_session)):
    return await lims_crud.test_plan.get_detail(db, plan_id)


@router.post("/test-plans", response_model=lims_schemas.TestPlanResponse, status_code=status.HTTP_201_CREATED, summary="시험 계획 등록")
async def create_test_plan(
    plan_in: lims_schemas.TestPlanCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_active_user),
):
    return await lims_crud.test_plan.create(db, obj_in=plan_in, actor=current_user)


@router.put("/test-plans/{plan_id}", response_model=lims_schemas.TestPlanResponse, summary="시험 계획 수정")
async def update_test_plan(
    plan_id: uuid.UUID,
    plan_in: lims_schemas.TestPlanUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_active_user),
):
    db_obj = await lims_crud.test_plan.get_or_404(db, plan_id)
    return await lims_crud.test_plan.update(db, db_obj=db_obj, obj_in=plan_in, actor=current_user)


@router.delete("/test-plans/{plan_id}", summary="시험 계획 삭제")
async def delete_test_plan(
    plan_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_manager_user),
):
    db_obj = await lims_crud.test_plan.get_or_404(db, plan_id)
    await lims_crud.test_plan.remove(db, db_obj=db_obj, actor=current_user)
    return {"message": "Test plan deleted successfully"}


@router.post("/test-plans/{plan_id}/complete", response_model=lims_schemas.TestPlanResponse, summary="시험 계획 완료")
async def complete_test_plan(
    plan_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_active_user),
):
    """
    판정 대기 결과가 없어야 완료할 수 있으며, fail 결과가 있으면 failed로 종료됩니다.
    관리자, 실험실 관리자, 품질 엔지니어만 가능합니다.
    """
    plan = await lims_crud.test_plan.get_or_404(db, plan_id)
    return await lims_crud.test_plan.complete(db, plan=plan, actor=current_user)


# =============================================================================
# 4. 시험 결과 (TestResult) 라우터
# =============================================================================
@router.get("/test-plans/{plan_id}/results", response_model=List[lims_schemas.TestResultResponse], summary="시험 결과 목록 조회")
async def read_test_results(plan_id: uuid.UUID, db: AsyncSession = Depends(deps.get_db_session)):
    plan = await lims_crud.test_plan.get_detail(db, plan_id)
    return plan.results


@router.post("/test-plans/{plan_id}/results", response_model=lims_schemas.TestResultResponse, status_code=status.HTTP_201_CREATED, summary="시험 결과 기록")
async def create_test_result(
    plan_id: uuid.UUID,
    result_in: lims_schemas.TestResultCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_active_user),
):
    plan = await lims_crud.test_plan.get_or_404(db, plan_id)
    return await lims_crud.test_plan.add_result(db, plan=plan, result_in=result_in, actor=current_user)


@router.put("/test-results/{result_id}", response_model=lims_schemas.TestResultResponse, summary="시험 결과 수정")
async def update_test_result(
    result_id: uuid.UUID,
    result_in: lims_schemas.TestResultUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_active_user),
):
    db_obj = await lims_crud.test_result.get_or_404(db, result_id)
    return await lims_crud.test_result.update(db, db_obj=db_obj, obj_in=result_in, actor=current_user)


@router.post("/test-results/{result_id}/verify", response_model=lims_schemas.TestResultResponse, summary="시험 결과 검증")
async def verify_test_result(
    result_id: uuid.UUID,
    verify_in: lims_schemas.TestResultVerify,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_quality_user),
):
    db_obj = await lims_crud.test_result.get_or_404(db, result_id)
    return await lims_crud.test_result.verify(db, db_obj=db_obj, verify_in=verify_in, actor=current_user)
