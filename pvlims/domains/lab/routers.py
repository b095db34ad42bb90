# pvlims/domains/lab/routers.py

"""
'lab' 도메인 (시험소, 시험 규격, 고객사) 관련 API 엔드포인트를 정의하는 모듈입니다.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from pvlims.core import dependencies as deps
from pvlims.core.crud_base import Page, SortOrder
from pvlims.domains.usr import models as usr_models

from . import crud as lab_crud
from . import schemas as lab_schemas

router = APIRouter(
    tags=["Lab Reference Data (시험소 및 기준 정보)"],
    responses={404: {"description": "Not found"}},
)


# =============================================================================
# 1. 시험소 (LabFacility) 라우터
# =============================================================================
@router.get("/facilities", response_model=Page[lab_schemas.LabFacilityListItem], summary="시험소 목록 조회")
async def read_lab_facilities(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    facility_type: Optional[lab_schemas.FacilityType] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: SortOrder = "DESC",
    db: AsyncSession = Depends(deps.get_db_session),
):
    """시험소 목록과 시험소별 진행 중 의뢰/시험 수를 함께 반환합니다."""
    return await lab_crud.lab_facility.get_page_with_activity(
        db, page=page, limit=limit,
        filters={"facility_type": facility_type, "is_active": is_active},
        search=search, sort_by=sort_by, sort_order=sort_order,
    )


@router.get("/facilities/{lab_id}", response_model=lab_schemas.LabFacilityResponse, summary="특정 시험소 조회")
async def read_lab_facility(lab_id: uuid.UUID, db: AsyncSession = Depends(deps.get_db_session)):
    return await lab_crud.lab_facility.get_or_404(db, lab_id)


@router.get("/facilities/{lab_id}/workload", response_model=lab_schemas.LabWorkload, summary="시험소 부하 현황")
async def read_lab_workload(lab_id: uuid.UUID, db: AsyncSession = Depends(deps.get_db_session)):
    lab = await lab_crud.lab_facility.get_or_404(db, lab_id)
    return await lab_crud.lab_facility.workload(db, lab=lab)


@router.post("/facilities", response_model=lab_schemas.LabFacilityResponse, status_code=status.HTTP_201_CREATED, summary="새 시험소 등록")
async def create_lab_facility(
    lab_in: lab_schemas.LabFacilityCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_admin_user: usr_models.User = Depends(deps.get_current_admin_user),
):
    """새 시험소를 등록합니다. 관리자 권한이 필요합니다."""
    return await lab_crud.lab_facility.create(db, obj_in=lab_in, created_by=current_admin_user.id)


@router.put("/facilities/{lab_id}", response_model=lab_schemas.LabFacilityResponse, summary="시험소 정보 수정")
async def update_lab_facility(
    lab_id: uuid.UUID,
    lab_in: lab_schemas.LabFacilityUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_manager_user),
):
    db_obj = await lab_crud.lab_facility.get_or_404(db, lab_id)
    return await lab_crud.lab_facility.update(db, db_obj=db_obj, obj_in=lab_in)


@router.delete("/facilities/{lab_id}", summary="시험소 삭제")
async def delete_lab_facility(
    lab_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_admin_user: usr_models.User = Depends(deps.get_current_admin_user),
):
    """진행 중(approved, in_progress)인 의뢰가 배정된 시험소는 삭제할 수 없습니다."""
    db_obj = await lab_crud.lab_facility.get_or_404(db, lab_id)
    await lab_crud.lab_facility.remove(db, db_obj=db_obj)
    return {"message": "Lab facility deleted successfully"}


# =============================================================================
# 2. 시험 규격 (TestStandard) 라우터
# =============================================================================
@router.get("/standards", response_model=List[lab_schemas.TestStandardResponse], summary="시험 규격 목록 조회")
async def read_test_standards(
    include_inactive: bool = False,
    category: Optional[str] = None,
    db: AsyncSession = Depends(deps.get_db_session),
):
    filter_kwargs = {} if include_inactive else {"is_active": True}
    if category:
        filter_kwargs["category"] = category
    return await lab_crud.test_standard.get_multi(db, skip=0, limit=500, **filter_kwargs)


@router.get("/standards/{standard_id}", response_model=lab_schemas.TestStandardResponse, summary="특정 시험 규격 조회")
async def read_test_standard(standard_id: uuid.UUID, db: AsyncSession = Depends(deps.get_db_session)):
    return await lab_crud.test_standard.get_or_404(db, standard_id)


@router.post("/standards", response_model=lab_schemas.TestStandardResponse, status_code=status.HTTP_201_CREATED, summary="새 시험 규격 등록")
async def create_test_standard(
    standard_in: lab_schemas.TestStandardCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_manager_user),
):
    return await lab_crud.test_standard.create(db, obj_in=standard_in)


# =============================================================================
# 3. 고객사 (Customer) 라우터
# =============================================================================
@router.get("/customers", response_model=Page[lab_schemas.CustomerResponse], summary="고객사 목록 조회")
async def read_customers(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: SortOrder = "DESC",
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await lab_crud.customer.get_page(
        db, page=page, limit=limit, search=search, sort_by=sort_by, sort_order=sort_order
    )


@router.get("/customers/{customer_id}", response_model=lab_schemas.CustomerResponse, summary="특정 고객사 조회")
async def read_customer(customer_id: uuid.UUID, db: AsyncSession = Depends(deps.get_db_session)):
    return await lab_crud.customer.get_or_404(db, customer_id)


@router.post("/customers", response_model=lab_schemas.CustomerResponse, status_code=status.HTTP_201_CREATED, summary="새 고객사 등록")
async def create_customer(
    customer_in: lab_schemas.CustomerCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_manager_user),
):
    return await lab_crud.customer.create(db, obj_in=customer_in, created_by=current_user.id)


@router.put("/customers/{customer_id}", response_model=lab_schemas.CustomerResponse, summary="고객사 정보 수정")
async def update_customer(
    customer_id: uuid.UUID,
    customer_in: lab_schemas.CustomerUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_manager_user),
):
    db_obj = await lab_crud.customer.get_or_404(db, customer_id)
    return await lab_crud.customer.update(db, db_obj=db_obj, obj_in=customer_in)
