# pvlims/domains/lab/crud.py

"""
'lab' 도메인의 CRUD 로직을 담당하는 모듈입니다.
"""

import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from pvlims.core import derivations
from pvlims.core.crud_base import CRUDBase
from pvlims.core.exceptions import ConflictError, DuplicateKeyError

from . import models as lab_models
from . import schemas as lab_schemas

# 시험소 삭제를 막는 의뢰 상태
ACTIVE_REQUEST_STATUSES = ("approved", "in_progress")


# =============================================================================
# 1. 시험소 (LabFacility) CRUD
# =============================================================================
class CRUDLabFacility(CRUDBase[lab_models.LabFacility, lab_schemas.LabFacilityCreate, lab_schemas.LabFacilityUpdate]):
    search_fields = ("name", "code", "city")
    sort_fields = ("created_at", "name", "code")
    not_found_detail = "Lab facility not found"

    def __init__(self):
        super().__init__(model=lab_models.LabFacility)

    async def get_by_code(self, db: AsyncSession, *, code: str) -> Optional[lab_models.LabFacility]:
        result = await db.execute(select(self.model).where(self.model.code == code))
        return result.scalars().one_or_none()

    async def create(self, db: AsyncSession, *, obj_in: lab_schemas.LabFacilityCreate, **extra: Any) -> lab_models.LabFacility:
        """코드 중복을 확인하고 생성합니다."""
        if await self.get_by_code(db, code=obj_in.code):
            raise DuplicateKeyError("Lab facility with this code already exists")
        return await super().create(db, obj_in=obj_in, **extra)

    async def update(self, db: AsyncSession, *, db_obj: lab_models.LabFacility, obj_in: lab_schemas.LabFacilityUpdate) -> lab_models.LabFacility:
        if obj_in.code is not None and obj_in.code != db_obj.code:
            existing = await self.get_by_code(db, code=obj_in.code)
            if existing and existing.id != db_obj.id:
                raise DuplicateKeyError("Lab facility with this code already exists")
        return await super().update(db, db_obj=db_obj, obj_in=obj_in)

    async def activity_counts(self, db: AsyncSession, lab_ids: List[uuid.UUID]) -> Dict[uuid.UUID, Dict[str, int]]:
        """시험소별 진행 중 의뢰 수와 진행 중 시험 계획 수."""
        from pvlims.domains.lims.models import ServiceRequest, TestPlan

        counts = {lab_id: {"active_requests": 0, "active_tests": 0} for lab_id in lab_ids}
        if not lab_ids:
            return counts

        request_rows = await db.execute(
            select(ServiceRequest.assigned_lab_id, func.count())
            .where(ServiceRequest.assigned_lab_id.in_(lab_ids), ServiceRequest.status.in_(ACTIVE_REQUEST_STATUSES))
            .group_by(ServiceRequest.assigned_lab_id)
        )
        for lab_id, count in request_rows.all():
            counts[lab_id]["active_requests"] = count

        plan_rows = await db.execute(
            select(TestPlan.assigned_lab_id, func.count())
            .where(TestPlan.assigned_lab_id.in_(lab_ids), TestPlan.status == "in_progress")
            .group_by(TestPlan.assigned_lab_id)
        )
        for lab_id, count in plan_rows.all():
            counts[lab_id]["active_tests"] = count
        return counts

    async def get_page_with_activity(self, db: AsyncSession, **kwargs: Any) -> Dict[str, Any]:
        page = await self.get_page(db, **kwargs)
        counts = await self.activity_counts(db, [lab.id for lab in page["data"]])
        page["data"] = [
            lab_schemas.LabFacilityListItem.model_validate(lab).model_copy(update=counts[lab.id])
            for lab in page["data"]
        ]
        return page

    async def workload(self, db: AsyncSession, *, lab: lab_models.LabFacility) -> Dict[str, Any]:
        """
        시험소 부하 현황: 진행 중 의뢰/시험 수, 가동률, 예정된 시험(최대 10건).
        """
        from pvlims.domains.lims.models import TestPlan

        counts = (await self.activity_counts(db, [lab.id]))[lab.id]
        total_tests = (await db.execute(
            select(func.count()).select_from(TestPlan).where(TestPlan.assigned_lab_id == lab.id)
        )).scalar_one()
        upcoming = await db.execute(
            select(TestPlan)
            .where(TestPlan.assigned_lab_id == lab.id, TestPlan.status.in_(("pending", "scheduled")))
            .order_by(TestPlan.scheduled_start)
            .limit(10)
        )
        return {
            "lab_id": lab.id,
            "active_requests": counts["active_requests"],
            "active_tests": counts["active_tests"],
            "total_tests": total_tests,
            "utilization_percent": derivations.utilization_percent(counts["active_tests"], total_tests),
            "upcoming_tests": list(upcoming.scalars().all()),
        }

    async def remove(self, db: AsyncSession, *, db_obj: lab_models.LabFacility) -> lab_models.LabFacility:
        """
        시험소를 삭제합니다. 승인 또는 진행 중인 의뢰가 배정되어 있으면 삭제할 수 없습니다.
        """
        counts = (await self.activity_counts(db, [db_obj.id]))[db_obj.id]
        if counts["active_requests"]:
            raise ConflictError(
                "Cannot delete lab with active service requests",
                active_requests=counts["active_requests"],
            )
        await self.delete(db, id=db_obj.id)
        return db_obj


lab_facility = CRUDLabFacility()


# =============================================================================
# 2. 시험 규격 (TestStandard) CRUD
# =============================================================================
class CRUDTestStandard(CRUDBase[lab_models.TestStandard, lab_schemas.TestStandardCreate, lab_schemas.TestStandardCreate]):
    search_fields = ("standard_code", "name")
    sort_fields = ("created_at", "standard_code", "name")
    not_found_detail = "Test standard not found"

    def __init__(self):
        super().__init__(model=lab_models.TestStandard)

    async def create(self, db: AsyncSession, *, obj_in: lab_schemas.TestStandardCreate, **extra: Any) -> lab_models.TestStandard:
        if await self.get_by_attribute(db, attribute="standard_code", value=obj_in.standard_code):
            raise DuplicateKeyError("Test standard with this code already exists")
        return await super().create(db, obj_in=obj_in, **extra)


test_standard = CRUDTestStandard()


# =============================================================================
# 3. 고객사 (Customer) CRUD
# =============================================================================
class CRUDCustomer(CRUDBase[lab_models.Customer, lab_schemas.CustomerCreate, lab_schemas.CustomerUpdate]):
    search_fields = ("company_name", "contact_name", "email")
    sort_fields = ("created_at", "company_name")
    not_found_detail = "Customer not found"

    def __init__(self):
        super().__init__(model=lab_models.Customer)


customer = CRUDCustomer()
