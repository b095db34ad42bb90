# pvlims/domains/lab/schemas.py

"""
'lab' 도메인 (시험소, 시험 규격, 고객사)의 Pydantic 스키마를 정의하는 모듈입니다.
"""

import uuid
from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field as PydanticField

from pvlims.core.crud_base import PartialUpdate

FacilityType = Literal["internal", "external", "partner"]


# =============================================================================
# 1. 시험소 (LabFacility) 스키마
# =============================================================================
class LabFacilityBase(BaseModel):
    name: str = PydanticField(..., max_length=255, description="시험소명")
    code: str = PydanticField(..., max_length=20, description="시험소 코드 (고유)")
    facility_type: FacilityType = PydanticField("internal", description="시험소 유형")
    address: Optional[str] = None
    city: Optional[str] = PydanticField(None, max_length=100)
    country: Optional[str] = PydanticField(None, max_length=100)
    contact_name: Optional[str] = PydanticField(None, max_length=100)
    contact_email: Optional[str] = PydanticField(None, max_length=255)
    contact_phone: Optional[str] = PydanticField(None, max_length=50)
    accreditation_number: Optional[str] = PydanticField(None, max_length=100)
    accreditation_body: Optional[str] = PydanticField(None, max_length=100)
    accreditation_expiry: Optional[date] = None
    capabilities: Optional[List[str]] = None
    is_active: bool = True


class LabFacilityCreate(LabFacilityBase):
    pass


class LabFacilityUpdate(PartialUpdate):
    non_nullable_fields = ("name", "code", "facility_type", "is_active")

    name: Optional[str] = PydanticField(None, max_length=255)
    code: Optional[str] = PydanticField(None, max_length=20)
    facility_type: Optional[FacilityType] = None
    address: Optional[str] = None
    city: Optional[str] = PydanticField(None, max_length=100)
    country: Optional[str] = PydanticField(None, max_length=100)
    contact_name: Optional[str] = PydanticField(None, max_length=100)
    contact_email: Optional[str] = PydanticField(None, max_length=255)
    contact_phone: Optional[str] = PydanticField(None, max_length=50)
    accreditation_number: Optional[str] = PydanticField(None, max_length=100)
    accreditation_body: Optional[str] = PydanticField(None, max_length=100)
    accreditation_expiry: Optional[date] = None
    capabilities: Optional[List[str]] = None
    is_active: Optional[bool] = None


class LabFacilityResponse(LabFacilityBase):
    id: uuid.UUID
    created_by: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class LabFacilityListItem(LabFacilityResponse):
    active_requests: int = PydanticField(0, description="진행 중인 의뢰 수 (approved, in_progress)")
    active_tests: int = PydanticField(0, description="진행 중인 시험 계획 수 (in_progress)")


class WorkloadPlan(BaseModel):
    id: uuid.UUID
    plan_number: str
    name: str
    status: str
    scheduled_start: Optional[date] = None
    scheduled_end: Optional[date] = None

    class Config:
        from_attributes = True


class LabWorkload(BaseModel):
    lab_id: uuid.UUID
    active_requests: int
    active_tests: int
    total_tests: int
    utilization_percent: float
    upcoming_tests: List[WorkloadPlan]


# =============================================================================
# 2. 시험 규격 (TestStandard) 스키마
# =============================================================================
class TestStandardCreate(BaseModel):
    standard_code: str = PydanticField(..., max_length=50, description="규격 코드")
    name: str = PydanticField(..., max_length=255)
    version: Optional[str] = PydanticField(None, max_length=20)
    category: Optional[str] = PydanticField(None, max_length=50)
    description: Optional[str] = None
    duration_days: Optional[int] = PydanticField(None, ge=0)
    is_active: bool = True


class TestStandardResponse(TestStandardCreate):
    id: uuid.UUID
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# =============================================================================
# 3. 고객사 (Customer) 스키마
# =============================================================================
class CustomerCreate(BaseModel):
    company_name: str = PydanticField(..., max_length=255)
    contact_name: Optional[str] = PydanticField(None, max_length=100)
    email: Optional[str] = PydanticField(None, max_length=255)
    phone: Optional[str] = PydanticField(None, max_length=50)
    address: Optional[str] = None
    city: Optional[str] = PydanticField(None, max_length=100)
    country: Optional[str] = PydanticField(None, max_length=100)


class CustomerUpdate(PartialUpdate):
    non_nullable_fields = ("company_name",)

    company_name: Optional[str] = PydanticField(None, max_length=255)
    contact_name: Optional[str] = PydanticField(None, max_length=100)
    email: Optional[str] = PydanticField(None, max_length=255)
    phone: Optional[str] = PydanticField(None, max_length=50)
    address: Optional[str] = None
    city: Optional[str] = PydanticField(None, max_length=100)
    country: Optional[str] = PydanticField(None, max_length=100)


class CustomerResponse(CustomerCreate):
    id: uuid.UUID
    created_by: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
