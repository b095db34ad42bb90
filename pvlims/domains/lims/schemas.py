# pvlims/domains/lims/schemas.py

"""
'lims' 도메인 (의뢰, 시료, 보관 이력, 시험 계획, 시험 결과)의 Pydantic 스키마를 정의하는 모듈입니다.
"""

import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field as PydanticField

from pvlims.core.crud_base import PartialUpdate

RequestType = Literal["internal", "external"]
Priority = Literal["low", "normal", "high", "urgent"]
ServiceRequestStatus = Literal["draft", "submitted", "in_review", "approved", "in_progress", "completed", "cancelled"]
SampleType = Literal["module", "cell", "component", "material"]
SampleStatus = Literal["registered", "received", "in_testing", "tested", "on_hold", "disposed"]
ReceivingCondition = Literal["good", "damaged", "partial"]
TestPlanStatus = Literal["pending", "scheduled", "in_progress", "completed", "failed", "cancelled"]
ResultStatus = Literal["pending", "pass", "fail", "conditional"]


# =============================================================================
# 1. 시험 의뢰 (ServiceRequest) 스키마
# =============================================================================
class ServiceRequestBase(BaseModel):
    request_type: RequestType = "external"
    priority: Priority = "normal"
    title: str = PydanticField(..., max_length=255, description="의뢰 제목")
    description: Optional[str] = None
    customer_id: Optional[uuid.UUID] = None
    manufacturer: Optional[str] = PydanticField(None, max_length=255)
    module_type: Optional[str] = PydanticField(None, max_length=100)
    model_number: Optional[str] = PydanticField(None, max_length=100)
    rated_power_w: Optional[float] = PydanticField(None, ge=0)
    dimensions_mm: Optional[str] = PydanticField(None, max_length=100)
    requested_standards: Optional[List[str]] = None
    special_requirements: Optional[str] = None
    target_markets: Optional[List[str]] = None
    assigned_lab_id: Optional[uuid.UUID] = None
    assigned_to: Optional[uuid.UUID] = None
    requested_date: Optional[date] = None
    estimated_completion: Optional[date] = None
    quoted_price: Optional[float] = PydanticField(None, ge=0)
    currency: str = PydanticField("USD", max_length=3)
    po_number: Optional[str] = PydanticField(None, max_length=100)


class ServiceRequestCreate(ServiceRequestBase):
    pass


class ServiceRequestUpdate(PartialUpdate):
    """
    부분 수정 스키마입니다. `status`를 지정하면 해당하는 수동 전이가 실행됩니다.
    `actual_completion`은 complete 전이에서만 기록되므로 받지 않습니다.
    """
    non_nullable_fields = ("request_type", "priority", "title")

    request_type: Optional[RequestType] = None
    priority: Optional[Priority] = None
    status: Optional[ServiceRequestStatus] = None
    title: Optional[str] = PydanticField(None, max_length=255)
    description: Optional[str] = None
    customer_id: Optional[uuid.UUID] = None
    manufacturer: Optional[str] = PydanticField(None, max_length=255)
    module_type: Optional[str] = PydanticField(None, max_length=100)
    model_number: Optional[str] = PydanticField(None, max_length=100)
    rated_power_w: Optional[float] = PydanticField(None, ge=0)
    dimensions_mm: Optional[str] = PydanticField(None, max_length=100)
    requested_standards: Optional[List[str]] = None
    special_requirements: Optional[str] = None
    target_markets: Optional[List[str]] = None
    assigned_lab_id: Optional[uuid.UUID] = None
    assigned_to: Optional[uuid.UUID] = None
    requested_date: Optional[date] = None
    estimated_completion: Optional[date] = None
    quoted_price: Optional[float] = PydanticField(None, ge=0)
    currency: Optional[str] = PydanticField(None, max_length=3)
    po_number: Optional[str] = PydanticField(None, max_length=100)


class ServiceRequestResponse(ServiceRequestBase):
    id: uuid.UUID
    request_number: str
    status: ServiceRequestStatus
    actual_completion: Optional[date] = None
    created_by: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ServiceRequestDetail(ServiceRequestResponse):
    samples: List["SampleResponse"] = []
    test_plans: List["TestPlanResponse"] = []


# =============================================================================
# 2. 시료 (Sample) 스키마
# =============================================================================
class SampleCreate(BaseModel):
    service_request_id: uuid.UUID
    sample_type: SampleType = "module"
    description: Optional[str] = None
    quantity: int = PydanticField(1, ge=1)
    serial_number: Optional[str] = PydanticField(None, max_length=100)
    batch_number: Optional[str] = PydanticField(None, max_length=100)
    storage_location: Optional[str] = PydanticField(None, max_length=255)
    notes: Optional[str] = None


class SampleUpdate(PartialUpdate):
    """보관 위치는 transfer, 수령 정보는 receive로만 변경합니다."""
    non_nullable_fields = ("sample_type", "quantity")

    sample_type: Optional[SampleType] = None
    status: Optional[SampleStatus] = None
    description: Optional[str] = None
    quantity: Optional[int] = PydanticField(None, ge=1)
    serial_number: Optional[str] = PydanticField(None, max_length=100)
    batch_number: Optional[str] = PydanticField(None, max_length=100)
    notes: Optional[str] = None


class SampleReceive(BaseModel):
    receiving_condition: ReceivingCondition
    storage_location: str = PydanticField(..., min_length=1, max_length=255)
    notes: Optional[str] = None


class SampleTransfer(BaseModel):
    to_location: str = PydanticField(..., min_length=1, max_length=255)
    notes: Optional[str] = None


class SampleResponse(BaseModel):
    id: uuid.UUID
    sample_code: str
    service_request_id: uuid.UUID
    sample_type: SampleType
    description: Optional[str] = None
    quantity: int
    serial_number: Optional[str] = None
    batch_number: Optional[str] = None
    status: SampleStatus
    storage_location: Optional[str] = None
    receiving_condition: Optional[ReceivingCondition] = None
    received_date: Optional[datetime] = None
    received_by: Optional[uuid.UUID] = None
    notes: Optional[str] = None
    created_by: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CustodyEntryResponse(BaseModel):
    id: uuid.UUID
    sample_id: uuid.UUID
    action: str
    from_location: Optional[str] = None
    to_location: Optional[str] = None
    performed_by: Optional[uuid.UUID] = None
    timestamp: datetime
    notes: Optional[str] = None

    class Config:
        from_attributes = True


# =============================================================================
# 3. 시험 계획 (TestPlan) 스키마
# =============================================================================
class TestPlanCreate(BaseModel):
    service_request_id: uuid.UUID
    sample_id: Optional[uuid.UUID] = None
    test_standard_id: Optional[uuid.UUID] = None
    name: str = PydanticField(..., max_length=255)
    description: Optional[str] = None
    test_sequences: Optional[List[Dict[str, Any]]] = None
    test_parameters: Optional[Dict[str, Any]] = None
    scheduled_start: Optional[date] = None
    scheduled_end: Optional[date] = None
    assigned_lab_id: Optional[uuid.UUID] = None
    lead_technician: Optional[uuid.UUID] = None


class TestPlanUpdate(PartialUpdate):
    """완료(completed/failed)는 complete 엔드포인트로만 전이합니다."""
    non_nullable_fields = ("name",)

    status: Optional[Literal["scheduled", "in_progress", "cancelled"]] = None
    sample_id: Optional[uuid.UUID] = None
    test_standard_id: Optional[uuid.UUID] = None
    name: Optional[str] = PydanticField(None, max_length=255)
    description: Optional[str] = None
    test_sequences: Optional[List[Dict[str, Any]]] = None
    test_parameters: Optional[Dict[str, Any]] = None
    scheduled_start: Optional[date] = None
    scheduled_end: Optional[date] = None
    assigned_lab_id: Optional[uuid.UUID] = None
    lead_technician: Optional[uuid.UUID] = None


class TestPlanResponse(BaseModel):
    id: uuid.UUID
    plan_number: str
    service_request_id: uuid.UUID
    sample_id: Optional[uuid.UUID] = None
    test_standard_id: Optional[uuid.UUID] = None
    name: str
    description: Optional[str] = None
    test_sequences: Optional[List[Dict[str, Any]]] = None
    test_parameters: Optional[Dict[str, Any]] = None
    status: TestPlanStatus
    scheduled_start: Optional[date] = None
    scheduled_end: Optional[date] = None
    actual_start: Optional[datetime] = None
    actual_end: Optional[datetime] = None
    assigned_lab_id: Optional[uuid.UUID] = None
    lead_technician: Optional[uuid.UUID] = None
    reviewed_by: Optional[uuid.UUID] = None
    review_date: Optional[datetime] = None
    created_by: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TestPlanListItem(TestPlanResponse):
    total_tests: int = 0
    passed_tests: int = 0
    failed_tests: int = 0


class TestPlanDetail(TestPlanResponse):
    results: List["TestResultResponse"] = []


# =============================================================================
# 4. 시험 결과 (TestResult) 스키마
# =============================================================================
class TestResultCreate(BaseModel):
    sample_id: Optional[uuid.UUID] = PydanticField(None, description="생략 시 시험 계획의 시료")
    test_name: str = PydanticField(..., max_length=255)
    test_code: Optional[str] = PydanticField(None, max_length=50)
    test_sequence: Optional[int] = None
    status: ResultStatus = "pending"
    measured_values: Optional[Dict[str, Any]] = None
    pass_criteria: Optional[Dict[str, Any]] = None
    test_conditions: Optional[Dict[str, Any]] = None
    observations: Optional[str] = None
    deviations: Optional[str] = None
    equipment_used: Optional[List[str]] = None


class TestResultUpdate(PartialUpdate):
    non_nullable_fields = ("test_name",)

    test_name: Optional[str] = PydanticField(None, max_length=255)
    test_code: Optional[str] = PydanticField(None, max_length=50)
    test_sequence: Optional[int] = None
    status: Optional[ResultStatus] = None
    measured_values: Optional[Dict[str, Any]] = None
    pass_criteria: Optional[Dict[str, Any]] = None
    test_conditions: Optional[Dict[str, Any]] = None
    observations: Optional[str] = None
    deviations: Optional[str] = None
    equipment_used: Optional[List[str]] = None


class TestResultVerify(BaseModel):
    verification_notes: Optional[str] = None


class TestResultResponse(BaseModel):
    id: uuid.UUID
    result_number: str
    test_plan_id: uuid.UUID
    sample_id: Optional[uuid.UUID] = None
    test_name: str
    test_code: Optional[str] = None
    test_sequence: Optional[int] = None
    status: ResultStatus
    measured_values: Optional[Dict[str, Any]] = None
    pass_criteria: Optional[Dict[str, Any]] = None
    test_conditions: Optional[Dict[str, Any]] = None
    observations: Optional[str] = None
    deviations: Optional[str] = None
    equipment_used: Optional[List[str]] = None
    performed_by: Optional[uuid.UUID] = None
    verified_by: Optional[uuid.UUID] = None
    verification_date: Optional[datetime] = None
    verification_notes: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


ServiceRequestDetail.model_rebuild()
TestPlanDetail.model_rebuild()
