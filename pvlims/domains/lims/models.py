# pvlims/domains/lims/models.py

"""
'lims' 도메인 (PostgreSQL 'lims' 스키마)의 데이터베이스 ORM 모델을 정의하는 모듈입니다.

시험 의뢰(ServiceRequest)를 최상위 집합으로 하여 시료(Sample)와 시험 계획(TestPlan)을 소유하고,
시료는 보관 이력(ChainOfCustodyEntry)과 시험 결과(TestResult)를 소유합니다.
의뢰 삭제 시 하위 레코드는 데이터베이스의 ON DELETE CASCADE로 함께 삭제됩니다.
"""

import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import Numeric, event
from sqlalchemy.types import TIMESTAMP
from sqlmodel import Field, Relationship, SQLModel

from pvlims.core.database_base import JSONVariant, TimestampMixin, UUIDPrimaryKeyMixin, utc_now
from pvlims.core.exceptions import ConflictError

# 하위 레코드 삭제는 데이터베이스의 ON DELETE CASCADE에 맡깁니다.
_PASSIVE = {"passive_deletes": "all"}


# =============================================================================
# 1. lims.service_requests 테이블 모델
# =============================================================================
class ServiceRequestBase(SQLModel):
    request_type: str = Field(default="external", max_length=20, description="internal, external")
    priority: str = Field(default="normal", max_length=20, description="low, normal, high, urgent")
    title: str = Field(max_length=255, description="의뢰 제목")
    description: Optional[str] = Field(default=None)
    customer_id: Optional[uuid.UUID] = Field(default=None, foreign_key="lab.customers.id", ondelete="SET NULL", description="고객사 ID")
    manufacturer: Optional[str] = Field(default=None, max_length=255, description="제조사")
    module_type: Optional[str] = Field(default=None, max_length=100, description="모듈 유형")
    model_number: Optional[str] = Field(default=None, max_length=100, description="모델명")
    rated_power_w: Optional[float] = Field(default=None, sa_type=Numeric(10, 2, asdecimal=False), description="정격 출력(W)")
    dimensions_mm: Optional[str] = Field(default=None, max_length=100, description="치수(mm)")
    requested_standards: Optional[List[str]] = Field(default=None, sa_type=JSONVariant, description="요청 시험 규격 코드 목록")
    special_requirements: Optional[str] = Field(default=None)
    target_markets: Optional[List[str]] = Field(default=None, sa_type=JSONVariant, description="목표 시장")
    assigned_lab_id: Optional[uuid.UUID] = Field(default=None, foreign_key="lab.lab_facilities.id", ondelete="SET NULL", description="배정 시험소 ID")
    assigned_to: Optional[uuid.UUID] = Field(default=None, foreign_key="usr.users.id", ondelete="SET NULL", description="담당자 ID")
    requested_date: Optional[date] = Field(default=None, description="의뢰일")
    estimated_completion: Optional[date] = Field(default=None, description="완료 예정일")
    quoted_price: Optional[float] = Field(default=None, sa_type=Numeric(12, 2, asdecimal=False), description="견적 금액")
    currency: str = Field(default="USD", max_length=3)
    po_number: Optional[str] = Field(default=None, max_length=100, description="발주 번호")


class ServiceRequest(UUIDPrimaryKeyMixin, TimestampMixin, ServiceRequestBase, table=True):
    __tablename__ = "service_requests"
    __table_args__ = {'schema': 'lims'}

    request_number: str = Field(max_length=20, unique=True, description="의뢰 번호 (SR-YYYY-NNNN)")
    status: str = Field(default="draft", max_length=20, index=True, description="의뢰 상태")
    actual_completion: Optional[date] = Field(default=None, description="실제 완료일 (completed 전이 시 기록)")
    created_by: Optional[uuid.UUID] = Field(default=None, foreign_key="usr.users.id", ondelete="SET NULL")

    samples: List["Sample"] = Relationship(back_populates="service_request", sa_relationship_kwargs=_PASSIVE)
    test_plans: List["TestPlan"] = Relationship(back_populates="service_request", sa_relationship_kwargs=_PASSIVE)


# =============================================================================
# 2. lims.samples 테이블 모델
# =============================================================================
class SampleBase(SQLModel):
    service_request_id: uuid.UUID = Field(foreign_key="lims.service_requests.id", ondelete="CASCADE", index=True)
    sample_type: str = Field(default="module", max_length=20, description="module, cell, component, material")
    description: Optional[str] = Field(default=None)
    quantity: int = Field(default=1, description="수량")
    serial_number: Optional[str] = Field(default=None, max_length=100)
    batch_number: Optional[str] = Field(default=None, max_length=100)
    storage_location: Optional[str] = Field(default=None, max_length=255, description="보관 위치")
    notes: Optional[str] = Field(default=None)


class Sample(UUIDPrimaryKeyMixin, TimestampMixin, SampleBase, table=True):
    __tablename__ = "samples"
    __table_args__ = {'schema': 'lims'}

    sample_code: str = Field(max_length=20, unique=True, description="시료 코드 (SMP-YYYY-NNNN)")
    status: str = Field(default="registered", max_length=20, index=True, description="시료 상태")
    receiving_condition: Optional[str] = Field(default=None, max_length=20, description="good, damaged, partial")
    received_date: Optional[datetime] = Field(default=None, sa_type=TIMESTAMP(timezone=True))
    received_by: Optional[uuid.UUID] = Field(default=None, foreign_key="usr.users.id", ondelete="SET NULL")
    created_by: Optional[uuid.UUID] = Field(default=None, foreign_key="usr.users.id", ondelete="SET NULL")

    service_request: Optional[ServiceRequest] = Relationship(back_populates="samples")
    custody_entries: List["ChainOfCustodyEntry"] = Relationship(
        back_populates="sample",
        sa_relationship_kwargs={"passive_deletes": "all", "order_by": "ChainOfCustodyEntry.timestamp"},
    )


# =============================================================================
# 3. lims.chain_of_custody 테이블 모델 (추가 전용)
# =============================================================================
class ChainOfCustodyEntry(UUIDPrimaryKeyMixin, SQLModel, table=True):
    __tablename__ = "chain_of_custody"
    __table_args__ = {'schema': 'lims'}

    sample_id: uuid.UUID = Field(foreign_key="lims.samples.id", ondelete="CASCADE", index=True)
    action: str = Field(max_length=20, description="registered, received, transferred")
    from_location: Optional[str] = Field(default=None, max_length=255)
    to_location: Optional[str] = Field(default=None, max_length=255)
    performed_by: Optional[uuid.UUID] = Field(default=None, foreign_key="usr.users.id", ondelete="SET NULL")
    timestamp: datetime = Field(default_factory=utc_now, sa_type=TIMESTAMP(timezone=True))
    notes: Optional[str] = Field(default=None)

    sample: Optional[Sample] = Relationship(back_populates="custody_entries")


@event.listens_for(ChainOfCustodyEntry, "before_update")
@event.listens_for(ChainOfCustodyEntry, "before_delete")
def _reject_custody_change(mapper, connection, target):
    raise ConflictError("Chain of custody entries are append-only")


# =============================================================================
# 4. lims.test_plans 테이블 모델
# =============================================================================
class TestPlanBase(SQLModel):
    service_request_id: uuid.UUID = Field(foreign_key="lims.service_requests.id", ondelete="CASCADE", index=True)
    sample_id: Optional[uuid.UUID] = Field(default=None, foreign_key="lims.samples.id", ondelete="SET NULL")
    test_standard_id: Optional[uuid.UUID] = Field(default=None, foreign_key="lab.test_standards.id", ondelete="SET NULL")
    name: str = Field(max_length=255, description="시험 계획명")
    description: Optional[str] = Field(default=None)
    test_sequences: Optional[List[Dict[str, Any]]] = Field(default=None, sa_type=JSONVariant, description="시험 순서")
    test_parameters: Optional[Dict[str, Any]] = Field(default=None, sa_type=JSONVariant, description="시험 조건")
    scheduled_start: Optional[date] = Field(default=None)
    scheduled_end: Optional[date] = Field(default=None)
    assigned_lab_id: Optional[uuid.UUID] = Field(default=None, foreign_key="lab.lab_facilities.id", ondelete="SET NULL")
    lead_technician: Optional[uuid.UUID] = Field(default=None, foreign_key="usr.users.id", ondelete="SET NULL")


class TestPlan(UUIDPrimaryKeyMixin, TimestampMixin, TestPlanBase, table=True):
    __tablename__ = "test_plans"
    __table_args__ = {'schema': 'lims'}

    plan_number: str = Field(max_length=20, unique=True, description="계획 번호 (TP-YYYY-NNNN)")
    status: str = Field(default="pending", max_length=20, index=True)
    actual_start: Optional[datetime] = Field(default=None, sa_type=TIMESTAMP(timezone=True))
    actual_end: Optional[datetime] = Field(default=None, sa_type=TIMESTAMP(timezone=True))
    reviewed_by: Optional[uuid.UUID] = Field(default=None, foreign_key="usr.users.id", ondelete="SET NULL")
    review_date: Optional[datetime] = Field(default=None, sa_type=TIMESTAMP(timezone=True))
    created_by: Optional[uuid.UUID] = Field(default=None, foreign_key="usr.users.id", ondelete="SET NULL")

    service_request: Optional[ServiceRequest] = Relationship(back_populates="test_plans")
    results: List["TestResult"] = Relationship(
        back_populates="test_plan",
        sa_relationship_kwargs={"passive_deletes": "all", "order_by": "TestResult.test_sequence"},
    )


# =============================================================================
# 5. lims.test_results 테이블 모델
# =============================================================================
class TestResult(UUIDPrimaryKeyMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "test_results"
    __table_args__ = {'schema': 'lims'}

    result_number: str = Field(max_length=20, unique=True, description="결과 번호 (TR-YYYY-NNNN)")
    test_plan_id: uuid.UUID = Field(foreign_key="lims.test_plans.id", ondelete="CASCADE", index=True)
    sample_id: Optional[uuid.UUID] = Field(default=None, foreign_key="lims.samples.id", ondelete="SET NULL")
    test_name: str = Field(max_length=255)
    test_code: Optional[str] = Field(default=None, max_length=50)
    test_sequence: Optional[int] = Field(default=None)
    status: str = Field(default="pending", max_length=20, description="pending, pass, fail, conditional")
    measured_values: Optional[Dict[str, Any]] = Field(default=None, sa_type=JSONVariant)
    pass_criteria: Optional[Dict[str, Any]] = Field(default=None, sa_type=JSONVariant)
    test_conditions: Optional[Dict[str, Any]] = Field(default=None, sa_type=JSONVariant)
    observations: Optional[str] = Field(default=None)
    deviations: Optional[str] = Field(default=None)
    equipment_used: Optional[List[str]] = Field(default=None, sa_type=JSONVariant)
    performed_by: Optional[uuid.UUID] = Field(default=None, foreign_key="usr.users.id", ondelete="SET NULL")
    verified_by: Optional[uuid.UUID] = Field(default=None, foreign_key="usr.users.id", ondelete="SET NULL")
    verification_date: Optional[datetime] = Field(default=None, sa_type=TIMESTAMP(timezone=True))
    verification_notes: Optional[str] = Field(default=None)
    start_time: Optional[datetime] = Field(default=None, sa_type=TIMESTAMP(timezone=True))
    end_time: Optional[datetime] = Field(default=None, sa_type=TIMESTAMP(timezone=True))

    test_plan: Optional[TestPlan] = Relationship(back_populates="results")
