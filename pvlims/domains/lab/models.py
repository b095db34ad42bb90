# pvlims/domains/lab/models.py

"""
'lab' 도메인 (PostgreSQL 'lab' 스키마)의 데이터베이스 ORM 모델을 정의하는 모듈입니다.
시험소(LabFacility), 시험 규격(TestStandard), 고객사(Customer) 같은 기준 정보를 다룹니다.
"""

import uuid
from datetime import date
from typing import List, Optional

from sqlmodel import Field, SQLModel

from pvlims.core.database_base import JSONVariant, TimestampMixin, UUIDPrimaryKeyMixin


# =============================================================================
# 1. lab.lab_facilities 테이블 모델
# =============================================================================
class LabFacilityBase(SQLModel):
    name: str = Field(max_length=255, description="시험소명")
    code: str = Field(max_length=20, unique=True, description="시험소 코드")
    facility_type: str = Field(default="internal", max_length=20, description="internal, external, partner")
    address: Optional[str] = Field(default=None, description="주소")
    city: Optional[str] = Field(default=None, max_length=100)
    country: Optional[str] = Field(default=None, max_length=100)
    contact_name: Optional[str] = Field(default=None, max_length=100)
    contact_email: Optional[str] = Field(default=None, max_length=255)
    contact_phone: Optional[str] = Field(default=None, max_length=50)
    accreditation_number: Optional[str] = Field(default=None, max_length=100, description="인정 번호")
    accreditation_body: Optional[str] = Field(default=None, max_length=100, description="인정 기관")
    accreditation_expiry: Optional[date] = Field(default=None, description="인정 만료일")
    capabilities: Optional[List[str]] = Field(default=None, sa_type=JSONVariant, description="시험 가능 항목 목록")
    is_active: bool = Field(default=True, description="활성 여부")


class LabFacility(UUIDPrimaryKeyMixin, TimestampMixin, LabFacilityBase, table=True):
    __tablename__ = "lab_facilities"
    __table_args__ = {'schema': 'lab'}

    created_by: Optional[uuid.UUID] = Field(default=None, foreign_key="usr.users.id", ondelete="SET NULL")


# =============================================================================
# 2. lab.test_standards 테이블 모델
# =============================================================================
class TestStandardBase(SQLModel):
    standard_code: str = Field(max_length=50, unique=True, description="규격 코드 (예: IEC 61215)")
    name: str = Field(max_length=255, description="규격명")
    version: Optional[str] = Field(default=None, max_length=20, description="개정판")
    category: Optional[str] = Field(default=None, max_length=50, description="분류 (safety, performance 등)")
    description: Optional[str] = Field(default=None)
    duration_days: Optional[int] = Field(default=None, description="표준 소요 일수")
    is_active: bool = Field(default=True)


class TestStandard(UUIDPrimaryKeyMixin, TimestampMixin, TestStandardBase, table=True):
    __tablename__ = "test_standards"
    __table_args__ = {'schema': 'lab'}


# =============================================================================
# 3. lab.customers 테이블 모델
# =============================================================================
class CustomerBase(SQLModel):
    company_name: str = Field(max_length=255, description="회사명")
    contact_name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    address: Optional[str] = Field(default=None)
    city: Optional[str] = Field(default=None, max_length=100)
    country: Optional[str] = Field(default=None, max_length=100)


class Customer(UUIDPrimaryKeyMixin, TimestampMixin, CustomerBase, table=True):
    __tablename__ = "customers"
    __table_args__ = {'schema': 'lab'}

    created_by: Optional[uuid.UUID] = Field(default=None, foreign_key="usr.users.id", ondelete="SET NULL")
