# pvlims/domains/cert/models.py

"""
'cert' 도메인 (PostgreSQL 'cert' 스키마)의 데이터베이스 ORM 모델을 정의하는 모듈입니다.

인증서의 만료(expired)는 저장하지 않고 expiry_date로부터 계산합니다.
"""

import uuid
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy.types import TIMESTAMP
from sqlmodel import Field, SQLModel

from pvlims.core.database_base import JSONVariant, TimestampMixin, UUIDPrimaryKeyMixin


# =============================================================================
# 1. cert.certifications 테이블 모델
# =============================================================================
class CertificationBase(SQLModel):
    service_request_id: Optional[uuid.UUID] = Field(default=None, foreign_key="lims.service_requests.id", ondelete="SET NULL")
    certificate_type: str = Field(max_length=50, description="인증 유형 (예: IEC, UL, CE)")
    standard_codes: List[str] = Field(sa_type=JSONVariant, description="적용 규격 코드 목록")
    manufacturer: str = Field(max_length=255, description="제조사")
    model_numbers: Optional[List[str]] = Field(default=None, sa_type=JSONVariant, description="대상 모델 목록")
    rated_power_range: Optional[str] = Field(default=None, max_length=100, description="정격 출력 범위")
    issue_date: Optional[date] = Field(default=None, description="발행일")
    expiry_date: Optional[date] = Field(default=None, index=True, description="만료일")
    scope_description: Optional[str] = Field(default=None)
    conditions: Optional[str] = Field(default=None)
    limitations: Optional[str] = Field(default=None)


class Certification(UUIDPrimaryKeyMixin, TimestampMixin, CertificationBase, table=True):
    __tablename__ = "certifications"
    __table_args__ = {'schema': 'cert'}

    certificate_number: str = Field(max_length=20, unique=True, description="인증서 번호 (CERT-YYYY-NNNN)")
    status: str = Field(default="draft", max_length=20, index=True, description="draft, issued, revoked")
    document_hash: Optional[str] = Field(default=None, max_length=64, description="발행 시점 내용의 SHA-256")
    issued_by: Optional[uuid.UUID] = Field(default=None, foreign_key="usr.users.id", ondelete="SET NULL", description="작성자")
    approved_by: Optional[uuid.UUID] = Field(default=None, foreign_key="usr.users.id", ondelete="SET NULL", description="발행 승인자")
    revocation_reason: Optional[str] = Field(default=None, description="폐기 사유")
    revoked_at: Optional[datetime] = Field(default=None, sa_type=TIMESTAMP(timezone=True), description="폐기 일시")
