# pvlims/domains/cert/schemas.py

"""
'cert' 도메인 (인증서)의 Pydantic 스키마를 정의하는 모듈입니다.
"""

import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field as PydanticField

from pvlims.core.crud_base import PartialUpdate

CertificationStatus = Literal["draft", "issued", "revoked"]
# expired는 표시용 파생 상태
DisplayStatus = Literal["draft", "issued", "revoked", "expired"]


class CertificationCreate(BaseModel):
    service_request_id: Optional[uuid.UUID] = None
    certificate_type: str = PydanticField(..., min_length=1, max_length=50)
    standard_codes: List[str] = PydanticField(..., min_length=1, description="적용 규격 코드 목록")
    manufacturer: str = PydanticField(..., min_length=1, max_length=255)
    model_numbers: Optional[List[str]] = None
    rated_power_range: Optional[str] = PydanticField(None, max_length=100)
    issue_date: Optional[date] = None
    expiry_date: Optional[date] = None
    scope_description: Optional[str] = None
    conditions: Optional[str] = None
    limitations: Optional[str] = None


class CertificationUpdate(PartialUpdate):
    non_nullable_fields = ("certificate_type", "standard_codes", "manufacturer")

    service_request_id: Optional[uuid.UUID] = None
    certificate_type: Optional[str] = PydanticField(None, min_length=1, max_length=50)
    standard_codes: Optional[List[str]] = PydanticField(None, min_length=1)
    manufacturer: Optional[str] = PydanticField(None, min_length=1, max_length=255)
    model_numbers: Optional[List[str]] = None
    rated_power_range: Optional[str] = PydanticField(None, max_length=100)
    issue_date: Optional[date] = None
    expiry_date: Optional[date] = None
    scope_description: Optional[str] = None
    conditions: Optional[str] = None
    limitations: Optional[str] = None


class CertificationIssue(BaseModel):
    issue_date: Optional[date] = PydanticField(None, description="생략 시 오늘")
    expiry_date: Optional[date] = None


class CertificationRevoke(BaseModel):
    reason: str = PydanticField(..., min_length=1, description="폐기 사유")


class CertificationResponse(BaseModel):
    id: uuid.UUID
    certificate_number: str
    service_request_id: Optional[uuid.UUID] = None
    certificate_type: str
    standard_codes: List[str]
    manufacturer: str
    model_numbers: Optional[List[str]] = None
    rated_power_range: Optional[str] = None
    issue_date: Optional[date] = None
    expiry_date: Optional[date] = None
    scope_description: Optional[str] = None
    conditions: Optional[str] = None
    limitations: Optional[str] = None
    status: CertificationStatus
    display_status: Optional[DisplayStatus] = None
    is_expired: bool = False
    document_hash: Optional[str] = None
    issued_by: Optional[uuid.UUID] = None
    approved_by: Optional[uuid.UUID] = None
    revocation_reason: Optional[str] = None
    revoked_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PublicCertificate(BaseModel):
    """공개 검증 응답에 포함되는 인증서 정보."""
    certificate_number: str
    certificate_type: str
    status: DisplayStatus
    manufacturer: str
    model_numbers: Optional[List[str]] = None
    rated_power_range: Optional[str] = None
    issue_date: Optional[date] = None
    expiry_date: Optional[date] = None
    standard_codes: List[str]
    scope_description: Optional[str] = None
    conditions: Optional[str] = None
    limitations: Optional[str] = None
    is_expired: bool


class CertificateVerification(BaseModel):
    valid: bool
    certificate: PublicCertificate
    hash_matches: Optional[bool] = None


class CertificateDocument(BaseModel):
    header: Dict[str, Any]
    product: Dict[str, Any]
    certification: Dict[str, Any]
    validity: Dict[str, Any]
    authorization: Dict[str, Any]
    verification: Dict[str, Any]
