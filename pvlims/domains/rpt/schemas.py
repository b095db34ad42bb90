# pvlims/domains/rpt/schemas.py

"""
'rpt' 도메인 (시험 보고서)의 Pydantic 스키마를 정의하는 모듈입니다.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field as PydanticField

from pvlims.core.crud_base import PartialUpdate

ReportType = Literal["test_report", "summary", "calibration", "audit", "other"]
ReportStatus = Literal["draft", "review", "approved", "issued"]

# 값이 주어지면 version을 1 올리는 본문 필드
CONTENT_FIELDS = ("executive_summary", "conclusions", "recommendations")


class ReportCreate(BaseModel):
    service_request_id: Optional[uuid.UUID] = None
    test_plan_id: Optional[uuid.UUID] = PydanticField(None, description="결과 집계의 기준이 되는 시험 계획")
    title: str = PydanticField(..., max_length=255)
    report_type: ReportType = "test_report"
    executive_summary: Optional[str] = None
    conclusions: Optional[str] = None
    recommendations: Optional[str] = None


class ReportUpdate(PartialUpdate):
    """
    `status`는 수동 전이(draft -> review)만 허용됩니다.
    검토 결과와 발행은 review, issue 엔드포인트를 사용합니다.
    """
    non_nullable_fields = ("title", "report_type")

    title: Optional[str] = PydanticField(None, max_length=255)
    report_type: Optional[ReportType] = None
    status: Optional[ReportStatus] = None
    executive_summary: Optional[str] = None
    conclusions: Optional[str] = None
    recommendations: Optional[str] = None


class ReportReview(BaseModel):
    approved: bool
    review_notes: Optional[str] = None


class ReportResponse(BaseModel):
    id: uuid.UUID
    report_number: str
    service_request_id: Optional[uuid.UUID] = None
    test_plan_id: Optional[uuid.UUID] = None
    title: str
    report_type: ReportType
    status: ReportStatus
    version: int
    executive_summary: Optional[str] = None
    conclusions: Optional[str] = None
    recommendations: Optional[str] = None
    overall_result: Optional[str] = None
    test_results_summary: Optional[Dict[str, int]] = None
    prepared_by: Optional[uuid.UUID] = None
    reviewed_by: Optional[uuid.UUID] = None
    review_date: Optional[datetime] = None
    review_notes: Optional[str] = None
    approved_by: Optional[uuid.UUID] = None
    approval_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ReportDocument(BaseModel):
    """다운로드용 구조화 문서."""
    header: Dict[str, Any]
    product_info: Optional[Dict[str, Any]] = None
    test_info: Optional[Dict[str, Any]] = None
    summary: Dict[str, Any]
    test_results: List[Dict[str, Any]] = []
    approval: Dict[str, Any]
