# pvlims/domains/rpt/models.py

"""
'rpt' 도메인 (PostgreSQL 'rpt' 스키마)의 데이터베이스 ORM 모델을 정의하는 모듈입니다.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.types import TIMESTAMP
from sqlmodel import Field, SQLModel

from pvlims.core.database_base import JSONVariant, TimestampMixin, UUIDPrimaryKeyMixin


# =============================================================================
# 1. rpt.reports 테이블 모델
# =============================================================================
class ReportBase(SQLModel):
    service_request_id: Optional[uuid.UUID] = Field(default=None, foreign_key="lims.service_requests.id", ondelete="SET NULL", index=True)
    test_plan_id: Optional[uuid.UUID] = Field(default=None, foreign_key="lims.test_plans.id", ondelete="SET NULL")
    title: str = Field(max_length=255, description="보고서 제목")
    report_type: str = Field(default="test_report", max_length=20, description="test_report, summary, calibration, audit, other")
    executive_summary: Optional[str] = Field(default=None, description="요약")
    conclusions: Optional[str] = Field(default=None, description="결론")
    recommendations: Optional[str] = Field(default=None, description="권고 사항")


class Report(UUIDPrimaryKeyMixin, TimestampMixin, ReportBase, table=True):
    __tablename__ = "reports"
    __table_args__ = {'schema': 'rpt'}

    report_number: str = Field(max_length=20, unique=True, description="보고서 번호 (RPT-YYYY-NNNN)")
    status: str = Field(default="draft", max_length=20, index=True, description="draft, review, approved, issued")
    version: int = Field(default=1, description="본문 개정 횟수 (1부터 시작)")
    overall_result: Optional[str] = Field(default=None, max_length=20, description="pass, fail, conditional, pending")
    test_results_summary: Optional[Dict[str, Any]] = Field(default=None, sa_type=JSONVariant, description="결과 집계")
    prepared_by: Optional[uuid.UUID] = Field(default=None, foreign_key="usr.users.id", ondelete="SET NULL")
    reviewed_by: Optional[uuid.UUID] = Field(default=None, foreign_key="usr.users.id", ondelete="SET NULL")
    review_date: Optional[datetime] = Field(default=None, sa_type=TIMESTAMP(timezone=True))
    review_notes: Optional[str] = Field(default=None)
    approved_by: Optional[uuid.UUID] = Field(default=None, foreign_key="usr.users.id", ondelete="SET NULL")
    approval_date: Optional[datetime] = Field(default=None, sa_type=TIMESTAMP(timezone=True))
