# pvlims/domains/shared/models.py

"""
'shared' 도메인 (PostgreSQL 'shared' 스키마)의 데이터베이스 ORM 모델을 정의하는 모듈입니다.

- 감사 로그(AuditLog): 상태 변경 작업의 추가 전용 기록.
- 알림(Notification): 사용자별 알림.
- 참조 번호 시퀀스(ReferenceSequence): `SR-2024-0001` 형식 번호 발급용 카운터.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import UniqueConstraint, event
from sqlalchemy.types import TIMESTAMP
from sqlmodel import Field, SQLModel

from pvlims.core.database_base import JSONVariant, TimestampMixin, UUIDPrimaryKeyMixin, utc_now
from pvlims.core.exceptions import ConflictError


# =============================================================================
# 1. shared.audit_logs 테이블 모델
# =============================================================================
class AuditLog(UUIDPrimaryKeyMixin, SQLModel, table=True):
    __tablename__ = "audit_logs"
    __table_args__ = {'schema': 'shared'}

    user_id: Optional[uuid.UUID] = Field(default=None, foreign_key="usr.users.id", ondelete="SET NULL", description="행위자 ID")
    action: str = Field(max_length=50, index=True, description="CREATE, UPDATE, DELETE 또는 전이명(SUBMIT, REVOKE 등)")
    entity_type: str = Field(max_length=50, index=True, description="엔티티 유형")
    entity_id: uuid.UUID = Field(index=True, description="엔티티 ID")
    old_values: Optional[Dict[str, Any]] = Field(default=None, sa_type=JSONVariant, description="변경 전 스냅샷")
    new_values: Optional[Dict[str, Any]] = Field(default=None, sa_type=JSONVariant, description="변경 후 스냅샷")
    created_at: datetime = Field(default_factory=utc_now, sa_type=TIMESTAMP(timezone=True), description="기록 일시")


@event.listens_for(AuditLog, "before_update")
@event.listens_for(AuditLog, "before_delete")
def _reject_audit_log_change(mapper, connection, target):
    raise ConflictError("Audit log entries are append-only")


# =============================================================================
# 2. shared.notifications 테이블 모델
# =============================================================================
class Notification(UUIDPrimaryKeyMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "notifications"
    __table_args__ = {'schema': 'shared'}

    user_id: uuid.UUID = Field(foreign_key="usr.users.id", ondelete="CASCADE", index=True, description="수신자 ID")
    title: str = Field(max_length=255, description="제목")
    message: str = Field(description="내용")
    type: str = Field(default="info", max_length=20, description="info, success, warning, error")
    link: Optional[str] = Field(default=None, max_length=255, description="관련 화면 경로")
    is_read: bool = Field(default=False, description="읽음 여부")


# =============================================================================
# 3. shared.reference_sequences 테이블 모델
# =============================================================================
class ReferenceSequence(SQLModel, table=True):
    __tablename__ = "reference_sequences"
    __table_args__ = (
        UniqueConstraint("prefix", "year", name="uq_reference_sequences_prefix_year"),
        {'schema': 'shared'},
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    prefix: str = Field(max_length=10, description="번호 접두어 (SR, SMP, TP, TR, RPT, CERT)")
    year: int = Field(description="발급 연도")
    last_value: int = Field(default=0, description="마지막으로 발급한 일련번호")
