# pvlims/core/database_base.py

"""
모든 도메인 모델이 공유하는 컬럼 정의와 타입 헬퍼입니다.
"""

import uuid
from datetime import datetime, UTC
from typing import Optional

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from sqlalchemy.types import TIMESTAMP
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(UTC)


# PostgreSQL에서는 JSONB, 그 외(SQLite 테스트 DB)에서는 JSON으로 저장합니다.
JSONVariant = JSON().with_variant(JSONB(), "postgresql")


class UUIDPrimaryKeyMixin(SQLModel):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, description="고유 ID (UUID)")


class TimestampMixin(SQLModel):
    # onupdate는 파이썬 측 기본값을 사용하여 커밋 후 속성이 만료되지 않도록 합니다.
    created_at: Optional[datetime] = Field(
        default_factory=utc_now,
        sa_type=TIMESTAMP(timezone=True),
        sa_column_kwargs={"server_default": func.now()},
        description="레코드 생성 일시"
    )
    updated_at: Optional[datetime] = Field(
        default_factory=utc_now,
        sa_type=TIMESTAMP(timezone=True),
        sa_column_kwargs={"server_default": func.now(), "onupdate": utc_now},
        description="레코드 마지막 업데이트 일시"
    )
