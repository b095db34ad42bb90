# pvlims/domains/usr/models.py

"""
'usr' 도메인 (PostgreSQL 'usr' 스키마)의 데이터베이스 ORM 모델을 정의하는 모듈입니다.
"""

from datetime import datetime
from enum import IntEnum
from typing import Optional

from sqlalchemy.types import TIMESTAMP
from sqlmodel import Field, SQLModel

from pvlims.core.database_base import TimestampMixin, UUIDPrimaryKeyMixin


# =============================================================================
# 사용자 역할(RBAC)
# =============================================================================
class UserRole(IntEnum):
    """
    사용자 역할을 정의하는 정수형 Enum 클래스입니다.
    값이 작을수록 권한이 넓습니다.
    """
    ADMIN = 10              # 시스템 관리자
    LAB_MANAGER = 20        # 실험실 관리자
    QUALITY_ENGINEER = 30   # 품질 엔지니어
    TECHNICIAN = 40         # 시험 기술자
    VIEWER = 100            # 조회 전용 사용자


# 상태 전이 테이블과 권한 의존성에서 공유하는 역할 그룹
MANAGER_ROLES = frozenset({UserRole.ADMIN, UserRole.LAB_MANAGER})
QUALITY_ROLES = frozenset({UserRole.ADMIN, UserRole.LAB_MANAGER, UserRole.QUALITY_ENGINEER})
ADMIN_ROLES = frozenset({UserRole.ADMIN})


# =============================================================================
# 1. usr.users 테이블 모델
# =============================================================================
class UserBase(SQLModel):
    username: str = Field(max_length=50, unique=True, index=True, description="로그인 아이디")
    email: str = Field(max_length=255, unique=True, description="이메일")
    full_name: Optional[str] = Field(default=None, max_length=100, description="이름")
    department: Optional[str] = Field(default=None, max_length=100, description="부서")
    phone: Optional[str] = Field(default=None, max_length=50, description="연락처")
    role: UserRole = Field(default=UserRole.VIEWER, description="사용자 역할 (권한)")
    is_active: bool = Field(default=True, description="계정 활성화 여부")


class User(UUIDPrimaryKeyMixin, TimestampMixin, UserBase, table=True):
    """
    PostgreSQL의 usr.users 테이블에 매핑되는 SQLModel ORM 클래스입니다.
    """
    __tablename__ = "users"
    __table_args__ = {'schema': 'usr'}

    password_hash: str = Field(max_length=255, description="해싱된 비밀번호")
    last_login: Optional[datetime] = Field(default=None, sa_type=TIMESTAMP(timezone=True), description="마지막 로그인 일시")
