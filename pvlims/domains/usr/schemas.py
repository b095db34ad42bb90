# pvlims/domains/usr/schemas.py

"""
'usr' 도메인의 Pydantic 스키마 (요청/응답 유효성 검사)를 정의하는 모듈입니다.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field as PydanticField

from pvlims.core.crud_base import PartialUpdate

from .models import UserRole


# =============================================================================
# 1. 인증 토큰
# =============================================================================
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


# =============================================================================
# 2. 사용자 (User)
# =============================================================================
class UserRead(BaseModel):
    id: uuid.UUID
    username: str
    email: str
    full_name: Optional[str] = None
    department: Optional[str] = None
    phone: Optional[str] = None
    role: UserRole
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserRegister(BaseModel):
    username: str = PydanticField(..., min_length=3, max_length=50, description="로그인 아이디")
    email: EmailStr = PydanticField(..., description="이메일")
    password: str = PydanticField(..., min_length=8, description="비밀번호 (8자 이상)")
    full_name: Optional[str] = PydanticField(None, max_length=100, description="이름")
    department: Optional[str] = PydanticField(None, max_length=100, description="부서")


class RegisterResponse(Token):
    user: UserRead


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = PydanticField(None, max_length=100)
    department: Optional[str] = PydanticField(None, max_length=100)
    phone: Optional[str] = PydanticField(None, max_length=50)


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = PydanticField(..., min_length=8, description="새 비밀번호 (8자 이상)")


class UserAdminUpdate(PartialUpdate):
    """관리자 전용: 역할 및 활성 상태 변경."""
    non_nullable_fields = ("role", "is_active")

    role: Optional[UserRole] = None
    is_active: Optional[bool] = None
