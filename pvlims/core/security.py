# pvlims/core/security.py

"""
애플리케이션의 보안 관련 유틸리티 함수 및 의존성 주입을 정의하는 모듈입니다.

- 비밀번호 해싱 및 검증 (passlib bcrypt).
- JWT(JSON Web Token) 생성 및 검증 (python-jose).
- OAuth2 Password Bearer 스키마를 사용하여 현재 사용자 획득.
- 사용자 역할(role) 기반 권한 부여 검사.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from pvlims import API_PREFIX
from pvlims.core.config import settings
from pvlims.core.database import get_session
from pvlims.core.exceptions import ForbiddenError, UnauthorizedError
from pvlims.domains.usr import models as usr_models

logger = logging.getLogger(__name__)

# --- 비밀번호 해싱 설정 ---
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


# --- OAuth2 스키마 설정 ---
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{API_PREFIX}/usr/auth/token")


# --- JWT 토큰 생성 및 검증 ---
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Access Token을 생성합니다.
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY.get_secret_value(), algorithm=settings.ALGORITHM)


async def get_current_user_from_token(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_session),
) -> usr_models.User:
    """
    JWT 토큰을 디코딩하고 검증하여 현재 사용자를 데이터베이스에서 가져옵니다.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY.get_secret_value(), algorithms=[settings.ALGORITHM])
        username: Optional[str] = payload.get("sub")
    except JWTError as e:
        logger.info("JWT 검증 실패: %s", e)
        raise UnauthorizedError()
    if username is None:
        raise UnauthorizedError()

    result = await db.execute(select(usr_models.User).where(usr_models.User.username == username))
    user = result.scalars().one_or_none()
    if user is None:
        raise UnauthorizedError()
    return user


# --- 역할 기반 권한 부여 의존성 ---
def get_current_active_user(
    current_user: usr_models.User = Depends(get_current_user_from_token),
) -> usr_models.User:
    """
    현재 인증된 활성 사용자를 반환합니다.
    계정이 비활성화된 경우 400 Bad Request를 발생시킵니다.
    """
    if not current_user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user")
    return current_user


def get_current_admin_user(
    current_user: usr_models.User = Depends(get_current_active_user),
) -> usr_models.User:
    """
    현재 인증된 관리자 사용자를 반환합니다. 관리자가 아니면 403을 발생시킵니다.
    """
    if current_user.role != usr_models.UserRole.ADMIN:
        raise ForbiddenError("Not enough permissions. Admin role required.")
    return current_user


def require_roles(*roles: usr_models.UserRole) -> Callable[..., usr_models.User]:
    """
    지정한 역할 중 하나를 가진 활성 사용자만 허용하는 의존성을 생성합니다.

    사용 예: `current_user = Depends(require_roles(UserRole.ADMIN, UserRole.LAB_MANAGER))`
    """
    allowed = frozenset(roles)

    def _check_role(current_user: usr_models.User = Depends(get_current_active_user)) -> usr_models.User:
        if current_user.role not in allowed:
            names = ", ".join(sorted(r.name.lower() for r in allowed))
            raise ForbiddenError(f"Not enough permissions. Required role: {names}")
        return current_user

    return _check_role

