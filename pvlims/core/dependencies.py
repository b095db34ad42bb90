# pvlims/core/dependencies.py

"""
FastAPI 애플리케이션의 의존성 주입(Dependency Injection)을 정의하는 모듈입니다.

- 데이터베이스 세션 (get_db_session).
- 현재 인증된 사용자 및 역할 기반 권한 의존성.
"""

from pvlims.core.database import get_session

# flake8: noqa
from pvlims.core.security import (
    create_access_token,
    get_password_hash,
    verify_password,
    oauth2_scheme,
    get_current_user_from_token,
    get_current_active_user,
    get_current_admin_user,
    require_roles,
)
from pvlims.domains.usr.models import MANAGER_ROLES, QUALITY_ROLES

# --- 역할 그룹 의존성 ---
# 관리자 또는 실험실 관리자
get_current_manager_user = require_roles(*MANAGER_ROLES)
# 관리자, 실험실 관리자 또는 품질 엔지니어
get_current_quality_user = require_roles(*QUALITY_ROLES)


# --- 데이터베이스 세션 의존성 주입 ---
# 토큰 검증 의존성과 같은 호출 객체여야 FastAPI가 요청당 세션 하나를 공유합니다.
get_db_session = get_session
