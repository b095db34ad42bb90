# pvlims/domains/usr/__init__.py

"""
FastAPI 애플리케이션의 'usr' 도메인 패키지입니다.

'usr' 도메인은 시스템 사용자와 역할, 그리고 JWT 기반 인증을 관리합니다.

주요 서브모듈:
- `models.py`: 사용자 테이블과 역할(UserRole) 정의.
- `schemas.py`: 로그인/가입/프로필 요청 및 응답 스키마.
- `crud.py`: 사용자 조회와 인증 로직.
- `routers.py`: /usr/auth, /usr/users 엔드포인트.
"""

__title__ = "PV LIMS User Domain"
__description__ = "Manages users, roles and authentication."
__version__ = "0.1.0"
__all__ = []
