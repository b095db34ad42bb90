# tests/__init__.py

"""
PV LIMS API 테스트 스위트 패키지입니다.

- `conftest.py`: 임시 SQLite 데이터베이스, 역할별 사용자, 인증 클라이언트 픽스처.
- `test_lifecycle.py`, `test_derivations.py`: 상태 전이 엔진과 파생 필드 계산 단위 테스트.
- `domains/`: 도메인별 API 통합 테스트.
"""

__title__ = "PV LIMS API Tests"
__description__ = "Test suite for the PV LIMS FastAPI application."
__version__ = "0.1.0"
__all__ = []
