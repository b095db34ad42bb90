# pvlims/__init__.py

"""
태양광(PV) 모듈 품질 시험 LIMS 애플리케이션의 메인 패키지입니다.

- `core`: 설정, 데이터베이스 핸들, 예외 체계, 상태 전이 엔진 등 공통 구성 요소.
- `domains`: 업무 영역별(usr, lab, lims, rpt, cert, shared, dash) 모델/스키마/CRUD/라우터.
- `main.py`: FastAPI 애플리케이션 팩토리와 ARQ 워커 설정.
"""

APP_NAME = "PV LIMS API"
APP_VERSION = "0.1.0"
API_PREFIX = "/api/v1"  # API 라우트의 공통 접두사 (main.py에서 적용)

__version__ = APP_VERSION
__title__ = APP_NAME
__description__ = "Solar PV module quality-assurance laboratory information management system."
__all__ = []
