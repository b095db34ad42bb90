# pvlims/domains/lims/__init__.py

"""
FastAPI 애플리케이션의 'lims' 도메인 패키지입니다.

'lims' 도메인은 시험 의뢰부터 시료 접수, 보관 이력, 시험 계획과 결과까지의 핵심 업무 흐름을 관리합니다.

주요 서브모듈:
- `models.py`: 'lims' 스키마의 테이블에 매핑되는 SQLModel 정의.
- `workflows.py`: 의뢰/시료/시험 계획의 상태 전이 테이블.
- `schemas.py`, `crud.py`, `routers.py`: 요청/응답 스키마, 작업 단위 기반 CRUD, API 엔드포인트.
"""

__title__ = "PV LIMS Core Domain"
__description__ = "Manages service requests, samples, chain of custody, test plans and results."
__version__ = "0.1.0"
__all__ = []
