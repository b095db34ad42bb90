# pvlims/core/__init__.py

"""
애플리케이션 전반에서 사용되는 핵심 구성 요소 패키지입니다.

- `config.py`: 환경 변수 기반 설정 (Pydantic Settings)과 로깅 초기화.
- `database.py`: 주입 가능한 데이터베이스 핸들(`Database`)과 작업 단위(`unit_of_work`).
- `lifecycle.py`: 선언형 상태 전이 테이블과 공용 전이 엔진.
- `derivations.py`: 파생 필드 계산용 순수 함수.
- `exceptions.py`: 도메인 예외 체계와 FastAPI 예외 핸들러.
- `security.py`, `dependencies.py`: 인증/권한 및 의존성 주입.
"""

__all__ = []
