# pvlims/domains/dash/__init__.py

"""
FastAPI 애플리케이션의 'dash' 도메인 패키지입니다.

'dash' 도메인은 대시보드용 읽기 전용 집계를 제공합니다. 자체 테이블은 없습니다.
"""

__title__ = "PV LIMS Dashboard Domain"
__description__ = "Read-only dashboard aggregations."
__version__ = "0.1.0"
__all__ = []
