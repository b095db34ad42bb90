# pvlims/domains/rpt/__init__.py

"""
FastAPI 애플리케이션의 'rpt' 도메인 패키지입니다.

'rpt' 도메인은 시험 보고서의 작성, 검토, 발행을 관리합니다.
"""

__title__ = "PV LIMS Report Domain"
__description__ = "Manages test reports and their review workflow."
__version__ = "0.1.0"
__all__ = []
