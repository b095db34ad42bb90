# pvlims/domains/lab/__init__.py

"""
FastAPI 애플리케이션의 'lab' 도메인 패키지입니다.

'lab' 도메인은 시험소, 시험 규격, 고객사 같은 기준 정보를 관리합니다.
"""

__title__ = "PV LIMS Lab Domain"
__description__ = "Manages lab facilities, test standards and customers."
__version__ = "0.1.0"
__all__ = []
