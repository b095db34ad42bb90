# pvlims/domains/shared/__init__.py

"""
FastAPI 애플리케이션의 'shared' 도메인 패키지입니다.

'shared' 도메인은 여러 도메인이 함께 사용하는 감사 로그, 알림, 참조 번호 채번을 제공합니다.
"""

__title__ = "PV LIMS Shared Domain"
__description__ = "Audit log, notifications and reference numbering."
__version__ = "0.1.0"
__all__ = []
