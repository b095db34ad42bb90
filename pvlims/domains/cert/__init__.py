# pvlims/domains/cert/__init__.py

"""
FastAPI 애플리케이션의 'cert' 도메인 패키지입니다.

'cert' 도메인은 제품 인증서의 발행, 취소, 공개 진위 확인과 만료 알림을 관리합니다.
"""

__title__ = "PV LIMS Certification Domain"
__description__ = "Manages product certifications, issuance, revocation and public verification."
__version__ = "0.1.0"
__all__ = []
