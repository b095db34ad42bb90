# tests/domains/__init__.py

"""
도메인별 API 통합 테스트 패키지입니다.

- `test_auth.py`: 'usr' 도메인 (인증, 사용자 관리)
- `test_lab.py`: 'lab' 도메인 (시험소, 시험 규격, 고객사)
- `test_lims.py`: 'lims' 도메인 (의뢰, 시료, 시험 계획, 시험 결과)
- `test_rpt.py`: 'rpt' 도메인 (시험 보고서)
- `test_cert.py`: 'cert' 도메인 (인증서, 만료 알림)
- `test_shared.py`: 'shared' 도메인 (감사 로그, 알림)
- `test_dash.py`: 'dash' 도메인 (대시보드 집계)
"""

__title__ = "PV LIMS Domain Tests"
__description__ = "Per-domain API tests for the PV LIMS FastAPI application."
__version__ = "0.1.0"
__all__ = []
