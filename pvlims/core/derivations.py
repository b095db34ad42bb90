# pvlims/core/derivations.py

"""
파생 필드를 계산하는 순수 함수 모음입니다.
쓰기 경로(생성/전이)와 조회/표시 경로가 같은 함수를 사용합니다.
"""

import hashlib
import json
from datetime import date
from typing import Any, Dict, Iterable, Optional, Tuple

from pvlims.core.database_base import utc_now


def today() -> date:
    return utc_now().date()


# =============================================================================
# 시험 결과 집계
# =============================================================================
def results_summary(statuses: Iterable[str]) -> Dict[str, int]:
    statuses = list(statuses)
    return {
        "total": len(statuses),
        "passed": statuses.count("pass"),
        "failed": statuses.count("fail"),
        "conditional": statuses.count("conditional"),
    }


def overall_result(statuses: Iterable[str]) -> str:
    """fail > conditional > pass > pending 우선순위로 종합 판정을 반환합니다."""
    statuses = set(statuses)
    for outcome in ("fail", "conditional", "pass"):
        if outcome in statuses:
            return outcome
    return "pending"


def count_pending(statuses: Iterable[str]) -> int:
    return sum(1 for s in statuses if s == "pending")


def plan_outcome(statuses: Iterable[str]) -> str:
    """시험 계획 완료 시 최종 상태. 하나라도 fail이면 failed."""
    return "failed" if any(s == "fail" for s in statuses) else "completed"


# =============================================================================
# 인증서 유효성
# =============================================================================
def is_expired(expiry_date: Optional[date], on: Optional[date] = None) -> bool:
    if expiry_date is None:
        return False
    return expiry_date < (on or today())


def is_certificate_valid(status: str, expiry_date: Optional[date], on: Optional[date] = None) -> bool:
    if status != "issued":
        return False
    return expiry_date is None or expiry_date > (on or today())


def display_status(status: str, expiry_date: Optional[date], on: Optional[date] = None) -> str:
    # expired는 저장되지 않는 표시용 상태
    if status == "issued" and is_expired(expiry_date, on):
        return "expired"
    return status


def certificate_digest(content: Dict[str, Any]) -> str:
    canonical = json.dumps(content, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


# =============================================================================
# 대시보드 지표
# =============================================================================
def utilization_percent(active: int, total: int) -> float:
    if not total:
        return 0.0
    return round(active * 100 / total, 1)


def pass_rate(passed: int, failed: int) -> Optional[float]:
    if passed + failed == 0:
        return None
    return round(passed * 100 / (passed + failed), 1)


def average_turnaround_days(periods: Iterable[Tuple[Optional[date], Optional[date]]]) -> Optional[float]:
    days = [(end - start).days for start, end in periods if start and end]
    if not days:
        return None
    return round(sum(days) / len(days), 1)


def on_time_rate(deadlines: Iterable[Tuple[Optional[date], Optional[date]]]) -> Optional[float]:
    """(예정 완료일, 실제 완료일) 쌍에서 예정일 이내 완료 비율."""
    pairs = [(estimated, actual) for estimated, actual in deadlines if estimated and actual]
    if not pairs:
        return None
    on_time = sum(1 for estimated, actual in pairs if actual <= estimated)
    return round(on_time * 100 / len(pairs), 1)
