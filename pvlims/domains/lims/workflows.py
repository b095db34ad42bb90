# pvlims/domains/lims/workflows.py

"""
'lims' 도메인 엔티티(의뢰, 시료, 시험 계획)의 상태 전이 테이블입니다.
"""

from pvlims.core.lifecycle import StateMachine, edge
from pvlims.domains.usr.models import MANAGER_ROLES, QUALITY_ROLES


def _stamp_actual_completion(obj, actor, now):
    return {"actual_completion": now.date()}


def _stamp_received(obj, actor, now):
    return {"received_date": now, "received_by": getattr(actor, "id", None)}


def _stamp_actual_start(obj, actor, now):
    # 이미 시작된 계획은 최초 시작 시각을 유지
    return {} if obj.actual_start else {"actual_start": now}


def _stamp_review(obj, actor, now):
    return {"actual_end": now, "reviewed_by": getattr(actor, "id", None), "review_date": now}


# =============================================================================
# 1. 시험 의뢰 (ServiceRequest)
# =============================================================================
SERVICE_REQUEST = StateMachine(
    "ServiceRequest",
    states=("draft", "submitted", "in_review", "approved", "in_progress", "completed", "cancelled"),
    initial="draft",
    transitions=[
        edge("submit", {"draft"}, ("submitted",), manual=True),
        edge("start_review", {"submitted"}, ("in_review",), manual=True),
        edge("approve", {"submitted", "in_review"}, ("approved",), roles=MANAGER_ROLES, manual=True),
        edge("start_progress", {"approved"}, ("in_progress",), manual=True),
        edge("complete", {"in_progress"}, ("completed",), manual=True, effect=_stamp_actual_completion),
    ],
)


# =============================================================================
# 2. 시료 (Sample)
# =============================================================================
SAMPLE = StateMachine(
    "Sample",
    states=("registered", "received", "in_testing", "tested", "on_hold", "disposed"),
    initial="registered",
    transitions=[
        edge("receive", {"registered"}, ("received",), effect=_stamp_received),
        edge("transfer", ()),
        edge("start_testing", {"received"}, ("in_testing",)),
        edge("finish_testing", {"registered", "received", "in_testing", "on_hold", "tested"}, ("tested",)),
        edge("hold", {"registered", "received", "in_testing"}, ("on_hold",), manual=True),
        edge("release", {"on_hold"}, ("received",), manual=True),
        edge("dispose", {"registered", "received", "tested", "on_hold"}, ("disposed",), manual=True),
    ],
)


# =============================================================================
# 3. 시험 계획 (TestPlan)
# =============================================================================
TEST_PLAN = StateMachine(
    "TestPlan",
    states=("pending", "scheduled", "in_progress", "completed", "failed", "cancelled"),
    initial="pending",
    transitions=[
        edge("schedule", {"pending"}, ("scheduled",), manual=True),
        edge("start", {"pending", "scheduled"}, ("in_progress",), manual=True, effect=_stamp_actual_start),
        edge(
            "complete", {"pending", "scheduled", "in_progress"}, ("completed", "failed"),
            roles=QUALITY_ROLES, effect=_stamp_review,
        ),
        edge("cancel", {"pending", "scheduled", "in_progress"}, ("cancelled",), manual=True),
    ],
)
