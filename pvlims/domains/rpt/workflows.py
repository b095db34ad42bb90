# pvlims/domains/rpt/workflows.py

"""
시험 보고서(Report)의 상태 전이 테이블입니다.
"""

from pvlims.core.lifecycle import StateMachine, edge
from pvlims.domains.usr.models import MANAGER_ROLES, QUALITY_ROLES


def _stamp_review(obj, actor, now):
    return {"reviewed_by": getattr(actor, "id", None), "review_date": now}


def _stamp_approval(obj, actor, now):
    return {"approved_by": getattr(actor, "id", None), "approval_date": now}


REPORT = StateMachine(
    "Report",
    states=("draft", "review", "approved", "issued"),
    initial="draft",
    transitions=[
        edge("submit", {"draft"}, ("review",), manual=True),
        edge("approve_review", {"review"}, ("approved",), roles=QUALITY_ROLES, effect=_stamp_review),
        edge("reject_review", {"review"}, ("draft",), roles=QUALITY_ROLES, effect=_stamp_review),
        edge("issue", {"approved"}, ("issued",), roles=MANAGER_ROLES, effect=_stamp_approval),
    ],
)
