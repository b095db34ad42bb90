# pvlims/domains/cert/workflows.py

"""
인증서(Certification)의 상태 전이 테이블과 발행 시점 해시 계산입니다.
"""

from typing import Any, Dict, Optional

from pvlims.core import derivations
from pvlims.core.lifecycle import StateMachine, edge
from pvlims.domains.usr.models import ADMIN_ROLES, MANAGER_ROLES

# document_hash 계산에 포함되는 내용 필드
CONTENT_FIELDS = (
    "certificate_number",
    "certificate_type",
    "standard_codes",
    "manufacturer",
    "model_numbers",
    "rated_power_range",
    "issue_date",
    "expiry_date",
    "scope_description",
    "conditions",
    "limitations",
)


# 폐기 시 limitations 끝에 덧붙이는 사유 표식
REVOCATION_MARKER = "\n\nREVOKED: "


def certificate_content(obj: Any, **overrides: Any) -> Dict[str, Any]:
    content = {field: getattr(obj, field) for field in CONTENT_FIELDS}
    content.update(overrides)
    # 빈 문자열과 None은 같은 내용으로 취급
    return {field: (None if value == "" else value) for field, value in content.items()}


def revoked_limitations(limitations: Optional[str], reason: str) -> str:
    return f"{limitations or ''}{REVOCATION_MARKER}{reason}"


def issued_content(obj: Any) -> Dict[str, Any]:
    """
    발행 시점의 내용을 복원합니다.
    폐기된 인증서는 limitations에 덧붙인 폐기 사유를 떼어 내고 계산합니다.
    """
    reason = getattr(obj, "revocation_reason", None)
    if obj.status == "revoked" and reason is not None and obj.limitations:
        suffix = f"{REVOCATION_MARKER}{reason}"
        if obj.limitations.endswith(suffix):
            return certificate_content(obj, limitations=obj.limitations[: -len(suffix)])
    return certificate_content(obj)


def _stamp_issue(obj, actor, now):
    issue_date = obj.issue_date or now.date()
    return {
        "issue_date": issue_date,
        "approved_by": getattr(actor, "id", None),
        "document_hash": derivations.certificate_digest(certificate_content(obj, issue_date=issue_date)),
    }


def _stamp_revoke(obj, actor, now):
    return {"revoked_at": now}


CERTIFICATION = StateMachine(
    "Certification",
    states=("draft", "issued", "revoked"),
    initial="draft",
    transitions=[
        edge("issue", {"draft"}, ("issued",), roles=MANAGER_ROLES, effect=_stamp_issue),
        edge("revoke", {"issued"}, ("revoked",), roles=ADMIN_ROLES, effect=_stamp_revoke),
    ],
)
