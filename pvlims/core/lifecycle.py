# pvlims/core/lifecycle.py

"""
엔티티 수명주기(상태 전이) 엔진 모듈입니다.

각 엔티티는 `StateMachine`에 전이 테이블(`Transition` 목록)을 선언하고,
실제 상태 변경은 모두 `transition()` 하나를 통해 수행됩니다.

전이 절차:
1. 현재 상태가 전이의 출발 상태에 포함되는지 확인 (아니면 InvalidStateError)
2. 행위자의 역할이 허용되는지 확인 (아니면 ForbiddenError)
3. 목표 상태 결정 및 부수 효과(스탬프) 계산
4. 이전 상태를 조건으로 하는 compare-and-swap UPDATE 실행 (0건이면 ConflictError)
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple

from sqlalchemy import update
from sqlmodel.ext.asyncio.session import AsyncSession

from pvlims.core.database_base import utc_now
from pvlims.core.exceptions import ConflictError, ForbiddenError, InvalidStateError

logger = logging.getLogger(__name__)

# (대상 객체, 행위자, 현재 시각) -> 함께 기록할 필드 값
Effect = Callable[[Any, Any, datetime], Dict[str, Any]]


@dataclass(frozen=True)
class Transition:
    action: str
    sources: FrozenSet[str] = frozenset()   # 비어 있으면 모든 상태에서 허용
    targets: Tuple[str, ...] = ()           # 비어 있으면 상태 유지
    roles: FrozenSet[Any] = frozenset()     # 비어 있으면 인증된 모든 사용자
    manual: bool = False                    # 수정 요청의 status 필드로 발동 가능 여부
    effect: Optional[Effect] = None


def edge(
    action: str,
    sources: Iterable[str],
    targets: Iterable[str] = (),
    *,
    roles: Iterable[Any] = (),
    manual: bool = False,
    effect: Optional[Effect] = None,
) -> Transition:
    return Transition(
        action=action,
        sources=frozenset(sources),
        targets=tuple(targets),
        roles=frozenset(roles),
        manual=manual,
        effect=effect,
    )


class StateMachine:
    """
    하나의 엔티티 유형에 대한 선언형 전이 테이블입니다.
    """

    def __init__(self, entity: str, states: Iterable[str], transitions: Iterable[Transition], *, initial: str):
        self.entity = entity
        self.states: Tuple[str, ...] = tuple(states)
        self.initial = initial
        self._transitions: Dict[str, Transition] = {}
        for t in transitions:
            unknown = (set(t.sources) | set(t.targets)) - set(self.states)
            if unknown:
                raise ValueError(f"{entity}.{t.action} refers to unknown states: {sorted(unknown)}")
            self._transitions[t.action] = t
        if initial not in self.states:
            raise ValueError(f"{entity} initial state '{initial}' is not declared")

    def __getitem__(self, action: str) -> Transition:
        return self._transitions[action]

    @property
    def actions(self) -> List[str]:
        return list(self._transitions)

    def can(self, action: str, current: str) -> bool:
        t = self._transitions.get(action)
        return t is not None and (not t.sources or current in t.sources)

    def allowed_actions(self, current: str, role: Any = None) -> List[str]:
        return [
            t.action for t in self._transitions.values()
            if (not t.sources or current in t.sources) and (not t.roles or role in t.roles)
        ]

    def check(self, action: str, current: str, *, role: Any = None, target: Optional[str] = None) -> Tuple[Transition, str]:
        """전이 가능 여부를 검사하고 (전이, 목표 상태)를 반환합니다."""
        t = self[action]
        if t.sources and current not in t.sources:
            raise InvalidStateError(
                f"Cannot {action} {self.entity} in status '{current}'",
                current_status=current,
                action=action,
            )
        if t.roles and role not in t.roles:
            raise ForbiddenError(f"Not enough permissions to {action} {self.entity}")

        if not t.targets:
            resolved = current
        elif target is not None:
            if target not in t.targets:
                raise InvalidStateError(f"{self.entity} cannot {action} into status '{target}'", current_status=current)
            resolved = target
        elif len(t.targets) == 1:
            resolved = t.targets[0]
        else:
            raise ValueError(f"{self.entity}.{action} has several targets; one must be chosen")
        return t, resolved

    def manual_action(self, current: str, requested: str) -> str:
        """수정 요청의 상태 변경(current -> requested)에 해당하는 수동 전이를 찾습니다."""
        for t in self._transitions.values():
            if t.manual and requested in t.targets and (not t.sources or current in t.sources):
                return t.action
        raise InvalidStateError(
            f"Cannot change {self.entity} status from '{current}' to '{requested}'",
            current_status=current,
        )


async def transition(
    db: AsyncSession,
    obj: Any,
    machine: StateMachine,
    action: str,
    actor: Any = None,
    *,
    target: Optional[str] = None,
    values: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> str:
    """
    전이 테이블에 따라 객체의 상태를 변경하고 이전 상태를 반환합니다.

    상태 쓰기는 `WHERE id = :id AND status = :expected` 조건의 UPDATE로 수행되어,
    동시에 다른 요청이 먼저 전이한 경우 ConflictError가 발생합니다.
    호출자는 `unit_of_work` 안에서 호출해야 합니다.
    """
    now = now or utc_now()
    current = obj.status
    t, resolved = machine.check(action, current, role=getattr(actor, "role", None), target=target)

    changes: Dict[str, Any] = dict(values or {})
    if t.effect is not None:
        changes.update(t.effect(obj, actor, now))
    changes["status"] = resolved

    model = type(obj)
    await db.flush()
    statement = (
        update(model)
        .where(model.id == obj.id, model.status == current)
        .values(**changes)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(statement)
    if result.rowcount != 1:
        logger.warning("%s %s 동시 변경 감지: %s 실패 (기대 상태 %s)", machine.entity, obj.id, action, current)
        raise ConflictError(
            f"{machine.entity} was modified concurrently",
            expected_status=current,
        )
    await db.refresh(obj)

    logger.info(
        "%s %s: %s (%s -> %s) by %s",
        machine.entity, obj.id, action, current, resolved, getattr(actor, "username", "system"),
    )
    return current
