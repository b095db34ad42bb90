# pvlims/domains/shared/crud.py

"""
'shared' 도메인의 CRUD 로직을 담당하는 모듈입니다.

감사 로그와 알림은 상태 전이의 부수 기록으로, 항상 호출자의 `unit_of_work` 안에서
같은 트랜잭션으로 기록됩니다 (여기서는 flush만 수행합니다).
"""

import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from pvlims.core.crud_base import CRUDBase
from pvlims.core.database import unit_of_work
from pvlims.core.database_base import utc_now

from . import models as shared_models
from . import schemas as shared_schemas

logger = logging.getLogger(__name__)


# =============================================================================
# 1. 감사 로그 (AuditLog)
# =============================================================================
class CRUDAuditLog(CRUDBase[shared_models.AuditLog, shared_schemas.AuditLogResponse, shared_schemas.AuditLogResponse]):
    sort_fields = ("created_at", "action", "entity_type")

    def __init__(self):
        super().__init__(model=shared_models.AuditLog)

    async def record(
        self,
        db: AsyncSession,
        *,
        action: str,
        entity_type: str,
        entity_id: uuid.UUID,
        actor: Any = None,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
    ) -> shared_models.AuditLog:
        entry = shared_models.AuditLog(
            user_id=getattr(actor, "id", None),
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            old_values=old_values,
            new_values=new_values,
        )
        db.add(entry)
        await db.flush()
        return entry

    async def get_for_entity(self, db: AsyncSession, *, entity_type: str, entity_id: uuid.UUID) -> List[shared_models.AuditLog]:
        statement = (
            select(self.model)
            .where(self.model.entity_type == entity_type, self.model.entity_id == entity_id)
            .order_by(self.model.created_at)
        )
        result = await db.execute(statement)
        return list(result.scalars().all())


audit_log = CRUDAuditLog()


# =============================================================================
# 2. 알림 (Notification)
# =============================================================================
class CRUDNotification(CRUDBase[shared_models.Notification, shared_schemas.NotificationResponse, shared_schemas.NotificationResponse]):
    sort_fields = ("created_at",)
    not_found_detail = "Notification not found"

    def __init__(self):
        super().__init__(model=shared_models.Notification)

    async def notify(
        self,
        db: AsyncSession,
        *,
        user_ids: Iterable[Optional[uuid.UUID]],
        title: str,
        message: str,
        type: str = "info",
        link: Optional[str] = None,
    ) -> List[shared_models.Notification]:
        """수신자별 알림을 추가합니다. None 및 중복 수신자는 제외됩니다."""
        recipients = list(dict.fromkeys(uid for uid in user_ids if uid is not None))
        notifications = [
            shared_models.Notification(user_id=uid, title=title, message=message, type=type, link=link)
            for uid in recipients
        ]
        db.add_all(notifications)
        await db.flush()
        return notifications

    async def notify_roles(self, db: AsyncSession, *, roles, **kwargs) -> List[shared_models.Notification]:
        from pvlims.domains.usr.crud import user as user_crud

        users = await user_crud.get_by_roles(db, roles=roles)
        return await self.notify(db, user_ids=[u.id for u in users], **kwargs)

    async def exists_since(self, db: AsyncSession, *, user_id: uuid.UUID, title: str, link: str, since) -> bool:
        statement = select(self.model.id).where(
            self.model.user_id == user_id,
            self.model.title == title,
            self.model.link == link,
            self.model.created_at >= since,
        )
        result = await db.execute(statement)
        return result.first() is not None

    async def mark_read(self, db: AsyncSession, *, db_obj: shared_models.Notification) -> shared_models.Notification:
        return await self.update(db, db_obj=db_obj, obj_in={"is_read": True})

    async def mark_all_read(self, db: AsyncSession, *, user_id: uuid.UUID) -> int:
        async with unit_of_work(db):
            result = await db.execute(
                update(self.model)
                .where(self.model.user_id == user_id, self.model.is_read == False)  # noqa: E712
                .values(is_read=True)
                .execution_options(synchronize_session="fetch")
            )
        return result.rowcount


notification = CRUDNotification()


# =============================================================================
# 3. 참조 번호 시퀀스 (ReferenceSequence)
# =============================================================================
class CRUDReferenceSequence:
    """
    엔티티 유형별/연도별 일련번호를 발급합니다. (예: SR-2024-0001)
    PostgreSQL에서는 SELECT ... FOR UPDATE로 동시 발급을 직렬화합니다.
    """
    model = shared_models.ReferenceSequence

    async def next_code(self, db: AsyncSession, prefix: str, *, year: Optional[int] = None) -> str:
        year = year or utc_now().year
        statement = (
            select(self.model)
            .where(self.model.prefix == prefix, self.model.year == year)
            .with_for_update()
        )
        sequence = (await db.execute(statement)).scalars().one_or_none()
        if sequence is None:
            sequence = self.model(prefix=prefix, year=year, last_value=0)
            db.add(sequence)
        sequence.last_value += 1
        await db.flush()
        return f"{prefix}-{year}-{sequence.last_value:04d}"


reference_sequence = CRUDReferenceSequence()
