# pvlims/domains/usr/crud.py

"""
'usr' 도메인의 CRUD 로직을 담당하는 모듈입니다.
"""

from typing import List, Optional

from sqlmodel import or_, select
from sqlmodel.ext.asyncio.session import AsyncSession

from pvlims.core.crud_base import CRUDBase
from pvlims.core.database import unit_of_work
from pvlims.core.database_base import utc_now
from pvlims.core.exceptions import DuplicateKeyError, ForbiddenError, ValidationError
from pvlims.core.security import get_password_hash, verify_password

from . import models as usr_models
from . import schemas as usr_schemas


class CRUDUser(CRUDBase[usr_models.User, usr_schemas.UserRegister, usr_schemas.ProfileUpdate]):
    search_fields = ("username", "email", "full_name")
    sort_fields = ("created_at", "username", "role")
    not_found_detail = "User not found"

    def __init__(self):
        super().__init__(model=usr_models.User)

    async def get_by_username(self, db: AsyncSession, *, username: str) -> Optional[usr_models.User]:
        result = await db.execute(select(self.model).where(self.model.username == username))
        return result.scalars().one_or_none()

    async def get_by_roles(self, db: AsyncSession, *, roles) -> List[usr_models.User]:
        """지정한 역할을 가진 활성 사용자 목록 (알림 대상 조회용)."""
        statement = select(self.model).where(self.model.role.in_(list(roles)), self.model.is_active == True)  # noqa: E712
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def register(
        self, db: AsyncSession, *, obj_in: usr_schemas.UserRegister, role: usr_models.UserRole = usr_models.UserRole.VIEWER
    ) -> usr_models.User:
        """
        신규 사용자를 등록합니다. API 가입은 조회 전용(viewer), 관리 CLI는 관리자 역할을 사용합니다.
        아이디 또는 이메일이 이미 존재하면 DuplicateKeyError를 발생시킵니다.
        """
        existing = await db.execute(
            select(self.model).where(or_(self.model.username == obj_in.username, self.model.email == obj_in.email))
        )
        if existing.scalars().first():
            raise DuplicateKeyError("User with this username or email already exists")

        data = obj_in.model_dump(exclude={"password"})
        return await self.create(
            db, obj_in=data,
            password_hash=get_password_hash(obj_in.password),
            role=role,
        )

    async def authenticate(self, db: AsyncSession, *, username: str, password: str) -> Optional[usr_models.User]:
        """사용자명과 비밀번호를 사용하여 사용자를 인증합니다."""
        user = await self.get_by_username(db, username=username)
        if not user:
            return None
        if not verify_password(password, user.password_hash):
            return None
        return user

    async def touch_last_login(self, db: AsyncSession, *, user: usr_models.User) -> usr_models.User:
        return await self.update(db, db_obj=user, obj_in={"last_login": utc_now()})

    async def change_password(
        self, db: AsyncSession, *, user: usr_models.User, obj_in: usr_schemas.PasswordChange
    ) -> usr_models.User:
        if not verify_password(obj_in.current_password, user.password_hash):
            raise ValidationError("Current password is incorrect")
        return await self.set_password(db, user=user, password=obj_in.new_password)

    async def set_password(self, db: AsyncSession, *, user: usr_models.User, password: str) -> usr_models.User:
        return await self.update(db, db_obj=user, obj_in={"password_hash": get_password_hash(password)})

    async def admin_update(
        self,
        db: AsyncSession,
        *,
        db_obj: usr_models.User,
        obj_in: usr_schemas.UserAdminUpdate,
        actor: usr_models.User,
    ) -> usr_models.User:
        """
        역할/활성 상태를 변경합니다. 관리자는 자기 자신을 강등하거나 비활성화할 수 없습니다.
        """
        from pvlims.domains.shared.crud import audit_log

        update_data = obj_in.model_dump(exclude_unset=True)
        if db_obj.id == actor.id and (
            update_data.get("is_active") is False
            or ("role" in update_data and update_data["role"] != usr_models.UserRole.ADMIN)
        ):
            raise ForbiddenError("Administrators cannot demote or deactivate themselves")

        old_values = {"role": db_obj.role.name.lower(), "is_active": db_obj.is_active}
        async with unit_of_work(db):
            updated = await self.update(db, db_obj=db_obj, obj_in=update_data)
            await audit_log.record(
                db, action="UPDATE", entity_type="user", entity_id=updated.id, actor=actor,
                old_values=old_values,
                new_values={"role": updated.role.name.lower(), "is_active": updated.is_active},
            )
        return updated


user = CRUDUser()
