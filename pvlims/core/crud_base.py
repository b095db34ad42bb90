# pvlims/core/crud_base.py

"""
공통 CRUD(Create, Read, Update, Delete) 작업을 위한 기본 클래스 모듈입니다.
모든 쓰기 작업은 `unit_of_work` 범위 안에서 수행됩니다.
"""

import math
from typing import Any, ClassVar, Dict, Generic, Iterable, List, Literal, Optional, Sequence, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, Field as PydanticField, model_validator
from sqlalchemy import func, or_
from sqlmodel import SQLModel, select
from sqlmodel.ext.asyncio.session import AsyncSession

from pvlims.core.config import settings
from pvlims.core.database import unit_of_work
from pvlims.core.exceptions import NotFoundError

ModelType = TypeVar("ModelType", bound=SQLModel)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)
ItemType = TypeVar("ItemType")

SortOrder = Literal["ASC", "DESC", "asc", "desc"]


# =============================================================================
# 페이지 응답 스키마
# =============================================================================
class Pagination(BaseModel):
    total: int = PydanticField(..., description="전체 건수")
    page: int = PydanticField(..., description="현재 페이지 (1부터 시작)")
    limit: int = PydanticField(..., description="페이지 크기")
    pages: int = PydanticField(..., description="전체 페이지 수")


class Page(BaseModel, Generic[ItemType]):
    data: List[ItemType]
    pagination: Pagination


# =============================================================================
# 부분 수정 스키마 기반 클래스
# =============================================================================
class PartialUpdate(BaseModel):
    """
    PUT 요청의 부분 수정 스키마입니다.
    생략한 필드는 변경하지 않으며, `non_nullable_fields`에 명시적 null을 보내면 422로 거부합니다.
    """
    non_nullable_fields: ClassVar[Tuple[str, ...]] = ()

    @model_validator(mode="after")
    def reject_explicit_nulls(self):
        nulls = [
            name for name in self.non_nullable_fields
            if name in self.model_fields_set and getattr(self, name) is None
        ]
        if nulls:
            raise ValueError(f"Field(s) may not be null: {', '.join(nulls)}")
        return self


def snapshot(obj: SQLModel) -> Dict[str, Any]:
    """감사 로그에 기록할 JSON 직렬화 가능한 스냅샷."""
    return obj.model_dump(mode="json")


class CRUDBase(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    """
    모든 CRUD 작업에 대한 기본 클래스를 정의합니다.
    """
    # 목록 조회 시 검색(search)과 정렬(sort_by)에 허용되는 필드
    search_fields: Sequence[str] = ()
    sort_fields: Sequence[str] = ("created_at",)
    not_found_detail: str = "Resource not found"

    def __init__(self, model: Type[ModelType]):
        self.model = model

    async def get(self, db: AsyncSession, id: Any) -> Optional[ModelType]:
        return await db.get(self.model, id)

    async def get_or_404(self, db: AsyncSession, id: Any) -> ModelType:
        db_obj = await db.get(self.model, id)
        if db_obj is None:
            raise NotFoundError(self.not_found_detail)
        return db_obj

    async def get_by_attribute(self, db: AsyncSession, *, attribute: str, value: Any) -> Optional[ModelType]:
        statement = select(self.model).where(getattr(self.model, attribute) == value)
        response = await db.execute(statement)
        return response.scalars().first()

    async def get_multi(
        self, db: AsyncSession, *, skip: int = 0, limit: int = 100, **kwargs: Any
    ) -> List[ModelType]:
        query = select(self.model).offset(skip).limit(limit)
        for field, value in kwargs.items():
            if hasattr(self.model, field):
                query = query.where(getattr(self.model, field) == value)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def get_page(
        self,
        db: AsyncSession,
        *,
        page: int = 1,
        limit: int = None,
        filters: Optional[Dict[str, Any]] = None,  # {"attribute_name": value}, None 값은 무시
        search: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_order: str = "DESC",
        conditions: Iterable[Any] = (),
    ) -> Dict[str, Any]:
        """
        필터, 검색, 정렬, 페이징을 적용한 목록과 페이지 정보를 반환합니다.
        허용되지 않은 정렬 필드는 created_at으로 대체됩니다.
        """
        limit = min(limit or settings.PAGE_SIZE_DEFAULT, settings.PAGE_SIZE_MAX)
        page = max(page, 1)

        query = select(self.model)
        for attribute, value in (filters or {}).items():
            if value is not None:
                query = query.where(getattr(self.model, attribute) == value)
        for condition in conditions:
            query = query.where(condition)
        if search and self.search_fields:
            pattern = f"%{search}%"
            query = query.where(or_(*(getattr(self.model, f).ilike(pattern) for f in self.search_fields)))

        count_query = select(func.count()).select_from(query.subquery())
        total = (await db.execute(count_query)).scalar_one()

        sort_column = getattr(self.model, sort_by if sort_by in self.sort_fields else "created_at")
        query = query.order_by(sort_column.asc() if sort_order.upper() == "ASC" else sort_column.desc())
        query = query.offset((page - 1) * limit).limit(limit)
        result = await db.execute(query)

        return {
            "data": list(result.scalars().all()),
            "pagination": {"total": total, "page": page, "limit": limit, "pages": math.ceil(total / limit)},
        }

    async def create(self, db: AsyncSession, *, obj_in: Union[CreateSchemaType, Dict[str, Any]], **extra: Any) -> ModelType:
        data = obj_in if isinstance(obj_in, dict) else obj_in.model_dump()
        async with unit_of_work(db):
            db_obj = self.model.model_validate(data, update=extra)
            db.add(db_obj)
            await db.flush()
        await db.refresh(db_obj)
        return db_obj

    async def update(
        self, db: AsyncSession, *, db_obj: ModelType, obj_in: Union[UpdateSchemaType, Dict[str, Any]]
    ) -> ModelType:
        update_data = obj_in if isinstance(obj_in, dict) else obj_in.model_dump(exclude_unset=True)
        async with unit_of_work(db):
            for key, value in update_data.items():
                setattr(db_obj, key, value)
            db.add(db_obj)
            await db.flush()
        await db.refresh(db_obj)
        return db_obj

    async def delete(self, db: AsyncSession, *, id: Any) -> Optional[ModelType]:
        db_obj = await db.get(self.model, id)
        if db_obj:
            async with unit_of_work(db):
                await db.delete(db_obj)
        return db_obj
