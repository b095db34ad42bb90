# pvlims/core/database.py

"""
데이터베이스 연결 및 세션 관리를 담당하는 모듈입니다.

- `Database`: 비동기 엔진과 세션 팩토리를 소유하는 핸들입니다.
  전역 엔진을 두지 않고, `create_app()` 또는 ARQ 워커 시작 훅이 생성하여
  `app.state.database` / 워커 ctx에 주입하며, 종료 시 `dispose()`로 정리합니다.
- `get_session`: 요청마다 새로운 세션을 제공하는 FastAPI 의존성입니다.
- `unit_of_work`: 쓰기 작업의 유일한 트랜잭션 경계입니다.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy import event, text
from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from pvlims.core.config import settings

logger = logging.getLogger(__name__)

# PostgreSQL에서 사용하는 스키마 목록 (SQLite에서는 schema_translate_map으로 제거)
SCHEMAS = ["usr", "lab", "lims", "rpt", "cert", "shared"]


class Database:
    """
    비동기 엔진과 세션 팩토리를 묶은 저장소 핸들입니다.
    """

    def __init__(self, url: str, *, echo: bool = False, **engine_kwargs):
        self.url = make_url(url)
        self.is_sqlite = self.url.get_backend_name() == "sqlite"

        if self.is_sqlite:
            # SQLite는 스키마가 없으므로 모든 스키마를 기본 네임스페이스로 매핑합니다.
            engine_kwargs.setdefault(
                "execution_options", {"schema_translate_map": {name: None for name in SCHEMAS}}
            )
            engine_kwargs.pop("pool_size", None)
            engine_kwargs.pop("max_overflow", None)
        else:
            engine_kwargs.setdefault("pool_recycle", 3600)

        self.engine: AsyncEngine = create_async_engine(url, echo=echo, **engine_kwargs)

        if self.is_sqlite:
            # 외래 키 제약 조건은 연결마다 활성화해야 합니다.
            @event.listens_for(self.engine.sync_engine, "connect")
            def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

        self.session_factory = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, **engine_kwargs) -> "Database":
        url = settings.DATABASE_URL.get_secret_value()
        if make_url(url).get_backend_name() != "sqlite":
            engine_kwargs.setdefault("pool_size", settings.DB_POOL_SIZE)
            engine_kwargs.setdefault("max_overflow", settings.DB_MAX_OVERFLOW)
        return cls(url, echo=settings.DEBUG_MODE, **engine_kwargs)

    async def create_all(self) -> None:
        """
        스키마 및 테이블을 생성합니다. 개발 및 테스트 환경용이며, 기존 테이블은 삭제하지 않습니다.
        """
        # 모든 모델이 SQLModel.metadata에 등록되도록 임포트합니다.
        from pvlims.domains import models  # noqa: F401

        async with self.engine.begin() as conn:
            if not self.is_sqlite:
                for schema_name in SCHEMAS:
                    await conn.execute(text(f"CREATE SCHEMA IF NOT EXISTS {schema_name}"))
            await conn.run_sync(SQLModel.metadata.create_all)
        logger.info("데이터베이스 테이블 생성 완료 (%s)", self.url.get_backend_name())

    async def drop_all(self) -> None:
        from pvlims.domains import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.drop_all)

    def session(self) -> AsyncSession:
        return self.session_factory()

    @asynccontextmanager
    async def session_context(self) -> AsyncGenerator[AsyncSession, None]:
        """
        ARQ Task 등 요청 밖에서 사용할 독립적인 세션을 제공합니다.
        정상 종료 시 커밋하고, 예외 발생 시 롤백 후 다시 발생시킵니다.
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def ping(self) -> bool:
        async with self.engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            return result.scalar_one() == 1

    async def dispose(self) -> None:
        await self.engine.dispose()
        logger.info("데이터베이스 연결 풀 종료 완료.")


# =============================================================================
# 요청 단위 세션 의존성
# =============================================================================
async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI 의존성 주입을 위한 비동기 세션 제너레이터입니다.
    애플리케이션에 주입된 `Database` 핸들에서 요청마다 새로운 세션을 생성합니다.
    """
    database: Database = request.app.state.database
    async with database.session() as session:
        yield session


# =============================================================================
# 작업 단위 (Unit of Work)
# =============================================================================
@asynccontextmanager
async def unit_of_work(session: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """
    여러 쓰기를 하나의 트랜잭션으로 묶습니다.

    가장 바깥쪽 범위만 커밋/롤백을 수행하고, 안쪽 범위는 바깥쪽에 합류합니다.
    본문 또는 커밋에서 예외가 발생하면 전체를 롤백한 뒤 예외를 다시 발생시킵니다.
    """
    depth: int = session.info.get("uow_depth", 0)
    session.info["uow_depth"] = depth + 1
    try:
        yield session
        if depth == 0:
            await session.commit()
    except Exception:
        if depth == 0:
            await session.rollback()
            logger.debug("unit of work rolled back")
        raise
    finally:
        session.info["uow_depth"] = depth
