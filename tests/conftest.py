# tests/conftest.py

import os
import tempfile
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable

# --- 테스트 환경 변수 (설정 모듈 임포트 전에 지정해야 합니다) ---
_db_fd, TEST_DB_PATH = tempfile.mkstemp(prefix="pvlims_test_", suffix=".db")
os.close(_db_fd)
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["APP_ENV"] = "testing"
os.environ["ARQ_ENABLED"] = "false"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402
from sqlmodel.ext.asyncio.session import AsyncSession  # noqa: E402

from pvlims.core.database import Database, get_session  # noqa: E402
from pvlims.core.security import get_password_hash  # noqa: E402
from pvlims.domains.usr import models as usr_models  # noqa: E402
from pvlims.main import create_app  # noqa: E402

TEST_DATABASE_URL = os.environ["DATABASE_URL"]


def pytest_sessionfinish(session, exitstatus):
    if os.path.exists(TEST_DB_PATH):
        os.remove(TEST_DB_PATH)


# --- 데이터베이스 픽스처 ---
@pytest_asyncio.fixture(scope="function")
async def database() -> AsyncGenerator[Database, None]:
    """
    테스트마다 모든 테이블을 생성하고, 종료 시 삭제합니다.
    NullPool을 사용하여 연결이 테스트 간에 공유되지 않도록 합니다.
    """
    db = Database(TEST_DATABASE_URL, poolclass=NullPool)
    await db.drop_all()
    await db.create_all()
    yield db
    await db.drop_all()
    await db.dispose()


@pytest_asyncio.fixture(scope="function")
async def main_app(database: Database) -> FastAPI:
    return create_app(database=database)


@pytest_asyncio.fixture(scope="function")
async def db_session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    """테스트 코드와 API 요청이 함께 사용하는 세션입니다."""
    async with database.session() as session:
        yield session


def _override_sessions(app: FastAPI, db_session: AsyncSession) -> None:
    async def override_get_session():
        yield db_session

    # deps.get_db_session은 get_session과 같은 호출 객체입니다.
    app.dependency_overrides[get_session] = override_get_session


# --- 사용자 픽스처 ---
@pytest_asyncio.fixture(scope="function")
def user_factory(db_session: AsyncSession) -> Callable[..., Awaitable[usr_models.User]]:
    """
    역할과 속성을 지정하여 테스트 사용자를 생성하는 팩토리 함수를 반환합니다.
    """
    async def _create_user(
        username: str,
        password: str,
        role: usr_models.UserRole,
        is_active: bool = True,
        **kwargs,
    ) -> usr_models.User:
        user = usr_models.User(
            username=username,
            email=f"{username}@example.com",
            password_hash=get_password_hash(password),
            role=role,
            is_active=is_active,
            **kwargs,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user
    return _create_user


@pytest_asyncio.fixture(scope="function")
async def test_admin_user(user_factory: Callable) -> usr_models.User:
    return await user_factory("sysadm", "sysadmpass123", role=usr_models.UserRole.ADMIN, full_name="System Admin")


@pytest_asyncio.fixture(scope="function")
async def test_lab_manager(user_factory: Callable) -> usr_models.User:
    return await user_factory("labmgr", "labmgrpass123", role=usr_models.UserRole.LAB_MANAGER, full_name="Lab Manager")


@pytest_asyncio.fixture(scope="function")
async def test_quality_engineer(user_factory: Callable) -> usr_models.User:
    return await user_factory("qaeng", "qaengpass123", role=usr_models.UserRole.QUALITY_ENGINEER, full_name="QA Engineer")


@pytest_asyncio.fixture(scope="function")
async def test_technician(user_factory: Callable) -> usr_models.User:
    return await user_factory("tech", "techpass123", role=usr_models.UserRole.TECHNICIAN, full_name="Technician")


@pytest_asyncio.fixture(scope="function")
async def test_viewer(user_factory: Callable) -> usr_models.User:
    return await user_factory("viewer", "viewerpass123", role=usr_models.UserRole.VIEWER)


# --- 인증 클라이언트 픽스처 ---
@pytest_asyncio.fixture(scope="function")
def authorized_client_factory(
    main_app: FastAPI,
    db_session: AsyncSession,
) -> Callable[[usr_models.User, str], AsyncGenerator[AsyncClient, None]]:
    """
    특정 사용자로 로그인된 AsyncClient를 생성하는 팩토리 함수를 반환합니다.
    실제 /api/v1/usr/auth/token 로그인을 거쳐 발급된 토큰을 Authorization 헤더에 넣습니다.
    """
    @asynccontextmanager
    async def _create_client_context(user: usr_models.User, password: str) -> AsyncGenerator[AsyncClient, None]:
        _override_sessions(main_app, db_session)
        transport = ASGITransport(app=main_app)
        try:
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                res = await client.post("/api/v1/usr/auth/token", data={"username": user.username, "password": password})
                if res.status_code != 200:
                    pytest.fail(f"Login failed for {user.username}: {res.text}")
                client.headers["Authorization"] = f"Bearer {res.json()['access_token']}"
                yield client
        finally:
            main_app.dependency_overrides.clear()

    return _create_client_context


@pytest_asyncio.fixture(scope="function")
async def client(main_app: FastAPI, db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """인증되지 않은 클라이언트입니다."""
    _override_sessions(main_app, db_session)
    transport = ASGITransport(app=main_app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    main_app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def admin_client(authorized_client_factory: Callable, test_admin_user: usr_models.User) -> AsyncGenerator[AsyncClient, None]:
    async with authorized_client_factory(test_admin_user, "sysadmpass123") as c:
        yield c


@pytest_asyncio.fixture(scope="function")
async def lab_manager_client(authorized_client_factory: Callable, test_lab_manager: usr_models.User) -> AsyncGenerator[AsyncClient, None]:
    async with authorized_client_factory(test_lab_manager, "labmgrpass123") as c:
        yield c


@pytest_asyncio.fixture(scope="function")
async def quality_engineer_client(
    authorized_client_factory: Callable, test_quality_engineer: usr_models.User
) -> AsyncGenerator[AsyncClient, None]:
    async with authorized_client_factory(test_quality_engineer, "qaengpass123") as c:
        yield c


@pytest_asyncio.fixture(scope="function")
async def technician_client(authorized_client_factory: Callable, test_technician: usr_models.User) -> AsyncGenerator[AsyncClient, None]:
    async with authorized_client_factory(test_technician, "techpass123") as c:
        yield c


@pytest_asyncio.fixture(scope="function")
async def viewer_client(authorized_client_factory: Callable, test_viewer: usr_models.User) -> AsyncGenerator[AsyncClient, None]:
    async with authorized_client_factory(test_viewer, "viewerpass123") as c:
        yield c


@pytest_asyncio.fixture(scope="function")
async def app_client(main_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """의존성 재정의 없이 실제 요청 단위 세션을 사용하는 클라이언트입니다."""
    transport = ASGITransport(app=main_app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
