# pvlims/main.py

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from arq import cron
from arq.connections import RedisSettings, create_pool
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware

# 핵심 설정 및 데이터베이스 모듈 임포트
from pvlims import API_PREFIX
from pvlims.core.config import configure_logging, settings
from pvlims.core.database import Database
from pvlims.core.exceptions import register_exception_handlers

# 태스크 모듈 임포트
from pvlims.core import tasks as core_tasks
from pvlims.domains.cert import tasks as cert_tasks

# 각 도메인의 라우터 임포트
from pvlims.domains.usr.routers import router as usr_router
from pvlims.domains.lab.routers import router as lab_router
from pvlims.domains.lims.routers import router as lims_router
from pvlims.domains.rpt.routers import router as rpt_router
from pvlims.domains.cert.routers import router as cert_router
from pvlims.domains.shared.routers import router as shared_router
from pvlims.domains.dash.routers import router as dash_router

logger = logging.getLogger(__name__)

# ARQ 워커가 실행할 태스크 함수 목록
worker_functions = [
    core_tasks.health_check_database_task,
    cert_tasks.notify_expiring_certifications_task,
]


# =============================================================================
# 1. ARQ 워커 설정
# =============================================================================
async def worker_startup(ctx) -> None:
    """워커 시작 시 로깅을 설정하고 Database 핸들을 ctx에 주입합니다."""
    configure_logging()
    ctx["database"] = Database.from_settings()
    logger.info("ARQ 워커 시작: 데이터베이스 핸들 생성 완료.")


async def worker_shutdown(ctx) -> None:
    database: Optional[Database] = ctx.get("database")
    if database is not None:
        await database.dispose()


class ArqWorkerSettings:
    redis_settings = RedisSettings(host=settings.REDIS_HOST, port=settings.REDIS_PORT)
    functions = worker_functions
    on_startup = worker_startup
    on_shutdown = worker_shutdown
    cron_jobs = [
        # 매일 00:00 데이터베이스 헬스 체크
        cron(core_tasks.health_check_database_task, name="daily_db_health_check",
             hour=0, minute=0, timeout=300, keep_result=600),
        # 매일 01:00 인증서 만료 알림
        cron(cert_tasks.notify_expiring_certifications_task, name="daily_cert_expiry_notice",
             hour=1, minute=0, timeout=1800, keep_result=3600),
    ]


# =============================================================================
# 2. 애플리케이션 수명 주기
# =============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI 애플리케이션의 수명 주기 이벤트(ARQ Redis 풀, 데이터베이스 핸들)를 함께 처리합니다.
    """
    logger.info("%s 시작 중...", settings.APP_NAME)
    if settings.ARQ_ENABLED:
        app.state.redis = await create_pool(ArqWorkerSettings.redis_settings)
        logger.info("ARQ Redis 커넥션 풀 생성 완료.")

    yield  # 애플리케이션 실행

    logger.info("%s 종료 중...", settings.APP_NAME)
    if app.state.redis is not None:
        await app.state.redis.close()
        logger.info("ARQ Redis 연결 풀 종료 완료.")
    await app.state.database.dispose()


# =============================================================================
# 3. 애플리케이션 팩토리
# =============================================================================
def create_app(database: Optional[Database] = None) -> FastAPI:
    """
    FastAPI 애플리케이션을 생성합니다.
    `database`를 생략하면 설정의 DATABASE_URL로 핸들을 만듭니다 (테스트에서는 직접 주입).
    """
    configure_logging()

    app = FastAPI(
        title=settings.APP_NAME,
        description=settings.APP_DESCRIPTION,
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.database = database or Database.from_settings()
    app.state.redis = None

    register_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -- 도메인 라우터 포함 --
    app.include_router(usr_router, prefix=f"{API_PREFIX}/usr")
    app.include_router(lab_router, prefix=f"{API_PREFIX}/lab")
    app.include_router(lims_router, prefix=f"{API_PREFIX}/lims")
    app.include_router(rpt_router, prefix=f"{API_PREFIX}/rpt")
    app.include_router(cert_router, prefix=f"{API_PREFIX}/cert")
    app.include_router(shared_router, prefix=f"{API_PREFIX}/shared")
    app.include_router(dash_router, prefix=f"{API_PREFIX}/dash")

    @app.get("/", summary="API Root", response_description="Welcome message and documentation link.")
    async def read_root():
        return {"message": f"Welcome to {settings.APP_NAME}. Visit /docs for interactive API documentation."}

    @app.get("/health-check", summary="Health Check", response_description="Status of the application and database connection.")
    async def health_check(request: Request):
        """
        애플리케이션의 헬스 체크 엔드포인트입니다.
        데이터베이스 연결을 테스트하여 서비스의 정상 작동 여부를 확인합니다.
        """
        try:
            connected = await request.app.state.database.ping()
        except Exception as e:
            logger.exception("헬스 체크 중 데이터베이스 연결 오류")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Database connection error during health check: {e}",
            )
        if not connected:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Database health check failed: No result from test query",
            )
        return {"status": "ok", "database_connection": "successful"}

    return app


app = create_app()

# -- Uvicorn 서버 직접 실행 (개발용) --
# if __name__ == "__main__":
#     import uvicorn
#     uvicorn.run("pvlims.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
