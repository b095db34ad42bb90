# pvlims/core/config.py

import logging
import os
from typing import List

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# 프로젝트의 루트 디렉토리 경로를 계산합니다.
BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


class Settings(BaseSettings):
    """
    애플리케이션의 모든 설정을 정의하는 Pydantic BaseSettings 모델입니다.
    환경 변수 및 .env 파일에서 값을 자동으로 로드합니다.
    """

    # --- Pydantic Settings 설정 ---
    model_config = SettingsConfigDict(
        env_file=os.path.join(BASE_DIR, '.env'),  # 프로젝트 루트의 .env 파일
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=True
    )

    # --- 애플리케이션 기본 설정 ---
    APP_NAME: str = "PV LIMS API"
    APP_VERSION: str = "0.1.0"
    APP_DESCRIPTION: str = "Solar PV module quality-assurance laboratory information management system"
    APP_ENV: str = Field("development", description="Application environment (development, production, testing)")
    DEBUG_MODE: bool = Field(False, description="Enable SQL echo and verbose error messages")
    LOG_LEVEL: str = Field("INFO", description="Root logging level")

    # --- 데이터베이스 설정 ---
    DATABASE_URL: SecretStr = Field(..., description="Async database connection URL (postgresql+asyncpg or sqlite+aiosqlite)")
    DB_POOL_SIZE: int = Field(10, description="Connection pool size (ignored for SQLite)")
    DB_MAX_OVERFLOW: int = Field(20, description="Extra connections allowed above the pool size (ignored for SQLite)")

    # --- JWT (JSON Web Token) 설정 ---
    SECRET_KEY: SecretStr = Field(..., description="Secret key for JWT token signing")
    ALGORITHM: str = Field("HS256", description="Algorithm used for JWT signing")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(60 * 24, description="Access token expiration time in minutes")

    # --- ARQ (Redis) 설정 ---
    REDIS_HOST: str = Field("localhost", description="Redis host for the ARQ worker")
    REDIS_PORT: int = Field(6379, description="Redis port for the ARQ worker")
    ARQ_ENABLED: bool = Field(False, description="Create the ARQ redis pool on application startup")

    # --- CORS ---
    CORS_ORIGINS: List[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")

    # --- 업무 설정 ---
    CERT_EXPIRY_NOTICE_DAYS: int = Field(30, description="Days before expiry at which certificate issuers are notified")
    DEFAULT_CURRENCY: str = Field("USD", max_length=3, description="Default currency for quoted prices")
    PAGE_SIZE_DEFAULT: int = Field(20, description="Default page size for list endpoints")
    PAGE_SIZE_MAX: int = Field(100, description="Maximum page size for list endpoints")

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"


settings = Settings()


def configure_logging(level: str = None) -> None:
    """
    표준 logging 모듈의 루트 로거를 설정합니다.
    애플리케이션 생성 시점과 ARQ 워커 시작 시점에 호출됩니다.
    """
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
