# pvlims/core/exceptions.py

"""
도메인 예외 체계와 FastAPI 예외 핸들러를 정의하는 모듈입니다.

각 예외는 고정된 HTTP 상태 코드와 오류 코드에 매핑되며,
응답 본문은 `{"detail": <메시지>, "error": <코드>, ...추가 필드}` 형태입니다.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from pvlims.core.config import settings

logger = logging.getLogger(__name__)


class LimsError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "internal_error"
    default_detail: str = "Internal Server Error"

    def __init__(self, detail: Optional[str] = None, *, headers: Optional[Dict[str, str]] = None, **extra: Any):
        self.detail = detail or self.default_detail
        self.headers = headers
        self.extra = extra
        super().__init__(self.detail)

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.detail, "error": self.error_code, **self.extra}


class NotFoundError(LimsError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "not_found"
    default_detail = "Resource not found"


class InvalidStateError(LimsError):
    """현재 상태에서 허용되지 않는 전이를 시도한 경우."""
    status_code = status.HTTP_409_CONFLICT
    error_code = "invalid_state"
    default_detail = "Operation not allowed in the current status"


class ConflictError(LimsError):
    """상태 불일치가 아닌 업무 규칙에 의해 작업이 차단된 경우."""
    status_code = status.HTTP_409_CONFLICT
    error_code = "conflict"
    default_detail = "Operation conflicts with the current state of the resource"


class ValidationError(LimsError):
    status_code = 422
    error_code = "validation_error"
    default_detail = "Validation failed"


class UnauthorizedError(LimsError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "unauthorized"
    default_detail = "Could not validate credentials"

    def __init__(self, detail: Optional[str] = None, **extra: Any):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"}, **extra)


class ForbiddenError(LimsError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "forbidden"
    default_detail = "Not enough permissions"


class DuplicateKeyError(LimsError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "duplicate_key"
    default_detail = "Resource already exists"


class InvalidReferenceError(LimsError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "invalid_reference"
    default_detail = "Invalid reference"


# =============================================================================
# 저장소 오류 변환
# =============================================================================
_UNIQUE_MARKERS = ("23505", "unique constraint", "duplicate key")
_FOREIGN_KEY_MARKERS = ("23503", "foreign key constraint")
_NOT_NULL_MARKERS = ("23502", "not null constraint", "not-null constraint")


def translate_integrity_error(error: IntegrityError) -> LimsError:
    """
    SQLAlchemy IntegrityError를 도메인 예외로 변환합니다.
    PostgreSQL은 SQLSTATE 코드로, SQLite는 메시지로 판별합니다.
    """
    orig = error.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None) or ""
    message = f"{code} {orig}".lower()

    if any(marker in message for marker in _UNIQUE_MARKERS):
        return DuplicateKeyError()
    if any(marker in message for marker in _FOREIGN_KEY_MARKERS):
        return InvalidReferenceError()
    if any(marker in message for marker in _NOT_NULL_MARKERS):
        return ValidationError("Required field may not be null")
    return ConflictError("Integrity constraint violated")


# =============================================================================
# FastAPI 예외 핸들러
# =============================================================================
async def lims_error_handler(request: Request, exc: LimsError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    translated = translate_integrity_error(exc)
    logger.warning("저장소 제약 조건 위반 %s %s -> %s", request.method, request.url.path, translated.error_code)
    return await lims_error_handler(request, translated)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("처리되지 않은 예외 %s %s", request.method, request.url.path)
    detail = "Internal Server Error" if settings.is_production else str(exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": detail, "error": "internal_error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LimsError, lims_error_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
