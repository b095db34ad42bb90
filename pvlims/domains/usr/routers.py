# pvlims/domains/usr/routers.py

"""
'usr' 도메인 (인증 및 사용자 관리) 관련 API 엔드포인트를 정의하는 모듈입니다.
"""

import uuid
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel.ext.asyncio.session import AsyncSession

from pvlims.core import dependencies as deps
from pvlims.core.config import settings
from pvlims.core.crud_base import Page, SortOrder
from pvlims.core.exceptions import UnauthorizedError

from . import crud as usr_crud
from . import models as usr_models
from . import schemas as usr_schemas

router = APIRouter(
    tags=["User & Auth (사용자 및 인증)"],
    responses={404: {"description": "Not found"}},
)


# =============================================================================
# 1. 인증 (Authentication)
# =============================================================================
@router.post("/auth/token", response_model=usr_schemas.Token, summary="Access Token 획득")
async def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(deps.get_db_session),
):
    user = await usr_crud.user.authenticate(db, username=form_data.username, password=form_data.password)
    if not user:
        raise UnauthorizedError("Incorrect username or password")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user")

    await usr_crud.user.touch_last_login(db, user=user)
    access_token_expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = deps.create_access_token(data={"sub": user.username}, expires_delta=access_token_expires)
    return {"access_token": access_token, "token_type": "bearer"}


@router.post("/auth/register", response_model=usr_schemas.RegisterResponse, status_code=status.HTTP_201_CREATED, summary="신규 사용자 등록")
async def register_user(
    user_in: usr_schemas.UserRegister,
    db: AsyncSession = Depends(deps.get_db_session),
):
    """신규 사용자를 조회 전용(viewer) 역할로 등록하고 Access Token을 발급합니다."""
    user = await usr_crud.user.register(db, obj_in=user_in)
    access_token = deps.create_access_token(data={"sub": user.username})
    return {"access_token": access_token, "token_type": "bearer", "user": user}


@router.get("/auth/me", response_model=usr_schemas.UserRead, summary="현재 사용자 정보 조회")
async def read_users_me(current_user: usr_models.User = Depends(deps.get_current_active_user)):
    return current_user


@router.put("/auth/profile", response_model=usr_schemas.UserRead, summary="내 프로필 수정")
async def update_profile(
    profile_in: usr_schemas.ProfileUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_active_user),
):
    return await usr_crud.user.update(db, db_obj=current_user, obj_in=profile_in)


@router.put("/auth/change-password", summary="비밀번호 변경")
async def change_password(
    password_in: usr_schemas.PasswordChange,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: usr_models.User = Depends(deps.get_current_active_user),
):
    await usr_crud.user.change_password(db, user=current_user, obj_in=password_in)
    return {"message": "Password changed successfully"}


# =============================================================================
# 2. 사용자 관리 (관리자)
# =============================================================================
@router.get("/users", response_model=Page[usr_schemas.UserRead], summary="사용자 목록 조회 (관리자)")
async def read_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    role: Optional[usr_models.UserRole] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_order: SortOrder = "DESC",
    db: AsyncSession = Depends(deps.get_db_session),
    current_admin_user: usr_models.User = Depends(deps.get_current_admin_user),
):
    return await usr_crud.user.get_page(
        db, page=page, limit=limit, filters={"role": role, "is_active": is_active},
        search=search, sort_by=sort_by, sort_order=sort_order,
    )


@router.put("/users/{user_id}", response_model=usr_schemas.UserRead, summary="사용자 역할/활성 상태 변경 (관리자)")
async def update_user(
    user_id: uuid.UUID,
    user_in: usr_schemas.UserAdminUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_admin_user: usr_models.User = Depends(deps.get_current_admin_user),
):
    db_obj = await usr_crud.user.get_or_404(db, user_id)
    return await usr_crud.user.admin_update(db, db_obj=db_obj, obj_in=user_in, actor=current_admin_user)
