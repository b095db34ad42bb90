# pvlims/domains/dash/routers.py

"""
'dash' 도메인 (대시보드) 관련 API 엔드포인트를 정의하는 모듈입니다.
모든 엔드포인트는 읽기 전용이며 인증 없이 조회할 수 있습니다.
"""

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlmodel.ext.asyncio.session import AsyncSession

from pvlims.core import dependencies as deps

from . import crud as dash_crud
from . import schemas as dash_schemas

router = APIRouter(tags=["Dashboard (대시보드)"])


@router.get("/stats", response_model=dash_schemas.DashboardStats, summary="상태별 통계")
async def read_stats(db: AsyncSession = Depends(deps.get_db_session)):
    return await dash_crud.get_stats(db)


@router.get("/kpis", response_model=dash_schemas.DashboardKpis, summary="기간별 KPI")
async def read_kpis(
    period: int = Query(30, ge=1, le=3650, description="집계 기간 (일)"),
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await dash_crud.get_kpis(db, period_days=period)


@router.get("/recent-activity", response_model=List[dash_schemas.ActivityItem], summary="최근 활동")
async def read_recent_activity(
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await dash_crud.get_recent_activity(db, limit=limit)


@router.get("/standards-summary", response_model=List[dash_schemas.StandardSummary], summary="시험 규격별 요약")
async def read_standards_summary(db: AsyncSession = Depends(deps.get_db_session)):
    return await dash_crud.get_standards_summary(db)


@router.get("/lab-utilization", response_model=List[dash_schemas.LabUtilization], summary="시험소 가동률")
async def read_lab_utilization(db: AsyncSession = Depends(deps.get_db_session)):
    return await dash_crud.get_lab_utilization(db)


@router.get("/upcoming-deadlines", response_model=dash_schemas.UpcomingDeadlines, summary="다가오는 마감")
async def read_upcoming_deadlines(
    days: int = Query(30, ge=1, le=365),
    db: AsyncSession = Depends(deps.get_db_session),
):
    return {"days": days, "deadlines": await dash_crud.get_upcoming_deadlines(db, days=days)}
