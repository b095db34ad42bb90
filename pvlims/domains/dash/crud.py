# pvlims/domains/dash/crud.py

"""
'dash' 도메인의 집계 로직을 담당하는 모듈입니다.
모든 비율/평균 계산은 `pvlims.core.derivations`의 순수 함수를 사용합니다.
"""

import math
import uuid
from datetime import datetime, time, timedelta, timezone
from typing import Any, Dict, List, Sequence

from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from pvlims.core import derivations
from pvlims.domains.cert import models as cert_models
from pvlims.domains.lab import models as lab_models
from pvlims.domains.lab.crud import ACTIVE_REQUEST_STATUSES, lab_facility
from pvlims.domains.lims import models as lims_models
from pvlims.domains.lims.workflows import SAMPLE, SERVICE_REQUEST, TEST_PLAN
from pvlims.domains.cert.workflows import CERTIFICATION

RESULT_STATUSES = ("pass", "fail", "conditional", "pending")


async def _status_counts(db: AsyncSession, model: Any, states: Sequence[str]) -> Dict[str, int]:
    rows = await db.execute(select(model.status, func.count()).group_by(model.status))
    counts = {state: 0 for state in states}
    for state, count in rows.all():
        counts[state] = count
    counts["total"] = sum(counts.values())
    return counts


async def _count(db: AsyncSession, model: Any, *conditions: Any) -> int:
    statement = select(func.count()).select_from(model)
    for condition in conditions:
        statement = statement.where(condition)
    return (await db.execute(statement)).scalar_one()


# =============================================================================
# 1. 상태별 통계
# =============================================================================
async def get_stats(db: AsyncSession) -> Dict[str, Any]:
    """엔티티별 상태 집계. 만료 인증서는 expiry_date로 계산합니다."""
    today = derivations.today()
    certifications = await _status_counts(db, cert_models.Certification, CERTIFICATION.states)
    certifications["expired"] = await _count(
        db, cert_models.Certification,
        cert_models.Certification.status == "issued",
        cert_models.Certification.expiry_date < today,
    )

    labs_model = lab_models.LabFacility
    labs = {
        "total": await _count(db, labs_model),
        "internal": await _count(db, labs_model, labs_model.facility_type == "internal"),
        "external": await _count(db, labs_model, labs_model.facility_type == "external"),
        "active": await _count(db, labs_model, labs_model.is_active == True),  # noqa: E712
    }

    return {
        "service_requests": await _status_counts(db, lims_models.ServiceRequest, SERVICE_REQUEST.states),
        "samples": await _status_counts(db, lims_models.Sample, SAMPLE.states),
        "test_plans": await _status_counts(db, lims_models.TestPlan, TEST_PLAN.states),
        "test_results": await _status_counts(db, lims_models.TestResult, RESULT_STATUSES),
        "certifications": certifications,
        "labs": labs,
    }


# =============================================================================
# 2. KPI
# =============================================================================
async def get_kpis(db: AsyncSession, *, period_days: int) -> Dict[str, Any]:
    today = derivations.today()
    since = today - timedelta(days=period_days)
    since_dt = datetime.combine(since, time.min, tzinfo=timezone.utc)

    sr = lims_models.ServiceRequest
    completed_rows = await db.execute(
        select(sr.created_at, sr.estimated_completion, sr.actual_completion)
        .where(sr.status == "completed", sr.actual_completion.is_not(None), sr.actual_completion >= since)
    )
    completed = completed_rows.all()

    tr = lims_models.TestResult
    passed = await _count(db, tr, tr.status == "pass", tr.created_at >= since_dt)
    failed = await _count(db, tr, tr.status == "fail", tr.created_at >= since_dt)

    sample_model = lims_models.Sample
    cert = cert_models.Certification
    kpis = {
        "completed_requests": len(completed),
        "avg_turnaround_days": derivations.average_turnaround_days(
            (created_at.date() if created_at else None, actual) for created_at, _, actual in completed
        ) or 0.0,
        "test_pass_rate": derivations.pass_rate(passed, failed) or 0.0,
        "samples_processed": await _count(
            db, sample_model, sample_model.status.in_(("tested", "disposed")), sample_model.updated_at >= since_dt
        ),
        "certificates_issued": await _count(db, cert, cert.status == "issued", cert.issue_date >= since),
        "on_time_completion_rate": derivations.on_time_rate(
            (estimated, actual) for _, estimated, actual in completed
        ) or 0.0,
    }
    workload = {
        "active_requests": await _count(db, sr, sr.status.in_(ACTIVE_REQUEST_STATUSES)),
        "active_tests": await _count(db, lims_models.TestPlan, lims_models.TestPlan.status == "in_progress"),
        "samples_in_testing": await _count(db, sample_model, sample_model.status == "in_testing"),
    }
    return {"period_days": period_days, "kpis": kpis, "current_workload": workload}


# =============================================================================
# 3. 최근 활동
# =============================================================================
async def get_recent_activity(db: AsyncSession, *, limit: int) -> List[Dict[str, Any]]:
    """의뢰, 시료, 시험 결과, 인증서의 최근 생성 이력을 합쳐 최신순으로 반환합니다."""
    per_type = math.ceil(limit / 4)
    sr = lims_models.ServiceRequest
    sample_model = lims_models.Sample
    tr = lims_models.TestResult
    tp = lims_models.TestPlan
    cert = cert_models.Certification
    customer = lab_models.Customer

    activity: List[Dict[str, Any]] = []

    rows = await db.execute(
        select(sr.id, sr.request_number, sr.title, sr.status, sr.created_at, customer.company_name)
        .outerjoin(customer, sr.customer_id == customer.id)
        .order_by(sr.created_at.desc()).limit(per_type)
    )
    for id_, number, title, status, created_at, company in rows.all():
        activity.append({"id": id_, "type": "service_request", "title": title or number,
                         "subtitle": company, "status": status, "created_at": created_at})

    rows = await db.execute(
        select(sample_model.id, sample_model.sample_code, sample_model.status, sample_model.created_at, sr.request_number)
        .outerjoin(sr, sample_model.service_request_id == sr.id)
        .order_by(sample_model.created_at.desc()).limit(per_type)
    )
    for id_, code, status, created_at, request_number in rows.all():
        activity.append({"id": id_, "type": "sample", "title": code,
                         "subtitle": request_number, "status": status, "created_at": created_at})

    rows = await db.execute(
        select(tr.id, tr.test_name, tr.status, tr.created_at, tp.plan_number)
        .outerjoin(tp, tr.test_plan_id == tp.id)
        .order_by(tr.created_at.desc()).limit(per_type)
    )
    for id_, test_name, status, created_at, plan_number in rows.all():
        activity.append({"id": id_, "type": "test_result", "title": test_name,
                         "subtitle": plan_number, "status": status, "created_at": created_at})

    rows = await db.execute(
        select(cert.id, cert.certificate_number, cert.manufacturer, cert.status, cert.expiry_date, cert.created_at)
        .order_by(cert.created_at.desc()).limit(per_type)
    )
    for id_, number, manufacturer, status, expiry_date, created_at in rows.all():
        activity.append({"id": id_, "type": "certification", "title": number, "subtitle": manufacturer,
                         "status": derivations.display_status(status, expiry_date), "created_at": created_at})

    activity.sort(key=lambda item: item["created_at"], reverse=True)
    return activity[:limit]


# =============================================================================
# 4. 규격별 요약
# =============================================================================
async def get_standards_summary(db: AsyncSession) -> List[Dict[str, Any]]:
    standard = lab_models.TestStandard
    tp = lims_models.TestPlan
    standards = (await db.execute(
        select(standard).where(standard.is_active == True).order_by(standard.standard_code)  # noqa: E712
    )).scalars().all()

    counts: Dict[uuid.UUID, Dict[str, int]] = {
        s.id: {"total_test_plans": 0, "active_tests": 0, "completed_tests": 0} for s in standards
    }
    if counts:
        rows = await db.execute(
            select(tp.test_standard_id, tp.status, func.count())
            .where(tp.test_standard_id.in_(list(counts)))
            .group_by(tp.test_standard_id, tp.status)
        )
        for standard_id, status, count in rows.all():
            counts[standard_id]["total_test_plans"] += count
            if status == "in_progress":
                counts[standard_id]["active_tests"] += count
            elif status == "completed":
                counts[standard_id]["completed_tests"] += count

    return [
        {"id": s.id, "standard_code": s.standard_code, "name": s.name, "category": s.category, **counts[s.id]}
        for s in standards
    ]


# =============================================================================
# 5. 시험소 가동률
# =============================================================================
async def get_lab_utilization(db: AsyncSession) -> List[Dict[str, Any]]:
    lab = lab_models.LabFacility
    tp = lims_models.TestPlan
    sr = lims_models.ServiceRequest
    sample_model = lims_models.Sample

    labs = (await db.execute(
        select(lab).where(lab.is_active == True).order_by(lab.name)  # noqa: E712
    )).scalars().all()
    lab_ids = [item.id for item in labs]
    activity = await lab_facility.activity_counts(db, lab_ids)

    totals: Dict[uuid.UUID, int] = {}
    samples_in_lab: Dict[uuid.UUID, int] = {}
    if lab_ids:
        rows = await db.execute(
            select(tp.assigned_lab_id, func.count()).where(tp.assigned_lab_id.in_(lab_ids)).group_by(tp.assigned_lab_id)
        )
        totals = dict(rows.all())
        rows = await db.execute(
            select(sr.assigned_lab_id, func.count(sample_model.id))
            .join(sample_model, sample_model.service_request_id == sr.id)
            .where(
                sr.assigned_lab_id.in_(lab_ids),
                sr.status.in_(ACTIVE_REQUEST_STATUSES),
                sample_model.status == "in_testing",
            )
            .group_by(sr.assigned_lab_id)
        )
        samples_in_lab = dict(rows.all())

    return [
        {
            "id": item.id,
            "name": item.name,
            "code": item.code,
            "facility_type": item.facility_type,
            "active_requests": activity[item.id]["active_requests"],
            "active_test_plans": activity[item.id]["active_tests"],
            "samples_in_lab": samples_in_lab.get(item.id, 0),
            "utilization_percent": derivations.utilization_percent(activity[item.id]["active_tests"], totals.get(item.id, 0)),
        }
        for item in labs
    ]


# =============================================================================
# 6. 다가오는 마감
# =============================================================================
async def get_upcoming_deadlines(db: AsyncSession, *, days: int) -> List[Dict[str, Any]]:
    """
    완료 예정일이 가까운 의뢰, 종료 예정일이 가까운 시험 계획, 만료가 가까운 인증서를 마감일 순으로 반환합니다.
    이미 지난 마감도 포함됩니다.
    """
    horizon = derivations.today() + timedelta(days=days)
    sr = lims_models.ServiceRequest
    tp = lims_models.TestPlan
    cert = cert_models.Certification
    customer = lab_models.Customer
    standard = lab_models.TestStandard

    deadlines: List[Dict[str, Any]] = []

    rows = await db.execute(
        select(sr.id, sr.request_number, sr.title, sr.estimated_completion, sr.priority, customer.company_name)
        .outerjoin(customer, sr.customer_id == customer.id)
        .where(sr.status.in_(ACTIVE_REQUEST_STATUSES), sr.estimated_completion.is_not(None), sr.estimated_completion <= horizon)
    )
    for id_, number, title, deadline, priority, company in rows.all():
        deadlines.append({"id": id_, "type": "service_request", "reference": number, "title": title,
                          "deadline": deadline, "context": company, "priority": priority})

    rows = await db.execute(
        select(tp.id, tp.plan_number, tp.name, tp.scheduled_end, standard.standard_code)
        .outerjoin(standard, tp.test_standard_id == standard.id)
        .where(
            tp.status.in_(("pending", "scheduled", "in_progress")),
            tp.scheduled_end.is_not(None),
            tp.scheduled_end <= horizon,
        )
    )
    for id_, number, name, deadline, standard_code in rows.all():
        deadlines.append({"id": id_, "type": "test_plan", "reference": number, "title": name,
                          "deadline": deadline, "context": standard_code})

    rows = await db.execute(
        select(cert.id, cert.certificate_number, cert.manufacturer, cert.expiry_date, cert.standard_codes)
        .where(cert.status == "issued", cert.expiry_date.is_not(None), cert.expiry_date <= horizon)
    )
    for id_, number, manufacturer, deadline, standard_codes in rows.all():
        deadlines.append({"id": id_, "type": "certification", "reference": number, "title": manufacturer,
                          "deadline": deadline, "context": ", ".join(standard_codes or [])})

    deadlines.sort(key=lambda item: item["deadline"])
    return deadlines
