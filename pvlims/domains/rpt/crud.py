# pvlims/domains/rpt/crud.py

"""
'rpt' 도메인의 CRUD 및 수명주기 로직을 담당하는 모듈입니다.
"""

import uuid
from typing import Any, Dict, Iterable, Optional

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from pvlims.core import derivations
from pvlims.core.crud_base import CRUDBase, snapshot
from pvlims.core.database import unit_of_work
from pvlims.core.database_base import utc_now
from pvlims.core.exceptions import ConflictError, InvalidStateError, NotFoundError
from pvlims.core.lifecycle import transition
from pvlims.domains.lab import models as lab_models
from pvlims.domains.lims import models as lims_models
from pvlims.domains.lims.crud import test_plan as test_plan_crud
from pvlims.domains.shared.crud import audit_log, notification, reference_sequence
from pvlims.domains.usr import models as usr_models

from . import models as rpt_models
from . import schemas as rpt_schemas
from .workflows import REPORT


class CRUDReport(CRUDBase[rpt_models.Report, rpt_schemas.ReportCreate, rpt_schemas.ReportUpdate]):
    search_fields = ("report_number", "title")
    sort_fields = ("created_at", "report_number", "title", "status")
    not_found_detail = "Report not found"

    def __init__(self):
        super().__init__(model=rpt_models.Report)

    async def create(self, db: AsyncSession, *, obj_in: rpt_schemas.ReportCreate, actor: Any) -> rpt_models.Report:
        """
        보고서를 draft 상태로 생성합니다.
        시험 계획이 연결되면 그 시점의 결과로 overall_result와 test_results_summary를 계산합니다.
        """
        data = obj_in.model_dump()
        derived: Dict[str, Any] = {"overall_result": None, "test_results_summary": None}

        if obj_in.test_plan_id is not None:
            plan = await db.get(lims_models.TestPlan, obj_in.test_plan_id)
            if plan is None:
                raise NotFoundError("Test plan not found")
            statuses = await test_plan_crud.result_statuses(db, plan_id=plan.id)
            derived = {
                "overall_result": derivations.overall_result(statuses),
                "test_results_summary": derivations.results_summary(statuses),
            }
            data["service_request_id"] = data["service_request_id"] or plan.service_request_id
        if data["service_request_id"] is not None:
            if await db.get(lims_models.ServiceRequest, data["service_request_id"]) is None:
                raise NotFoundError("Service request not found")

        async with unit_of_work(db):
            report_number = await reference_sequence.next_code(db, "RPT")
            db_obj = self.model.model_validate(
                data,
                update={
                    "report_number": report_number,
                    "status": REPORT.initial,
                    "version": 1,
                    "prepared_by": actor.id,
                    **derived,
                },
            )
            db.add(db_obj)
            await db.flush()
            await audit_log.record(
                db, action="CREATE", entity_type="Report", entity_id=db_obj.id,
                actor=actor, new_values=snapshot(db_obj),
            )
        await db.refresh(db_obj)
        return db_obj

    async def update(
        self, db: AsyncSession, *, db_obj: rpt_models.Report, obj_in: rpt_schemas.ReportUpdate, actor: Any = None
    ) -> rpt_models.Report:
        """
        보고서를 부분 수정합니다.
        본문 필드(executive_summary, conclusions, recommendations)가 포함되면 version을 1 올립니다.
        발행된 보고서는 수정할 수 없습니다.
        """
        if db_obj.status == "issued":
            raise InvalidStateError("Issued reports cannot be modified", current_status=db_obj.status)

        update_data = obj_in.model_dump(exclude_unset=True)
        requested_status = update_data.pop("status", None)
        content_changed = any(update_data.get(field) for field in rpt_schemas.CONTENT_FIELDS)

        async with unit_of_work(db):
            old_values = snapshot(db_obj)
            if requested_status and requested_status != db_obj.status:
                action = REPORT.manual_action(db_obj.status, requested_status)
                await transition(db, db_obj, REPORT, action, actor)
            for key, value in update_data.items():
                setattr(db_obj, key, value)
            if content_changed:
                db_obj.version = db_obj.version + 1
            db.add(db_obj)
            await db.flush()
            await audit_log.record(
                db, action="UPDATE", entity_type="Report", entity_id=db_obj.id,
                actor=actor, old_values=old_values, new_values=snapshot(db_obj),
            )
        await db.refresh(db_obj)
        return db_obj

    async def review(
        self, db: AsyncSession, *, db_obj: rpt_models.Report, review_in: rpt_schemas.ReportReview, actor: Any
    ) -> rpt_models.Report:
        """검토 결과 반영: 승인이면 approved, 반려면 draft. 작성자에게 알림을 보냅니다."""
        action = "approve_review" if review_in.approved else "reject_review"
        async with unit_of_work(db):
            previous = await transition(
                db, db_obj, REPORT, action, actor, values={"review_notes": review_in.review_notes}
            )
            verdict = "approved" if review_in.approved else "returned for revision"
            await notification.notify(
                db, user_ids=[db_obj.prepared_by],
                title="Report reviewed",
                message=f"{db_obj.report_number} '{db_obj.title}' was {verdict}.",
                type="success" if review_in.approved else "warning",
                link=f"/rpt/reports/{db_obj.id}",
            )
            await audit_log.record(
                db, action=action.upper(), entity_type="Report", entity_id=db_obj.id, actor=actor,
                old_values={"status": previous},
                new_values={"status": db_obj.status, "review_notes": review_in.review_notes},
            )
        return db_obj

    async def issue(self, db: AsyncSession, *, db_obj: rpt_models.Report, actor: Any) -> rpt_models.Report:
        async with unit_of_work(db):
            previous = await transition(db, db_obj, REPORT, "issue", actor)
            await audit_log.record(
                db, action="ISSUE", entity_type="Report", entity_id=db_obj.id, actor=actor,
                old_values={"status": previous}, new_values={"status": db_obj.status},
            )
        return db_obj

    async def remove(self, db: AsyncSession, *, db_obj: rpt_models.Report, actor: Any) -> None:
        """발행된 보고서는 삭제할 수 없습니다."""
        if db_obj.status == "issued":
            raise ConflictError("Cannot delete an issued report", current_status=db_obj.status)
        async with unit_of_work(db):
            await audit_log.record(
                db, action="DELETE", entity_type="Report", entity_id=db_obj.id,
                actor=actor, old_values=snapshot(db_obj),
            )
            await db.delete(db_obj)
            await db.flush()

    async def _user_names(self, db: AsyncSession, user_ids: Iterable[Optional[uuid.UUID]]) -> Dict[uuid.UUID, str]:
        ids = [uid for uid in set(user_ids) if uid is not None]
        if not ids:
            return {}
        rows = await db.execute(select(usr_models.User).where(usr_models.User.id.in_(ids)))
        return {u.id: u.full_name or u.username for u in rows.scalars().all()}

    async def document(self, db: AsyncSession, *, report: rpt_models.Report) -> Dict[str, Any]:
        """
        다운로드용 구조화 문서를 구성합니다.
        header / product_info / test_info / summary / test_results / approval 섹션으로 이루어집니다.
        """
        request = await db.get(lims_models.ServiceRequest, report.service_request_id) if report.service_request_id else None
        plan = await db.get(lims_models.TestPlan, report.test_plan_id) if report.test_plan_id else None

        product_info = None
        if request is not None:
            product_info = {
                "request_number": request.request_number,
                "manufacturer": request.manufacturer,
                "module_type": request.module_type,
                "model_number": request.model_number,
                "rated_power_w": request.rated_power_w,
                "dimensions_mm": request.dimensions_mm,
            }

        test_info = None
        results = []
        if plan is not None:
            standard = await db.get(lab_models.TestStandard, plan.test_standard_id) if plan.test_standard_id else None
            test_info = {
                "plan_number": plan.plan_number,
                "name": plan.name,
                "standard_code": standard.standard_code if standard else None,
                "standard_name": standard.name if standard else None,
                "status": plan.status,
                "actual_start": plan.actual_start,
                "actual_end": plan.actual_end,
            }
            result_model = lims_models.TestResult
            rows = await db.execute(
                select(result_model).where(result_model.test_plan_id == plan.id).order_by(result_model.test_sequence)
            )
            results = [
                {
                    "result_number": r.result_number,
                    "test_name": r.test_name,
                    "test_code": r.test_code,
                    "status": r.status,
                    "measured_values": r.measured_values,
                    "pass_criteria": r.pass_criteria,
                    "observations": r.observations,
                }
                for r in rows.scalars().all()
            ]

        names = await self._user_names(db, (report.prepared_by, report.reviewed_by, report.approved_by))
        return {
            "header": {
                "report_number": report.report_number,
                "title": report.title,
                "report_type": report.report_type,
                "version": report.version,
                "status": report.status,
                "generated_at": utc_now(),
            },
            "product_info": product_info,
            "test_info": test_info,
            "summary": {
                "overall_result": report.overall_result,
                "test_results_summary": report.test_results_summary,
                "executive_summary": report.executive_summary,
                "conclusions": report.conclusions,
                "recommendations": report.recommendations,
            },
            "test_results": results,
            "approval": {
                "prepared_by": names.get(report.prepared_by),
                "reviewed_by": names.get(report.reviewed_by),
                "review_date": report.review_date,
                "approved_by": names.get(report.approved_by),
                "approval_date": report.approval_date,
            },
        }


report = CRUDReport()
