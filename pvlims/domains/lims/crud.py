# pvlims/domains/lims/crud.py

"""
'lims' 도메인의 CRUD 및 수명주기 로직을 담당하는 모듈입니다.

여러 레코드를 함께 변경하는 작업(시료 등록/수령/이동, 시험 결과 추가, 시험 계획 완료 등)은
모두 하나의 `unit_of_work` 안에서 수행되어, 중간에 실패하면 전체가 롤백됩니다.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import selectinload
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from pvlims.core import derivations
from pvlims.core.crud_base import CRUDBase, snapshot
from pvlims.core.database import unit_of_work
from pvlims.core.database_base import utc_now
from pvlims.core.exceptions import ConflictError, InvalidStateError, NotFoundError
from pvlims.core.lifecycle import transition
from pvlims.domains.shared.crud import audit_log, notification, reference_sequence
from pvlims.domains.usr.models import MANAGER_ROLES

from . import models as lims_models
from . import schemas as lims_schemas
from .workflows import SAMPLE, SERVICE_REQUEST, TEST_PLAN

logger = logging.getLogger(__name__)

CLOSED_PLAN_STATUSES = ("completed", "failed", "cancelled")


# =============================================================================
# 1. 시험 의뢰 (ServiceRequest) CRUD
# =============================================================================
class CRUDServiceRequest(CRUDBase[lims_models.ServiceRequest, lims_schemas.ServiceRequestCreate, lims_schemas.ServiceRequestUpdate]):
    search_fields = ("request_number", "title", "manufacturer")
    sort_fields = ("created_at", "request_number", "title", "status", "priority", "requested_date")
    not_found_detail = "Service request not found"

    def __init__(self):
        super().__init__(model=lims_models.ServiceRequest)

    async def get_detail(self, db: AsyncSession, id: uuid.UUID) -> lims_models.ServiceRequest:
        """시료와 시험 계획을 함께 로드합니다."""
        statement = (
            select(self.model)
            .where(self.model.id == id)
            .options(selectinload(self.model.samples), selectinload(self.model.test_plans))
            .execution_options(populate_existing=True)
        )
        db_obj = (await db.execute(statement)).scalars().one_or_none()
        if db_obj is None:
            raise NotFoundError(self.not_found_detail)
        return db_obj

    async def create(self, db: AsyncSession, *, obj_in: lims_schemas.ServiceRequestCreate, actor: Any) -> lims_models.ServiceRequest:
        async with unit_of_work(db):
            request_number = await reference_sequence.next_code(db, "SR")
            db_obj = self.model.model_validate(
                obj_in.model_dump(),
                update={"request_number": request_number, "status": SERVICE_REQUEST.initial, "created_by": actor.id},
            )
            db.add(db_obj)
            await db.flush()
            await audit_log.record(
                db, action="CREATE", entity_type="ServiceRequest", entity_id=db_obj.id,
                actor=actor, new_values=snapshot(db_obj),
            )
        await db.refresh(db_obj)
        return db_obj

    async def fire(self, db: AsyncSession, *, db_obj: lims_models.ServiceRequest, action: str, actor: Any) -> lims_models.ServiceRequest:
        """
        의뢰 상태 전이를 실행하고 감사 로그와 알림을 남깁니다.
        - submit: 활성 관리자/실험실 관리자에게 알림
        - approve: 의뢰 작성자에게 알림
        """
        async with unit_of_work(db):
            previous = await transition(db, db_obj, SERVICE_REQUEST, action, actor)
            await audit_log.record(
                db, action=action.upper(), entity_type="ServiceRequest", entity_id=db_obj.id, actor=actor,
                old_values={"status": previous}, new_values={"status": db_obj.status},
            )
            link = f"/lims/service-requests/{db_obj.id}"
            if action == "submit":
                await notification.notify_roles(
                    db, roles=MANAGER_ROLES,
                    title="Service request submitted",
                    message=f"{db_obj.request_number} '{db_obj.title}' has been submitted for review.",
                    link=link,
                )
            elif action == "approve":
                await notification.notify(
                    db, user_ids=[db_obj.created_by],
                    title="Service request approved",
                    message=f"{db_obj.request_number} '{db_obj.title}' has been approved.",
                    type="success",
                    link=link,
                )
        return db_obj

    async def update(
        self, db: AsyncSession, *, db_obj: lims_models.ServiceRequest, obj_in: lims_schemas.ServiceRequestUpdate, actor: Any = None
    ) -> lims_models.ServiceRequest:
        """
        필드를 부분 수정합니다. `status`가 바뀌면 해당하는 수동 전이를 같은 트랜잭션에서 실행합니다.
        """
        update_data = obj_in.model_dump(exclude_unset=True)
        requested_status = update_data.pop("status", None)
        async with unit_of_work(db):
            old_values = snapshot(db_obj)
            if requested_status and requested_status != db_obj.status:
                action = SERVICE_REQUEST.manual_action(db_obj.status, requested_status)
                await self.fire(db, db_obj=db_obj, action=action, actor=actor)
            for key, value in update_data.items():
                setattr(db_obj, key, value)
            db.add(db_obj)
            await db.flush()
            await audit_log.record(
                db, action="UPDATE", entity_type="ServiceRequest", entity_id=db_obj.id,
                actor=actor, old_values=old_values, new_values=snapshot(db_obj),
            )
        await db.refresh(db_obj)
        return db_obj

    async def remove(self, db: AsyncSession, *, db_obj: lims_models.ServiceRequest, actor: Any) -> None:
        """완료된 의뢰는 삭제할 수 없습니다. 시료와 시험 계획은 함께 삭제됩니다."""
        if db_obj.status == "completed":
            raise ConflictError("Cannot delete a completed service request", current_status=db_obj.status)
        async with unit_of_work(db):
            await audit_log.record(
                db, action="DELETE", entity_type="ServiceRequest", entity_id=db_obj.id,
                actor=actor, old_values=snapshot(db_obj),
            )
            await db.delete(db_obj)
            await db.flush()


service_request = CRUDServiceRequest()


# =============================================================================
# 2. 시료 (Sample) CRUD
# =============================================================================
class CRUDSample(CRUDBase[lims_models.Sample, lims_schemas.SampleCreate, lims_schemas.SampleUpdate]):
    search_fields = ("sample_code", "description", "serial_number")
    sort_fields = ("created_at", "sample_code", "status", "received_date")
    not_found_detail = "Sample not found"

    def __init__(self):
        super().__init__(model=lims_models.Sample)

    async def _append_custody(
        self,
        db: AsyncSession,
        *,
        sample: lims_models.Sample,
        action: str,
        actor: Any,
        from_location: Optional[str] = None,
        to_location: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> lims_models.ChainOfCustodyEntry:
        entry = lims_models.ChainOfCustodyEntry(
            sample_id=sample.id,
            action=action,
            from_location=from_location,
            to_location=to_location,
            performed_by=getattr(actor, "id", None),
            notes=notes,
        )
        db.add(entry)
        await db.flush()
        return entry

    async def create(self, db: AsyncSession, *, obj_in: lims_schemas.SampleCreate, actor: Any) -> lims_models.Sample:
        """
        시료를 등록 상태로 생성하고, 같은 트랜잭션에서 최초 보관 이력(registered)을 추가합니다.
        """
        if await db.get(lims_models.ServiceRequest, obj_in.service_request_id) is None:
            raise NotFoundError("Service request not found")

        async with unit_of_work(db):
            sample_code = await reference_sequence.next_code(db, "SMP")
            db_obj = self.model.model_validate(
                obj_in.model_dump(),
                update={"sample_code": sample_code, "status": SAMPLE.initial, "created_by": actor.id},
            )
            db.add(db_obj)
            await db.flush()
            await self._append_custody(
                db, sample=db_obj, action="registered", actor=actor,
                to_location=db_obj.storage_location or "System",
                notes="Sample registered in system",
            )
            await audit_log.record(
                db, action="CREATE", entity_type="Sample", entity_id=db_obj.id,
                actor=actor, new_values=snapshot(db_obj),
            )
        await db.refresh(db_obj)
        return db_obj

    async def receive(
        self, db: AsyncSession, *, db_obj: lims_models.Sample, receive_in: lims_schemas.SampleReceive, actor: Any
    ) -> lims_models.Sample:
        """시료 수령: registered -> received, 수령 정보 기록 및 보관 이력 추가."""
        prior_location = db_obj.storage_location
        async with unit_of_work(db):
            previous = await transition(
                db, db_obj, SAMPLE, "receive", actor,
                values={"receiving_condition": receive_in.receiving_condition, "storage_location": receive_in.storage_location},
            )
            notes = f"Received in {receive_in.receiving_condition} condition. {receive_in.notes or ''}".strip()
            await self._append_custody(
                db, sample=db_obj, action="received", actor=actor,
                from_location=prior_location, to_location=receive_in.storage_location, notes=notes,
            )
            await audit_log.record(
                db, action="RECEIVE", entity_type="Sample", entity_id=db_obj.id, actor=actor,
                old_values={"status": previous, "storage_location": prior_location},
                new_values={"status": db_obj.status, "storage_location": db_obj.storage_location,
                            "receiving_condition": db_obj.receiving_condition},
            )
        return db_obj

    async def transfer(
        self, db: AsyncSession, *, db_obj: lims_models.Sample, transfer_in: lims_schemas.SampleTransfer, actor: Any
    ) -> lims_models.Sample:
        """보관 위치 이동. 상태는 바뀌지 않습니다."""
        prior_location = db_obj.storage_location
        async with unit_of_work(db):
            await transition(db, db_obj, SAMPLE, "transfer", actor, values={"storage_location": transfer_in.to_location})
            await self._append_custody(
                db, sample=db_obj, action="transferred", actor=actor,
                from_location=prior_location, to_location=transfer_in.to_location, notes=transfer_in.notes,
            )
            await audit_log.record(
                db, action="TRANSFER", entity_type="Sample", entity_id=db_obj.id, actor=actor,
                old_values={"storage_location": prior_location},
                new_values={"storage_location": transfer_in.to_location},
            )
        return db_obj

    async def update(
        self, db: AsyncSession, *, db_obj: lims_models.Sample, obj_in: lims_schemas.SampleUpdate, actor: Any = None
    ) -> lims_models.Sample:
        update_data = obj_in.model_dump(exclude_unset=True)
        requested_status = update_data.pop("status", None)
        async with unit_of_work(db):
            old_values = snapshot(db_obj)
            if requested_status and requested_status != db_obj.status:
                action = SAMPLE.manual_action(db_obj.status, requested_status)
                await transition(db, db_obj, SAMPLE, action, actor)
            for key, value in update_data.items():
                setattr(db_obj, key, value)
            db.add(db_obj)
            await db.flush()
            await audit_log.record(
                db, action="UPDATE", entity_type="Sample", entity_id=db_obj.id,
                actor=actor, old_values=old_values, new_values=snapshot(db_obj),
            )
        await db.refresh(db_obj)
        return db_obj

    async def remove(self, db: AsyncSession, *, db_obj: lims_models.Sample, actor: Any) -> None:
        """시험 중인 시료는 삭제할 수 없습니다."""
        if db_obj.status == "in_testing":
            raise ConflictError("Cannot delete a sample that is in testing", current_status=db_obj.status)
        async with unit_of_work(db):
            await audit_log.record(
                db, action="DELETE", entity_type="Sample", entity_id=db_obj.id,
                actor=actor, old_values=snapshot(db_obj),
            )
            await db.delete(db_obj)
            await db.flush()

    async def chain_of_custody(self, db: AsyncSession, *, sample_id: uuid.UUID) -> List[lims_models.ChainOfCustodyEntry]:
        """보관 이력을 최신순으로 반환합니다."""
        entry = lims_models.ChainOfCustodyEntry
        statement = select(entry).where(entry.sample_id == sample_id).order_by(entry.timestamp.desc())
        result = await db.execute(statement)
        return list(result.scalars().all())


sample = CRUDSample()


# =============================================================================
# 3. 시험 계획 (TestPlan) CRUD
# =============================================================================
class CRUDTestPlan(CRUDBase[lims_models.TestPlan, lims_schemas.TestPlanCreate, lims_schemas.TestPlanUpdate]):
    search_fields = ("plan_number", "name")
    sort_fields = ("created_at", "plan_number", "name", "status", "scheduled_start")
    not_found_detail = "Test plan not found"

    def __init__(self):
        super().__init__(model=lims_models.TestPlan)

    async def get_detail(self, db: AsyncSession, id: uuid.UUID) -> lims_models.TestPlan:
        statement = (
            select(self.model)
            .where(self.model.id == id)
            .options(selectinload(self.model.results))
            .execution_options(populate_existing=True)
        )
        db_obj = (await db.execute(statement)).scalars().one_or_none()
        if db_obj is None:
            raise NotFoundError(self.not_found_detail)
        return db_obj

    async def result_statuses(self, db: AsyncSession, *, plan_id: uuid.UUID) -> List[str]:
        result_model = lims_models.TestResult
        rows = await db.execute(select(result_model.status).where(result_model.test_plan_id == plan_id))
        return list(rows.scalars().all())

    async def result_counts(self, db: AsyncSession, plan_ids: List[uuid.UUID]) -> Dict[uuid.UUID, Dict[str, int]]:
        """시험 계획별 결과 집계 (total_tests, passed_tests, failed_tests)."""
        counts = {plan_id: {"total_tests": 0, "passed_tests": 0, "failed_tests": 0} for plan_id in plan_ids}
        if not plan_ids:
            return counts
        result_model = lims_models.TestResult
        rows = await db.execute(
            select(result_model.test_plan_id, result_model.status, func.count())
            .where(result_model.test_plan_id.in_(plan_ids))
            .group_by(result_model.test_plan_id, result_model.status)
        )
        for plan_id, status, count in rows.all():
            counts[plan_id]["total_tests"] += count
            if status == "pass":
                counts[plan_id]["passed_tests"] += count
            elif status == "fail":
                counts[plan_id]["failed_tests"] += count
        return counts

    async def get_page_with_counts(self, db: AsyncSession, **kwargs: Any) -> Dict[str, Any]:
        page = await self.get_page(db, **kwargs)
        counts = await self.result_counts(db, [plan.id for plan in page["data"]])
        page["data"] = [
            lims_schemas.TestPlanListItem.model_validate(plan).model_copy(update=counts[plan.id])
            for plan in page["data"]
        ]
        return page

    async def create(self, db: AsyncSession, *, obj_in: lims_schemas.TestPlanCreate, actor: Any) -> lims_models.TestPlan:
        if await db.get(lims_models.ServiceRequest, obj_in.service_request_id) is None:
            raise NotFoundError("Service request not found")

        async with unit_of_work(db):
            plan_number = await reference_sequence.next_code(db, "TP")
            db_obj = self.model.model_validate(
                obj_in.model_dump(),
                update={"plan_number": plan_number, "status": TEST_PLAN.initial, "created_by": actor.id},
            )
            db.add(db_obj)
            await db.flush()
            await audit_log.record(
                db, action="CREATE", entity_type="TestPlan", entity_id=db_obj.id,
                actor=actor, new_values=snapshot(db_obj),
            )
        await db.refresh(db_obj)
        return db_obj

    async def update(
        self, db: AsyncSession, *, db_obj: lims_models.TestPlan, obj_in: lims_schemas.TestPlanUpdate, actor: Any = None
    ) -> lims_models.TestPlan:
        update_data = obj_in.model_dump(exclude_unset=True)
        requested_status = update_data.pop("status", None)
        async with unit_of_work(db):
            old_values = snapshot(db_obj)
            if requested_status and requested_status != db_obj.status:
                action = TEST_PLAN.manual_action(db_obj.status, requested_status)
                await transition(db, db_obj, TEST_PLAN, action, actor)
            for key, value in update_data.items():
                setattr(db_obj, key, value)
            db.add(db_obj)
            await db.flush()
            await audit_log.record(
                db, action="UPDATE", entity_type="TestPlan", entity_id=db_obj.id,
                actor=actor, old_values=old_values, new_values=snapshot(db_obj),
            )
        await db.refresh(db_obj)
        return db_obj

    async def add_result(
        self, db: AsyncSession, *, plan: lims_models.TestPlan, result_in: lims_schemas.TestResultCreate, actor: Any
    ) -> lims_models.TestResult:
        """
        시험 결과를 기록합니다. 같은 트랜잭션에서
        1) 시료가 received 상태면 in_testing으로 승격하고
        2) 시험 계획이 pending/scheduled 상태면 시작(in_progress) 처리합니다.
        종료된 시험 계획(completed, failed, cancelled)에는 결과를 추가할 수 없습니다.
        """
        if plan.status in CLOSED_PLAN_STATUSES:
            raise InvalidStateError(
                f"Cannot add results to a test plan in status '{plan.status}'", current_status=plan.status
            )
        now = utc_now()
        async with unit_of_work(db):
            result_number = await reference_sequence.next_code(db, "TR")
            data = result_in.model_dump()
            data["sample_id"] = data.get("sample_id") or plan.sample_id
            db_obj = lims_models.TestResult.model_validate(
                data,
                update={
                    "result_number": result_number,
                    "test_plan_id": plan.id,
                    "performed_by": actor.id,
                    "start_time": now,
                    "end_time": None if result_in.status == "pending" else now,
                },
            )
            db.add(db_obj)
            await db.flush()

            if db_obj.sample_id is not None:
                target_sample = await db.get(lims_models.Sample, db_obj.sample_id)
                if target_sample is not None and SAMPLE.can("start_testing", target_sample.status):
                    await transition(db, target_sample, SAMPLE, "start_testing", actor, now=now)
            if TEST_PLAN.can("start", plan.status):
                await transition(db, plan, TEST_PLAN, "start", actor, now=now)

            await audit_log.record(
                db, action="CREATE", entity_type="TestResult", entity_id=db_obj.id,
                actor=actor, new_values=snapshot(db_obj),
            )
        await db.refresh(db_obj)
        return db_obj

    async def complete(self, db: AsyncSession, *, plan: lims_models.TestPlan, actor: Any) -> lims_models.TestPlan:
        """
        시험 계획을 완료합니다.

        - 판정 대기(pending) 결과가 남아 있으면 ConflictError (pending_count 포함)
        - 결과에 fail이 하나라도 있으면 failed, 아니면 completed
        - 시료를 tested로 전환 (폐기된 시료는 제외)하고 의뢰 작성자에게 알림
        """
        TEST_PLAN.check("complete", plan.status, role=getattr(actor, "role", None), target="completed")
        statuses = await self.result_statuses(db, plan_id=plan.id)
        pending_count = derivations.count_pending(statuses)
        if pending_count:
            raise ConflictError("Cannot complete test plan: pending results exist", pending_count=pending_count)
        outcome = derivations.plan_outcome(statuses)
        logger.info("TestPlan %s 완료 판정: %s (%d건)", plan.plan_number, outcome, len(statuses))
        now = utc_now()

        async with unit_of_work(db):
            previous = await transition(db, plan, TEST_PLAN, "complete", actor, target=outcome, now=now)

            if plan.sample_id is not None:
                target_sample = await db.get(lims_models.Sample, plan.sample_id)
                if target_sample is not None and SAMPLE.can("finish_testing", target_sample.status):
                    await transition(db, target_sample, SAMPLE, "finish_testing", actor, now=now)

            request = await db.get(lims_models.ServiceRequest, plan.service_request_id)
            if request is not None:
                await notification.notify(
                    db, user_ids=[request.created_by],
                    title="Test plan completed",
                    message=f"{plan.plan_number} '{plan.name}' finished with status '{outcome}'.",
                    type="success" if outcome == "completed" else "warning",
                    link=f"/lims/test-plans/{plan.id}",
                )
            await audit_log.record(
                db, action="COMPLETE", entity_type="TestPlan", entity_id=plan.id, actor=actor,
                old_values={"status": previous},
                new_values={"status": plan.status, **derivations.results_summary(statuses)},
            )
        return plan

    async def remove(self, db: AsyncSession, *, db_obj: lims_models.TestPlan, actor: Any) -> None:
        """완료된 시험 계획은 삭제할 수 없습니다."""
        if db_obj.status == "completed":
            raise ConflictError("Cannot delete a completed test plan", current_status=db_obj.status)
        async with unit_of_work(db):
            await audit_log.record(
                db, action="DELETE", entity_type="TestPlan", entity_id=db_obj.id,
                actor=actor, old_values=snapshot(db_obj),
            )
            await db.delete(db_obj)
            await db.flush()


test_plan = CRUDTestPlan()


# =============================================================================
# 4. 시험 결과 (TestResult) CRUD
# =============================================================================
class CRUDTestResult(CRUDBase[lims_models.TestResult, lims_schemas.TestResultCreate, lims_schemas.TestResultUpdate]):
    sort_fields = ("created_at", "test_sequence")
    not_found_detail = "Test result not found"

    def __init__(self):
        super().__init__(model=lims_models.TestResult)

    async def update(
        self, db: AsyncSession, *, db_obj: lims_models.TestResult, obj_in: lims_schemas.TestResultUpdate, actor: Any = None
    ) -> lims_models.TestResult:
        """
        판정(status)이 pending이 아닌 값으로 바뀌면 end_time을 기록합니다.
        종료된 시험 계획의 결과는 수정할 수 없습니다.
        """
        plan = await db.get(lims_models.TestPlan, db_obj.test_plan_id)
        if plan is not None and plan.status in CLOSED_PLAN_STATUSES:
            raise InvalidStateError(
                f"Cannot modify results of a test plan in status '{plan.status}'", current_status=plan.status
            )
        update_data = obj_in.model_dump(exclude_unset=True)
        new_status = update_data.get("status")
        if new_status and new_status != "pending" and new_status != db_obj.status:
            update_data["end_time"] = utc_now()
        async with unit_of_work(db):
            old_values = snapshot(db_obj)
            for key, value in update_data.items():
                setattr(db_obj, key, value)
            db.add(db_obj)
            await db.flush()
            await audit_log.record(
                db, action="UPDATE", entity_type="TestResult", entity_id=db_obj.id,
                actor=actor, old_values=old_values, new_values=snapshot(db_obj),
            )
        await db.refresh(db_obj)
        return db_obj

    async def verify(
        self, db: AsyncSession, *, db_obj: lims_models.TestResult, verify_in: lims_schemas.TestResultVerify, actor: Any
    ) -> lims_models.TestResult:
        async with unit_of_work(db):
            db_obj.verified_by = actor.id
            db_obj.verification_date = utc_now()
            db_obj.verification_notes = verify_in.verification_notes
            db.add(db_obj)
            await db.flush()
            await audit_log.record(
                db, action="VERIFY", entity_type="TestResult", entity_id=db_obj.id, actor=actor,
                new_values={"verified_by": str(actor.id), "verification_notes": verify_in.verification_notes},
            )
        await db.refresh(db_obj)
        return db_obj


test_result = CRUDTestResult()
