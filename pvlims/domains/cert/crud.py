# pvlims/domains/cert/crud.py

"""
'cert' 도메인의 CRUD 및 수명주기 로직을 담당하는 모듈입니다.
"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from pvlims import API_PREFIX
from pvlims.core import derivations
from pvlims.core.crud_base import CRUDBase, snapshot
from pvlims.core.database import unit_of_work
from pvlims.core.exceptions import InvalidStateError, NotFoundError
from pvlims.core.lifecycle import transition
from pvlims.domains.lims import models as lims_models
from pvlims.domains.shared.crud import audit_log, notification, reference_sequence
from pvlims.domains.usr import models as usr_models

from . import models as cert_models
from . import schemas as cert_schemas
from .workflows import CERTIFICATION, issued_content, revoked_limitations

logger = logging.getLogger(__name__)

EXPIRY_NOTICE_TITLE = "Certification expiring soon"


class CRUDCertification(CRUDBase[cert_models.Certification, cert_schemas.CertificationCreate, cert_schemas.CertificationUpdate]):
    search_fields = ("certificate_number", "manufacturer")
    sort_fields = ("created_at", "certificate_number", "issue_date", "expiry_date", "status")
    not_found_detail = "Certification not found"

    def __init__(self):
        super().__init__(model=cert_models.Certification)

    # -------------------------------------------------------------------------
    # 조회 및 표시
    # -------------------------------------------------------------------------
    def present(self, db_obj: cert_models.Certification, on: Optional[date] = None) -> cert_schemas.CertificationResponse:
        """저장된 상태에 파생 필드(display_status, is_expired)를 더한 응답을 만듭니다."""
        return cert_schemas.CertificationResponse.model_validate(db_obj).model_copy(
            update={
                "display_status": derivations.display_status(db_obj.status, db_obj.expiry_date, on),
                "is_expired": derivations.is_expired(db_obj.expiry_date, on),
            }
        )

    async def get_page_presented(self, db: AsyncSession, **kwargs: Any) -> Dict[str, Any]:
        page = await self.get_page(db, **kwargs)
        page["data"] = [self.present(obj) for obj in page["data"]]
        return page

    async def get_by_number(self, db: AsyncSession, *, certificate_number: str) -> Optional[cert_models.Certification]:
        return await self.get_by_attribute(db, attribute="certificate_number", value=certificate_number)

    def verify(self, db_obj: cert_models.Certification, on: Optional[date] = None) -> Dict[str, Any]:
        """
        공개 검증 결과를 만듭니다.
        valid: 발행 상태이며 만료일이 없거나 오늘 이후인 경우
        hash_matches: 현재 내용으로 다시 계산한 해시가 발행 시점 해시와 같은지 여부
        """
        on = on or derivations.today()
        public = {field: getattr(db_obj, field) for field in cert_schemas.PublicCertificate.model_fields if hasattr(db_obj, field)}
        public["status"] = derivations.display_status(db_obj.status, db_obj.expiry_date, on)
        public["is_expired"] = derivations.is_expired(db_obj.expiry_date, on)

        hash_matches = None
        if db_obj.document_hash:
            hash_matches = derivations.certificate_digest(issued_content(db_obj)) == db_obj.document_hash
        return {
            "valid": derivations.is_certificate_valid(db_obj.status, db_obj.expiry_date, on),
            "certificate": public,
            "hash_matches": hash_matches,
        }

    # -------------------------------------------------------------------------
    # 생성, 수정, 전이
    # -------------------------------------------------------------------------
    async def create(self, db: AsyncSession, *, obj_in: cert_schemas.CertificationCreate, actor: Any) -> cert_models.Certification:
        if obj_in.service_request_id is not None:
            if await db.get(lims_models.ServiceRequest, obj_in.service_request_id) is None:
                raise NotFoundError("Service request not found")

        async with unit_of_work(db):
            certificate_number = await reference_sequence.next_code(db, "CERT")
            db_obj = self.model.model_validate(
                obj_in.model_dump(),
                update={"certificate_number": certificate_number, "status": CERTIFICATION.initial, "issued_by": actor.id},
            )
            db.add(db_obj)
            await db.flush()
            await audit_log.record(
                db, action="CREATE", entity_type="Certification", entity_id=db_obj.id,
                actor=actor, new_values=snapshot(db_obj),
            )
        await db.refresh(db_obj)
        return db_obj

    async def update(
        self, db: AsyncSession, *, db_obj: cert_models.Certification, obj_in: cert_schemas.CertificationUpdate, actor: Any = None
    ) -> cert_models.Certification:
        """draft 상태의 인증서만 수정할 수 있습니다."""
        if db_obj.status != "draft":
            raise InvalidStateError("Only draft certifications can be updated", current_status=db_obj.status)
        update_data = obj_in.model_dump(exclude_unset=True)
        async with unit_of_work(db):
            old_values = snapshot(db_obj)
            for key, value in update_data.items():
                setattr(db_obj, key, value)
            db.add(db_obj)
            await db.flush()
            await audit_log.record(
                db, action="UPDATE", entity_type="Certification", entity_id=db_obj.id,
                actor=actor, old_values=old_values, new_values=snapshot(db_obj),
            )
        await db.refresh(db_obj)
        return db_obj

    async def issue(
        self, db: AsyncSession, *, db_obj: cert_models.Certification, issue_in: cert_schemas.CertificationIssue, actor: Any
    ) -> cert_models.Certification:
        """
        인증서를 발행합니다. issue_date 기본값은 오늘이며,
        발행 시점의 내용으로 document_hash를 계산해 저장합니다.
        """
        async with unit_of_work(db):
            CERTIFICATION.check("issue", db_obj.status, role=getattr(actor, "role", None))
            if issue_in.issue_date is not None:
                db_obj.issue_date = issue_in.issue_date
            if issue_in.expiry_date is not None:
                db_obj.expiry_date = issue_in.expiry_date
            previous = await transition(db, db_obj, CERTIFICATION, "issue", actor)
            await audit_log.record(
                db, action="ISSUE", entity_type="Certification", entity_id=db_obj.id, actor=actor,
                old_values={"status": previous},
                new_values={"status": db_obj.status, "document_hash": db_obj.document_hash},
            )
        return db_obj

    async def revoke(
        self, db: AsyncSession, *, db_obj: cert_models.Certification, revoke_in: cert_schemas.CertificationRevoke, actor: Any
    ) -> cert_models.Certification:
        """
        발행된 인증서를 폐기합니다. 사유는 limitations 끝에 덧붙이며 되돌릴 수 없습니다.
        사유는 revocation_reason에도 기록됩니다.
        """
        values = {
            "limitations": revoked_limitations(db_obj.limitations, revoke_in.reason),
            "revocation_reason": revoke_in.reason,
        }
        async with unit_of_work(db):
            previous = await transition(db, db_obj, CERTIFICATION, "revoke", actor, values=values)
            await audit_log.record(
                db, action="REVOKE", entity_type="Certification", entity_id=db_obj.id, actor=actor,
                old_values={"status": previous}, new_values={"status": db_obj.status, "reason": revoke_in.reason},
            )
        return db_obj

    # -------------------------------------------------------------------------
    # 문서 및 만료 알림
    # -------------------------------------------------------------------------
    async def document(self, db: AsyncSession, *, db_obj: cert_models.Certification) -> Dict[str, Any]:
        ids = [uid for uid in (db_obj.issued_by, db_obj.approved_by) if uid is not None]
        names: Dict[Any, str] = {}
        if ids:
            rows = await db.execute(select(usr_models.User).where(usr_models.User.id.in_(ids)))
            names = {u.id: u.full_name or u.username for u in rows.scalars().all()}

        return {
            "header": {
                "certificate_number": db_obj.certificate_number,
                "certificate_type": db_obj.certificate_type,
                "status": derivations.display_status(db_obj.status, db_obj.expiry_date),
            },
            "product": {
                "manufacturer": db_obj.manufacturer,
                "model_numbers": db_obj.model_numbers,
                "rated_power_range": db_obj.rated_power_range,
            },
            "certification": {
                "standards": db_obj.standard_codes,
                "scope": db_obj.scope_description,
                "conditions": db_obj.conditions,
                "limitations": db_obj.limitations,
            },
            "validity": {
                "issue_date": db_obj.issue_date,
                "expiry_date": db_obj.expiry_date,
                "is_valid": derivations.is_certificate_valid(db_obj.status, db_obj.expiry_date),
            },
            "authorization": {
                "issued_by": names.get(db_obj.issued_by),
                "approved_by": names.get(db_obj.approved_by),
            },
            "verification": {
                "document_hash": db_obj.document_hash,
                "verification_url": f"{API_PREFIX}/cert/certifications/verify/{db_obj.certificate_number}",
            },
        }

    async def get_expiring(self, db: AsyncSession, *, within_days: int, on: Optional[date] = None) -> List[cert_models.Certification]:
        """오늘부터 within_days 이내에 만료되는 발행 인증서 (이미 만료된 것은 제외)."""
        on = on or derivations.today()
        statement = (
            select(self.model)
            .where(
                self.model.status == "issued",
                self.model.expiry_date.is_not(None),
                self.model.expiry_date >= on,
                self.model.expiry_date <= on + timedelta(days=within_days),
            )
            .order_by(self.model.expiry_date)
        )
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def send_expiry_notices(self, db: AsyncSession, *, within_days: int, on: Optional[date] = None) -> int:
        """
        만료 임박 인증서의 작성자에게 warning 알림을 보냅니다.
        같은 인증서에 대한 알림은 하루 한 번만 생성합니다.
        """
        on = on or derivations.today()
        start_of_day = datetime.combine(on, time.min, tzinfo=timezone.utc)
        sent = 0
        async with unit_of_work(db):
            for cert in await self.get_expiring(db, within_days=within_days, on=on):
                if cert.issued_by is None:
                    continue
                link = f"/cert/certifications/{cert.id}"
                if await notification.exists_since(
                    db, user_id=cert.issued_by, title=EXPIRY_NOTICE_TITLE, link=link, since=start_of_day
                ):
                    continue
                days_left = (cert.expiry_date - on).days
                await notification.notify(
                    db, user_ids=[cert.issued_by],
                    title=EXPIRY_NOTICE_TITLE,
                    message=f"{cert.certificate_number} ({cert.manufacturer}) expires in {days_left} day(s) on {cert.expiry_date}.",
                    type="warning",
                    link=link,
                )
                sent += 1
        logger.info("인증서 만료 알림 %d건 생성 (기준일 %s, %d일 이내)", sent, on, within_days)
        return sent


certification = CRUDCertification()
