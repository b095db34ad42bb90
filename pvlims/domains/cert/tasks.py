# pvlims/domains/cert/tasks.py

import logging

from pvlims.core.config import settings

from .crud import certification as certification_crud

logger = logging.getLogger(__name__)


async def notify_expiring_certifications_task(ctx, within_days: int = None):
    """
    만료가 임박한 발행 인증서의 작성자에게 알림을 생성하는 ARQ 태스크.
    매일 크론으로 실행되며, 관리자 API로 즉시 실행을 요청할 수도 있습니다.
    """
    within_days = within_days or settings.CERT_EXPIRY_NOTICE_DAYS
    logger.info("ARQ 태스크: 인증서 만료 알림 시작 (%d일 이내)", within_days)
    database = ctx["database"]
    async with database.session_context() as db:
        sent = await certification_crud.send_expiry_notices(db, within_days=within_days)
    logger.info("ARQ 태스크: 인증서 만료 알림 완료 (%d건)", sent)
    return {"status": "success", "notifications_sent": sent}
