import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from ..config import get_settings
from ..core.errors import BookingEngineError
from ..db.session import SessionLocal
from ..services import digest_service

logger = logging.getLogger(__name__)


def send_daily_digest() -> None:
    with SessionLocal() as db:
        try:
            result = digest_service.run_daily_digest(db, force=True)
        except BookingEngineError as exc:
            logger.error("Scheduled digest failed", extra={"code": exc.code})
            return
        logger.info("Scheduled digest finished", extra={"ymd": result.ymd, "count": result.count})


def get_scheduler() -> AsyncIOScheduler:
    settings = get_settings()
    scheduler = AsyncIOScheduler(timezone=settings.timezone)
    scheduler.add_job(
        send_daily_digest,
        CronTrigger(hour=0, minute=0, timezone=settings.timezone),
        id="daily_bookings_digest",
        replace_existing=True,
    )
    return scheduler
