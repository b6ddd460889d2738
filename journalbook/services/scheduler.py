# journalbook/services/scheduler.py
import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from journalbook.database import async_session_maker
from journalbook.llm_client import get_generator
from journalbook.services.automation import run_weekly_batch
from journalbook.services.login_codes import LoginCodeStore
from journalbook.services.weeks import Clock, pick_tz
from journalbook.settings.config import settings

scheduler: AsyncIOScheduler | None = None
logger = logging.getLogger(__name__)

# Sunday evening, after most people have written their last entry of the week
DEFAULT_TRIGGER = {"day_of_week": "sun", "hour": 21, "minute": 0}


def build_trigger(cron_expr: str | None, tz_name: str | None) -> CronTrigger:
    tz = pick_tz(tz_name)
    cron_expr = (cron_expr or "").strip()
    if cron_expr:
        try:
            trigger = CronTrigger.from_crontab(cron_expr, timezone=tz)
            logger.info("Weekly chapter job using WEEKLY_CRON='%s' tz=%s", cron_expr, tz_name)
            return trigger
        except ValueError:
            logger.warning("Invalid WEEKLY_CRON %r; falling back to Sunday 21:00", cron_expr)
    else:
        logger.info("Weekly chapter job using default Sunday 21:00 tz=%s (set WEEKLY_CRON to override)", tz_name)
    return CronTrigger(timezone=tz, **DEFAULT_TRIGGER)


def start_scheduler():
    global scheduler
    if scheduler or not settings.SCHEDULER_ENABLED:
        return
    scheduler = AsyncIOScheduler(timezone=pick_tz(settings.APP_TZ))
    scheduler.add_job(
        job_weekly_chapters,
        build_trigger(settings.WEEKLY_CRON, settings.APP_TZ),
        id="weekly_chapters",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    scheduler.add_job(
        job_purge_login_codes,
        IntervalTrigger(minutes=max(1, settings.LOGIN_CODE_PURGE_MINUTES)),
        id="purge_login_codes",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    scheduler.start()
    logger.info("Weekly scheduler started")


def stop_scheduler():
    global scheduler
    if scheduler:
        scheduler.shutdown(wait=False)
        scheduler = None


async def job_weekly_chapters():
    clock = Clock()
    report = await run_weekly_batch(async_session_maker, get_generator(), clock.now(), clock=clock)
    if not report.ran:
        # a WEEKLY_CRON that fires on other days is a no-op
        logger.info("Weekly chapter job did nothing: %s", report.reason)


async def job_purge_login_codes() -> int:
    async with async_session_maker() as db:
        removed = await LoginCodeStore(db).purge_expired()
    if removed:
        logger.info("Purged %d expired login codes", removed)
    return removed
