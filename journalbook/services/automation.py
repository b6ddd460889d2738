# journalbook/services/automation.py
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from journalbook.errors import GenerationFailed, StoreError
from journalbook.llm_client import NarrativeGenerator
from journalbook.services.chapter_compile import compile_week_span
from journalbook.services.profiles import list_profile_user_ids
from journalbook.services.weeks import Clock, week_ending

logger = logging.getLogger(__name__)

GENERATED = "generated"
CACHED = "cached"
NO_ENTRIES = "no_entries"
FAILED = "failed"


@dataclass
class UserOutcome:
    user_id: str
    outcome: str
    error: Optional[str] = None


@dataclass
class BatchReport:
    ran: bool
    reason: Optional[str] = None
    week_start: Optional[date] = None
    week_end: Optional[date] = None
    results: List[UserOutcome] = field(default_factory=list)

    def _count(self, *outcomes: str) -> int:
        return sum(1 for r in self.results if r.outcome in outcomes)

    @property
    def processed(self) -> int:
        return self._count(GENERATED)

    @property
    def skipped(self) -> int:
        return self._count(CACHED, NO_ENTRIES)

    @property
    def failed(self) -> int:
        return self._count(FAILED)


async def run_weekly_batch(
    session_maker: async_sessionmaker,
    generator: NarrativeGenerator,
    execution_time: datetime,
    clock: Optional[Clock] = None,
) -> BatchReport:
    """Compile the week that ends on ``execution_time`` for every profiled user.

    Only runs when ``execution_time`` falls on a Sunday in the reference time
    zone. Each user gets their own session; one user's failure is recorded
    and the batch moves on.
    """
    clock = clock or Clock()
    local_day = clock.local(execution_time).date()
    if local_day.isoweekday() != 7:
        logger.info("Weekly batch skipped: %s is not a Sunday (%s)", local_day, clock.tz)
        return BatchReport(ran=False, reason="not Sunday")

    week = week_ending(local_day)
    report = BatchReport(ran=True, week_start=week.start, week_end=week.end)

    async with session_maker() as db:
        user_ids = await list_profile_user_ids(db)

    for user_id in user_ids:
        try:
            async with session_maker() as db:
                chapter = await compile_week_span(db, generator, user_id, week)
        except (GenerationFailed, StoreError, SQLAlchemyError) as e:
            logger.warning("Weekly batch: user=%s week=%s failed: %s", user_id, week.start, e)
            report.results.append(UserOutcome(user_id, FAILED, type(e).__name__))
            continue
        if chapter is None:
            report.results.append(UserOutcome(user_id, NO_ENTRIES))
        elif chapter.source == "cached":
            report.results.append(UserOutcome(user_id, CACHED))
        else:
            report.results.append(UserOutcome(user_id, GENERATED))

    logger.info(
        "Weekly batch %s..%s done: generated=%d skipped=%d failed=%d",
        week.start, week.end, report.processed, report.skipped, report.failed,
    )
    return report
