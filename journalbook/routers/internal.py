from __future__ import annotations

import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import async_sessionmaker

from journalbook.database import get_session_maker
from journalbook.errors import Forbidden
from journalbook.llm_client import NarrativeGenerator, get_generator
from journalbook.schemas import BatchReportRead, UserOutcomeRead
from journalbook.services.automation import run_weekly_batch
from journalbook.services.weeks import Clock, get_clock
from journalbook.settings.config import settings

router = APIRouter(prefix="/internal", tags=["internal"])


def require_automation_secret(x_automation_secret: Optional[str] = Header(None)) -> None:
    expected = (settings.AUTOMATION_SECRET or "").encode()
    given = (x_automation_secret or "").encode()
    if not expected or not hmac.compare_digest(expected, given):
        raise Forbidden("bad automation secret")


@router.post("/run-weekly", response_model=BatchReportRead, dependencies=[Depends(require_automation_secret)])
async def run_weekly(
    clock: Clock = Depends(get_clock),
    generator: NarrativeGenerator = Depends(get_generator),
    session_maker: async_sessionmaker = Depends(get_session_maker),
):
    report = await run_weekly_batch(session_maker, generator, clock.now(), clock=clock)
    return BatchReportRead(
        ran=report.ran,
        reason=report.reason,
        week_start=report.week_start,
        week_end=report.week_end,
        processed=report.processed,
        skipped=report.skipped,
        failed=report.failed,
        results=[UserOutcomeRead(user_id=r.user_id, outcome=r.outcome, error=r.error) for r in report.results],
    )
