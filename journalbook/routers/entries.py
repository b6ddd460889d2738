from __future__ import annotations

import asyncio
import datetime as dt
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from journalbook.background import spawn
from journalbook.database import get_db, get_session_maker
from journalbook.errors import GenerationFailed, StoreError
from journalbook.llm_client import NarrativeGenerator, get_generator
from journalbook.schemas import (
    EnhancedChapter,
    EntryContent,
    EntryDates,
    EntryRead,
    EntryUpsert,
    ErrorMessage,
    WeekEntries,
)
from journalbook.security import ensure_same_user, require_path_user, token_subject
from journalbook.services.chapter_compile import WeekChapter, compile_week
from journalbook.services.entries import get_entry, list_entry_dates, upsert_entry, week_entries
from journalbook.services.weeks import Clock, get_clock, week_of

router = APIRouter(prefix="/entries", tags=["entries"])
logger = logging.getLogger(__name__)

NO_ENTRIES_MESSAGE = "No entries this week"


@router.post("", response_model=EntryContent)
async def save_entry(
    body: EntryUpsert,
    subject: Optional[str] = Depends(token_subject),
    db: AsyncSession = Depends(get_db),
):
    ensure_same_user(subject, body.user_id)
    row = await upsert_entry(db, body.user_id, body.date, body.content)
    return EntryContent(content=row.content)


# Week routes are declared before /{userId}/{date} so "week" is never read as a user id.
@router.get("/week/{userId}", response_model=WeekEntries)
async def current_week_entries(
    user_id: str = Depends(require_path_user),
    date: Optional[dt.date] = Query(None, description="Reference day; defaults to today"),
    clock: Clock = Depends(get_clock),
    db: AsyncSession = Depends(get_db),
):
    week = week_of(date or clock.today())
    rows = await week_entries(db, user_id, week)
    return WeekEntries(
        week_start=week.start,
        week_end=week.end,
        entries=[EntryRead(date=r.entry_date, content=r.content) for r in rows],
    )


async def _compile_detached(
    session_maker: async_sessionmaker,
    generator: NarrativeGenerator,
    user_id: str,
    reference: dt.date,
) -> Optional[WeekChapter]:
    async with session_maker() as db:
        return await compile_week(db, generator, user_id, reference)


@router.post(
    "/week/{userId}/enhance",
    response_model=EnhancedChapter | ErrorMessage,
    responses={502: {"model": ErrorMessage}},
)
async def enhance_week(
    user_id: str = Depends(require_path_user),
    date: Optional[dt.date] = Query(None, description="Reference day; defaults to today"),
    clock: Clock = Depends(get_clock),
    generator: NarrativeGenerator = Depends(get_generator),
    session_maker: async_sessionmaker = Depends(get_session_maker),
):
    reference = date or clock.today()
    # The compile owns its session and is shielded: if the client goes away
    # the chapter is still written once the generator answers.
    task = spawn(
        _compile_detached(session_maker, generator, user_id, reference),
        name=f"compile:{user_id}:{week_of(reference).start}",
        expected=(GenerationFailed, StoreError),
    )
    chapter = await asyncio.shield(task)
    if chapter is None:
        return ErrorMessage(error=NO_ENTRIES_MESSAGE)
    return EnhancedChapter(
        enhanced_chapter=chapter.text,
        source=chapter.source,
        week_start=chapter.week_start,
        week_end=chapter.week_end,
    )


@router.get("/{userId}", response_model=EntryDates)
async def entry_dates(
    user_id: str = Depends(require_path_user),
    db: AsyncSession = Depends(get_db),
):
    return EntryDates(dates=await list_entry_dates(db, user_id))


@router.get("/{userId}/{date}", response_model=EntryContent)
async def read_entry(
    date: dt.date,
    user_id: str = Depends(require_path_user),
    db: AsyncSession = Depends(get_db),
):
    return EntryContent(content=await get_entry(db, user_id, date))
