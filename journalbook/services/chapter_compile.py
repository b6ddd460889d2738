# journalbook/services/chapter_compile.py
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from journalbook.errors import GenerationFailed, StoreError
from journalbook.llm_client import NarrativeGenerator, rewrite_week
from journalbook.models import Chapter, Entry
from journalbook.services.entries import week_entries
from journalbook.services.weeks import Week, week_of

logger = logging.getLogger(__name__)


@dataclass
class WeekChapter:
    text: str
    source: str          # "cached" | "generated"
    week_start: date
    week_end: date


# ---------- helpers ----------

def join_entries(entries: List[Entry]) -> str:
    """Entry texts in the given order, stripped, one blank line apart. No dates."""
    parts = [(e.content or "").strip() for e in entries]
    return "\n\n".join(p for p in parts if p)


async def get_chapter(db: AsyncSession, user_id: str, week_start: date) -> Optional[Chapter]:
    try:
        return (await db.execute(
            select(Chapter).where(Chapter.user_id == user_id, Chapter.week_start == week_start)
        )).scalars().first()
    except SQLAlchemyError as exc:
        raise StoreError("get_chapter") from exc


async def list_chapters(db: AsyncSession, user_id: str) -> List[Chapter]:
    """All of a user's chapters, oldest week first."""
    try:
        rows = await db.execute(
            select(Chapter)
            .where(Chapter.user_id == user_id)
            .order_by(Chapter.week_start.asc())
        )
    except SQLAlchemyError as exc:
        raise StoreError("list_chapters") from exc
    return list(rows.scalars().all())


def _cached(row: Chapter) -> WeekChapter:
    return WeekChapter(text=row.content, source="cached", week_start=row.week_start, week_end=row.week_end)


# ---------- compile service ----------

async def compile_week_span(
    db: AsyncSession,
    generator: NarrativeGenerator,
    user_id: str,
    week: Week,
) -> Optional[WeekChapter]:
    """Fetch the chapter for ``week`` or generate and store it.

    Returns ``None`` when the week has no entries; nothing is stored then.
    """
    existing = await get_chapter(db, user_id, week.start)
    if existing:
        return _cached(existing)

    entries = await week_entries(db, user_id, week)
    raw_text = join_entries(entries)
    if not raw_text:
        return None

    text = await rewrite_week(generator, raw_text)
    if not text.strip():
        raise GenerationFailed(f"empty chapter for user={user_id} week={week.start}")

    row = Chapter(
        user_id=user_id,
        week_start=week.start,
        week_end=week.end,
        content=text,
        model_name=getattr(generator, "model_name", None),
    )
    db.add(row)
    try:
        await db.commit()
    except IntegrityError:
        # A concurrent compile for the same week stored its chapter first.
        # Keep theirs; the text we just generated is dropped.
        await db.rollback()
        winner = await get_chapter(db, user_id, week.start)
        if winner is None:
            raise StoreError("compile_week")
        logger.info("Chapter race resolved for user=%s week=%s; using stored row", user_id, week.start)
        return _cached(winner)
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Saving chapter failed for user=%s week=%s", user_id, week.start)
        raise StoreError("compile_week") from exc

    logger.info("Generated chapter for user=%s week=%s from %d entries", user_id, week.start, len(entries))
    return WeekChapter(text=row.content, source="generated", week_start=row.week_start, week_end=row.week_end)


async def compile_week(
    db: AsyncSession,
    generator: NarrativeGenerator,
    user_id: str,
    reference_date: date,
) -> Optional[WeekChapter]:
    return await compile_week_span(db, generator, user_id, week_of(reference_date))
