# journalbook/services/entries.py
from __future__ import annotations
import logging
from datetime import date
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from journalbook.errors import StoreError
from journalbook.models import Entry
from journalbook.services.weeks import Week

logger = logging.getLogger(__name__)


async def _find(db: AsyncSession, user_id: str, entry_date: date) -> Entry | None:
    return (await db.execute(
        select(Entry).where(Entry.user_id == user_id, Entry.entry_date == entry_date)
    )).scalars().first()


async def upsert_entry(db: AsyncSession, user_id: str, entry_date: date, content: str) -> Entry:
    """Insert or overwrite the entry for (user, day). Last write wins."""
    try:
        row = await _find(db, user_id, entry_date)
        if row:
            row.content = content
            await db.commit()
            return row

        row = Entry(user_id=user_id, entry_date=entry_date, content=content)
        db.add(row)
        try:
            await db.commit()
        except IntegrityError:
            # another writer inserted the same day first; overwrite theirs
            await db.rollback()
            row = await _find(db, user_id, entry_date)
            if row is None:
                raise
            row.content = content
            await db.commit()
        return row
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("upsert_entry failed for user=%s date=%s", user_id, entry_date)
        raise StoreError("upsert_entry") from exc


async def get_entry(db: AsyncSession, user_id: str, entry_date: date) -> str:
    try:
        row = await _find(db, user_id, entry_date)
    except SQLAlchemyError as exc:
        raise StoreError("get_entry") from exc
    return row.content if row else ""


async def list_entry_dates(db: AsyncSession, user_id: str) -> List[date]:
    try:
        rows = await db.execute(
            select(Entry.entry_date)
            .where(Entry.user_id == user_id)
            .order_by(Entry.entry_date.desc())
        )
    except SQLAlchemyError as exc:
        raise StoreError("list_entry_dates") from exc
    return list(rows.scalars().all())


async def week_entries(db: AsyncSession, user_id: str, week: Week) -> List[Entry]:
    """Entries inside ``week``, oldest first."""
    try:
        rows = await db.execute(
            select(Entry)
            .where(
                Entry.user_id == user_id,
                Entry.entry_date >= week.start,
                Entry.entry_date <= week.end,
            )
            .order_by(Entry.entry_date.asc())
        )
    except SQLAlchemyError as exc:
        raise StoreError("week_entries") from exc
    return list(rows.scalars().all())
