from datetime import date

import pytest
from sqlalchemy import func, select

from journalbook.models import Entry
from journalbook.services.entries import get_entry, list_entry_dates, upsert_entry, week_entries
from journalbook.services.weeks import week_of


@pytest.mark.asyncio
async def test_second_write_overwrites_same_day(db):
    await upsert_entry(db, "u1", date(2024, 1, 1), "first draft")
    await upsert_entry(db, "u1", date(2024, 1, 1), "final words")

    count = (await db.execute(
        select(func.count()).select_from(Entry).where(Entry.user_id == "u1")
    )).scalar()
    assert count == 1
    assert await get_entry(db, "u1", date(2024, 1, 1)) == "final words"


@pytest.mark.asyncio
async def test_missing_entry_reads_as_empty_string(db):
    assert await get_entry(db, "nobody", date(2024, 1, 1)) == ""


@pytest.mark.asyncio
async def test_dates_listed_newest_first_per_user(db):
    for day in (3, 1, 2):
        await upsert_entry(db, "u1", date(2024, 1, day), f"day {day}")
    await upsert_entry(db, "u2", date(2024, 1, 9), "other user")

    assert await list_entry_dates(db, "u1") == [date(2024, 1, 3), date(2024, 1, 2), date(2024, 1, 1)]


@pytest.mark.asyncio
async def test_week_entries_are_bounded_and_ascending(db):
    await upsert_entry(db, "u1", date(2023, 12, 31), "previous sunday")
    await upsert_entry(db, "u1", date(2024, 1, 7), "sunday")
    await upsert_entry(db, "u1", date(2024, 1, 1), "monday")
    await upsert_entry(db, "u1", date(2024, 1, 8), "next monday")

    rows = await week_entries(db, "u1", week_of(date(2024, 1, 3)))
    assert [r.content for r in rows] == ["monday", "sunday"]
