from datetime import date, datetime, timezone

import pytest
from sqlalchemy import func, select

from conftest import FakeGenerator
from journalbook.models import Chapter
from journalbook.services.automation import run_weekly_batch
from journalbook.services.entries import upsert_entry
from journalbook.services.profiles import upsert_profile
from journalbook.services.weeks import Clock

SUNDAY_EVENING = datetime(2024, 1, 7, 21, 0, tzinfo=timezone.utc)


async def _seed(session_maker):
    async with session_maker() as db:
        for uid in ("alice", "bob", "carol", "dave"):
            await upsert_profile(db, uid, {"name": uid.title()})
        await upsert_entry(db, "alice", date(2024, 1, 2), "alice tuesday")
        await upsert_entry(db, "bob", date(2024, 1, 3), "bob wednesday")
        await upsert_entry(db, "carol", date(2024, 1, 5), "carol friday")
        # dave wrote nothing this week
        await upsert_entry(db, "dave", date(2023, 12, 30), "dave last week")
        # no profile: automation never sees this user
        await upsert_entry(db, "ghost", date(2024, 1, 4), "ghost thursday")


@pytest.mark.asyncio
async def test_non_sunday_is_a_noop(session_maker):
    await _seed(session_maker)
    gen = FakeGenerator()

    report = await run_weekly_batch(session_maker, gen, datetime(2024, 1, 6, 21, 0, tzinfo=timezone.utc), Clock("UTC"))

    assert report.ran is False
    assert report.reason == "not Sunday"
    assert (report.processed, report.skipped, report.failed) == (0, 0, 0)
    assert report.results == []
    assert gen.calls == []


@pytest.mark.asyncio
async def test_sunday_compiles_every_profiled_user(session_maker):
    await _seed(session_maker)
    async with session_maker() as db:
        db.add(Chapter(user_id="carol", week_start=date(2024, 1, 1), week_end=date(2024, 1, 7), content="already here"))
        await db.commit()

    report = await run_weekly_batch(session_maker, FakeGenerator(), SUNDAY_EVENING, Clock("UTC"))

    assert report.ran is True
    assert (report.week_start, report.week_end) == (date(2024, 1, 1), date(2024, 1, 7))
    outcomes = {r.user_id: r.outcome for r in report.results}
    assert outcomes == {"alice": "generated", "bob": "generated", "carol": "cached", "dave": "no_entries"}
    assert (report.processed, report.skipped, report.failed) == (2, 2, 0)

    async with session_maker() as db:
        users = (await db.execute(select(Chapter.user_id).order_by(Chapter.user_id))).scalars().all()
    assert users == ["alice", "bob", "carol"]


@pytest.mark.asyncio
async def test_one_failure_does_not_stop_the_batch(session_maker):
    await _seed(session_maker)
    gen = FakeGenerator(fail_when="alice")

    report = await run_weekly_batch(session_maker, gen, SUNDAY_EVENING, Clock("UTC"))

    outcomes = {r.user_id: r.outcome for r in report.results}
    assert outcomes["alice"] == "failed"
    assert outcomes["bob"] == "generated"
    assert outcomes["carol"] == "generated"
    assert report.failed == 1

    async with session_maker() as db:
        alice_rows = (await db.execute(
            select(func.count()).select_from(Chapter).where(Chapter.user_id == "alice")
        )).scalar()
    assert alice_rows == 0


@pytest.mark.asyncio
async def test_second_run_only_reports_cached(session_maker):
    await _seed(session_maker)
    gen = FakeGenerator()
    await run_weekly_batch(session_maker, gen, SUNDAY_EVENING, Clock("UTC"))
    calls_after_first = len(gen.calls)

    report = await run_weekly_batch(session_maker, gen, SUNDAY_EVENING, Clock("UTC"))

    assert report.processed == 0
    assert len(gen.calls) == calls_after_first


@pytest.mark.asyncio
async def test_sunday_gate_uses_reference_time_zone(session_maker):
    await _seed(session_maker)
    # Monday 02:00 UTC is Sunday 21:00 in New York
    monday_utc = datetime(2024, 1, 8, 2, 0, tzinfo=timezone.utc)

    utc_report = await run_weekly_batch(session_maker, FakeGenerator(), monday_utc, Clock("UTC"))
    ny_report = await run_weekly_batch(session_maker, FakeGenerator(), monday_utc, Clock("America/New_York"))

    assert utc_report.ran is False
    assert ny_report.ran is True
    assert ny_report.week_end == date(2024, 1, 7)


def test_default_trigger_is_sunday_evening():
    from apscheduler.triggers.cron import CronTrigger
    from journalbook.services.scheduler import build_trigger

    trigger = build_trigger(None, "UTC")
    assert isinstance(trigger, CronTrigger)
    fields = {f.name: str(f) for f in trigger.fields}
    assert (fields["day_of_week"], fields["hour"], fields["minute"]) == ("sun", "21", "0")


def test_bad_cron_falls_back_to_default():
    from journalbook.services.scheduler import build_trigger

    trigger = build_trigger("not a cron", "UTC")
    fields = {f.name: str(f) for f in trigger.fields}
    assert fields["day_of_week"] == "sun"


def test_scheduler_stays_off_when_disabled(monkeypatch):
    from journalbook.services import scheduler
    from journalbook.settings.config import settings

    monkeypatch.setattr(settings, "SCHEDULER_ENABLED", False)
    scheduler.start_scheduler()
    assert scheduler.scheduler is None
