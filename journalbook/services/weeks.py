# journalbook/services/weeks.py
from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging

from journalbook.settings.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Week:
    start: date   # Monday
    end: date     # Sunday

    def __contains__(self, d: date) -> bool:
        return self.start <= d <= self.end


def week_of(d: date) -> Week:
    """Monday..Sunday span containing ``d``.

    With Sunday counted as weekday 0, Monday is ``d - ((weekday + 6) % 7)``.
    """
    sunday_zero = d.isoweekday() % 7
    monday = d - timedelta(days=(sunday_zero + 6) % 7)
    return Week(start=monday, end=monday + timedelta(days=6))


def week_ending(d: date) -> Week:
    """The week whose Sunday is ``d`` (``d`` must be a Sunday)."""
    if d.isoweekday() != 7:
        raise ValueError(f"{d} is not a Sunday")
    return Week(start=d - timedelta(days=6), end=d)


def pick_tz(name: Optional[str]):
    try:
        return ZoneInfo(name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown time zone %r; falling back to UTC", name)
        return timezone.utc


class Clock:
    """Wall clock bound to the app's reference time zone."""

    def __init__(self, tz_name: Optional[str] = None):
        self.tz = pick_tz(tz_name or settings.APP_TZ)

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()

    def local(self, moment: datetime) -> datetime:
        # naive datetimes are taken as UTC
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment.astimezone(self.tz)


class FixedClock(Clock):
    """Clock pinned to one instant; used by tests and manual backfills."""

    def __init__(self, moment: datetime, tz_name: Optional[str] = None):
        super().__init__(tz_name)
        self._moment = self.local(moment)

    def now(self) -> datetime:
        return self._moment


def get_clock() -> Clock:
    return Clock()


__all__ = ["Week", "week_of", "week_ending", "Clock", "FixedClock", "get_clock", "pick_tz"]
