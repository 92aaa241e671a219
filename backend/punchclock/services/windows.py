"""Calendar helpers shared by the resolver, eligibility checks and dashboards.

Instants are naive UTC throughout. Calendar questions (what day is it, when
does the week start) are answered in the schedule timezone.
"""
from dataclasses import dataclass
from datetime import datetime, date, time, timedelta, timezone
from typing import Optional

import pytz
from dateutil.relativedelta import relativedelta

from punchclock.core.config import settings

# Index 0 = Sunday, matching WEEK_STARTS_ON
WEEKDAYS = ["sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday"]

VIEWS = ("day", "week", "month", "custom")


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_timezone(name: Optional[str] = None):
    return pytz.timezone(name or settings.SCHEDULE_TIMEZONE)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(pytz.utc).replace(tzinfo=None)


def local_date(instant: datetime, tz) -> date:
    return pytz.utc.localize(instant).astimezone(tz).date()


def local_to_utc(day: date, at: time, tz) -> datetime:
    """Wall-clock ``at`` on ``day`` in ``tz``, as naive UTC."""
    return tz.localize(datetime.combine(day, at)).astimezone(pytz.utc).replace(tzinfo=None)


def local_midnight(day: date, tz) -> datetime:
    return local_to_utc(day, time.min, tz)


def weekday_index(day: date) -> int:
    """0 = Sunday .. 6 = Saturday."""
    return (day.weekday() + 1) % 7


def weekday_name(day: date) -> str:
    return WEEKDAYS[weekday_index(day)]


def week_start_date(day: date, week_starts_on: int) -> date:
    return day - timedelta(days=(weekday_index(day) - week_starts_on) % 7)


def _as_date(value) -> date:
    return value.date() if isinstance(value, datetime) else value


@dataclass(frozen=True)
class AggregationWindow:
    """Half-open [start, end) range of naive UTC instants."""
    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end

    def previous(self, days: int = 7) -> "AggregationWindow":
        delta = timedelta(days=days)
        return AggregationWindow(start=self.start - delta, end=self.start)

    def local_days(self, tz) -> list:
        first = local_date(self.start, tz)
        last = local_date(self.end - timedelta(microseconds=1), tz)
        days = []
        current = first
        while current <= last:
            days.append(current)
            current += timedelta(days=1)
        return days


def build_window(
    view: str,
    anchor,
    week_starts_on: Optional[int] = None,
    tz=None,
    custom_start=None,
    custom_end=None,
) -> AggregationWindow:
    """Window for a dashboard view.

    ``anchor`` is a naive UTC instant or a calendar date. ``custom`` takes
    inclusive start/end dates.
    """
    tz = tz or get_timezone()
    if week_starts_on is None:
        week_starts_on = settings.WEEK_STARTS_ON
    anchor_day = local_date(anchor, tz) if isinstance(anchor, datetime) else anchor

    if view == "day":
        first, last = anchor_day, anchor_day + timedelta(days=1)
    elif view == "week":
        first = week_start_date(anchor_day, week_starts_on)
        last = first + timedelta(days=7)
    elif view == "month":
        first = anchor_day.replace(day=1)
        last = first + relativedelta(months=1)
    elif view == "custom":
        if custom_start is None or custom_end is None:
            raise ValueError("custom view needs both a start and an end date")
        first = _as_date(custom_start)
        last = _as_date(custom_end) + timedelta(days=1)
        if last <= first:
            raise ValueError("custom view end date is before its start date")
    else:
        raise ValueError(f"Unknown view: {view}")

    return AggregationWindow(start=local_midnight(first, tz), end=local_midnight(last, tz))


def week_window(instant: datetime, week_starts_on: Optional[int] = None, tz=None) -> AggregationWindow:
    """Calendar week containing ``instant``."""
    return build_window("week", instant, week_starts_on=week_starts_on, tz=tz)
