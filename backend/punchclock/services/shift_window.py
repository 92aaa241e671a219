"""Shift window resolution.

A shift runs on a weekday when its ``default_schedule`` has an entry for
that day with both a start and an end time. The employee may work it when
the day's roster is empty, or lists them as a bare id (recurring), or has an
approved entry for them whose date is null (recurring) or that exact date.
End times at or before the start time roll over to the next day.

Roster entries come in two shapes and are normalised once on the way in:
bare strings (or integer ids) become LegacyRosterEntry, dicts become
ExplicitRosterEntry. A roster with items but no usable entry admits nobody.
When both exist for the same (employee, date) the explicit entry wins.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, date, time, timedelta
from typing import Optional, Union

from dateutil import parser as date_parser

from punchclock.services.windows import (
    WEEKDAYS, get_timezone, local_date, local_to_utc, weekday_name,
)

logger = logging.getLogger(__name__)

APPROVED = "approved"
ROSTER_STATUSES = ("pending", "approved", "rejected", "cancelled")


@dataclass(frozen=True)
class LegacyRosterEntry:
    employee_id: str


@dataclass(frozen=True)
class ExplicitRosterEntry:
    employee_id: str
    roster_date: Optional[date] = None
    status: str = APPROVED


RosterEntry = Union[LegacyRosterEntry, ExplicitRosterEntry]


def _parse_roster_date(value) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date_parser.isoparse(str(value)).date()


def _normalize_entry(item) -> Optional[RosterEntry]:
    if isinstance(item, int) and not isinstance(item, bool):
        item = str(item)
    if isinstance(item, str):
        return LegacyRosterEntry(employee_id=item) if item else None
    if isinstance(item, dict):
        employee_id = item.get("employeeId") or item.get("employee_id")
        if not employee_id:
            return None
        try:
            entry_date = _parse_roster_date(item.get("date"))
        except (ValueError, OverflowError):
            logger.warning(f"Skipping roster entry for {employee_id} with bad date {item.get('date')!r}")
            return None
        status = (item.get("status") or APPROVED).lower()
        return ExplicitRosterEntry(employee_id=str(employee_id), roster_date=entry_date, status=status)
    return None


def normalize_roster(raw) -> list:
    """Tagged, de-duplicated roster entries in their original order."""
    entries = {}
    for item in raw or []:
        entry = _normalize_entry(item)
        if entry is None:
            continue
        key = (entry.employee_id, getattr(entry, "roster_date", None))
        existing = entries.get(key)
        if isinstance(existing, ExplicitRosterEntry) and isinstance(entry, LegacyRosterEntry):
            continue
        entries[key] = entry
    return list(entries.values())


def roster_allows(entries: list, employee_id: str, on_date: Optional[date] = None) -> bool:
    """Whether ``employee_id`` may work a day with this roster.

    ``on_date=None`` skips the date match (any approved entry counts).
    """
    if not entries:
        return True
    for entry in entries:
        if entry.employee_id != employee_id:
            continue
        if isinstance(entry, LegacyRosterEntry):
            return True
        if entry.status != APPROVED:
            continue
        if on_date is None or entry.roster_date is None or entry.roster_date == on_date:
            return True
    return False


def raw_roster_allows(raw, employee_id: str, on_date: Optional[date] = None) -> bool:
    """``roster_allows`` over a roster as stored.

    A non-empty roster with no usable entry admits nobody rather than everybody.
    """
    entries = normalize_roster(raw)
    if raw and not entries:
        logger.warning(f"Roster {raw!r} has no usable entries; nobody is rostered")
        return False
    return roster_allows(entries, employee_id, on_date)


@dataclass(frozen=True)
class ShiftWindow:
    """Resolved [start, end) of one shift on one day, naive UTC."""
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    shift_slug: Optional[str] = None

    def __bool__(self):
        return self.start is not None and self.end is not None

    def contains(self, instant: datetime) -> bool:
        return bool(self) and self.start <= instant < self.end

    def has_ended(self, instant: datetime) -> bool:
        return bool(self) and instant >= self.end


EMPTY_WINDOW = ShiftWindow()


class ShiftWindowResolver:
    """Resolves shift schedules in one timezone (the one schedules are authored in)."""

    def __init__(self, tz=None):
        if tz is None or isinstance(tz, str):
            tz = get_timezone(tz)
        self.tz = tz

    # ── Schedule lookups ────────────────────────────────────────────────

    def _parse_time_of_day(self, value) -> Optional[time]:
        if value is None or value == "":
            return None
        if isinstance(value, time):
            return value
        if isinstance(value, datetime):
            parsed = value
        else:
            try:
                parsed = date_parser.parse(str(value))
            except (ValueError, OverflowError):
                logger.warning(f"Unparseable schedule time {value!r}")
                return None
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(self.tz)
        return parsed.time()

    def day_schedule(self, shift, day: date) -> Optional[dict]:
        entry = (shift.default_schedule or {}).get(weekday_name(day))
        return entry if isinstance(entry, dict) else None

    def within_shift_dates(self, shift, day: date) -> bool:
        if shift.shift_start_date and day < shift.shift_start_date:
            return False
        if shift.shift_end_date and day > shift.shift_end_date:
            return False
        return True

    # ── Resolution ──────────────────────────────────────────────────────

    def resolve_shift_for_date(self, job, employee_id, day: date, shift=None) -> ShiftWindow:
        """Window of ``shift`` on ``day`` for ``employee_id``.

        Without a shift, the first of the job's shifts that resolves is used.
        ``employee_id=None`` skips the roster check.
        """
        if shift is None:
            for candidate in job.shifts:
                window = self.resolve_shift_for_date(job, employee_id, day, candidate)
                if window:
                    return window
            return EMPTY_WINDOW

        if not self.within_shift_dates(shift, day):
            return EMPTY_WINDOW

        entry = self.day_schedule(shift, day)
        if entry is None:
            return EMPTY_WINDOW

        start_time = self._parse_time_of_day(entry.get("start"))
        end_time = self._parse_time_of_day(entry.get("end"))
        if start_time is None or end_time is None:
            return EMPTY_WINDOW

        if employee_id is not None:
            if not raw_roster_allows(entry.get("roster"), employee_id, day):
                return EMPTY_WINDOW

        end_day = day + timedelta(days=1) if end_time <= start_time else day
        return ShiftWindow(
            start=local_to_utc(day, start_time, self.tz),
            end=local_to_utc(end_day, end_time, self.tz),
            shift_slug=shift.slug,
        )

    def resolve_for_instant(self, job, employee_id, now: datetime, shift=None) -> ShiftWindow:
        """The shift window that applies at ``now``.

        An overnight shift from yesterday that is still running wins; otherwise
        today's window containing ``now``, then the next one to start, then
        the first one of the day.
        """
        today = local_date(now, self.tz)
        shifts = [shift] if shift is not None else list(job.shifts)

        for candidate in shifts:
            window = self.resolve_shift_for_date(job, employee_id, today - timedelta(days=1), candidate)
            if window.contains(now):
                return window

        todays = [
            w for w in (self.resolve_shift_for_date(job, employee_id, today, s) for s in shifts) if w
        ]
        if not todays:
            return EMPTY_WINDOW
        for window in todays:
            if window.contains(now):
                return window
        upcoming = sorted((w for w in todays if w.start > now), key=lambda w: w.start)
        return upcoming[0] if upcoming else todays[0]

    def job_has_shift_for_user(self, job, employee_id) -> bool:
        """Coarse gate: does any shift, on any weekday, roster this employee?"""
        for shift in job.shifts:
            schedule = shift.default_schedule or {}
            for day_name in WEEKDAYS:
                entry = schedule.get(day_name)
                if not isinstance(entry, dict):
                    continue
                if raw_roster_allows(entry.get("roster"), employee_id):
                    return True
        return False

    def scheduled_instances(self, job, employee_id, window, until: Optional[datetime] = None) -> list:
        """Every shift window starting inside ``window`` (and before ``until``)."""
        instances = []
        for day in window.local_days(self.tz):
            for shift in job.shifts:
                resolved = self.resolve_shift_for_date(job, employee_id, day, shift)
                if not resolved or not window.contains(resolved.start):
                    continue
                if until is not None and resolved.start >= until:
                    continue
                instances.append(resolved)
        return instances

    # ── Clock-in helpers ────────────────────────────────────────────────

    def calculated_time_in(self, job, employee_id, now: datetime, shift=None) -> datetime:
        """Clock-in time to record.

        Inside the early clock-in allowance before a shift starts, the time
        snaps to the shift start when the job auto-adjusts early clock-ins.
        """
        early_minutes = job.config.get("earlyClockInMinutes") or 0
        if not early_minutes or not job.config.get("autoAdjustEarlyClockIn"):
            return now
        window = self.resolve_for_instant(job, employee_id, now, shift)
        if not window:
            return now
        earliest = window.start - timedelta(minutes=early_minutes)
        if earliest <= now <= window.start:
            return window.start
        return now

    def has_forgotten_to_clock_out(self, job, punch, now: datetime) -> bool:
        """Open punch whose day's shifts have all ended."""
        if punch.time_out is not None:
            return False
        day = local_date(punch.time_in, self.tz)
        windows = [w for w in (self.resolve_shift_for_date(job, None, day, s) for s in job.shifts) if w]
        if not windows:
            return False
        return all(w.has_ended(now) for w in windows)
