from datetime import date, datetime

from punchclock.models import Punch, Shift
from punchclock.services.shift_window import (
    ShiftWindowResolver, LegacyRosterEntry, ExplicitRosterEntry, normalize_roster, raw_roster_allows, roster_allows,
)

from conftest import build_job, schedule

resolver = ShiftWindowResolver("America/Chicago")

WEDNESDAY = date(2026, 2, 4)


def _job(default_schedule, **shift_fields):
    return build_job(shifts=[Shift(slug="day", default_schedule=default_schedule, **shift_fields)])


def test_resolves_local_times_to_utc():
    job = _job(schedule())
    window = resolver.resolve_shift_for_date(job, "A-1", WEDNESDAY, job.shifts[0])
    assert window.start == datetime(2026, 2, 4, 15, 0)
    assert window.end == datetime(2026, 2, 4, 23, 0)
    assert window.shift_slug == "day"


def test_no_schedule_for_weekday():
    job = _job(schedule(days=["monday"]))
    assert not resolver.resolve_shift_for_date(job, "A-1", WEDNESDAY, job.shifts[0])


def test_missing_start_or_end():
    job = _job({"wednesday": {"start": "09:00", "end": None, "roster": []}})
    assert not resolver.resolve_shift_for_date(job, "A-1", WEDNESDAY, job.shifts[0])


def test_iso_datetime_schedule_times():
    job = _job({"wednesday": {"start": "2025-01-01T15:00:00Z", "end": "2025-01-01T23:00:00Z"}})
    window = resolver.resolve_shift_for_date(job, "A-1", WEDNESDAY, job.shifts[0])
    assert window.start == datetime(2026, 2, 4, 15, 0)


def test_overnight_shift_ends_next_day():
    job = _job(schedule(start="22:00", end="06:00", days=["wednesday"]))
    window = resolver.resolve_shift_for_date(job, "A-1", WEDNESDAY, job.shifts[0])
    assert window.start == datetime(2026, 2, 5, 4, 0)
    assert window.end == datetime(2026, 2, 5, 12, 0)


def test_shift_date_bounds():
    job = _job(schedule(), shift_start_date=date(2026, 2, 1), shift_end_date=date(2026, 2, 3))
    shift = job.shifts[0]
    assert resolver.resolve_shift_for_date(job, "A-1", date(2026, 2, 3), shift)
    assert not resolver.resolve_shift_for_date(job, "A-1", WEDNESDAY, shift)
    assert not resolver.resolve_shift_for_date(job, "A-1", date(2026, 1, 31), shift)


def test_empty_roster_is_open_to_everyone():
    job = _job(schedule(roster=[]))
    assert resolver.resolve_shift_for_date(job, "anyone", WEDNESDAY, job.shifts[0])


def test_legacy_roster_entry_is_recurring():
    job = _job(schedule(roster=["A-1"]))
    assert resolver.resolve_shift_for_date(job, "A-1", WEDNESDAY, job.shifts[0])
    assert resolver.resolve_shift_for_date(job, "A-1", date(2026, 2, 11), job.shifts[0])
    assert not resolver.resolve_shift_for_date(job, "A-2", WEDNESDAY, job.shifts[0])


def test_dated_entry_authorizes_only_that_date():
    default_schedule = {
        "monday": {"start": "09:00", "end": "17:00", "roster": ["A-1"]},
        "wednesday": {"start": "09:00", "end": "17:00", "roster": [
            {"employeeId": "A-1", "date": "2026-02-04", "status": "approved"},
        ]},
    }
    job = _job(default_schedule)
    shift = job.shifts[0]

    assert resolver.resolve_shift_for_date(job, "A-1", WEDNESDAY, shift)
    assert not resolver.resolve_shift_for_date(job, "A-1", date(2026, 2, 11), shift)
    assert not resolver.resolve_shift_for_date(job, "A-1", date(2026, 1, 28), shift)
    # the recurring Monday entry is unaffected
    assert resolver.resolve_shift_for_date(job, "A-1", date(2026, 2, 2), shift)


def test_roster_statuses():
    def allowed(entry):
        job = _job(schedule(roster=[entry], days=["wednesday"]))
        return bool(resolver.resolve_shift_for_date(job, "A-1", WEDNESDAY, job.shifts[0]))

    assert allowed({"employeeId": "A-1", "date": None, "status": "approved"})
    assert allowed({"employeeId": "A-1"})
    assert not allowed({"employeeId": "A-1", "date": None, "status": "pending"})
    assert not allowed({"employeeId": "A-1", "date": None, "status": "rejected"})
    assert not allowed({"employeeId": "A-1", "date": "2026-02-04", "status": "cancelled"})


def test_explicit_entry_wins_over_legacy():
    entries = normalize_roster(["A-1", {"employeeId": "A-1", "date": None, "status": "rejected"}, "A-2"])
    assert entries == [
        ExplicitRosterEntry(employee_id="A-1", roster_date=None, status="rejected"),
        LegacyRosterEntry(employee_id="A-2"),
    ]
    assert roster_allows(entries, "A-1") is False
    assert roster_allows(entries, "A-2") is True

    # order does not matter
    entries = normalize_roster([{"employeeId": "A-1", "status": "rejected"}, "A-1"])
    assert roster_allows(entries, "A-1") is False


def test_normalize_skips_junk():
    entries = normalize_roster(["", None, True, 4.5, {"status": "approved"}, {"employeeId": "A-1", "date": "garbage"}])
    assert entries == []


def test_numeric_roster_ids():
    assert normalize_roster([12345]) == [LegacyRosterEntry(employee_id="12345")]
    job = _job(schedule(roster=[12345]))
    assert resolver.resolve_shift_for_date(job, "12345", WEDNESDAY, job.shifts[0])
    assert not resolver.resolve_shift_for_date(job, "A-1", WEDNESDAY, job.shifts[0])


def test_roster_of_only_junk_admits_nobody():
    job = _job(schedule(roster=[None, {"status": "approved"}]))
    assert not resolver.resolve_shift_for_date(job, "A-1", WEDNESDAY, job.shifts[0])
    assert not resolver.job_has_shift_for_user(job, "A-1")
    assert not raw_roster_allows([4.5], "A-1")
    assert raw_roster_allows([], "A-1")
    assert raw_roster_allows(None, "A-1")


def test_job_has_shift_for_user():
    assert resolver.job_has_shift_for_user(_job(schedule(roster=[])), "A-1")
    assert resolver.job_has_shift_for_user(_job(schedule(roster=["A-1"])), "A-1")
    assert not resolver.job_has_shift_for_user(_job(schedule(roster=["A-9"])), "A-1")
    dated = _job(schedule(roster=[{"employeeId": "A-1", "date": "2030-01-01"}], days=["tuesday"]))
    assert resolver.job_has_shift_for_user(dated, "A-1")
    assert not resolver.job_has_shift_for_user(_job({}), "A-1")


def test_resolve_for_instant_prefers_running_overnight_shift():
    job = _job(schedule(start="22:00", end="06:00", days=["wednesday", "thursday"]))
    # 04:00 Thursday in Chicago: Wednesday's night shift is still running
    now = datetime(2026, 2, 5, 10, 0)
    window = resolver.resolve_for_instant(job, "A-1", now)
    assert window.start == datetime(2026, 2, 5, 4, 0)
    assert window.contains(now)


def test_resolve_for_instant_picks_next_shift_of_the_day():
    job = build_job(shifts=[
        Shift(slug="early", default_schedule=schedule(start="06:00", end="09:00")),
        Shift(slug="late", default_schedule=schedule(start="13:00", end="18:00")),
    ])
    # 10:00 in Chicago: early has ended, late is next
    window = resolver.resolve_for_instant(job, "A-1", datetime(2026, 2, 4, 16, 0))
    assert window.shift_slug == "late"


def test_scheduled_instances():
    from punchclock.services.windows import build_window

    job = _job(schedule(days=["monday", "tuesday", "wednesday", "thursday", "friday"]))
    week = build_window("week", WEDNESDAY, week_starts_on=1, tz=resolver.tz)
    assert len(resolver.scheduled_instances(job, "A-1", week)) == 5
    # only shifts that have started by Wednesday 10:00
    assert len(resolver.scheduled_instances(job, "A-1", week, until=datetime(2026, 2, 4, 16, 0))) == 3


def test_calculated_time_in_snaps_early_clock_in():
    job = _job(schedule())
    job.additional_config = {"earlyClockInMinutes": 15, "autoAdjustEarlyClockIn": True}
    shift_start = datetime(2026, 2, 4, 15, 0)

    assert resolver.calculated_time_in(job, "A-1", datetime(2026, 2, 4, 14, 50)) == shift_start
    assert resolver.calculated_time_in(job, "A-1", datetime(2026, 2, 4, 14, 30)) == datetime(2026, 2, 4, 14, 30)
    assert resolver.calculated_time_in(job, "A-1", datetime(2026, 2, 4, 15, 5)) == datetime(2026, 2, 4, 15, 5)

    job.additional_config = {"earlyClockInMinutes": 15, "autoAdjustEarlyClockIn": False}
    assert resolver.calculated_time_in(job, "A-1", datetime(2026, 2, 4, 14, 50)) == datetime(2026, 2, 4, 14, 50)


def test_has_forgotten_to_clock_out():
    job = _job(schedule())
    punch = Punch(applicant_id="A-1", time_in=datetime(2026, 2, 4, 15, 0), time_out=None)

    assert resolver.has_forgotten_to_clock_out(job, punch, datetime(2026, 2, 4, 20, 0)) is False
    assert resolver.has_forgotten_to_clock_out(job, punch, datetime(2026, 2, 4, 23, 30)) is True

    punch.time_out = datetime(2026, 2, 4, 23, 0)
    assert resolver.has_forgotten_to_clock_out(job, punch, datetime(2026, 2, 5, 12, 0)) is False
