"""Attendance and performance aggregation over punch history.

Rules:
- Hours and completed shifts count closed punches only.
- Absences = scheduled shift instances in the window (up to now) minus
  completed shifts, never below zero.
- When no schedule resolves any instance, the distinct days with a punch
  stand in for the schedule (see ``_punch_days``). Sparse schedule data
  then reads as full attendance rather than full absence.
- Spend (bill rate x hours) is only reported to roles that see every
  employee.
- Unknown users and query timeouts produce all-zero results.
"""
import logging
from datetime import datetime, timedelta

import pytz
from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from punchclock.core.config import settings
from punchclock.core.errors import AggregationTimeout
from punchclock.services.geofence import GeofencePolicy
from punchclock.services.punch_store import PunchStore, PunchFilter
from punchclock.services.shift_window import ShiftWindowResolver
from punchclock.services.windows import (
    AggregationWindow, build_window, local_date, local_midnight, utcnow, weekday_index,
)

logger = logging.getLogger(__name__)

DAY_LABELS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


def zero_stats() -> dict:
    return {
        "total_hours": 0,
        "shifts_completed": 0,
        "absences": 0,
        "geofence_violations": 0,
        "total_spend": None,
        "weekly_change": None,
    }


def zero_performance() -> dict:
    return {
        "on_time_rate": 0,
        "avg_hours_per_day": 0,
        "violation_rate": 0,
        "overtime_hours": 0,
        "attendance_rate": 0,
        "total_punches": 0,
    }


def percentage_change(current: float, previous: float) -> float:
    if not previous:
        return 100.0 if current > 0 else 0.0
    return round((current - previous) / previous * 100, 1)


class AttendanceAggregator:

    def __init__(
        self,
        db: Session,
        store: PunchStore = None,
        resolver: ShiftWindowResolver = None,
        geofence: GeofencePolicy = None,
        week_starts_on: int = None,
    ):
        self.db = db
        self.store = store or PunchStore(db)
        self.resolver = resolver or ShiftWindowResolver()
        self.geofence = geofence or GeofencePolicy()
        self.week_starts_on = settings.WEEK_STARTS_ON if week_starts_on is None else week_starts_on

    # ── Scope & loading ─────────────────────────────────────────────────

    def _find_viewer(self, user_id):
        """The dashboard viewer, or None when unknown or not tied to any employee."""
        user = self.store.find_user(user_id)
        if user is None or not (user.sees_all_employees or user.applicant_id):
            return None
        return user

    def _scope(self, user, selected_employee_id=None, job_ids=None, shift_slug=None) -> PunchFilter:
        if user.sees_all_employees:
            applicant_id = selected_employee_id or None
        else:
            applicant_id = user.applicant_id
        return PunchFilter(applicant_id=applicant_id, job_ids=list(job_ids or []), shift_slug=shift_slug)

    def _load(self, punch_filter: PunchFilter, window: AggregationWindow):
        """Punches in the window plus every job they (or the filter) touch, in two queries."""
        punches = self.store.find_punches_in_range(punch_filter, window)
        job_ids = {p.job_id for p in punches} | set(punch_filter.job_ids)
        jobs = self.store.find_jobs_by_ids(job_ids)
        return punches, jobs

    def _punch_days(self, punches) -> set:
        """Stand-in schedule: distinct local days with at least one punch."""
        return {local_date(p.time_in, self.resolver.tz) for p in punches}

    def _scheduled_instances(self, jobs: dict, punch_filter: PunchFilter, window, now) -> list:
        """(job_id, ShiftWindow) for every shift instance starting in the window before now."""
        instances = []
        for job in jobs.values():
            for resolved in self.resolver.scheduled_instances(job, punch_filter.applicant_id, window, until=now):
                if punch_filter.shift_slug and resolved.shift_slug != punch_filter.shift_slug:
                    continue
                instances.append((job.id, resolved))
        return instances

    def _violations(self, punches, jobs) -> int:
        return sum(
            1 for p in punches
            if self.geofence.violates_geofence(p.clock_in_coordinates, jobs.get(p.job_id))
        )

    def _spend(self, completed, jobs) -> float:
        spend = 0.0
        for p in completed:
            job = jobs.get(p.job_id)
            shift = job.get_shift(p.shift_slug) if job is not None and p.shift_slug else None
            if shift is not None and shift.bill_rate:
                spend += p.hours_worked * float(shift.bill_rate)
        return round(spend, 2)

    # ── Dashboard stats ─────────────────────────────────────────────────

    def _stats(self, punch_filter, window, include_spend, now) -> dict:
        punches, jobs = self._load(punch_filter, window)
        completed = [p for p in punches if p.time_out is not None]
        shifts_completed = len(completed)

        instances = self._scheduled_instances(jobs, punch_filter, window, now)
        if instances:
            scheduled = len(instances)
        else:
            scheduled = len(self._punch_days(punches))

        return {
            "total_hours": round(sum(p.hours_worked for p in completed), 2),
            "shifts_completed": shifts_completed,
            "absences": max(0, scheduled - shifts_completed),
            "geofence_violations": self._violations(punches, jobs),
            "total_spend": self._spend(completed, jobs) if include_spend else None,
            "weekly_change": None,
        }

    def compute_stats(
        self,
        user_id,
        window: AggregationWindow,
        view: str = "custom",
        job_ids=None,
        shift_slug=None,
        selected_employee_id=None,
        now=None,
    ) -> dict:
        """Hours, completed shifts, absences, violations (and spend) for a window."""
        now = now or utcnow()
        user = self._find_viewer(user_id)
        if user is None:
            logger.info(f"Dashboard stats requested for unknown user {user_id}")
            return zero_stats()

        punch_filter = self._scope(user, selected_employee_id, job_ids, shift_slug)
        include_spend = user.sees_all_employees
        try:
            stats = self._stats(punch_filter, window, include_spend, now)
            if view == "week":
                previous = self._stats(punch_filter, window.previous(7), False, now)
                stats["weekly_change"] = {
                    "total_hours": round(stats["total_hours"] - previous["total_hours"], 2),
                    "shifts_completed": stats["shifts_completed"] - previous["shifts_completed"],
                    # not compared week over week
                    "absences": 0,
                    "geofence_violations": stats["geofence_violations"] - previous["geofence_violations"],
                }
        except AggregationTimeout as e:
            logger.warning(f"Dashboard stats timed out for user {user_id}: {e}")
            return zero_stats()
        return stats

    # ── Performance ─────────────────────────────────────────────────────

    def _matched_window(self, punch, job):
        day = local_date(punch.time_in, self.resolver.tz)
        shift = job.get_shift(punch.shift_slug) if punch.shift_slug else None
        if punch.shift_slug and shift is None:
            return None
        window = self.resolver.resolve_shift_for_date(job, punch.applicant_id, day, shift)
        return window or None

    def _performance(self, punch_filter, window, now) -> dict:
        punches, jobs = self._load(punch_filter, window)
        tz = self.resolver.tz
        completed = [p for p in punches if p.time_out is not None]
        total_hours = sum(p.hours_worked for p in completed)

        completed_days = {local_date(p.time_in, tz) for p in completed}
        avg_hours_per_day = total_hours / len(completed_days) if completed_days else 0

        violations = self._violations(punches, jobs)
        violation_rate = violations / len(punches) * 100 if punches else 0

        overtime_hours = 0.0
        for p in completed:
            job = jobs.get(p.job_id)
            if job is not None and job.allow_overtime:
                overtime_hours += max(0.0, p.hours_worked - settings.DAILY_OVERTIME_HOURS)

        grace = timedelta(minutes=settings.ON_TIME_GRACE_MINUTES)
        matched = on_time = 0
        for p in punches:
            job = jobs.get(p.job_id)
            if job is None:
                continue
            scheduled = self._matched_window(p, job)
            if scheduled is None:
                continue
            matched += 1
            if abs(p.time_in - scheduled.start) <= grace:
                on_time += 1
        on_time_rate = on_time / matched * 100 if matched else 0

        instances = self._scheduled_instances(jobs, punch_filter, window, now)
        if instances:
            total_scheduled = len(instances)
            attended = sum(
                1 for job_id, scheduled in instances
                if any(
                    p.job_id == job_id
                    and local_date(p.time_in, tz) == local_date(scheduled.start, tz)
                    and (not p.shift_slug or p.shift_slug == scheduled.shift_slug)
                    for p in completed
                )
            )
        else:
            punch_days = self._punch_days(punches)
            total_scheduled = len(punch_days)
            attended = len(punch_days) if completed else 0
        attendance_rate = attended / total_scheduled * 100 if total_scheduled else 0

        return {
            "on_time_rate": round(on_time_rate, 2),
            "avg_hours_per_day": round(avg_hours_per_day, 2),
            "violation_rate": round(violation_rate, 2),
            "overtime_hours": round(overtime_hours, 2),
            "attendance_rate": round(attendance_rate, 2),
            "total_punches": len(punches),
        }

    def compute_performance(
        self,
        user_id,
        window: AggregationWindow,
        job_ids=None,
        shift_slug=None,
        selected_employee_id=None,
        now=None,
    ) -> dict:
        now = now or utcnow()
        user = self._find_viewer(user_id)
        if user is None:
            return zero_performance()
        punch_filter = self._scope(user, selected_employee_id, job_ids, shift_slug)
        try:
            return self._performance(punch_filter, window, now)
        except AggregationTimeout as e:
            logger.warning(f"Performance metrics timed out for user {user_id}: {e}")
            return zero_performance()

    # ── Shift table ─────────────────────────────────────────────────────

    def shift_table(self, user_id, window: AggregationWindow, job_ids=None, shift_slug=None, selected_employee_id=None) -> list:
        """One row per punch, newest first."""
        user = self._find_viewer(user_id)
        if user is None:
            return []
        punch_filter = self._scope(user, selected_employee_id, job_ids, shift_slug)
        try:
            punches, jobs = self._load(punch_filter, window)
        except AggregationTimeout as e:
            logger.warning(f"Shift table timed out for user {user_id}: {e}")
            return []

        tz = self.resolver.tz
        rows = []
        for p in sorted(punches, key=lambda x: x.time_in, reverse=True):
            job = jobs.get(p.job_id)
            violation = self.geofence.violates_geofence(p.clock_in_coordinates, job)
            local_in = self._to_local(p.time_in)
            if p.time_out is None:
                time_range = f"{local_in.strftime('%I:%M %p')} - In Progress"
                status = "In Progress"
            else:
                time_range = f"{local_in.strftime('%I:%M %p')} - {self._to_local(p.time_out).strftime('%I:%M %p')}"
                status = "Geofence Violation" if violation else "Complete"
            rows.append({
                "punch_id": p.id,
                "date": local_date(p.time_in, tz).strftime("%b %d, %Y"),
                "job_site": job.title if job is not None else "Unknown Job",
                "time_range": time_range,
                "total_hours": round(p.hours_worked, 2),
                "location": "Outside Geofence" if violation else "In Geofence",
                "status": status,
            })
        return rows

    def _to_local(self, instant):
        return pytz.utc.localize(instant).astimezone(self.resolver.tz)

    # ── Trends ──────────────────────────────────────────────────────────

    def attendance_trends(self, user_id, anchor=None, job_ids=None, selected_employee_id=None) -> dict:
        """Hours per day of the anchor's week, and per month for six months vs the prior year."""
        anchor = anchor or utcnow()
        user = self._find_viewer(user_id)
        if user is None:
            return {"monthly_attendance": [], "weekly_trends": []}
        punch_filter = self._scope(user, selected_employee_id, job_ids)
        tz = self.resolver.tz

        week = build_window("week", anchor, week_starts_on=self.week_starts_on, tz=tz)
        anchor_day = local_date(anchor, tz) if isinstance(anchor, datetime) else anchor
        anchor_month = anchor_day.replace(day=1)
        first_month = anchor_month - relativedelta(months=5)
        months = [first_month + relativedelta(months=i) for i in range(6)]
        this_year = AggregationWindow(
            start=local_midnight(first_month, tz),
            end=local_midnight(anchor_month + relativedelta(months=1), tz),
        )
        last_year = AggregationWindow(
            start=local_midnight(first_month - relativedelta(years=1), tz),
            end=local_midnight(anchor_month + relativedelta(months=1) - relativedelta(years=1), tz),
        )

        try:
            week_punches = self.store.find_punches_in_range(punch_filter, week)
            current = self.store.find_punches_in_range(punch_filter, this_year)
            previous = self.store.find_punches_in_range(punch_filter, last_year)
        except AggregationTimeout as e:
            logger.warning(f"Attendance trends timed out for user {user_id}: {e}")
            return {"monthly_attendance": [], "weekly_trends": []}

        hours_by_day = {}
        for p in week_punches:
            day = local_date(p.time_in, tz)
            hours_by_day[day] = hours_by_day.get(day, 0) + p.hours_worked
        week_start = local_date(week.start, tz)
        weekly_trends = []
        for i in range(7):
            day = week_start + timedelta(days=i)
            weekly_trends.append({
                "day": DAY_LABELS[weekday_index(day)],
                "hours": round(hours_by_day.get(day, 0), 2),
            })

        def _monthly_hours(punches, shift_years=0):
            totals = {}
            for p in punches:
                key = local_date(p.time_in, tz).replace(day=1) + relativedelta(years=shift_years)
                totals[key] = totals.get(key, 0) + p.hours_worked
            return totals

        current_hours = _monthly_hours(current)
        previous_hours = _monthly_hours(previous, shift_years=1)
        monthly_attendance = []
        for month in months:
            hours = round(current_hours.get(month, 0), 2)
            prior = round(previous_hours.get(month, 0), 2)
            monthly_attendance.append({
                "month": month.strftime("%b"),
                "hours": hours,
                "previous": prior,
                "change": percentage_change(hours, prior),
            })

        return {"monthly_attendance": monthly_attendance, "weekly_trends": weekly_trends}
