"""Clock-in / clock-out eligibility.

Clock-in checks run in this order; the first failure is returned and
nothing is written:

1. open-punch-exists      one open punch per employee per job
2. job-not-found
3. no-shifts-for-user     no shift on the job rosters this employee
4. geofence               geofenced jobs, ordinary employees only:
                          invalid-coordinates, missing-job-coordinates,
                          outside-geofence
5. no-valid-shift         no shift window resolves for today
6. breaks-not-allowed     a punch already falls inside this shift window
7. overtime-not-allowed   over the weekly limit at this job this week
8. punch-overlap          would overlap another punch of this employee

Admins, managers and clients clocking in for someone skip the geofence;
their coordinates are kept when they parse and dropped when they don't.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from punchclock.core.config import settings
from punchclock.core.errors import PunchRejection, RejectionKind
from punchclock.models.punch import Punch, PunchStatus
from punchclock.models.user import UserType
from punchclock.schemas.punch import PunchUpdate
from punchclock.services.geo import parse_coordinates
from punchclock.services.geofence import GeofencePolicy
from punchclock.services.notifications import PunchSideEffects
from punchclock.services.punch_store import PunchStore
from punchclock.services.shift_window import ShiftWindowResolver
from punchclock.services.windows import utcnow, to_naive_utc, week_window

logger = logging.getLogger(__name__)

CLOCK_OUT = "clockOut"
UPDATE = "update"


class PunchEligibilityService:

    def __init__(
        self,
        db: Session,
        store: PunchStore = None,
        resolver: ShiftWindowResolver = None,
        geofence: GeofencePolicy = None,
        side_effects: PunchSideEffects = None,
        week_starts_on: int = None,
    ):
        self.db = db
        self.store = store or PunchStore(db)
        self.resolver = resolver or ShiftWindowResolver()
        self.geofence = geofence or GeofencePolicy()
        self.side_effects = side_effects or PunchSideEffects()
        self.week_starts_on = settings.WEEK_STARTS_ON if week_starts_on is None else week_starts_on

    # ── Clock In ────────────────────────────────────────────────────────

    def clock_in(
        self,
        applicant_id: str,
        job_id: int,
        user_id: int = None,
        user_type: str = UserType.USER.value,
        shift_slug: Optional[str] = None,
        coordinates=None,
        user_note: Optional[str] = None,
        now=None,
        shift_window=None,
    ) -> Punch:
        """Open a punch, or raise PunchRejection."""
        now = to_naive_utc(now) if now else utcnow()
        try:
            return self._clock_in(
                applicant_id, job_id, user_id, user_type, shift_slug,
                coordinates, user_note, now, shift_window,
            )
        except PunchRejection as rejection:
            logger.info(f"Clock-in rejected for {applicant_id} on job {job_id}: {rejection.kind.value}")
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"CLOCK-IN CRASH: {type(e).__name__}: {e}", exc_info=True)
            raise PunchRejection(RejectionKind.INTERNAL_ERROR, "Internal server error") from e

    def _clock_in(self, applicant_id, job_id, user_id, user_type, shift_slug, coordinates, user_note, now, shift_window):
        if not applicant_id or job_id is None:
            raise PunchRejection(RejectionKind.MISSING_IDENTIFIERS, "Employee and job are required")

        if self.store.find_open_punch(applicant_id, job_id):
            raise PunchRejection(
                RejectionKind.OPEN_PUNCH_EXISTS,
                "You already have an open punch for this job. Clock out first.",
            )

        job = self.store.find_job_by_id(job_id)
        if job is None:
            raise PunchRejection(RejectionKind.JOB_NOT_FOUND, "Job not found")

        if not self.resolver.job_has_shift_for_user(job, applicant_id):
            raise PunchRejection(RejectionKind.NO_SHIFTS_FOR_USER, "No shifts found for this user on this job")

        # Geofence
        coords = parse_coordinates(coordinates)
        if job.is_geofenced and user_type == UserType.USER.value:
            if coords is None:
                raise PunchRejection(RejectionKind.INVALID_COORDINATES, "Invalid or missing clock-in coordinates")
            if not self.geofence.has_venue_location(job):
                raise PunchRejection(
                    RejectionKind.MISSING_JOB_COORDINATES,
                    "Job location is not configured for geofencing",
                )
            if self.geofence.violates_geofence(coords, job):
                distance = self.geofence.distance_from_venue_feet(coords, job)
                logger.info(
                    f"{applicant_id} is {int(distance)}ft from job {job.id} "
                    f"(allowed {int(self.geofence.allowed_distance_feet(job))}ft)"
                )
                raise PunchRejection(RejectionKind.OUTSIDE_GEOFENCE, "You are outside the job's geofence")

        # Shift window
        shift = None
        if shift_slug:
            shift = job.get_shift(shift_slug)
            if shift is None:
                raise PunchRejection(RejectionKind.NO_VALID_SHIFT, f"Shift '{shift_slug}' not found on this job")
        window = shift_window
        if window is None:
            window = self.resolver.resolve_for_instant(job, applicant_id, now, shift)
        if not window:
            raise PunchRejection(RejectionKind.NO_VALID_SHIFT, "No valid shift for today")

        if not job.allow_breaks:
            prior = self.store.find_punch_within_window(applicant_id, job.id, window.start, window.end)
            if prior is not None:
                raise PunchRejection(
                    RejectionKind.BREAKS_NOT_ALLOWED,
                    "Breaks are not allowed for this job; you already punched during this shift",
                )

        if not job.allow_overtime:
            week = week_window(now, self.week_starts_on, self.resolver.tz)
            hours = self.store.total_hours_for_week(applicant_id, job.id, week)
            if hours > settings.WEEKLY_OVERTIME_HOURS:
                raise PunchRejection(
                    RejectionKind.OVERTIME_NOT_ALLOWED,
                    f"Overtime is not allowed for this job ({hours:.1f} hours worked this week)",
                )

        time_in = self.resolver.calculated_time_in(job, applicant_id, now, shift)
        if self.store.find_overlapping_punch(applicant_id, time_in) is not None:
            raise PunchRejection(RejectionKind.PUNCH_OVERLAP, "This punch would overlap another punch")

        punch = Punch(
            user_id=user_id,
            applicant_id=applicant_id,
            job_id=job.id,
            shift_slug=shift_slug or window.shift_slug,
            time_in=time_in,
            time_out=None,
            status=PunchStatus.PENDING.value,
            type="punch",
            user_note=user_note,
        )
        punch.clock_in_coordinates = coords
        punch = self.store.insert_punch(punch)

        logger.info(f"{applicant_id} clocked in to job {job.id} at {time_in.isoformat()} (punch {punch.id})")
        self.side_effects.log_activity(
            "clock_in",
            f"Clocked in to {job.title}",
            actor_id=user_id or applicant_id,
            target_id=punch.id,
            details={"job_id": job.id, "shift_slug": punch.shift_slug},
        )
        return punch

    # ── Clock Out ───────────────────────────────────────────────────────

    def _find_owned_punch(self, punch_id, applicant_id=None, job_id=None) -> Punch:
        """The punch, when it belongs to ``applicant_id`` at ``job_id`` (either may be None to skip)."""
        punch = self.store.find_punch(punch_id)
        if punch is None:
            raise PunchRejection(RejectionKind.MISSING_PUNCH, "Punch not found")
        if (applicant_id is not None and punch.applicant_id != applicant_id) or (
            job_id is not None and punch.job_id != job_id
        ):
            logger.info(f"Punch {punch_id} does not belong to {applicant_id} on job {job_id}")
            raise PunchRejection(RejectionKind.MISSING_PUNCH, "Punch not found")
        return punch

    def clock_out(
        self,
        punch_id: int,
        coordinates=None,
        user_note: Optional[str] = None,
        now=None,
        applicant_id: Optional[str] = None,
        job_id: Optional[int] = None,
    ) -> Punch:
        """Close an open punch of ``applicant_id`` at ``job_id``."""
        now = to_naive_utc(now) if now else utcnow()
        punch = self._find_owned_punch(punch_id, applicant_id, job_id)
        if not punch.is_open:
            raise PunchRejection(RejectionKind.INVALID_ACTION, "This punch is already clocked out")

        # An auto-adjusted early clock-in can put time_in slightly ahead of now
        punch.time_out = max(now, punch.time_in)
        punch.modified_date = now
        coords = parse_coordinates(coordinates)
        if coords is not None:
            punch.clock_out_coordinates = coords
        if user_note:
            punch.user_note = (punch.user_note + " | " + user_note) if punch.user_note else user_note

        punch = self.store.update_punch(punch, failure_kind=RejectionKind.CLOCK_OUT_FAILED)

        logger.info(f"{punch.applicant_id} clocked out of job {punch.job_id} ({punch.hours_worked:.2f}h, punch {punch.id})")
        self.side_effects.log_activity(
            "clock_out",
            f"Clocked out after {punch.hours_worked:.1f} hours",
            actor_id=punch.user_id or punch.applicant_id,
            target_id=punch.id,
            details={"job_id": punch.job_id},
        )
        return punch

    # ── Manager Edit ────────────────────────────────────────────────────

    def update_punch(
        self,
        punch_id: int,
        changes: PunchUpdate,
        editor_id,
        now=None,
        applicant_id: Optional[str] = None,
        job_id: Optional[int] = None,
    ) -> Punch:
        """Apply a manager edit. Changed times are re-checked for overlap."""
        now = to_naive_utc(now) if now else utcnow()
        punch = self._find_owned_punch(punch_id, applicant_id, job_id)

        new_in = to_naive_utc(changes.time_in) if changes.time_in else punch.time_in
        new_out = to_naive_utc(changes.time_out) if changes.time_out else punch.time_out
        if new_out is not None and new_out < new_in:
            raise PunchRejection(RejectionKind.INVALID_TIME_RANGE, "Clock-out time is before clock-in time")

        if new_in != punch.time_in or new_out != punch.time_out:
            overlap = self.store.find_overlapping_punch(punch.applicant_id, new_in, new_out, exclude_id=punch.id)
            if overlap is not None:
                logger.info(f"Edit of punch {punch.id} rejected: overlaps punch {overlap.id}")
                raise PunchRejection(RejectionKind.PUNCH_OVERLAP, "The edited times overlap another punch")

        note_added = bool(changes.manager_note and changes.manager_note.strip()) and (
            changes.manager_note != punch.manager_note
        )

        punch.time_in = new_in
        punch.time_out = new_out
        if changes.status:
            punch.status = changes.status
        if changes.shift_slug:
            punch.shift_slug = changes.shift_slug
        if changes.user_note is not None:
            punch.user_note = changes.user_note
        if changes.manager_note is not None:
            punch.manager_note = changes.manager_note
        punch.modified_date = now
        punch.modified_by = str(editor_id)

        punch = self.store.update_punch(punch)

        logger.info(f"Punch {punch.id} updated by {editor_id}")
        self.side_effects.log_activity(
            "punch_edit",
            f"Punch {punch.id} edited",
            actor_id=editor_id,
            target_id=punch.id,
            details={"job_id": punch.job_id, "manager_note_added": note_added},
        )
        if note_added:
            self.side_effects.manager_note_added(punch, punch.job, editor_id)
        return punch

    # ── Status ──────────────────────────────────────────────────────────

    def open_punch(self, applicant_id: str, job_id: int, now=None) -> dict:
        """Current open punch, with a flag when its shift has already ended."""
        now = to_naive_utc(now) if now else utcnow()
        punch = self.store.find_open_punch(applicant_id, job_id)
        if punch is None:
            return {"status": "not_clocked_in", "punch": None, "forgot_to_clock_out": False}
        job = self.store.find_job_by_id(job_id)
        forgot = job is not None and self.resolver.has_forgotten_to_clock_out(job, punch, now)
        return {"status": "clocked_in", "punch": punch, "forgot_to_clock_out": forgot}
