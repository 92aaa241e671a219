"""SQLAlchemy storage primitives for punches, jobs and users.

The open-punch unique index turns a lost clock-in race into an
IntegrityError, which is reported as ``open-punch-exists``.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Optional, List

from sqlalchemy import and_, or_, text
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from punchclock.core.config import settings
from punchclock.core.errors import PunchRejection, RejectionKind, AggregationTimeout
from punchclock.models.job import Job
from punchclock.models.punch import Punch
from punchclock.models.user import User

logger = logging.getLogger(__name__)


@dataclass
class PunchFilter:
    applicant_id: Optional[str] = None   # None = every employee
    job_ids: List[int] = field(default_factory=list)
    shift_slug: Optional[str] = None


def _is_timeout(exc: Exception) -> bool:
    message = str(getattr(exc, "orig", exc)).lower()
    return "statement timeout" in message or "canceling statement" in message


class PunchStore:

    def __init__(self, db: Session, timeout_ms: int = None):
        self.db = db
        self.timeout_ms = settings.AGGREGATION_TIMEOUT_MS if timeout_ms is None else timeout_ms

    # ── Lookups ─────────────────────────────────────────────────────────

    def find_user(self, user_id) -> Optional[User]:
        if user_id is None:
            return None
        return self.db.query(User).filter(User.id == user_id).first()

    def find_job_by_id(self, job_id) -> Optional[Job]:
        if job_id is None:
            return None
        return (
            self.db.query(Job)
            .options(selectinload(Job.shifts))
            .filter(Job.id == job_id)
            .first()
        )

    def find_jobs_by_ids(self, job_ids) -> dict:
        """Jobs keyed by id, fetched in one query."""
        ids = {j for j in job_ids if j is not None}
        if not ids:
            return {}
        jobs = (
            self.db.query(Job)
            .options(selectinload(Job.shifts))
            .filter(Job.id.in_(ids))
            .all()
        )
        return {job.id: job for job in jobs}

    def find_punch(self, punch_id) -> Optional[Punch]:
        if punch_id is None:
            return None
        return self.db.query(Punch).filter(Punch.id == punch_id).first()

    def find_open_punch(self, applicant_id: str, job_id: int) -> Optional[Punch]:
        return self.db.query(Punch).filter(
            Punch.applicant_id == applicant_id,
            Punch.job_id == job_id,
            Punch.time_out.is_(None),
        ).first()

    def find_overlapping_punch(self, applicant_id: str, time_in, time_out=None, exclude_id=None) -> Optional[Punch]:
        """Another punch of this employee whose interval overlaps [time_in, time_out).

        Open punches (either side) extend indefinitely. Intervals that only
        touch at an endpoint do not overlap.
        """
        query = self.db.query(Punch).filter(Punch.applicant_id == applicant_id)
        if exclude_id is not None:
            query = query.filter(Punch.id != exclude_id)

        if time_out is None:
            query = query.filter(or_(Punch.time_out.is_(None), Punch.time_out > time_in))
        else:
            query = query.filter(
                Punch.time_in < time_out,
                or_(Punch.time_out.is_(None), Punch.time_out > time_in),
            )
        return query.order_by(Punch.time_in).first()

    def find_punch_within_window(self, applicant_id: str, job_id: int, start, end) -> Optional[Punch]:
        """Any punch for this employee/job that starts, ends, or spans [start, end)."""
        return self.db.query(Punch).filter(
            Punch.applicant_id == applicant_id,
            Punch.job_id == job_id,
            or_(
                and_(Punch.time_in >= start, Punch.time_in < end),
                and_(Punch.time_out >= start, Punch.time_out < end),
                and_(Punch.time_in <= start, Punch.time_out >= end),
            ),
        ).first()

    def total_hours_for_week(self, applicant_id: str, job_id: int, week) -> float:
        """Completed hours at this job for punches clocked in during ``week``."""
        punches = self.db.query(Punch).filter(
            Punch.applicant_id == applicant_id,
            Punch.job_id == job_id,
            Punch.time_out.isnot(None),
            Punch.time_in >= week.start,
            Punch.time_in < week.end,
        ).all()
        return sum(p.hours_worked for p in punches)

    def find_punches_in_range(self, punch_filter: PunchFilter, window) -> List[Punch]:
        """Punches clocked in inside ``window``, bounded by the query time budget."""
        query = self.db.query(Punch).filter(
            Punch.time_in >= window.start,
            Punch.time_in < window.end,
        )
        if punch_filter.applicant_id is not None:
            query = query.filter(Punch.applicant_id == punch_filter.applicant_id)
        if punch_filter.job_ids:
            query = query.filter(Punch.job_id.in_(punch_filter.job_ids))
        if punch_filter.shift_slug:
            query = query.filter(Punch.shift_slug == punch_filter.shift_slug)
        query = query.order_by(Punch.time_in)

        started = time.monotonic()
        try:
            if self.db.get_bind().dialect.name == "postgresql":
                self.db.execute(text(f"SET LOCAL statement_timeout = {int(self.timeout_ms)}"))
            punches = query.all()
        except OperationalError as e:
            if _is_timeout(e):
                self.db.rollback()
                raise AggregationTimeout(f"Punch query exceeded {self.timeout_ms}ms") from e
            raise

        elapsed_ms = (time.monotonic() - started) * 1000
        if elapsed_ms > self.timeout_ms:
            raise AggregationTimeout(f"Punch query took {elapsed_ms:.0f}ms (budget {self.timeout_ms}ms)")
        return punches

    # ── Writes ──────────────────────────────────────────────────────────

    def insert_punch(self, punch: Punch) -> Punch:
        try:
            self.db.add(punch)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            if self.find_open_punch(punch.applicant_id, punch.job_id) is None:
                logger.error(f"Punch insert failed: {e}", exc_info=True)
                raise PunchRejection(RejectionKind.CLOCK_IN_FAILED, "Failed to clock in")
            logger.info(f"Open punch already exists for {punch.applicant_id} on job {punch.job_id}")
            raise PunchRejection(
                RejectionKind.OPEN_PUNCH_EXISTS,
                "You already have an open punch for this job. Clock out first.",
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Punch insert failed: {type(e).__name__}: {e}", exc_info=True)
            raise PunchRejection(RejectionKind.CLOCK_IN_FAILED, "Failed to clock in")
        self.db.refresh(punch)
        return punch

    def update_punch(self, punch: Punch, failure_kind=RejectionKind.UPDATE_FAILED) -> Punch:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Punch {punch.id} update failed: {type(e).__name__}: {e}", exc_info=True)
            message = "Failed to clock out" if failure_kind == RejectionKind.CLOCK_OUT_FAILED else "Failed to update punch"
            raise PunchRejection(failure_kind, message)
        self.db.refresh(punch)
        return punch
