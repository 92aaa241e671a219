import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SCHEDULE_TIMEZONE", "America/Chicago")
os.environ.setdefault("WEEK_STARTS_ON", "1")

from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import punchclock.models  # noqa: F401
from punchclock.core.database import Base
from punchclock.models import Job, Shift, Punch, User, PunchStatus
from punchclock.services.notifications import PunchSideEffects
from punchclock.services.windows import WEEKDAYS

TZ = "America/Chicago"

# Wednesday 2026-02-04, 10:00 in Chicago (CST, UTC-6)
NOW = datetime(2026, 2, 4, 16, 0)

VENUE = {"latitude": 40.0, "longitude": -75.0}


def schedule(start="09:00", end="17:00", roster=None, days=WEEKDAYS):
    return {day: {"start": start, "end": end, "roster": list(roster or [])} for day in days}


def build_job(title="Warehouse", config=None, shifts=None, **fields):
    """Transient Job (not added to any session)."""
    job = Job(
        title=title,
        latitude=fields.pop("latitude", VENUE["latitude"]),
        longitude=fields.pop("longitude", VENUE["longitude"]),
        geofence_radius=fields.pop("geofence_radius", 100),
        grace_distance=fields.pop("grace_distance", 0),
        additional_config=config or {},
        **fields,
    )
    if shifts is None:
        shifts = [Shift(slug="day", shift_name="Day", bill_rate=30, default_schedule=schedule())]
    job.shifts = shifts
    return job


class RecordingSideEffects(PunchSideEffects):
    """Runs side effects inline and remembers what was attempted."""

    def __init__(self, session_factory, fail_email=False):
        super().__init__(session_factory=session_factory, background=False)
        self.fail_email = fail_email
        self.attempted = []

    def _send_manager_note_email(self, recipients, payload):
        self.attempted.append(("email", recipients, payload["punch_id"]))
        if self.fail_email:
            raise RuntimeError("mail server down")
        return {"success": True}

    def _fire_webhook(self, payload, event_type):
        self.attempted.append(("webhook", event_type, payload["punch_id"]))
        return {"skipped": True}


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'punchclock.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def side_effects(session_factory):
    return RecordingSideEffects(session_factory)


@pytest.fixture
def employee(db):
    user = User(id=1, email="worker@example.com", full_name="Pat Worker", user_type="User", applicant_id="A-1")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def client_user(db):
    user = User(id=2, email="venue@example.com", full_name="Venue Owner", user_type="Client")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def admin_user(db):
    user = User(id=3, email="admin@example.com", full_name="Site Admin", user_type="Admin", applicant_id="ADM-1")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def add_job(db):
    def _add(**kwargs):
        job = build_job(**kwargs)
        db.add(job)
        db.commit()
        db.refresh(job)
        return job
    return _add


@pytest.fixture
def add_punch(db):
    def _add(job, time_in, time_out=None, applicant_id="A-1", shift_slug="day", coords=None, **fields):
        punch = Punch(
            applicant_id=applicant_id,
            job_id=job.id,
            shift_slug=shift_slug,
            time_in=time_in,
            time_out=time_out,
            status=fields.pop("status", PunchStatus.APPROVED.value),
            **fields,
        )
        if coords:
            punch.clock_in_latitude = coords[0]
            punch.clock_in_longitude = coords[1]
            punch.clock_in_accuracy = coords[2] if len(coords) > 2 else 5
        db.add(punch)
        db.commit()
        db.refresh(punch)
        return punch
    return _add
