"""Job sites and their shift catalog.

Distances on a job (geofence radius, grace distance) are stored in feet.
``Shift.default_schedule`` is keyed by lowercase weekday name::

    {"monday": {"start": "08:00", "end": "16:00",
                "roster": ["A-1", {"employeeId": "A-2", "date": "2026-03-02",
                                    "status": "approved"}]}}
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Float, Date, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from punchclock.core.database import Base
from punchclock.schemas.punch import Coordinates


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    venue_slug = Column(String, nullable=True, index=True)

    # Venue location
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    geofence_radius = Column(Float, nullable=True)   # feet
    grace_distance = Column(Float, nullable=True)    # feet

    # geofence, allowBreaks, allowOvertime, earlyClockInMinutes,
    # autoAdjustEarlyClockIn, notificationRecipients
    additional_config = Column(JSON, nullable=True, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    shifts = relationship(
        "Shift", back_populates="job", order_by="Shift.position",
        cascade="all, delete-orphan",
    )

    @property
    def config(self) -> dict:
        return self.additional_config or {}

    @property
    def is_geofenced(self) -> bool:
        return bool(self.config.get("geofence"))

    @property
    def allow_breaks(self) -> bool:
        return self.config.get("allowBreaks", True) is not False

    @property
    def allow_overtime(self) -> bool:
        return self.config.get("allowOvertime", True) is not False

    @property
    def notification_recipients(self) -> list:
        return [r for r in (self.config.get("notificationRecipients") or []) if r]

    @property
    def venue_coordinates(self):
        """Venue location, or None when unset (a 0 latitude/longitude counts as unset)."""
        if not self.latitude or not self.longitude:
            return None
        return Coordinates(latitude=self.latitude, longitude=self.longitude)

    def get_shift(self, slug):
        for shift in self.shifts:
            if shift.slug == slug:
                return shift
        return None


class Shift(Base):
    __tablename__ = "shifts"
    __table_args__ = (UniqueConstraint("job_id", "slug", name="uq_shifts_job_slug"),)

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False, index=True)
    slug = Column(String, nullable=False)
    shift_name = Column(String, nullable=True)
    position = Column(Integer, default=0)

    # Overall date bounds (inclusive)
    shift_start_date = Column(Date, nullable=True)
    shift_end_date = Column(Date, nullable=True)

    # Rates (currency / hour)
    bill_rate = Column(Float, nullable=True)
    pay_rate = Column(Float, nullable=True)

    default_schedule = Column(JSON, nullable=True, default=dict)

    job = relationship("Job", back_populates="shifts")
