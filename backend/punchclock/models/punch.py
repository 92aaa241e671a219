"""Punch records.

``time_in`` / ``time_out`` are naive UTC. At most one open punch
(``time_out IS NULL``) may exist per (applicant_id, job_id); the partial
unique index below enforces it so two racing clock-ins cannot both insert.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Float, Index, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from punchclock.core.database import Base
from punchclock.schemas.punch import Coordinates
import enum


class PunchStatus(str, enum.Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    NOT_APPROVED = "Not Approved"
    CORRECTED = "Corrected"
    EDITED = "Edited"
    EDITED_APPROVED = "Edited Approved"


class Punch(Base):
    __tablename__ = "punches"
    __table_args__ = (
        Index(
            "uq_punches_one_open_per_job",
            "applicant_id", "job_id",
            unique=True,
            postgresql_where=text("time_out IS NULL"),
            sqlite_where=text("time_out IS NULL"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    applicant_id = Column(String, nullable=False, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False, index=True)
    shift_slug = Column(String, nullable=True)

    # Clock times
    time_in = Column(DateTime, nullable=False, index=True)
    time_out = Column(DateTime, nullable=True)

    status = Column(String, default=PunchStatus.PENDING.value, nullable=False)
    type = Column(String, default="punch", nullable=False)

    # GPS at clock-in / clock-out
    clock_in_latitude = Column(Float, nullable=True)
    clock_in_longitude = Column(Float, nullable=True)
    clock_in_accuracy = Column(Float, nullable=True)  # meters
    clock_out_latitude = Column(Float, nullable=True)
    clock_out_longitude = Column(Float, nullable=True)
    clock_out_accuracy = Column(Float, nullable=True)

    # Notes
    user_note = Column(String, nullable=True)
    manager_note = Column(String, nullable=True)

    # Manager edits
    modified_date = Column(DateTime, nullable=True)
    modified_by = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    job = relationship("Job")

    @property
    def is_open(self) -> bool:
        return self.time_out is None

    @property
    def hours_worked(self) -> float:
        if self.time_out is None:
            return 0.0
        return (self.time_out - self.time_in).total_seconds() / 3600.0

    @property
    def clock_in_coordinates(self):
        if self.clock_in_latitude is None or self.clock_in_longitude is None:
            return None
        return Coordinates(
            latitude=self.clock_in_latitude,
            longitude=self.clock_in_longitude,
            accuracy=self.clock_in_accuracy,
        )

    @clock_in_coordinates.setter
    def clock_in_coordinates(self, coords):
        self.clock_in_latitude = coords.latitude if coords else None
        self.clock_in_longitude = coords.longitude if coords else None
        self.clock_in_accuracy = coords.accuracy if coords else None

    @property
    def clock_out_coordinates(self):
        if self.clock_out_latitude is None or self.clock_out_longitude is None:
            return None
        return Coordinates(
            latitude=self.clock_out_latitude,
            longitude=self.clock_out_longitude,
            accuracy=self.clock_out_accuracy,
        )

    @clock_out_coordinates.setter
    def clock_out_coordinates(self, coords):
        self.clock_out_latitude = coords.latitude if coords else None
        self.clock_out_longitude = coords.longitude if coords else None
        self.clock_out_accuracy = coords.accuracy if coords else None
