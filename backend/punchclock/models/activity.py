from sqlalchemy import Column, Integer, String, DateTime, Text, JSON
from sqlalchemy.sql import func
from punchclock.core.database import Base


class ActivityLog(Base):
    """Audit trail of punch activity (clock in / out, manager edits)."""
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    action = Column(String, nullable=False, index=True)  # clock_in, clock_out, punch_edit
    description = Column(String, nullable=True)
    actor_id = Column(String, nullable=True, index=True)
    target_id = Column(String, nullable=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ApplicantNote(Base):
    """Note appended to an employee profile, e.g. from a manager's punch note."""
    __tablename__ = "applicant_notes"

    id = Column(Integer, primary_key=True, index=True)
    applicant_id = Column(String, nullable=False, index=True)
    punch_id = Column(Integer, nullable=True)
    author_id = Column(String, nullable=True)
    note_type = Column(String, default="Punch Note")
    text = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
