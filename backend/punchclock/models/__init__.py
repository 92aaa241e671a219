from punchclock.models.user import User, UserType, ALL_EMPLOYEE_TYPES
from punchclock.models.job import Job, Shift
from punchclock.models.punch import Punch, PunchStatus
from punchclock.models.activity import ActivityLog, ApplicantNote

__all__ = [
    "User",
    "UserType",
    "ALL_EMPLOYEE_TYPES",
    "Job",
    "Shift",
    "Punch",
    "PunchStatus",
    "ActivityLog",
    "ApplicantNote",
]
