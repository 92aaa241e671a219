"""Rejection types shared by the punch services and the HTTP layer.

Every rejection carries a machine-readable ``kind``, a human-readable
message and the HTTP status the route layer answers with.
"""
import enum


class RejectionKind(str, enum.Enum):
    MISSING_IDENTIFIERS = "missing-identifiers"
    MISSING_PUNCH = "missing-punch"
    OPEN_PUNCH_EXISTS = "open-punch-exists"
    JOB_NOT_FOUND = "job-not-found"
    NO_SHIFTS_FOR_USER = "no-shifts-for-user"
    INVALID_COORDINATES = "invalid-coordinates"
    MISSING_JOB_COORDINATES = "missing-job-coordinates"
    OUTSIDE_GEOFENCE = "outside-geofence"
    NO_VALID_SHIFT = "no-valid-shift"
    BREAKS_NOT_ALLOWED = "breaks-not-allowed"
    OVERTIME_NOT_ALLOWED = "overtime-not-allowed"
    PUNCH_OVERLAP = "punch-overlap"
    INVALID_TIME_RANGE = "invalid-time-range"
    INVALID_ACTION = "invalid-action"
    CLOCK_IN_FAILED = "clock-in-failed"
    CLOCK_OUT_FAILED = "clock-out-failed"
    UPDATE_FAILED = "update-failed"
    INTERNAL_ERROR = "internal-error"


DEFAULT_STATUS = {
    RejectionKind.MISSING_IDENTIFIERS: 400,
    RejectionKind.MISSING_PUNCH: 400,
    RejectionKind.OPEN_PUNCH_EXISTS: 403,
    RejectionKind.JOB_NOT_FOUND: 400,
    RejectionKind.NO_SHIFTS_FOR_USER: 404,
    RejectionKind.INVALID_COORDINATES: 400,
    RejectionKind.MISSING_JOB_COORDINATES: 404,
    RejectionKind.OUTSIDE_GEOFENCE: 400,
    RejectionKind.NO_VALID_SHIFT: 400,
    RejectionKind.BREAKS_NOT_ALLOWED: 403,
    RejectionKind.OVERTIME_NOT_ALLOWED: 400,
    RejectionKind.PUNCH_OVERLAP: 400,
    RejectionKind.INVALID_TIME_RANGE: 400,
    RejectionKind.INVALID_ACTION: 400,
    RejectionKind.CLOCK_IN_FAILED: 500,
    RejectionKind.CLOCK_OUT_FAILED: 500,
    RejectionKind.UPDATE_FAILED: 500,
    RejectionKind.INTERNAL_ERROR: 500,
}


class PunchRejection(Exception):
    """A deterministic refusal of a punch operation."""

    def __init__(self, kind: RejectionKind, message: str, status_code: int = None):
        super().__init__(message)
        self.kind = RejectionKind(kind)
        self.message = message
        self.status_code = status_code or DEFAULT_STATUS[self.kind]

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message}

    def __repr__(self):
        return f"PunchRejection({self.kind.value!r}, {self.message!r}, {self.status_code})"


class AggregationTimeout(Exception):
    """A dashboard query ran past its time budget."""
