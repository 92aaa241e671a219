"""Punch API: clock in, clock out, manager edits.

Rules live in PunchEligibilityService; this module maps requests onto it
and rejections onto HTTP errors ``{"detail": {"kind", "message"}}``.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from punchclock.core.database import get_db
from punchclock.core.errors import PunchRejection, RejectionKind
from punchclock.core.security import get_current_user, MANAGER_TYPES
from punchclock.models.user import User
from punchclock.schemas.punch import ClockInRequest, PunchActionRequest, PunchOut
from punchclock.services.eligibility import PunchEligibilityService, CLOCK_OUT, UPDATE
from punchclock.services.notifications import PunchSideEffects

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/punches", tags=["punches"])


def get_side_effects() -> PunchSideEffects:
    return PunchSideEffects()


def get_punch_service(
    db: Session = Depends(get_db),
    side_effects: PunchSideEffects = Depends(get_side_effects),
) -> PunchEligibilityService:
    return PunchEligibilityService(db, side_effects=side_effects)


def _raise(rejection: PunchRejection):
    raise HTTPException(status_code=rejection.status_code, detail=rejection.to_dict())


def _employee(db: Session, user_id: int) -> User:
    employee = db.query(User).filter(User.id == user_id).first()
    if not employee or not employee.applicant_id:
        _raise(PunchRejection(RejectionKind.MISSING_IDENTIFIERS, "Employee not found"))
    return employee


def _can_act_for(current_user: User, employee: User) -> bool:
    return current_user.id == employee.id or current_user.user_type in MANAGER_TYPES


# ── Clock In ─────────────────────────────────────────────────────────

@router.post("/{user_id}/{job_id}", response_model=PunchOut)
def clock_in(
    user_id: int,
    job_id: int,
    payload: ClockInRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: PunchEligibilityService = Depends(get_punch_service),
):
    employee = _employee(db, user_id)
    if not _can_act_for(current_user, employee):
        raise HTTPException(status_code=403, detail="Cannot clock in for another employee")
    try:
        return service.clock_in(
            applicant_id=employee.applicant_id,
            job_id=job_id,
            user_id=employee.id,
            user_type=current_user.user_type,
            shift_slug=payload.shift_slug,
            coordinates=payload.coordinates,
            user_note=payload.user_note,
        )
    except PunchRejection as rejection:
        _raise(rejection)


# ── Clock Out / Edit ─────────────────────────────────────────────────

@router.put("/{user_id}/{job_id}", response_model=PunchOut)
def punch_action(
    user_id: int,
    job_id: int,
    payload: PunchActionRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: PunchEligibilityService = Depends(get_punch_service),
):
    employee = _employee(db, user_id)
    if not _can_act_for(current_user, employee):
        raise HTTPException(status_code=403, detail="Cannot change another employee's punches")

    try:
        if payload.action == CLOCK_OUT:
            punch_id = payload.punch_id
            if punch_id is None:
                open_punch = service.store.find_open_punch(employee.applicant_id, job_id)
                punch_id = open_punch.id if open_punch else None
            return service.clock_out(
                punch_id, coordinates=payload.coordinates, user_note=payload.user_note,
                applicant_id=employee.applicant_id, job_id=job_id,
            )

        if payload.action == UPDATE:
            if current_user.user_type not in MANAGER_TYPES:
                raise HTTPException(status_code=403, detail="Manager access required")
            if payload.punch_id is None or payload.punch is None:
                raise PunchRejection(RejectionKind.MISSING_PUNCH, "Punch id and changes are required")
            return service.update_punch(
                payload.punch_id, payload.punch, editor_id=current_user.id,
                applicant_id=employee.applicant_id, job_id=job_id,
            )

        raise PunchRejection(RejectionKind.INVALID_ACTION, f"Unknown action '{payload.action}'")
    except PunchRejection as rejection:
        _raise(rejection)
    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"PUNCH ACTION CRASH: {type(e).__name__}: {e}", exc_info=True)
        _raise(PunchRejection(RejectionKind.INTERNAL_ERROR, "Internal server error"))


# ── Current Status ───────────────────────────────────────────────────

@router.get("/{user_id}/{job_id}/open")
def open_punch(
    user_id: int,
    job_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    service: PunchEligibilityService = Depends(get_punch_service),
):
    """Open punch for the employee at this job, if any."""
    employee = _employee(db, user_id)
    if not _can_act_for(current_user, employee):
        raise HTTPException(status_code=403, detail="Cannot view another employee's punches")
    result = service.open_punch(employee.applicant_id, job_id)
    punch = result["punch"]
    return {
        "status": result["status"],
        "forgot_to_clock_out": result["forgot_to_clock_out"],
        "punch": PunchOut.model_validate(punch).model_dump(mode="json") if punch else None,
    }
