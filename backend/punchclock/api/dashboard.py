"""Dashboard API: attendance stats, performance metrics, shift table, trends."""
import logging
from datetime import date
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from punchclock.core.database import get_db
from punchclock.core.security import get_current_user
from punchclock.models.user import User
from punchclock.schemas.dashboard import DashboardStats, PerformanceMetrics, ShiftTableRow, AttendanceTrends
from punchclock.services.attendance import AttendanceAggregator
from punchclock.services.windows import build_window, utcnow, VIEWS

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


def _window(view: str, anchor: Optional[date], start_date: Optional[date], end_date: Optional[date]):
    if view not in VIEWS:
        raise HTTPException(status_code=400, detail=f"view must be one of {', '.join(VIEWS)}")
    try:
        return build_window(view, anchor or utcnow(), custom_start=start_date, custom_end=end_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/stats", response_model=DashboardStats)
def dashboard_stats(
    view: str = "week",
    anchor: Optional[date] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    job_ids: Optional[List[int]] = Query(None),
    shift_slug: Optional[str] = None,
    employee_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    window = _window(view, anchor, start_date, end_date)
    return AttendanceAggregator(db).compute_stats(
        current_user.id, window, view=view, job_ids=job_ids,
        shift_slug=shift_slug, selected_employee_id=employee_id,
    )


@router.get("/performance", response_model=PerformanceMetrics)
def dashboard_performance(
    view: str = "month",
    anchor: Optional[date] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    job_ids: Optional[List[int]] = Query(None),
    shift_slug: Optional[str] = None,
    employee_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    window = _window(view, anchor, start_date, end_date)
    return AttendanceAggregator(db).compute_performance(
        current_user.id, window, job_ids=job_ids,
        shift_slug=shift_slug, selected_employee_id=employee_id,
    )


@router.get("/shifts", response_model=List[ShiftTableRow])
def dashboard_shifts(
    view: str = "week",
    anchor: Optional[date] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    job_ids: Optional[List[int]] = Query(None),
    shift_slug: Optional[str] = None,
    employee_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    window = _window(view, anchor, start_date, end_date)
    return AttendanceAggregator(db).shift_table(
        current_user.id, window, job_ids=job_ids,
        shift_slug=shift_slug, selected_employee_id=employee_id,
    )


@router.get("/attendance", response_model=AttendanceTrends)
def dashboard_attendance(
    anchor: Optional[date] = None,
    job_ids: Optional[List[int]] = Query(None),
    employee_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return AttendanceAggregator(db).attendance_trends(
        current_user.id, anchor=anchor, job_ids=job_ids, selected_employee_id=employee_id,
    )
