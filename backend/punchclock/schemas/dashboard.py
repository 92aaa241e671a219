from pydantic import BaseModel
from typing import Optional, List


class WeeklyChange(BaseModel):
    total_hours: float = 0
    shifts_completed: int = 0
    absences: int = 0
    geofence_violations: int = 0


class DashboardStats(BaseModel):
    total_hours: float = 0
    shifts_completed: int = 0
    absences: int = 0
    geofence_violations: int = 0
    total_spend: Optional[float] = None
    weekly_change: Optional[WeeklyChange] = None


class PerformanceMetrics(BaseModel):
    on_time_rate: float = 0
    avg_hours_per_day: float = 0
    violation_rate: float = 0
    overtime_hours: float = 0
    attendance_rate: float = 0
    total_punches: int = 0


class ShiftTableRow(BaseModel):
    punch_id: int
    date: str
    job_site: str
    time_range: str
    total_hours: float
    location: str
    status: str


class MonthlyAttendance(BaseModel):
    month: str
    hours: float
    previous: float
    change: float = 0


class WeeklyTrend(BaseModel):
    day: str
    hours: float


class AttendanceTrends(BaseModel):
    monthly_attendance: List[MonthlyAttendance] = []
    weekly_trends: List[WeeklyTrend] = []
