from pydantic import BaseModel, Field
from typing import Optional, Any
from datetime import datetime


class Coordinates(BaseModel):
    latitude: float
    longitude: float
    accuracy: Optional[float] = None  # meters


class ClockInRequest(BaseModel):
    shift_slug: Optional[str] = None
    # Object or JSON string; parsed leniently unless the job is geofenced
    coordinates: Optional[Any] = None
    user_note: Optional[str] = None


class PunchUpdate(BaseModel):
    """Fields a manager may change on an existing punch.

    Fields left out of the payload, or sent as null, keep their stored value.
    """
    time_in: Optional[datetime] = None
    time_out: Optional[datetime] = None
    status: Optional[str] = None
    shift_slug: Optional[str] = None
    user_note: Optional[str] = None
    manager_note: Optional[str] = None


class PunchActionRequest(BaseModel):
    action: str = Field(..., description="clockOut or update")
    punch_id: Optional[int] = None
    coordinates: Optional[Any] = None
    user_note: Optional[str] = None
    punch: Optional[PunchUpdate] = None


class PunchOut(BaseModel):
    id: int
    user_id: Optional[int] = None
    applicant_id: str
    job_id: int
    shift_slug: Optional[str] = None
    time_in: datetime
    time_out: Optional[datetime] = None
    status: str
    type: str
    clock_in_coordinates: Optional[Coordinates] = None
    clock_out_coordinates: Optional[Coordinates] = None
    user_note: Optional[str] = None
    manager_note: Optional[str] = None
    modified_date: Optional[datetime] = None
    modified_by: Optional[str] = None

    class Config:
        from_attributes = True
