from datetime import datetime
from typing import Optional
from pydantic import Field

from app.api.events.attendance.models import AttendanceStatus
from app.core.response.base_model import CustomBaseModel


class AttendanceUpdate(CustomBaseModel):
    status: AttendanceStatus
    hours: Optional[float] = Field(None, ge=0, le=999.99)


class AttendanceMark(AttendanceUpdate):
    signup_id: int = Field(..., gt=0)


class AttendancePublic(CustomBaseModel):
    id: int
    signup_id: int
    marked_by: Optional[int] = None
    marked_at: datetime
    hours: Optional[float] = None
    status: AttendanceStatus
