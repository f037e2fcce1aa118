from datetime import date, datetime, time
from typing import Optional
from pydantic import Field

from app.api.events.signups.models import SignupStatus
from app.api.events.attendance.schemas import AttendancePublic
from app.api.users.schemas import UserSummary
from app.core.response.base_model import CustomBaseModel


class SignupCreate(CustomBaseModel):
    event_id: int = Field(..., gt=0)
    # admins may sign up somebody else
    user_id: Optional[int] = Field(None, gt=0)


class SignupEventMin(CustomBaseModel):
    id: int
    organization_id: int
    title: str
    event_date: date
    event_time: time
    location_name: str
    city: str
    state: str
    num_needed: int
    num_signed_up: int


class SignupPublic(CustomBaseModel):
    id: int
    user_id: int
    event_id: int
    signup_date: datetime
    status: SignupStatus
    event: Optional[SignupEventMin] = None
    user: Optional[UserSummary] = None


class SignupWithAttendance(SignupPublic):
    attendance: Optional[AttendancePublic] = None
