from datetime import date, datetime, time
from typing import Optional
from pydantic import Field, field_validator

from app.api.orgs.schema import OrganizationPublicMin
from app.core.response.base_model import CustomBaseModel


class EventBase(CustomBaseModel):
    title: str = Field(..., min_length=3, max_length=100)
    description: Optional[str] = Field(None)
    event_date: date = Field(...)
    event_time: time = Field(...)
    event_length_hours: int = Field(1, ge=1, le=24)
    location_name: str = Field(..., min_length=1, max_length=100)
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=2, max_length=2)
    num_needed: int = Field(..., ge=1)

    @field_validator("state")
    @classmethod
    def upper_state(cls, value: str) -> str:
        return value.upper()


class EventCreate(EventBase):
    organization_id: int = Field(..., gt=0)


class EventUpdate(CustomBaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = None
    event_date: Optional[date] = None
    event_time: Optional[time] = None
    event_length_hours: Optional[int] = Field(None, ge=1, le=24)
    location_name: Optional[str] = Field(None, min_length=1, max_length=100)
    address: Optional[str] = Field(None, min_length=1)
    city: Optional[str] = Field(None, min_length=1, max_length=100)
    state: Optional[str] = Field(None, min_length=2, max_length=2)
    num_needed: Optional[int] = Field(None, ge=1)

    @field_validator("state")
    @classmethod
    def upper_state(cls, value: Optional[str]) -> Optional[str]:
        return value.upper() if value else value


class EventPublic(EventBase):
    id: int
    organization_id: int
    num_signed_up: int
    created_by: Optional[int] = None
    created_at: datetime
    organization: Optional[OrganizationPublicMin] = None
