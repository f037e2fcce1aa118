from datetime import date, datetime, time
from typing import Optional
from pydantic import Field, field_validator

from app.api.events.attendance.models import AttendanceStatus
from app.core.response.base_model import CustomBaseModel
from app.core.utils.keys import CERTIFICATE_UID_PATTERN, normalize_certificate_uid


class CertificateIssue(CustomBaseModel):
    signup_id: int = Field(..., gt=0)
    # generated when omitted
    certificate_uid: Optional[str] = Field(None)
    # accepted for compatibility; the stored hash is always computed here
    verification_hash: Optional[str] = Field(None, min_length=64, max_length=64)
    pdf_path: Optional[str] = Field(None, max_length=255)

    @field_validator("certificate_uid")
    @classmethod
    def normalize_uid(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = normalize_certificate_uid(value)
        if not CERTIFICATE_UID_PATTERN.match(value):
            raise ValueError("certificate_uid must be 12 letters or digits")
        return value


class CertificateUpdate(CustomBaseModel):
    pdf_path: Optional[str] = Field(None, max_length=255)


class CertificatePublic(CustomBaseModel):
    """Certificate as returned by every read; the verification hash is never exposed."""

    id: int
    signup_id: int
    certificate_uid: str
    issued_at: datetime
    signed_by: Optional[int] = None
    pdf_path: Optional[str] = None


class VerifiedOrganization(CustomBaseModel):
    id: int
    name: str


class VerifiedEvent(CustomBaseModel):
    id: int
    title: str
    event_date: date
    event_time: time
    event_length_hours: int
    location_name: str
    city: str
    state: str
    organization: VerifiedOrganization


class VerifiedUser(CustomBaseModel):
    id: int
    first_name: str
    last_name: str


class VerifiedAttendance(CustomBaseModel):
    status: AttendanceStatus
    hours: Optional[float] = None
    marked_at: datetime


class CertificateVerification(CustomBaseModel):
    valid: bool = True
    certificate_uid: str
    issued_at: datetime
    signed_by: Optional[int] = None
    pdf_path: Optional[str] = None
    user: VerifiedUser
    event: VerifiedEvent
    attendance: Optional[VerifiedAttendance] = None
