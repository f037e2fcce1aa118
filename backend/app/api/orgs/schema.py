from datetime import datetime
from pydantic import EmailStr, Field, model_validator
from typing import Optional

from app.api.orgs.models import ApprovalStatus
from app.core.response.base_model import CustomBaseModel


class OrganizationBaseMin(CustomBaseModel):
    name: str = Field(..., min_length=3, max_length=100)


class OrganizationBase(OrganizationBaseMin):
    description: Optional[str] = Field(None)
    contact_email: EmailStr = Field(...)
    contact_phone: Optional[str] = Field(None, max_length=20)
    website: Optional[str] = Field(None, max_length=255)


class OrganizationCreate(OrganizationBase):
    # admins may link an existing user to the new organization
    user_id: Optional[int] = Field(None, gt=0)


class OrganizationUpdate(CustomBaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = None
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = Field(None, max_length=20)
    website: Optional[str] = Field(None, max_length=255)


class OrganizationApprovalUpdate(CustomBaseModel):
    approval_status: ApprovalStatus
    rejection_reason: Optional[str] = Field(None, max_length=255)

    @model_validator(mode="after")
    def drop_reason_unless_rejected(self):
        if self.approval_status != ApprovalStatus.rejected:
            self.rejection_reason = None
        return self


class OrganizationPublicMin(OrganizationBaseMin):
    id: int = Field(..., gt=0)
    approval_status: ApprovalStatus


class OrganizationPublic(OrganizationBase):
    id: int = Field(..., gt=0)
    approval_status: ApprovalStatus
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: datetime
