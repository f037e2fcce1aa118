from datetime import datetime
from typing import Literal
from pydantic import Field, EmailStr

from app.api.users.models import UserRoles
from app.core.response.base_model import CustomBaseModel


class UserBase(CustomBaseModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr = Field(...)


class UserCreate(UserBase):
    password: str = Field(..., min_length=8, max_length=128)
    # admins are only ever created by another admin
    role: Literal["volunteer", "organizer"] = "volunteer"


class UserUpdate(CustomBaseModel):
    first_name: str | None = Field(None, min_length=1, max_length=50)
    last_name: str | None = Field(None, min_length=1, max_length=50)
    email: EmailStr | None = None
    password: str | None = Field(None, min_length=8, max_length=128)
    role: UserRoles | None = None
    organization_id: int | None = None


class UserLinkOrganization(CustomBaseModel):
    organization_id: int = Field(..., gt=0)


class UserSummary(CustomBaseModel):
    id: int
    first_name: str
    last_name: str
    email: EmailStr


class UserPublic(UserSummary):
    role: UserRoles
    organization_id: int | None = None
    last_login: datetime | None = None
    created_at: datetime
