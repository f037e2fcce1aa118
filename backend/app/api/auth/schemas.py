from pydantic import EmailStr
from app.core.response.base_model import CustomBaseModel
from app.api.users.models import UserRoles


class Token(CustomBaseModel):
    token_type: str
    access_token: str


class AuthTokenData(CustomBaseModel):
    user_id: int
    email: str | None = None
    role: UserRoles | None = None
    organization_id: int | None = None
    token_type: str


class AuthUser(CustomBaseModel):
    id: int
    first_name: str
    last_name: str
    email: EmailStr
    role: UserRoles
    organization_id: int | None = None
