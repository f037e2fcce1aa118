from datetime import datetime, timedelta, timezone
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth.jwt import create_access_token
from app.api.users.models import Users
from app.api.auth.schemas import AuthTokenData, Token
from app.config import settings


def create_token_for_user(user: Users) -> Token:
    access_token_data = AuthTokenData(
        user_id=user.id,
        email=user.email,
        role=user.role,
        organization_id=user.organization_id,
        token_type="access_token",
    )
    access_token = create_access_token(
        data=access_token_data.model_dump(mode="json"),
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    return Token(access_token=access_token, token_type="Bearer")


async def record_login(session: AsyncSession, user: Users):
    user.last_login = datetime.now(timezone.utc)
    session.add(user)
    await session.commit()
