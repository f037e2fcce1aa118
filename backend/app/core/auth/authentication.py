from passlib.context import CryptContext
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.users.models import Users

ALGORITHM = "HS256"


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token", auto_error=False)


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


async def get_user(session: AsyncSession, email_or_id: str | int):
    query = select(Users)
    if isinstance(email_or_id, int):
        query = query.where(Users.id == email_or_id)
    else:
        query = query.where(func.lower(Users.email) == email_or_id.strip().lower())
    result = await session.execute(query)
    return result.scalars().first()


async def authenticate_user(session: AsyncSession, email: str, password: str):
    user = await get_user(session, email)
    if not user:
        return False
    if not user.password or not verify_password(password, user.password):
        return False
    return user
