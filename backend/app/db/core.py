import logging
import os
from typing import Annotated
from fastapi import Depends
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from app.config import settings
from app.db.registry import *


def engine_options() -> dict:
    """Pool and timeout options for the configured backend."""
    if settings.is_sqlite:
        return {}
    return {
        "pool_size": settings.DATABASE_POOL_SIZE,
        "max_overflow": settings.DATABASE_MAX_OVERFLOW,
        "pool_timeout": settings.DATABASE_POOL_TIMEOUT,
        "pool_pre_ping": True,
        "connect_args": {
            "server_settings": {
                "statement_timeout": str(settings.DATABASE_STATEMENT_TIMEOUT_MS)
            },
            "command_timeout": settings.DATABASE_STATEMENT_TIMEOUT_MS / 1000,
        },
    }


engine = create_async_engine(settings.DATABASE_URL, **engine_options())

AsyncSessionLocal = async_sessionmaker(
    autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
)


async def get_session():
    async with AsyncSessionLocal() as session:
        yield session


SessionDep = Annotated[AsyncSession, Depends(get_session)]

# setup logging for sqlalchemy

if settings.SQL_LOG_FILE:
    logger = logging.getLogger("sqlalchemy.engine")
    logger.setLevel(logging.INFO)

    os.makedirs(os.path.dirname(settings.SQL_LOG_FILE) or ".", exist_ok=True)

    file_handler = logging.FileHandler(settings.SQL_LOG_FILE)
    file_handler.setLevel(logging.INFO)

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    file_handler.setFormatter(formatter)

    logger.addHandler(file_handler)
