#!/usr/bin/env python3
"""
Delete audit log rows older than the retention window.

Run from the backend directory, e.g. from cron:

    python cleanup_audit_logs.py --days 90
"""
import argparse
import asyncio
import logging

from app.config import settings
from app.db.core import AsyncSessionLocal, engine
from app.api.audit.service import purge_expired_audit_logs

logger = logging.getLogger("cleanup_audit_logs")


async def cleanup(retention_days: int) -> int:
    try:
        async with AsyncSessionLocal() as session:
            return await purge_expired_audit_logs(session, retention_days)
    finally:
        await engine.dispose()


def main():
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument(
        "--days",
        type=int,
        default=settings.AUDIT_LOG_RETENTION_DAYS,
        help="retention window in days",
    )
    args = parser.parse_args()
    if args.days < 1:
        parser.error("--days must be at least 1")

    logging.basicConfig(level=settings.LOG_LEVEL)
    deleted = asyncio.run(cleanup(args.days))
    logger.info("deleted %s audit rows", deleted)


if __name__ == "__main__":
    main()
