#!/usr/bin/env python3
"""
Deliver pending notifications and queue reminders for upcoming events.

Run from the backend directory, e.g. from cron:

    python process_notifications.py --remind-days 1
"""
import argparse
import asyncio
import logging
from datetime import datetime, timedelta, timezone

from app.config import settings
from app.db.core import AsyncSessionLocal, engine
from app.api.notifications.service import (
    process_pending_notifications,
    queue_event_reminders,
)

logger = logging.getLogger("process_notifications")


async def run(remind_days: int | None) -> dict:
    try:
        async with AsyncSessionLocal() as session:
            if remind_days is not None:
                event_date = datetime.now(timezone.utc).date() + timedelta(
                    days=remind_days
                )
                await queue_event_reminders(session, event_date)
            return await process_pending_notifications(session)
    finally:
        await engine.dispose()


def main():
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument(
        "--remind-days",
        type=int,
        default=None,
        help="queue reminders for events this many days ahead before delivering",
    )
    args = parser.parse_args()

    logging.basicConfig(level=settings.LOG_LEVEL)
    counts = asyncio.run(run(args.remind_days))
    logger.info("sent %(sent)s, failed %(failed)s of %(total)s", counts)


if __name__ == "__main__":
    main()
