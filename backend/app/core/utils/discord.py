import asyncio
import logging
import traceback
from datetime import datetime, timezone

import httpx
from fastapi import Request

from app.config import settings

logger = logging.getLogger(__name__)


async def notify_error(request: Request, exc: Exception, track_id: str):
    """
    Forward an unhandled error to the Discord webhook, if one is configured.
    """
    if not settings.DISCORD_ERROR_WEBHOOK:
        return
    error_details = {
        "track_id": track_id,
        "path": request.url.path,
        "method": request.method,
        "traceback": "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        ),
    }

    await send_discord_notification(error_details)


async def send_discord_notification(
    error_details: dict, max_retries: int = 2, retry_delay: float = 1.0
):
    if not settings.DISCORD_ERROR_WEBHOOK:
        return
    timestamp = datetime.now(timezone.utc).isoformat()
    error_content = f"""
============================ ERROR DETAILS ============================

Timestamp: {timestamp}
Version: {settings.APP_VERSION}
Track ID: {error_details.get("track_id", "N/A")}
Path: {error_details.get("path", "N/A")}
Method: {error_details.get("method", "N/A")}

============================== TRACEBACK ==============================

{error_details.get("traceback", "")}

=======================================================================
"""
    files = {
        "file": ("traceback.txt", error_content.encode("utf-8"), "text/plain"),
    }

    async with httpx.AsyncClient(timeout=10) as client:
        for attempt in range(max_retries):
            try:
                response = await client.post(
                    settings.DISCORD_ERROR_WEBHOOK,
                    data={"content": "Internal Server Error detected"},
                    files=files,
                )
                response.raise_for_status()
                return
            except httpx.HTTPError as e:
                logger.warning(
                    "Discord notification attempt %s failed: %s", attempt + 1, e
                )
                if attempt < max_retries - 1:
                    await asyncio.sleep(retry_delay * (2**attempt))

    logger.error("Failed to send Discord error notification after all retries")
