import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import exists, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload
from starlette.concurrency import run_in_threadpool

from app.api.notifications.models import (
    NotificationChannel,
    NotificationStatus,
    Notifications,
)
from app.api.events.models import Events
from app.api.events.signups.models import SignupStatus, Signups
from app.api.notifications.schemas import NotificationSchema
from app.core.email.email import render_template, send_email
from app.core.response.pagination import _PaginationParams, paginate
from app.db import core as db_core

logger = logging.getLogger(__name__)


async def queue_notification(
    session: AsyncSession,
    user_id: int,
    subject: str,
    body: str,
    channel: NotificationChannel = NotificationChannel.email,
    related_event_id: Optional[int] = None,
    scheduled_at: Optional[datetime] = None,
) -> int:
    """Store a pending notification and return its id."""
    notification = Notifications(
        user_id=user_id,
        channel=channel,
        subject=subject,
        body=body,
        related_event_id=related_event_id,
        scheduled_at=scheduled_at,
        status=NotificationStatus.pending,
    )
    session.add(notification)
    await session.commit()
    return notification.id


async def _deliver(session: AsyncSession, notification: Notifications):
    if notification.channel == NotificationChannel.in_app:
        notification.status = NotificationStatus.sent
        notification.sent_at = datetime.now(timezone.utc)
        return
    try:
        if not notification.user or not notification.user.email:
            raise ValueError(f"user {notification.user_id} has no email address")
        # boto3 is blocking
        await run_in_threadpool(
            send_email,
            recipients=notification.user.email,
            subject=notification.subject,
            body_text=notification.body,
        )
        notification.status = NotificationStatus.sent
        notification.sent_at = datetime.now(timezone.utc)
        notification.error_message = None
    except Exception as e:
        logger.error("notification %s delivery failed: %s", notification.id, e)
        notification.status = NotificationStatus.failed
        notification.error_message = str(e)[:500]


async def deliver_notification(notification_id: int) -> Optional[NotificationStatus]:
    """
    Try to deliver one notification and record the outcome on the row.

    Runs as a background task, so nothing is raised to the caller.
    Notifications scheduled in the future are left pending.
    """
    try:
        async with db_core.AsyncSessionLocal() as session:
            notification = await session.scalar(
                select(Notifications)
                .options(joinedload(Notifications.user))
                .where(Notifications.id == notification_id)
            )
            if not notification:
                logger.warning("notification %s not found", notification_id)
                return None
            if notification.status != NotificationStatus.pending:
                return notification.status
            if notification.scheduled_at and notification.scheduled_at > datetime.now(
                timezone.utc
            ):
                return notification.status
            await _deliver(session, notification)
            await session.commit()
            return notification.status
    except Exception:
        logger.exception("could not process notification %s", notification_id)
        return None


async def notify_user(
    user_id: int,
    subject: str,
    template_path: str,
    context: Dict[str, Any],
    related_event_id: Optional[int] = None,
    channel: NotificationChannel = NotificationChannel.email,
) -> Optional[int]:
    """Render, queue and deliver a notification in its own session."""
    try:
        body = render_template(template_path=template_path, context=context)
        async with db_core.AsyncSessionLocal() as session:
            notification_id = await queue_notification(
                session,
                user_id=user_id,
                subject=subject,
                body=body,
                channel=channel,
                related_event_id=related_event_id,
            )
    except Exception:
        logger.exception("could not queue notification for user %s", user_id)
        return None
    await deliver_notification(notification_id)
    return notification_id


async def process_pending_notifications(session: AsyncSession) -> dict:
    """Deliver every pending notification that is due."""
    now = datetime.now(timezone.utc)
    result = await session.execute(
        select(Notifications)
        .options(joinedload(Notifications.user))
        .where(
            Notifications.status == NotificationStatus.pending,
            or_(Notifications.scheduled_at.is_(None), Notifications.scheduled_at <= now),
        )
        .order_by(Notifications.id)
    )
    counts = {"sent": 0, "failed": 0}
    for notification in result.scalars().all():
        await _deliver(session, notification)
        counts[notification.status.value] += 1
        await session.commit()
    counts["total"] = counts["sent"] + counts["failed"]
    logger.info("processed pending notifications: %s", counts)
    return counts


async def queue_event_reminders(session: AsyncSession, event_date: date) -> int:
    """
    Queue one reminder per registered signup of the events held on
    ``event_date``. Volunteers already reminded for an event are skipped.
    """
    result = await session.execute(
        select(Signups)
        .options(joinedload(Signups.user), joinedload(Signups.event))
        .join(Events, Signups.event_id == Events.id)
        .where(
            Events.event_date == event_date,
            Signups.status == SignupStatus.registered,
        )
        .order_by(Signups.id)
    )
    queued = 0
    for signup in result.scalars().all():
        event = signup.event
        subject = f"Reminder: {event.title}"
        already = await session.scalar(
            select(
                exists().where(
                    Notifications.user_id == signup.user_id,
                    Notifications.related_event_id == event.id,
                    Notifications.subject == subject,
                )
            )
        )
        if already:
            continue
        body = render_template(
            template_path="event_reminder.txt",
            context={
                "first_name": signup.user.first_name,
                "event_title": event.title,
                "event_date": event.event_date.isoformat(),
                "event_time": event.event_time.strftime("%H:%M"),
                "location_name": event.location_name,
                "address": event.address,
                "city": event.city,
            },
        )
        await queue_notification(
            session,
            user_id=signup.user_id,
            subject=subject,
            body=body,
            related_event_id=event.id,
        )
        queued += 1
    logger.info("queued %s reminders for events on %s", queued, event_date)
    return queued


async def list_notifications(
    session: AsyncSession,
    user_id: int,
    pagination: _PaginationParams,
    status: Optional[NotificationStatus] = None,
):
    query = select(Notifications).where(Notifications.user_id == user_id)
    if status:
        query = query.where(Notifications.status == status)
    query = query.order_by(Notifications.created_at.desc(), Notifications.id.desc())
    return await paginate(query, NotificationSchema, pagination, session)
