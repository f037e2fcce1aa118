"""
Dashboard metrics.

Rows are fetched with plain selects and folded in Python so the month
grouping does not depend on database specific date formatting. Hours of a
completed attendance are the recorded hours when an organizer entered them,
otherwise the length of the event.
"""

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.events.attendance.models import AttendanceStatus, EventAttendance
from app.api.events.models import Events
from app.api.events.signups.models import SignupStatus, Signups
from app.api.metrics.schemas import (
    AdminMetrics,
    OrganizerMetrics,
    OrganizerMonth,
    TopEvent,
    UsageMonth,
    VolunteerMetrics,
    VolunteerMonth,
)
from app.api.orgs.models import ApprovalStatus, Organizations
from app.api.users.models import Users
from app.api.users.service import count_users_by_role

logger = logging.getLogger(__name__)

TOP_EVENTS_LIMIT = 10
ACTIVE_WINDOWS = (7, 30, 90, 365)


def clamp_rate(numerator, denominator) -> float:
    """``numerator / denominator`` bounded to [0, 1]; 0 when nothing is expected."""
    if not denominator or denominator <= 0:
        return 0.0
    return min(max(numerator / denominator, 0.0), 1.0)


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _year_month(value) -> str:
    return value.strftime("%Y-%m")


def _hours(attendance_hours, event_length_hours) -> float:
    if attendance_hours is not None:
        return float(attendance_hours)
    return float(event_length_hours or 0)


def _signup_rows(condition):
    return (
        select(
            Signups.id,
            Signups.status,
            Events.id,
            Events.event_date,
            Events.event_length_hours,
            EventAttendance.status,
            EventAttendance.hours,
        )
        .join(Events, Signups.event_id == Events.id)
        .outerjoin(EventAttendance, EventAttendance.signup_id == Signups.id)
        .where(condition)
    )


async def volunteer_metrics(session: AsyncSession, user_id: int) -> VolunteerMetrics:
    today = _today()
    result = await session.execute(_signup_rows(Signups.user_id == user_id))

    metrics = VolunteerMetrics()
    months: dict[str, VolunteerMonth] = {}
    for _, signup_status, _, event_date, length, att_status, att_hours in result.all():
        if signup_status == SignupStatus.registered:
            metrics.total_events_registered += 1
            if event_date >= today:
                metrics.upcoming_events_count += 1
        elif signup_status == SignupStatus.canceled:
            metrics.canceled_by_volunteer_count += 1

        if att_status == AttendanceStatus.no_show:
            metrics.no_show_count += 1
        elif att_status == AttendanceStatus.excused:
            metrics.excused_count += 1
        elif att_status == AttendanceStatus.completed:
            hours = _hours(att_hours, length)
            metrics.events_attended += 1
            metrics.total_hours_attended += hours
            if event_date < today:
                key = _year_month(event_date)
                month = months.setdefault(key, VolunteerMonth(year_month=key))
                month.events_attended += 1
                month.hours_attended += hours

    metrics.history_by_month = [months[key] for key in sorted(months)]
    return metrics


async def organization_metrics(
    session: AsyncSession, organization_id: int
) -> OrganizerMetrics:
    today = _today()
    events = (
        await session.execute(
            select(Events).where(Events.organization_id == organization_id)
        )
    ).scalars().all()
    rows = (
        await session.execute(_signup_rows(Events.organization_id == organization_id))
    ).all()

    metrics = OrganizerMetrics(organization_id=organization_id)
    metrics.total_events_created = len(events)
    metrics.total_active_upcoming_events = sum(
        1 for event in events if event.event_date >= today
    )

    past = {event.id: event for event in events if event.event_date < today}
    sum_signed_up = sum(event.num_signed_up or 0 for event in past.values())
    sum_needed = sum(event.num_needed or 0 for event in past.values())

    per_event = defaultdict(lambda: {"registered": 0, "attended": 0, "hours": 0.0})
    month_hours: dict[str, float] = defaultdict(float)
    registered = attended = no_show = excused = 0
    for _, signup_status, event_id, event_date, length, att_status, att_hours in rows:
        is_registered = signup_status == SignupStatus.registered
        stats = per_event[event_id]
        if is_registered:
            registered += 1
            stats["registered"] += 1

        if att_status == AttendanceStatus.no_show:
            no_show += 1
        elif att_status == AttendanceStatus.excused:
            excused += 1
        elif att_status == AttendanceStatus.completed:
            attended += 1
            hours = _hours(att_hours, length)
            stats["attended"] += 1
            stats["hours"] += hours
            if is_registered:
                metrics.total_volunteer_hours_delivered += hours
                if event_date < today:
                    month_hours[_year_month(event_date)] += hours

    metrics.total_volunteers_registered = registered
    metrics.average_fill_rate = clamp_rate(sum_signed_up, sum_needed)
    metrics.attendance_rate = clamp_rate(attended, registered)
    metrics.no_show_rate = clamp_rate(no_show, registered)
    metrics.excused_rate = clamp_rate(excused, registered)

    held: dict[str, int] = defaultdict(int)
    for event in past.values():
        held[_year_month(event.event_date)] += 1
    metrics.events_by_month = [
        OrganizerMonth(
            year_month=key, events_held=held[key], volunteer_hours=month_hours[key]
        )
        for key in sorted(held)
    ]

    top = [
        TopEvent(
            event_id=event.id,
            title=event.title,
            event_date=event.event_date,
            registered_count=per_event[event.id]["registered"],
            attended_count=per_event[event.id]["attended"],
            fill_rate=clamp_rate(per_event[event.id]["registered"], event.num_needed),
            volunteer_hours=per_event[event.id]["hours"],
        )
        for event in past.values()
    ]
    top.sort(key=lambda item: (-item.attended_count, -item.registered_count))
    metrics.top_events_by_attendance = top[:TOP_EVENTS_LIMIT]
    return metrics


async def _count(session: AsyncSession, query) -> int:
    return await session.scalar(query) or 0


async def admin_metrics(session: AsyncSession) -> AdminMetrics:
    now = datetime.now(timezone.utc)
    today = now.date()
    month_ago = now - timedelta(days=30)

    roles = await count_users_by_role(session)
    metrics = AdminMetrics(
        total_volunteers=roles["volunteer"],
        total_organizers=roles["organizer"],
        total_admins=roles["admin"],
    )
    metrics.total_users = sum(roles.values())
    metrics.total_organizations = await _count(
        session, select(func.count(Organizations.id))
    )
    metrics.pending_organizations = await _count(
        session,
        select(func.count(Organizations.id)).where(
            Organizations.approval_status == ApprovalStatus.pending
        ),
    )
    metrics.total_events = await _count(session, select(func.count(Events.id)))
    metrics.total_completed_events = await _count(
        session, select(func.count(Events.id)).where(Events.event_date < today)
    )
    metrics.new_users_last_30_days = await _count(
        session, select(func.count(Users.id)).where(Users.created_at >= month_ago)
    )
    metrics.new_organizations_last_30_days = await _count(
        session,
        select(func.count(Organizations.id)).where(
            Organizations.created_at >= month_ago
        ),
    )
    for days in ACTIVE_WINDOWS:
        active = await _count(
            session,
            select(func.count(Users.id)).where(
                Users.last_login >= now - timedelta(days=days)
            ),
        )
        setattr(metrics, f"active_users_last_{days}_days", active)

    months: dict[str, UsageMonth] = {}

    def month(value) -> UsageMonth:
        key = _year_month(value)
        return months.setdefault(key, UsageMonth(year_month=key))

    for created_at in (await session.execute(select(Users.created_at))).scalars():
        month(created_at).new_users += 1
    for created_at in (
        await session.execute(select(Organizations.created_at))
    ).scalars():
        month(created_at).new_organizations += 1
    for created_at in (await session.execute(select(Events.created_at))).scalars():
        month(created_at).events_created += 1

    completed = await session.execute(
        select(Events.event_date, Events.event_length_hours, EventAttendance.hours)
        .join(Signups, Signups.event_id == Events.id)
        .join(EventAttendance, EventAttendance.signup_id == Signups.id)
        .where(EventAttendance.status == AttendanceStatus.completed)
    )
    for event_date, length, att_hours in completed.all():
        hours = _hours(att_hours, length)
        metrics.total_volunteer_hours += hours
        month(event_date).volunteer_hours += hours

    metrics.usage_by_month = [months[key] for key in sorted(months)]
    logger.debug("admin metrics computed over %s months", len(months))
    return metrics
