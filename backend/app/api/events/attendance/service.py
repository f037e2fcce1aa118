import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from app.response import conflict, not_found
from app.api.events.attendance.models import AttendanceStatus, EventAttendance
from app.api.events.signups.models import Signups
from app.api.certificates.models import Certificates
from app.api.events.signups.service import get_signup_or_404, signup_target
from app.core.auth.policy import Action, Principal, Target, enforce

logger = logging.getLogger(__name__)


async def _attendance_for_signup(
    session: AsyncSession, signup_id: int
) -> Optional[EventAttendance]:
    return await session.scalar(
        select(EventAttendance).where(EventAttendance.signup_id == signup_id)
    )


async def _ensure_not_certified(
    session: AsyncSession, signup_id: int, status: Optional[AttendanceStatus] = None
):
    """A certified signup keeps a completed attendance record."""
    if status == AttendanceStatus.completed:
        return
    if await session.scalar(
        select(exists().where(Certificates.signup_id == signup_id))
    ):
        raise conflict("Attendance of a certified signup must stay completed")


def _apply_mark(
    attendance: EventAttendance,
    marked_by: int,
    status: AttendanceStatus,
    hours: Optional[float],
    hours_set: bool,
):
    attendance.status = status
    if hours_set:
        attendance.hours = hours
    attendance.marked_by = marked_by
    attendance.marked_at = datetime.now(timezone.utc)


async def mark_attendance(
    session: AsyncSession,
    principal: Principal,
    signup_id: int,
    status: AttendanceStatus,
    hours: Optional[float] = None,
    hours_set: bool = True,
) -> tuple[EventAttendance, bool]:
    """
    Record the outcome of a signup. There is at most one row per signup:
    marking again overwrites status, marker and time (latest mark wins),
    and ``hours`` is only replaced when the caller supplied it.

    Returns the row and whether it was created.
    """
    signup = await get_signup_or_404(session, signup_id)
    enforce(principal, Action.mark_attendance, signup_target(signup))
    signup_id = signup.id

    attendance = await _attendance_for_signup(session, signup_id)
    if attendance:
        await _ensure_not_certified(session, signup_id, status)
        _apply_mark(attendance, principal.user_id, status, hours, hours_set)
        await session.commit()
        return attendance, False

    attendance = EventAttendance(signup_id=signup_id)
    _apply_mark(attendance, principal.user_id, status, hours, True)
    session.add(attendance)
    try:
        await session.commit()
        return attendance, True
    except IntegrityError:
        # a concurrent mark inserted first; update that row instead
        await session.rollback()
        logger.info("attendance for signup %s raced, updating", signup_id)

    attendance = await _attendance_for_signup(session, signup_id)
    _apply_mark(attendance, principal.user_id, status, hours, hours_set)
    await session.commit()
    return attendance, False


async def get_attendance_or_404(session: AsyncSession, attendance_id: int):
    attendance = await session.scalar(
        select(EventAttendance)
        .options(joinedload(EventAttendance.signup).joinedload(Signups.event))
        .where(EventAttendance.id == attendance_id)
    )
    if not attendance:
        raise not_found("Attendance record")
    return attendance


async def update_attendance(
    session: AsyncSession,
    principal: Principal,
    attendance_id: int,
    status: AttendanceStatus,
    hours: Optional[float],
    hours_set: bool,
) -> EventAttendance:
    attendance = await get_attendance_or_404(session, attendance_id)
    enforce(principal, Action.mark_attendance, signup_target(attendance.signup))
    await _ensure_not_certified(session, attendance.signup_id, status)
    _apply_mark(attendance, principal.user_id, status, hours, hours_set)
    await session.commit()
    return attendance


async def delete_attendance(
    session: AsyncSession, principal: Principal, attendance_id: int
) -> EventAttendance:
    attendance = await get_attendance_or_404(session, attendance_id)
    enforce(principal, Action.mark_attendance, signup_target(attendance.signup))
    await _ensure_not_certified(session, attendance.signup_id)
    await session.delete(attendance)
    await session.commit()
    return attendance


async def get_signup_attendance(
    session: AsyncSession, principal: Principal, signup_id: int
) -> EventAttendance:
    signup = await get_signup_or_404(session, signup_id)
    enforce(principal, Action.view_attendance, signup_target(signup))
    attendance = await _attendance_for_signup(session, signup.id)
    if not attendance:
        raise not_found("Attendance record")
    return attendance
