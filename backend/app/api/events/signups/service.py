import logging
from collections import defaultdict
from typing import Optional

from sqlalchemy import case, delete, exists, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from app.response import CustomHTTPException, conflict, not_found
from app.api.events.models import Events
from app.api.events.signups.models import SignupStatus, Signups
from app.api.events.attendance.models import EventAttendance
from app.api.certificates.models import Certificates
from app.api.users.models import Users
from app.core.auth.policy import Action, Principal, Target, enforce

logger = logging.getLogger(__name__)

DUPLICATE_SIGNUP = "User is already signed up for this event"


def _decrement(event_id: int, by: int = 1):
    """Atomic counter decrement that never goes below zero."""
    return (
        update(Events)
        .where(Events.id == event_id)
        .values(
            num_signed_up=case(
                (Events.num_signed_up > by, Events.num_signed_up - by),
                else_=0,
            )
        )
    )


async def get_signup_or_404(session: AsyncSession, signup_id: int) -> Signups:
    signup = await session.scalar(
        select(Signups)
        .options(joinedload(Signups.event), joinedload(Signups.user))
        .where(Signups.id == signup_id)
        .execution_options(populate_existing=True)
    )
    if not signup:
        raise not_found("Signup")
    return signup


def signup_target(signup: Signups) -> Target:
    return Target(user_id=signup.user_id, organization_id=signup.event.organization_id)


async def create_signup(
    session: AsyncSession, principal: Principal, event_id: int, user_id: Optional[int]
) -> Signups:
    """
    Register a user for an event.

    The insert and the counter increment share one transaction, and the
    increment is done in SQL so concurrent signups cannot lose updates.
    Capacity is not enforced.
    """
    user_id = user_id or principal.user_id
    enforce(principal, Action.create_signup, Target(user_id=user_id))

    if not await session.scalar(select(exists().where(Events.id == event_id))):
        raise not_found("Event")
    if not await session.scalar(select(exists().where(Users.id == user_id))):
        raise not_found("User")
    if await session.scalar(
        select(
            exists().where(Signups.user_id == user_id, Signups.event_id == event_id)
        )
    ):
        raise CustomHTTPException(
            status_code=400, message=DUPLICATE_SIGNUP, error_code="DUPLICATE_SIGNUP"
        )

    signup = Signups(user_id=user_id, event_id=event_id, status=SignupStatus.registered)
    session.add(signup)
    try:
        await session.flush()
        await session.execute(
            update(Events)
            .where(Events.id == event_id)
            .values(num_signed_up=Events.num_signed_up + 1)
        )
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise CustomHTTPException(
            status_code=400, message=DUPLICATE_SIGNUP, error_code="DUPLICATE_SIGNUP"
        ) from e
    logger.info("user %s signed up for event %s", user_id, event_id)
    return await get_signup_or_404(session, signup.id)


async def delete_signup(
    session: AsyncSession, principal: Principal, signup_id: int
) -> Signups:
    signup = await get_signup_or_404(session, signup_id)
    enforce(principal, Action.cancel_signup, signup_target(signup))
    if await session.scalar(
        select(exists().where(Certificates.signup_id == signup.id))
    ):
        raise conflict("Cannot cancel a signup that already has a certificate")

    await session.execute(
        delete(EventAttendance).where(EventAttendance.signup_id == signup.id)
    )
    result = await session.execute(delete(Signups).where(Signups.id == signup.id))
    if result.rowcount != 1:
        # a concurrent cancel got there first and already moved the counter
        await session.rollback()
        raise not_found("Signup")
    if signup.status == SignupStatus.registered:
        await session.execute(_decrement(signup.event_id))
    await session.commit()
    logger.info("signup %s for event %s removed", signup.id, signup.event_id)
    return signup


async def purge_signups(session: AsyncSession, condition, include_certificates=False):
    """
    Delete the signups matching ``condition`` with their attendance and
    keep every affected event counter in step. Does not commit.

    Counters are decremented by the rows each ``DELETE`` actually removed,
    so signups deleted concurrently are not counted twice.
    """
    result = await session.execute(
        select(Signups.id, Signups.event_id, Signups.status).where(condition)
    )
    rows = result.all()
    if not rows:
        return 0
    signup_ids = [row.id for row in rows]
    if include_certificates:
        await session.execute(
            delete(Certificates).where(Certificates.signup_id.in_(signup_ids))
        )
    await session.execute(
        delete(EventAttendance).where(EventAttendance.signup_id.in_(signup_ids))
    )

    groups = defaultdict(list)
    for row in rows:
        groups[(row.event_id, row.status == SignupStatus.registered)].append(row.id)
    removed = 0
    for (event_id, registered), ids in groups.items():
        deleted = await session.execute(delete(Signups).where(Signups.id.in_(ids)))
        removed += deleted.rowcount
        if registered and deleted.rowcount:
            await session.execute(_decrement(event_id, deleted.rowcount))
    return removed


def _signup_query():
    return select(Signups).options(
        joinedload(Signups.event), joinedload(Signups.user)
    )


async def list_signups(session: AsyncSession):
    result = await session.execute(_signup_query().order_by(Signups.id))
    return result.scalars().all()


async def list_user_signups(session: AsyncSession, user_id: int):
    result = await session.execute(
        _signup_query()
        .where(Signups.user_id == user_id)
        .order_by(Signups.signup_date.desc())
    )
    return result.scalars().all()


async def list_event_signups(
    session: AsyncSession, principal: Principal, event_id: int
):
    event = await session.get(Events, event_id)
    if not event:
        raise not_found("Event")
    enforce(
        principal,
        Action.view_event_signups,
        Target(organization_id=event.organization_id),
    )
    result = await session.execute(
        _signup_query()
        .options(joinedload(Signups.attendance))
        .where(Signups.event_id == event_id)
        .order_by(Signups.signup_date)
    )
    return result.scalars().unique().all()
