import logging
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import exists, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from app.response import CustomHTTPException, conflict, not_found
from app.api.events.models import Events
from app.api.events.schemas import EventCreate, EventPublic, EventUpdate
from app.api.events.signups.models import Signups
from app.api.events.signups.service import purge_signups
from app.api.certificates.models import Certificates
from app.api.notifications.models import Notifications
from app.api.orgs.service import ensure_organization_approved
from app.core.auth.policy import Action, Principal, Target, enforce
from app.core.response.pagination import _PaginationParams, paginate
from app.core.validations.schema import validate_unique

logger = logging.getLogger(__name__)

DUPLICATE_EVENT = (
    "An event with this title, date, time, and location already exists "
    "for this organization"
)
SLOT_FIELDS = ("organization_id", "event_date", "event_time", "location_name", "title")


def _duplicate_event(exc: Exception | None = None):
    error = CustomHTTPException(
        status_code=400,
        message=DUPLICATE_EVENT,
        errors={"title": "title already exists"},
    )
    if exc is not None:
        raise error from exc
    raise error


async def _check_slot_free(session: AsyncSession, values: dict, exclude_id=None):
    try:
        await validate_unique(
            session,
            unique_together=[{key: (Events, values[key]) for key in SLOT_FIELDS}],
            exclude_id=exclude_id,
        )
    except CustomHTTPException as e:
        _duplicate_event(e)


async def get_event_or_404(session: AsyncSession, event_id: int) -> Events:
    event = await session.scalar(
        select(Events)
        .options(joinedload(Events.organization))
        .where(Events.id == event_id)
        .execution_options(populate_existing=True)
    )
    if not event:
        raise not_found("Event")
    return event


async def create_event(
    session: AsyncSession, principal: Principal, data: EventCreate
) -> Events:
    enforce(principal, Action.manage_event, Target(organization_id=data.organization_id))
    await ensure_organization_approved(session, data.organization_id, "create")

    values = data.model_dump()
    await _check_slot_free(session, values)
    event = Events(**values, num_signed_up=0, created_by=principal.user_id)
    session.add(event)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        _duplicate_event(e)
    logger.info("event %s created by %s", event.id, principal.user_id)
    return await get_event_or_404(session, event.id)


async def update_event(
    session: AsyncSession, principal: Principal, event_id: int, data: EventUpdate
) -> tuple[Events, list[str]]:
    event = await get_event_or_404(session, event_id)
    enforce(principal, Action.manage_event, Target(organization_id=event.organization_id))
    await ensure_organization_approved(session, event.organization_id, "update")

    changes = {
        key: value
        for key, value in data.model_dump(exclude_unset=True).items()
        if value is not None or key == "description"
    }
    if set(changes) & set(SLOT_FIELDS):
        values = {key: changes.get(key, getattr(event, key)) for key in SLOT_FIELDS}
        await _check_slot_free(session, values, exclude_id=event.id)

    for key, value in changes.items():
        setattr(event, key, value)
    session.add(event)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        _duplicate_event(e)
    return await get_event_or_404(session, event.id), sorted(changes)


async def delete_event(
    session: AsyncSession, principal: Principal, event_id: int
) -> Events:
    """
    Delete an event with its signups and attendance. Events with issued
    certificates are kept.
    """
    event = await get_event_or_404(session, event_id)
    enforce(principal, Action.manage_event, Target(organization_id=event.organization_id))
    if await session.scalar(
        select(
            exists()
            .where(Certificates.signup_id == Signups.id)
            .where(Signups.event_id == event.id)
        )
    ):
        raise conflict("Cannot delete an event with issued certificates")

    await purge_signups(session, Signups.event_id == event.id)
    await session.execute(
        update(Notifications)
        .where(Notifications.related_event_id == event.id)
        .values(related_event_id=None)
    )
    await session.delete(event)
    await session.commit()
    return event


async def list_events(
    session: AsyncSession,
    pagination: _PaginationParams,
    city: Optional[str] = None,
    state: Optional[str] = None,
    event_date: Optional[date] = None,
    organization_id: Optional[int] = None,
    upcoming: Optional[bool] = None,
):
    query = select(Events).options(joinedload(Events.organization))
    if city:
        query = query.where(func.lower(Events.city) == city.strip().lower())
    if state:
        query = query.where(Events.state == state.strip().upper())
    if event_date:
        query = query.where(Events.event_date == event_date)
    if organization_id is not None:
        query = query.where(Events.organization_id == organization_id)
    if upcoming is not None:
        today = datetime.now(timezone.utc).date()
        query = query.where(
            Events.event_date >= today if upcoming else Events.event_date < today
        )
    query = query.order_by(Events.event_date, Events.event_time, Events.id)
    return await paginate(query, EventPublic, pagination, session)
