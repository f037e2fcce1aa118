from datetime import date
from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Query, Request, status

from app.db.core import SessionDep
from app.api.events import service
from app.api.events.schemas import EventCreate, EventPublic, EventUpdate
from app.api.audit.service import schedule_audit
from app.core.auth.dependencies import OrganizerAuth
from app.core.response.pagination import PaginatedResponse, PaginationParams
from app.core.response.schemas import AffectedResult

router = APIRouter(prefix="/events")


@router.get("", summary="List events")
async def list_events(
    session: SessionDep,
    pagination: PaginationParams,
    upcoming: Optional[bool] = None,
) -> PaginatedResponse[EventPublic]:
    return await service.list_events(session, pagination, upcoming=upcoming)


@router.get("/search", summary="Search events")
async def search_events(
    session: SessionDep,
    pagination: PaginationParams,
    city: Optional[str] = None,
    state: Optional[str] = Query(None, min_length=2, max_length=2),
    event_date: Optional[date] = Query(None, alias="date"),
    organization_id: Optional[int] = Query(None, gt=0),
    upcoming: Optional[bool] = None,
) -> PaginatedResponse[EventPublic]:
    return await service.list_events(
        session,
        pagination,
        city=city,
        state=state,
        event_date=event_date,
        organization_id=organization_id,
        upcoming=upcoming,
    )


@router.get("/{event_id}", response_model=EventPublic, summary="Get an event")
async def get_event(event_id: int, session: SessionDep):
    return await service.get_event_or_404(session, event_id)


@router.post(
    "",
    response_model=EventPublic,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new event",
)
async def create_event(
    request: Request,
    data: EventCreate,
    session: SessionDep,
    user: OrganizerAuth,
    background_tasks: BackgroundTasks,
):
    event = await service.create_event(session, user, data)
    schedule_audit(
        background_tasks,
        request,
        user,
        "create",
        "event",
        event.id,
        {
            "title": event.title,
            "organization_id": event.organization_id,
            "event_date": event.event_date,
            "city": event.city,
            "state": event.state,
        },
    )
    return event


@router.put("/{event_id}", response_model=EventPublic, summary="Update an event")
async def update_event(
    request: Request,
    event_id: int,
    data: EventUpdate,
    session: SessionDep,
    user: OrganizerAuth,
    background_tasks: BackgroundTasks,
):
    event, fields = await service.update_event(session, user, event_id, data)
    schedule_audit(
        background_tasks,
        request,
        user,
        "update",
        "event",
        event.id,
        {
            "updated_fields": fields,
            "title": event.title,
            "organization_id": event.organization_id,
        },
    )
    return event


@router.delete("/{event_id}", summary="Delete an event")
async def delete_event(
    request: Request,
    event_id: int,
    session: SessionDep,
    user: OrganizerAuth,
    background_tasks: BackgroundTasks,
) -> AffectedResult:
    event = await service.delete_event(session, user, event_id)
    schedule_audit(
        background_tasks,
        request,
        user,
        "delete",
        "event",
        event_id,
        {"title": event.title, "organization_id": event.organization_id},
    )
    return AffectedResult(affected_count=1)
