from typing import List
from fastapi import APIRouter, BackgroundTasks, Request, status

from app.db.core import SessionDep
from app.api.events.signups import service
from app.api.events.signups.schemas import (
    SignupCreate,
    SignupPublic,
    SignupWithAttendance,
)
from app.api.audit.service import schedule_audit
from app.api.notifications.service import notify_user
from app.core.auth.dependencies import AdminAuth, DependsAuth
from app.core.auth.policy import Action, Target, enforce
from app.core.response.schemas import AffectedResult

router = APIRouter(prefix="/signups")


@router.post(
    "",
    response_model=SignupPublic,
    status_code=status.HTTP_201_CREATED,
    summary="Sign up for an event",
)
async def create_signup(
    request: Request,
    data: SignupCreate,
    session: SessionDep,
    user: DependsAuth,
    background_tasks: BackgroundTasks,
):
    signup = await service.create_signup(session, user, data.event_id, data.user_id)
    schedule_audit(
        background_tasks,
        request,
        user,
        "create",
        "signup",
        signup.id,
        {"event_id": signup.event_id, "user_id": signup.user_id},
    )
    background_tasks.add_task(
        notify_user,
        user_id=signup.user_id,
        subject=f"You're signed up: {signup.event.title}",
        template_path="signup_confirmation.txt",
        context={
            "first_name": signup.user.first_name,
            "event_title": signup.event.title,
            "event_date": signup.event.event_date.isoformat(),
            "event_time": signup.event.event_time.strftime("%H:%M"),
            "location_name": signup.event.location_name,
            "city": signup.event.city,
        },
        related_event_id=signup.event_id,
    )
    return signup


@router.get("", response_model=List[SignupPublic], summary="List all signups")
async def list_signups(session: SessionDep, admin: AdminAuth):
    enforce(admin, Action.list_signups)
    return await service.list_signups(session)


@router.get(
    "/user/{user_id}",
    response_model=List[SignupPublic],
    summary="List the signups of a user",
)
async def list_user_signups(user_id: int, session: SessionDep, user: DependsAuth):
    enforce(user, Action.view_signup, Target(user_id=user_id))
    return await service.list_user_signups(session, user_id)


@router.get(
    "/event/{event_id}",
    response_model=List[SignupWithAttendance],
    summary="List the signups of an event",
)
async def list_event_signups(event_id: int, session: SessionDep, user: DependsAuth):
    return await service.list_event_signups(session, user, event_id)


@router.get("/{signup_id}", response_model=SignupPublic, summary="Get a signup")
async def get_signup(signup_id: int, session: SessionDep, user: DependsAuth):
    signup = await service.get_signup_or_404(session, signup_id)
    enforce(user, Action.view_signup, service.signup_target(signup))
    return signup


@router.delete("/{signup_id}", summary="Cancel a signup")
async def delete_signup(
    request: Request,
    signup_id: int,
    session: SessionDep,
    user: DependsAuth,
    background_tasks: BackgroundTasks,
) -> AffectedResult:
    signup = await service.delete_signup(session, user, signup_id)
    schedule_audit(
        background_tasks,
        request,
        user,
        "delete",
        "signup",
        signup.id,
        {"event_id": signup.event_id, "user_id": signup.user_id},
    )
    return AffectedResult(affected_count=1)
