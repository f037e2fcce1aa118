from typing import List, Optional, Union
from fastapi import APIRouter, BackgroundTasks, Request, status

from app.api.users.models import UserRoles
from app.api.users.schemas import (
    UserCreate,
    UserLinkOrganization,
    UserPublic,
    UserSummary,
    UserUpdate,
)
from app.api.users import service
from app.api.audit.service import schedule_audit
from app.core.auth.dependencies import AdminAuth, DependsAuth, OrganizerAuth
from app.core.auth.policy import Action, Target, authorize, enforce
from app.core.response.pagination import PaginatedResponse, PaginationParams
from app.core.response.schemas import AffectedResult
from app.response import CustomHTTPException
from app.db.core import SessionDep

router = APIRouter(prefix="/users")


@router.post(
    "/register",
    response_model=UserPublic,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
async def register_user(
    request: Request,
    data: UserCreate,
    session: SessionDep,
    background_tasks: BackgroundTasks,
):
    user = await service.create_user(
        session,
        first_name=data.first_name,
        last_name=data.last_name,
        email=data.email,
        password=data.password,
        role=UserRoles(data.role),
    )
    schedule_audit(
        background_tasks,
        request,
        None,
        "register",
        "user",
        user.id,
        {"email": user.email, "role": user.role.value},
    )
    return user


@router.get("", summary="List all users")
async def list_users(
    session: SessionDep,
    admin: AdminAuth,
    pagination: PaginationParams,
    role: Optional[UserRoles] = None,
) -> PaginatedResponse[UserPublic]:
    enforce(admin, Action.list_users)
    return await service.list_users(session, pagination, role)


@router.get(
    "/organization/members",
    response_model=List[UserPublic],
    summary="List members of an organization",
)
async def organization_members(
    session: SessionDep,
    user: OrganizerAuth,
    organization_id: Optional[int] = None,
):
    if organization_id is None:
        organization_id = user.organization_id
    if organization_id is None:
        raise CustomHTTPException(
            status_code=400,
            message="organization_id is required",
            errors={"organization_id": "organization_id is required"},
        )
    enforce(user, Action.view_organization_members, Target(organization_id=organization_id))
    return await service.organization_members(session, organization_id)


@router.get(
    "/{user_id}",
    response_model=Union[UserPublic, UserSummary],
    summary="Get a user",
)
async def get_user(user_id: int, session: SessionDep, user: DependsAuth):
    target = Target(user_id=user_id)
    if authorize(user, Action.view_user, target).allowed:
        return UserPublic.model_validate(await service.get_user_or_404(session, user_id))
    enforce(user, Action.view_user_summary, target)
    return UserSummary.model_validate(await service.get_user_or_404(session, user_id))


@router.put("/{user_id}", response_model=UserPublic, summary="Update a user")
async def update_user(
    request: Request,
    user_id: int,
    data: UserUpdate,
    session: SessionDep,
    user: DependsAuth,
    background_tasks: BackgroundTasks,
):
    updated, previous = await service.update_user(session, user, user_id, data)
    if (
        previous["role"] != updated.role
        or previous["organization_id"] != updated.organization_id
    ):
        schedule_audit(
            background_tasks,
            request,
            user,
            "role_change",
            "user",
            updated.id,
            {
                "old_role": previous["role"].value,
                "new_role": updated.role.value,
                "old_organization_id": previous["organization_id"],
                "new_organization_id": updated.organization_id,
                "action_by": user.role.value,
            },
        )
    else:
        schedule_audit(
            background_tasks,
            request,
            user,
            "update",
            "user",
            updated.id,
            {"fields": sorted(data.model_dump(exclude_unset=True, exclude={"password"}))},
        )
    return updated


@router.delete("/{user_id}", summary="Delete a user")
async def delete_user(
    request: Request,
    user_id: int,
    session: SessionDep,
    admin: AdminAuth,
    background_tasks: BackgroundTasks,
) -> AffectedResult:
    enforce(admin, Action.delete_user, Target(user_id=user_id))
    deleted = await service.delete_user(session, admin, user_id)
    schedule_audit(
        background_tasks,
        request,
        admin,
        "delete",
        "user",
        user_id,
        {"email": deleted.email, "role": deleted.role.value},
    )
    return AffectedResult(affected_count=1)


@router.post(
    "/{user_id}/link-organization",
    response_model=UserPublic,
    summary="Link a user to an organization",
)
async def link_organization(
    request: Request,
    user_id: int,
    data: UserLinkOrganization,
    session: SessionDep,
    admin: AdminAuth,
    background_tasks: BackgroundTasks,
):
    enforce(admin, Action.link_user_organization, Target(user_id=user_id))
    user, previous = await service.link_organization(
        session, user_id, data.organization_id
    )
    schedule_audit(
        background_tasks,
        request,
        admin,
        "link_organization",
        "user",
        user.id,
        {
            "old_role": previous["role"].value,
            "new_role": user.role.value,
            "old_organization_id": previous["organization_id"],
            "new_organization_id": user.organization_id,
        },
    )
    return user
