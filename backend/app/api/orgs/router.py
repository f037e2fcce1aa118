from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Request, status

from app.db.core import SessionDep
from app.api.orgs.models import ApprovalStatus
from app.api.orgs.schema import (
    OrganizationApprovalUpdate,
    OrganizationCreate,
    OrganizationPublic,
    OrganizationUpdate,
)
from app.api.orgs import service
from app.api.audit.service import schedule_audit
from app.core.auth.dependencies import AdminAuth, OrganizerAuth
from app.core.auth.policy import Action, Target, enforce
from app.core.response.pagination import PaginatedResponse, PaginationParams
from app.core.response.schemas import AffectedResult

router = APIRouter(prefix="/orgs")


@router.post(
    "",
    response_model=OrganizationPublic,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new organization",
)
async def create_organization(
    request: Request,
    data: OrganizationCreate,
    session: SessionDep,
    user: OrganizerAuth,
    background_tasks: BackgroundTasks,
):
    enforce(user, Action.create_organization)
    org = await service.create_organization(session, user, data)
    schedule_audit(
        background_tasks, request, user, "create", "organization", org.id, {"name": org.name}
    )
    return org


@router.get("", summary="List organizations")
async def list_organizations(
    session: SessionDep,
    pagination: PaginationParams,
    approval_status: Optional[ApprovalStatus] = None,
) -> PaginatedResponse[OrganizationPublic]:
    return await service.list_organizations(session, pagination, approval_status)


@router.get(
    "/name/{name}",
    response_model=OrganizationPublic,
    summary="Get an organization by name",
)
async def get_organization_by_name(name: str, session: SessionDep):
    return await service.get_organization_by_name(session, name)


@router.get(
    "/{organization_id}",
    response_model=OrganizationPublic,
    summary="Get an organization",
)
async def get_organization(organization_id: int, session: SessionDep):
    return await service.get_organization_or_404(session, organization_id)


@router.put(
    "/{organization_id}",
    response_model=OrganizationPublic,
    summary="Update organization details",
)
async def update_organization(
    request: Request,
    organization_id: int,
    data: OrganizationUpdate,
    session: SessionDep,
    user: OrganizerAuth,
    background_tasks: BackgroundTasks,
):
    enforce(user, Action.update_organization, Target(organization_id=organization_id))
    org, fields = await service.update_organization(session, organization_id, data)
    schedule_audit(
        background_tasks, request, user, "update", "organization", org.id, {"fields": fields}
    )
    return org


@router.put(
    "/{organization_id}/approval",
    response_model=OrganizationPublic,
    summary="Approve or reject an organization",
)
async def update_approval(
    request: Request,
    organization_id: int,
    data: OrganizationApprovalUpdate,
    session: SessionDep,
    admin: AdminAuth,
    background_tasks: BackgroundTasks,
):
    enforce(admin, Action.approve_organization)
    org, previous = await service.update_approval(session, admin, organization_id, data)
    action = {
        ApprovalStatus.approved: "approve",
        ApprovalStatus.rejected: "reject",
    }.get(org.approval_status, "update")
    schedule_audit(
        background_tasks,
        request,
        admin,
        action,
        "organization",
        org.id,
        {
            "name": org.name,
            "old_status": previous.value,
            "new_status": org.approval_status.value,
            "rejection_reason": org.rejection_reason,
        },
    )
    return org


@router.delete("/{organization_id}", summary="Delete an organization")
async def delete_organization(
    request: Request,
    organization_id: int,
    session: SessionDep,
    user: OrganizerAuth,
    background_tasks: BackgroundTasks,
) -> AffectedResult:
    enforce(user, Action.delete_organization, Target(organization_id=organization_id))
    org = await service.delete_organization(session, organization_id)
    schedule_audit(
        background_tasks, request, user, "delete", "organization", organization_id, {"name": org.name}
    )
    return AffectedResult(affected_count=1)
