import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import exists, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.response import CustomHTTPException, conflict, not_found
from app.api.orgs.models import ApprovalStatus, Organizations
from app.api.orgs.schema import (
    OrganizationApprovalUpdate,
    OrganizationCreate,
    OrganizationPublic,
    OrganizationUpdate,
)
from app.api.users.models import UserRoles, Users
from app.api.events.models import Events
from app.core.auth.policy import Principal
from app.core.response.pagination import _PaginationParams, paginate
from app.core.validations.schema import raise_unique_violation, validate_unique

logger = logging.getLogger(__name__)


async def get_organization_or_404(
    session: AsyncSession, organization_id: int
) -> Organizations:
    org = await session.get(Organizations, organization_id)
    if not org:
        raise not_found("Organization")
    return org


async def ensure_organization_approved(
    session: AsyncSession, organization_id: int, verb: str = "create"
) -> Organizations:
    """
    Gate for event writes: the organization must exist and be approved.

    Applies to every role, admins included.
    """
    org = await get_organization_or_404(session, organization_id)
    if org.approval_status != ApprovalStatus.approved:
        raise CustomHTTPException(
            status_code=403,
            message=(
                f"Cannot {verb} events for organizations with "
                f"{org.approval_status.value} approval status. "
                f"Only approved organizations can {verb} events."
            ),
            error_code="ORGANIZATION_NOT_APPROVED",
        )
    return org


async def create_organization(
    session: AsyncSession, principal: Principal, data: OrganizationCreate
) -> Organizations:
    name = data.name.strip()
    await validate_unique(session, unique={"name": (Organizations, name)})

    link_user_id = None
    if principal.role == UserRoles.organizer:
        # organizers create their own organization
        if principal.organization_id is not None:
            raise CustomHTTPException(
                status_code=400,
                message="You already belong to an organization",
            )
        link_user_id = principal.user_id
    elif data.user_id is not None:
        link_user_id = data.user_id

    link_user = None
    if link_user_id is not None:
        link_user = await session.get(Users, link_user_id)
        if not link_user:
            raise not_found("User")

    org = Organizations(
        name=name,
        description=data.description,
        contact_email=data.contact_email,
        contact_phone=data.contact_phone,
        website=data.website,
        approval_status=ApprovalStatus.pending,
    )
    session.add(org)
    try:
        await session.flush()
        if link_user is not None:
            link_user.organization_id = org.id
            if link_user.role == UserRoles.volunteer:
                link_user.role = UserRoles.organizer
            session.add(link_user)
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise_unique_violation(e, ["name"])
    await session.refresh(org)
    return org


async def list_organizations(
    session: AsyncSession,
    pagination: _PaginationParams,
    approval_status: Optional[ApprovalStatus] = None,
):
    query = select(Organizations).order_by(Organizations.name)
    if approval_status:
        query = query.where(Organizations.approval_status == approval_status)
    return await paginate(query, OrganizationPublic, pagination, session)


async def get_organization_by_name(session: AsyncSession, name: str) -> Organizations:
    org = await session.scalar(
        select(Organizations).where(
            func.lower(Organizations.name) == name.strip().lower()
        )
    )
    if not org:
        raise not_found("Organization")
    return org


async def update_organization(
    session: AsyncSession, organization_id: int, data: OrganizationUpdate
) -> tuple[Organizations, list[str]]:
    """Update the regular fields. Approval fields are never touched here."""
    org = await get_organization_or_404(session, organization_id)
    changes = {
        key: value
        for key, value in data.model_dump(exclude_unset=True).items()
        if value is not None or key in ("description", "contact_phone", "website")
    }
    if "name" in changes:
        changes["name"] = changes["name"].strip()
        await validate_unique(
            session, unique={"name": (Organizations, changes["name"])}, exclude_id=org.id
        )
    for key, value in changes.items():
        setattr(org, key, value)
    session.add(org)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise_unique_violation(e, ["name"])
    return org, sorted(changes)


async def update_approval(
    session: AsyncSession,
    principal: Principal,
    organization_id: int,
    data: OrganizationApprovalUpdate,
) -> tuple[Organizations, ApprovalStatus]:
    org = await session.scalar(
        select(Organizations)
        .where(Organizations.id == organization_id)
        .with_for_update()
    )
    if not org:
        raise not_found("Organization")
    previous = org.approval_status
    org.approval_status = data.approval_status
    if data.approval_status == ApprovalStatus.pending:
        org.approved_by = None
        org.approved_at = None
    else:
        org.approved_by = principal.user_id
        org.approved_at = datetime.now(timezone.utc)
    org.rejection_reason = (
        data.rejection_reason
        if data.approval_status == ApprovalStatus.rejected
        else None
    )
    session.add(org)
    await session.commit()
    logger.info(
        "organization %s approval %s -> %s by %s",
        org.id,
        previous.value,
        org.approval_status.value,
        principal.user_id,
    )
    return org, previous


async def delete_organization(session: AsyncSession, organization_id: int):
    org = await get_organization_or_404(session, organization_id)
    if await session.scalar(
        select(exists().where(Events.organization_id == organization_id))
    ):
        raise conflict("Cannot delete an organization that still has events")
    await session.execute(
        update(Users)
        .where(Users.organization_id == organization_id)
        .values(organization_id=None)
    )
    await session.delete(org)
    await session.commit()
    return org
