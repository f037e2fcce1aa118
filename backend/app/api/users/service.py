import logging
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.response import CustomHTTPException, not_found
from app.api.users.models import UserRoles, Users
from app.api.users.schemas import UserUpdate
from app.api.orgs.models import Organizations
from app.api.certificates.models import Certificates
from app.api.events.attendance.models import EventAttendance
from app.api.events.models import Events
from app.api.events.signups.models import Signups
from app.api.events.signups.service import purge_signups
from app.api.notifications.models import Notifications
from app.core.auth.authentication import get_password_hash
from app.core.auth.policy import (
    Principal,
    enforce_user_update,
    ensure_admin_floor,
)
from app.core.response.pagination import _PaginationParams, paginate
from app.core.validations.schema import (
    raise_unique_violation,
    validate_relations,
    validate_unique,
)
from app.api.users.schemas import UserPublic

logger = logging.getLogger(__name__)


async def create_user(
    session: AsyncSession,
    first_name: str,
    last_name: str,
    email: str,
    password: str,
    role: UserRoles = UserRoles.volunteer,
    organization_id: Optional[int] = None,
) -> Users:
    email = email.strip().lower()
    await validate_unique(session, unique={"email": (Users, email)})
    await validate_relations(
        session, {"organization_id": (Organizations, organization_id)}
    )
    user = Users(
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        email=email,
        password=get_password_hash(password),
        role=UserRoles(role),
        organization_id=organization_id,
    )
    session.add(user)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise_unique_violation(e, ["email"])
    return user


async def get_user_or_404(session: AsyncSession, user_id: int) -> Users:
    user = await session.get(Users, user_id)
    if not user:
        raise not_found("User")
    return user


async def list_users(
    session: AsyncSession,
    pagination: _PaginationParams,
    role: Optional[UserRoles] = None,
):
    query = select(Users).order_by(Users.id)
    if role:
        query = query.where(Users.role == role)
    return await paginate(query, UserPublic, pagination, session)


async def count_admins(session: AsyncSession) -> int:
    """Count admins, locking their rows so two demotions cannot race."""
    result = await session.execute(
        select(Users.id).where(Users.role == UserRoles.admin).with_for_update()
    )
    return len(result.all())


async def update_user(
    session: AsyncSession,
    principal: Principal,
    user_id: int,
    data: UserUpdate,
) -> tuple[Users, dict]:
    """
    Apply ``data`` to a user and return it with the previous role and
    organization for auditing.
    """
    user = await get_user_or_404(session, user_id)
    changes = data.model_dump(exclude_unset=True)
    # explicit nulls only make sense for the organization link
    changes = {
        key: value
        for key, value in changes.items()
        if value is not None or key == "organization_id"
    }
    if "email" in changes:
        changes["email"] = changes["email"].strip().lower()

    enforce_user_update(principal, user, changes)

    previous = {"role": user.role, "organization_id": user.organization_id}
    new_role = changes.get("role")
    if user.role == UserRoles.admin and new_role and new_role != UserRoles.admin:
        ensure_admin_floor(await count_admins(session))

    await validate_relations(
        session, {"organization_id": (Organizations, changes.get("organization_id"))}
    )
    if "email" in changes:
        await validate_unique(
            session, unique={"email": (Users, changes["email"])}, exclude_id=user.id
        )
    if "password" in changes:
        changes["password"] = get_password_hash(changes["password"])

    for key, value in changes.items():
        setattr(user, key, value)
    session.add(user)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        raise_unique_violation(e, ["email"])
    return user, previous


async def delete_user(session: AsyncSession, principal: Principal, user_id: int) -> Users:
    """
    Delete a user with their signups, attendance, certificates and
    notifications. Their organization and the events they created stay.
    """
    user = await get_user_or_404(session, user_id)
    if user.id == principal.user_id:
        raise CustomHTTPException(
            status_code=400, message="You cannot delete your own account"
        )
    if user.role == UserRoles.admin:
        ensure_admin_floor(await count_admins(session), deleting=True)

    await purge_signups(session, Signups.user_id == user.id, include_certificates=True)
    await session.execute(delete(Notifications).where(Notifications.user_id == user.id))
    # references kept on rows that outlive the user
    for model, column in (
        (Events, Events.created_by),
        (EventAttendance, EventAttendance.marked_by),
        (Certificates, Certificates.signed_by),
        (Organizations, Organizations.approved_by),
    ):
        await session.execute(
            update(model).where(column == user.id).values({column.key: None})
        )
    await session.delete(user)
    await session.commit()
    logger.info("user %s deleted by %s", user_id, principal.user_id)
    return user


async def link_organization(
    session: AsyncSession, user_id: int, organization_id: int
) -> tuple[Users, dict]:
    user = await get_user_or_404(session, user_id)
    organization = await session.get(Organizations, organization_id)
    if not organization:
        raise not_found("Organization")
    previous = {"role": user.role, "organization_id": user.organization_id}
    user.organization_id = organization.id
    # linking never demotes an admin
    if user.role != UserRoles.admin:
        user.role = UserRoles.organizer
    session.add(user)
    await session.commit()
    return user, previous


async def organization_members(session: AsyncSession, organization_id: int):
    result = await session.execute(
        select(Users)
        .where(Users.organization_id == organization_id)
        .order_by(Users.last_name, Users.first_name)
    )
    return result.scalars().all()


async def count_users_by_role(session: AsyncSession) -> dict[str, int]:
    result = await session.execute(
        select(Users.role, func.count(Users.id)).group_by(Users.role)
    )
    counts = {role.value: 0 for role in UserRoles}
    for role, count in result.all():
        counts[role.value] = count
    return counts
