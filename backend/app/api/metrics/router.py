from typing import Optional
from fastapi import APIRouter, Query

from app.db.core import SessionDep
from app.api.metrics import service
from app.api.metrics.schemas import AdminMetrics, OrganizerMetrics, VolunteerMetrics
from app.api.orgs.service import get_organization_or_404
from app.core.auth.dependencies import AdminAuth, OrganizerAuth, VolunteerAuth
from app.core.auth.policy import Action, Target, enforce
from app.response import CustomHTTPException

router = APIRouter(prefix="/metrics")


@router.get(
    "/volunteer", response_model=VolunteerMetrics, summary="Volunteer dashboard"
)
async def volunteer_metrics(session: SessionDep, user: VolunteerAuth):
    enforce(user, Action.view_volunteer_metrics, Target(user_id=user.user_id))
    return await service.volunteer_metrics(session, user.user_id)


@router.get(
    "/organizer", response_model=OrganizerMetrics, summary="Organization dashboard"
)
async def organizer_metrics(
    session: SessionDep,
    user: OrganizerAuth,
    organization_id: Optional[int] = Query(None, gt=0),
):
    if not user.is_admin:
        organization_id = user.organization_id
    if organization_id is None:
        raise CustomHTTPException(
            status_code=400,
            message="Invalid Request",
            errors={
                "organization_id": (
                    "organization_id is required"
                    if user.is_admin
                    else "You are not linked to an organization"
                )
            },
        )
    enforce(
        user,
        Action.view_organization_metrics,
        Target(organization_id=organization_id),
    )
    await get_organization_or_404(session, organization_id)
    return await service.organization_metrics(session, organization_id)


@router.get("/admin", response_model=AdminMetrics, summary="Platform dashboard")
async def admin_metrics(session: SessionDep, admin: AdminAuth):
    enforce(admin, Action.view_admin_metrics)
    return await service.admin_metrics(session)
