from typing import Optional
from fastapi import APIRouter

from app.core.auth.dependencies import DependsAuth
from app.core.auth.policy import Action, Target, enforce
from app.core.response.pagination import PaginatedResponse, PaginationParams
from app.db.core import SessionDep
from app.api.notifications.models import NotificationStatus
from app.api.notifications.schemas import NotificationSchema
from . import service

router = APIRouter(prefix="/notifications")


@router.get("", summary="List notifications for the current user")
async def list_notifications(
    pagination: PaginationParams,
    session: SessionDep,
    user: DependsAuth,
    status: Optional[NotificationStatus] = None,
) -> PaginatedResponse[NotificationSchema]:
    enforce(user, Action.view_notifications, Target(user_id=user.user_id))
    return await service.list_notifications(
        session=session,
        user_id=user.user_id,
        pagination=pagination,
        status=status,
    )
