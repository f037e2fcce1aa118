from typing import Optional
from fastapi import APIRouter

from app.api.audit import service
from app.api.audit.schemas import AuditLogResponse
from app.core.auth.dependencies import AdminAuth
from app.core.auth.policy import Action, enforce
from app.core.response.pagination import PaginatedResponse, PaginationParams
from app.db.core import SessionDep

router = APIRouter(prefix="/audit-logs")


@router.get("", summary="List audit log entries")
async def list_audit_logs(
    session: SessionDep,
    user: AdminAuth,
    pagination: PaginationParams,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    actor_user_id: Optional[int] = None,
    action: Optional[str] = None,
) -> PaginatedResponse[AuditLogResponse]:
    enforce(user, Action.view_audit_logs)
    return await service.list_audit_logs(
        session,
        pagination,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_user_id=actor_user_id,
        action=action,
    )
