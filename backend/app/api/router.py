from fastapi import APIRouter
from app.api.auth.router import router as auth_router
from app.api.users.router import router as user_router
from app.api.orgs.router import router as org_router
from app.api.events.router import router as events_router
from app.api.events.signups.router import router as signups_router
from app.api.events.attendance.router import router as attendance_router
from app.api.certificates.router import router as certificates_router
from app.api.metrics.router import router as metrics_router
from app.api.audit.router import router as audit_router
from app.api.notifications.router import router as notifications_router

api_router = APIRouter(
    prefix="/api/v1",
    responses={404: {"description": "Not found"}},
)

api_router.include_router(router=auth_router, tags=["auth"])
api_router.include_router(router=user_router, tags=["user"])
api_router.include_router(router=org_router, tags=["organization"])
api_router.include_router(router=events_router, tags=["events"])
api_router.include_router(router=signups_router, tags=["signups"])
api_router.include_router(router=attendance_router, tags=["attendance"])
api_router.include_router(router=certificates_router, tags=["certificates"])
api_router.include_router(router=metrics_router, tags=["metrics"])
api_router.include_router(router=audit_router, tags=["audit"])
api_router.include_router(router=notifications_router, tags=["notifications"])
