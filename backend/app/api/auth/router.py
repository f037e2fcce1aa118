from typing import Annotated
from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.security import OAuth2PasswordRequestForm
from fastapi import status

from app.core.auth.authentication import authenticate_user, get_user
from app.core.auth.dependencies import DependsAuth
from app.response import CustomHTTPException, not_found
from app.api.auth.schemas import AuthUser, Token
from app.api.auth import service
from app.api.audit.service import audit_in_background, client_ip, record_audit_event
from app.db.core import SessionDep

router = APIRouter(prefix="/auth")


@router.post("/token", summary="get access token")
async def login_for_access_token(
    request: Request,
    session: SessionDep,
    background_tasks: BackgroundTasks,
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
) -> Token:
    user = await authenticate_user(session, form_data.username, form_data.password)
    if not user:
        # the 401 response does not run BackgroundTasks
        audit_in_background(
            action="login_failed",
            entity_type="auth",
            details={"email": form_data.username},
            ip_address=client_ip(request),
        )
        raise CustomHTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            message="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    await service.record_login(session, user)
    background_tasks.add_task(
        record_audit_event,
        actor_user_id=user.id,
        action="login",
        entity_type="auth",
        entity_id=user.id,
        details={"email": user.email, "role": user.role.value},
        ip_address=client_ip(request),
    )
    return service.create_token_for_user(user)


@router.get("/me", response_model=AuthUser, summary="get current user info")
async def read_users_me(current_user: DependsAuth, session: SessionDep):
    user = await get_user(session, current_user.user_id)
    if not user:
        raise not_found("User")
    return user
