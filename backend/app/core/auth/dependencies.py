from typing import Annotated, List, Optional, Union
import jwt
from fastapi import Depends, Request, status
from jwt.exceptions import InvalidTokenError, ExpiredSignatureError
from pydantic import ValidationError

from app.core.auth.authentication import get_user, oauth2_scheme
from app.core.auth.jwt import decode_jwt_token
from app.core.auth.policy import Principal
from app.api.auth.schemas import AuthTokenData
from app.api.audit.service import audit_in_background, client_ip
from app.response import CustomHTTPException
from app.db.core import SessionDep


def _unauthorized(message="Could not validate credentials", error_code=None):
    return CustomHTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        message=message,
        error_code=error_code,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _record_unauthorized(request: Request, reason: str):
    audit_in_background(
        action="unauthorized_access",
        entity_type="auth",
        details={
            "reason": reason,
            "path": request.url.path,
            "method": request.method,
        },
        ip_address=client_ip(request),
    )


async def get_current_principal(
    request: Request,
    token: Annotated[Optional[str], Depends(oauth2_scheme)],
    session: SessionDep,
) -> Optional[Principal]:
    """
    Resolve the bearer token into a :class:`Principal`.

    The user row is re-read so that role or organization changes made
    after the token was issued take effect immediately. Returns ``None``
    when no token was sent.
    """
    if not token:
        return None
    try:
        token_data = AuthTokenData(**decode_jwt_token(token))
    except ExpiredSignatureError:
        _record_unauthorized(request, "expired_token")
        raise _unauthorized("Token has expired", "TOKEN_EXPIRED")
    except (InvalidTokenError, ValidationError):
        _record_unauthorized(request, "invalid_token")
        raise _unauthorized()
    if token_data.token_type != "access_token":
        _record_unauthorized(request, "invalid_token")
        raise _unauthorized()

    user = await get_user(session, token_data.user_id)
    if user is None:
        _record_unauthorized(request, "unknown_user")
        raise _unauthorized()
    return Principal(
        user_id=user.id,
        email=user.email,
        role=user.role,
        organization_id=user.organization_id,
    )


def check_user_type(required_roles: Union[str, List[str]], optional=False):
    """
    Creates a dependency that checks if the current user has the required role(s).

    A missing or invalid token is a 401; a valid token with the wrong role
    is a 403.
    """
    if isinstance(required_roles, str):
        required_roles = [required_roles]

    async def role_checker(
        request: Request,
        principal: Annotated[Optional[Principal], Depends(get_current_principal)],
    ) -> Optional[Principal]:
        if not principal:
            if optional:
                return None
            _record_unauthorized(request, "missing_token")
            raise _unauthorized("Access token is required")
        if principal.role.value not in required_roles:
            raise CustomHTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                message="Not Authorized",
                error_code="INSUFFICIENT_PERMISSIONS",
            )
        return principal

    return role_checker


DependsAuth = Annotated[
    Principal, Depends(check_user_type(["volunteer", "organizer", "admin"]))
]
AdminAuth = Annotated[Principal, Depends(check_user_type(["admin"]))]
OrganizerAuth = Annotated[Principal, Depends(check_user_type(["organizer", "admin"]))]
VolunteerAuth = Annotated[Principal, Depends(check_user_type(["volunteer"]))]

OptionalAuth = Annotated[
    Optional[Principal],
    Depends(check_user_type(["volunteer", "organizer", "admin"], optional=True)),
]
