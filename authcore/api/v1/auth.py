"""Login, refresh and revoke endpoints plus bearer-token dependencies.

The refresh token only ever travels in an HttpOnly cookie; JSON bodies carry
the access token alone.
"""

import logging
from functools import lru_cache
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from authcore.core.config import Settings, get_settings
from authcore.core.database import get_db
from authcore.core.errors import (
    AuthCoreError,
    AuthenticationFailed,
    ConflictError,
    NotFoundError,
    TransientError,
    ValidationFailed,
)
from authcore.models import RefreshToken, User
from authcore.schemas.auth import (
    AccessTokenResponse,
    ActiveSessionsResponse,
    LoginRequest,
    LoginResponse,
    UserSummary,
)
from authcore.schemas.privileges import EffectivePrivilegesResponse
from authcore.services.auth import AuthService
from authcore.services.mapping import (
    permissions_to_response,
    refresh_token_to_session,
    user_to_summary,
)
from authcore.services.privileges import PrivilegeCache
from authcore.services.tokens import Identity

logger = logging.getLogger(__name__)

router = APIRouter()
security = HTTPBearer(auto_error=False)

TRANSIENT_RETRY_AFTER_SEC = "1"


@lru_cache
def _privilege_cache(ttl_seconds: int) -> PrivilegeCache:
    """One cache per process (per configured TTL)."""
    return PrivilegeCache(ttl_seconds)


def get_auth_service(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AuthService:
    """Dependency: a per-request orchestrator built from explicit configuration."""
    return AuthService(
        db,
        settings.auth_config(),
        cache=_privilege_cache(settings.PRIVILEGE_CACHE_TTL_SEC),
        include_inactive_applications=settings.PRIVILEGES_INCLUDE_INACTIVE_APPLICATIONS,
    )


def to_http_exception(exc: AuthCoreError) -> HTTPException:
    """Map the service error taxonomy to HTTP responses."""
    if isinstance(exc, ValidationFailed):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": exc.message, "errors": exc.errors},
        )
    if isinstance(exc, AuthenticationFailed):
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.message,
            headers={"WWW-Authenticate": "Bearer"},
        )
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)
    if isinstance(exc, ConflictError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": exc.message, "field": exc.field},
        )
    if isinstance(exc, TransientError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=exc.message,
            headers={"Retry-After": TRANSIENT_RETRY_AFTER_SEC},
        )
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error")


def _client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


def _set_refresh_cookie(response: Response, token: RefreshToken, settings: Settings) -> None:
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=token.token,
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 3600,
        httponly=True,
        secure=settings.REFRESH_COOKIE_SECURE,
        samesite="strict",
        path=f"{settings.API_V1_PREFIX}/auth",
    )


def _clear_refresh_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        httponly=True,
        secure=settings.REFRESH_COOKIE_SECURE,
        samesite="strict",
        path=f"{settings.API_V1_PREFIX}/auth",
    )


@router.post("/login", response_model=LoginResponse)
def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    service: Annotated[AuthService, Depends(get_auth_service)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> LoginResponse:
    """
    Authenticate with username or email and password.
    Returns a JWT access token; the refresh token is set as an HttpOnly cookie.
    """
    try:
        result = service.login(body.name_or_email, body.password, _client_ip(request))
    except AuthCoreError as e:
        raise to_http_exception(e) from e
    _set_refresh_cookie(response, result.refresh_token, settings)
    return LoginResponse(
        access_token=result.access_token,
        token_type="bearer",
        expires_in=result.expires_in,
        user=user_to_summary(result.user),
    )


@router.post("/refresh", response_model=AccessTokenResponse)
def refresh(
    request: Request,
    response: Response,
    service: Annotated[AuthService, Depends(get_auth_service)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AccessTokenResponse:
    """Rotate the refresh token from the cookie and return a new access token."""
    presented = request.cookies.get(settings.REFRESH_COOKIE_NAME, "")
    try:
        pair = service.refresh(presented, _client_ip(request))
    except AuthCoreError as e:
        if isinstance(e, AuthenticationFailed):
            logger.info("Refresh rejected ip=%s", _client_ip(request))
        raise to_http_exception(e) from e
    _set_refresh_cookie(response, pair.refresh_token, settings)
    return AccessTokenResponse(
        access_token=pair.access_token,
        token_type="bearer",
        expires_in=pair.expires_in,
    )


@router.post("/revoke", status_code=status.HTTP_204_NO_CONTENT)
def revoke(
    request: Request,
    service: Annotated[AuthService, Depends(get_auth_service)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> Response:
    """Revoke the refresh token from the cookie (logout). Repeating it is harmless."""
    presented = request.cookies.get(settings.REFRESH_COOKIE_NAME, "")
    try:
        service.revoke(presented, _client_ip(request))
    except AuthCoreError as e:
        raise to_http_exception(e) from e
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    _clear_refresh_cookie(response, settings)
    return response


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> User:
    """Dependency: require a valid Bearer access token and return its user. Raises 401 otherwise."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return service.authenticate(credentials.credentials)
    except AuthCoreError as e:
        raise to_http_exception(e) from e


@router.get("/me", response_model=UserSummary)
def me(current_user: Annotated[User, Depends(get_current_user)]) -> UserSummary:
    return user_to_summary(current_user)


@router.get("/privileges", response_model=EffectivePrivilegesResponse)
def privileges(
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> EffectivePrivilegesResponse:
    """Effective permissions of the caller per resource (OR across its roles)."""
    identity = Identity(current_user.id, current_user.tenant_id)
    try:
        permissions = service.effective_privileges(identity)
    except AuthCoreError as e:
        raise to_http_exception(e) from e
    return permissions_to_response(identity.user_id, identity.tenant_id, permissions)


@router.get("/sessions", response_model=ActiveSessionsResponse)
def sessions(
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> ActiveSessionsResponse:
    """Active refresh tokens of the caller (token values are never returned)."""
    identity = Identity(current_user.id, current_user.tenant_id)
    try:
        tokens = service.active_sessions(identity)
    except AuthCoreError as e:
        raise to_http_exception(e) from e
    return ActiveSessionsResponse(sessions=[refresh_token_to_session(t) for t in tokens])
