"""Pydantic request/response schemas."""

from authcore.schemas.admin import (
    AppResourceOut,
    ApplicationOut,
    RoleOut,
    RolePrivilegeOut,
    TenantOut,
)
from authcore.schemas.auth import (
    AccessTokenResponse,
    ActiveSession,
    ActiveSessionsResponse,
    LoginRequest,
    LoginResponse,
    UserSummary,
)
from authcore.schemas.health import HealthResponse
from authcore.schemas.privileges import EffectivePrivilegesResponse, ResourcePermissions

__all__ = [
    "AccessTokenResponse",
    "ActiveSession",
    "ActiveSessionsResponse",
    "AppResourceOut",
    "ApplicationOut",
    "EffectivePrivilegesResponse",
    "HealthResponse",
    "LoginRequest",
    "LoginResponse",
    "ResourcePermissions",
    "RoleOut",
    "RolePrivilegeOut",
    "TenantOut",
    "UserSummary",
]
