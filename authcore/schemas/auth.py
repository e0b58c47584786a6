"""Request/response schemas for auth endpoints."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class LoginRequest(BaseModel):
    """Credentials for login; name_or_email matches username or email, case-insensitive."""

    name_or_email: str = Field(..., min_length=1, max_length=255, description="Username or email")
    password: str = Field(..., min_length=1, max_length=128, description="Password")


class UserSummary(BaseModel):
    """Public view of a user (no password hash, salt or tokens)."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    tenant_id: uuid.UUID
    username: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    full_name: str
    last_login_at: datetime | None = None


class AccessTokenResponse(BaseModel):
    """Access token returned by refresh; the refresh token travels in an HttpOnly cookie."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Access token lifetime in seconds")


class LoginResponse(AccessTokenResponse):
    """Access token plus the authenticated user's summary."""

    user: UserSummary


class ActiveSession(BaseModel):
    """An active refresh token of the current user, without the token value."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    created_at: datetime
    expires_at: datetime
    created_by_ip: str


class ActiveSessionsResponse(BaseModel):
    """Response for GET /auth/sessions."""

    sessions: list[ActiveSession]
