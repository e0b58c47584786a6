"""SQLAlchemy ORM models."""

from authcore.models.application import AppResource, Application
from authcore.models.base import Base
from authcore.models.refresh_token import RefreshToken
from authcore.models.role import PRIVILEGE_ACTIONS, Role, RolePrivilege, UserRole
from authcore.models.tenant import Tenant
from authcore.models.user import User

__all__ = [
    "AppResource",
    "Application",
    "Base",
    "PRIVILEGE_ACTIONS",
    "RefreshToken",
    "Role",
    "RolePrivilege",
    "Tenant",
    "User",
    "UserRole",
]
