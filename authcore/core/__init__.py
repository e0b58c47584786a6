"""Core app configuration, database and error taxonomy."""

from authcore.core.config import AuthConfig, get_settings
from authcore.core.database import get_db

__all__ = ["AuthConfig", "get_settings", "get_db"]
