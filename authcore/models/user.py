"""ORM model for user identities."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, Uuid, func
from sqlalchemy.orm import relationship

from authcore.core.security import BCRYPT_HASH_LEN, BCRYPT_SALT_LEN
from authcore.models.base import Base, utcnow


class User(Base):
    """
    User account belonging to exactly one tenant for its lifetime.

    Refresh tokens are owned by the user and removed together with it.
    """

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(
        Uuid,
        ForeignKey("tenants.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    username = Column(String(25), nullable=False, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    first_name = Column(String(50), nullable=True)
    last_name = Column(String(50), nullable=True)
    password_hash = Column(String(BCRYPT_HASH_LEN), nullable=False)
    password_salt = Column(String(BCRYPT_SALT_LEN), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    modified_at = Column(DateTime(timezone=True), nullable=True)

    tenant = relationship("Tenant", back_populates="users")
    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan",
    )
    role_assignments = relationship(
        "UserRole",
        back_populates="user",
        cascade="all, delete-orphan",
    )


# Usernames keep their casing for display but are unique ignoring case, as login matches them.
Index("uq_users_username_lower", func.lower(User.username), unique=True)
