"""ORM model for tenants (the isolation boundary for users and roles)."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Uuid
from sqlalchemy.orm import relationship

from authcore.models.base import Base, utcnow


class Tenant(Base):
    """
    Tenant owning Users and Roles.

    Deletion is restricted while users or roles reference it; the admin
    service checks this before deleting.
    """

    __tablename__ = "tenants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    code = Column(String(16), nullable=False, unique=True, index=True)
    name = Column(String(50), nullable=False, unique=True, index=True)
    description = Column(String(255), nullable=True)
    org_count = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    modified_at = Column(DateTime(timezone=True), nullable=True)

    users = relationship("User", back_populates="tenant", passive_deletes="all")
    roles = relationship("Role", back_populates="tenant", passive_deletes="all")
