"""ORM models for tenant-scoped roles, their assignment to users, and their privileges."""

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from authcore.models.base import Base, utcnow

# Grant bits in canonical order; AppResource carries the matching capability flags.
PRIVILEGE_ACTIONS = ("create", "read", "update", "delete", "export", "import", "print")


class Role(Base):
    """Named permission bundle scoped to exactly one tenant."""

    __tablename__ = "roles"
    __table_args__ = (
        UniqueConstraint("code", "tenant_id", name="uq_roles_code_tenant"),
        UniqueConstraint("name", "tenant_id", name="uq_roles_name_tenant"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(
        Uuid,
        ForeignKey("tenants.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    code = Column(String(16), nullable=False)
    name = Column(String(25), nullable=False)
    description = Column(String(255), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    modified_at = Column(DateTime(timezone=True), nullable=True)

    tenant = relationship("Tenant", back_populates="roles")
    privileges = relationship(
        "RolePrivilege",
        back_populates="role",
        cascade="all, delete-orphan",
    )
    assignments = relationship(
        "UserRole",
        back_populates="role",
        cascade="all, delete-orphan",
    )


class UserRole(Base):
    """Assignment of a role to a user; both sides belong to the same tenant."""

    __tablename__ = "user_roles"

    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    role_id = Column(
        Uuid,
        ForeignKey("roles.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    user = relationship("User", back_populates="role_assignments")
    role = relationship("Role", back_populates="assignments")


class RolePrivilege(Base):
    """
    Grant record tying a role to an app resource.

    Each grant bit must be supported by the resource's matching capability
    flag; the admin service rejects writes that violate this.
    """

    __tablename__ = "role_privileges"

    role_id = Column(Uuid, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)
    resource_id = Column(
        Uuid,
        ForeignKey("app_resources.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    create = Column(Boolean, nullable=False, default=False)
    read = Column(Boolean, nullable=False, default=False)
    update = Column(Boolean, nullable=False, default=False)
    delete = Column(Boolean, nullable=False, default=False)
    export = Column(Boolean, nullable=False, default=False)
    import_ = Column("import", Boolean, nullable=False, default=False)
    print_ = Column("print", Boolean, nullable=False, default=False)

    role = relationship("Role", back_populates="privileges")
    resource = relationship("AppResource", back_populates="privileges")

    def grant_bits(self) -> dict[str, bool]:
        """Grant bits keyed by action name."""
        return {
            "create": bool(self.create),
            "read": bool(self.read),
            "update": bool(self.update),
            "delete": bool(self.delete),
            "export": bool(self.export),
            "import": bool(self.import_),
            "print": bool(self.print_),
        }
