"""ORM models for applications and the protected resources they expose."""

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from authcore.models.base import Base, utcnow


class Application(Base):
    """An application whose resources roles can be granted privileges on."""

    __tablename__ = "applications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    code = Column(String(16), nullable=False, unique=True, index=True)
    name = Column(String(50), nullable=False, unique=True, index=True)
    description = Column(String(255), nullable=True)
    edition = Column(String(25), nullable=True)
    version = Column(String(16), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    modified_at = Column(DateTime(timezone=True), nullable=True)

    resources = relationship(
        "AppResource",
        back_populates="application",
        cascade="all, delete-orphan",
    )


class AppResource(Base):
    """
    Protected resource within an application (e.g. "Invoices").

    The capability flags say which of the seven privilege bits are
    meaningful for this resource.
    """

    __tablename__ = "app_resources"
    __table_args__ = (
        UniqueConstraint("application_id", "code", name="uq_app_resources_app_code"),
        UniqueConstraint("application_id", "name", name="uq_app_resources_app_name"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    application_id = Column(
        Uuid,
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code = Column(String(16), nullable=False)
    name = Column(String(50), nullable=False)
    description = Column(String(255), nullable=True)
    resource_type = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)
    creatable = Column(Boolean, nullable=False, default=False)
    readable = Column(Boolean, nullable=False, default=False)
    updateable = Column(Boolean, nullable=False, default=False)
    deleteable = Column(Boolean, nullable=False, default=False)
    exportable = Column(Boolean, nullable=False, default=False)
    importable = Column(Boolean, nullable=False, default=False)
    printable = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    modified_at = Column(DateTime(timezone=True), nullable=True)

    application = relationship("Application", back_populates="resources")
    privileges = relationship(
        "RolePrivilege",
        back_populates="resource",
        cascade="all, delete-orphan",
    )

    def capabilities(self) -> dict[str, bool]:
        """Capability flags keyed by the action they enable."""
        return {
            "create": bool(self.creatable),
            "read": bool(self.readable),
            "update": bool(self.updateable),
            "delete": bool(self.deleteable),
            "export": bool(self.exportable),
            "import": bool(self.importable),
            "print": bool(self.printable),
        }
