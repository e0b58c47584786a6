"""ORM model for refresh tokens (nodes of a rotation chain)."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from authcore.models.base import Base, as_utc, utcnow

REFRESH_TOKEN_MAX_LEN = 100
IP_ADDRESS_MAX_LEN = 50


class RefreshToken(Base):
    """
    Opaque refresh token issued at login or rotation.

    replaced_by_token holds the successor's token string (lookup only, no FK).
    Rows are never deleted while the owning user exists; revoked rows are
    kept for audit and reuse detection.
    """

    __tablename__ = "refresh_tokens"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    token = Column(String(REFRESH_TOKEN_MAX_LEN), nullable=False, unique=True, index=True)
    created_by_ip = Column(String(IP_ADDRESS_MAX_LEN), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    revoked_by_ip = Column(String(IP_ADDRESS_MAX_LEN), nullable=True)
    replaced_by_token = Column(String(REFRESH_TOKEN_MAX_LEN), nullable=True, index=True)

    user = relationship("User", back_populates="refresh_tokens")

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utcnow()) >= as_utc(self.expires_at)

    def is_active(self, now: datetime | None = None) -> bool:
        """Active iff not revoked and not yet expired."""
        return not self.is_revoked and not self.is_expired(now)
