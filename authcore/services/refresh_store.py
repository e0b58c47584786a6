"""Refresh token store: persistence of rotation chains with single-use rotation."""

import logging
import uuid
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.orm import Session

from authcore.core.database import db_errors
from authcore.core.errors import TokenReuseDetected
from authcore.models import RefreshToken
from authcore.models.base import utcnow

logger = logging.getLogger(__name__)

# Upper bound on chain walks; a lineage longer than this is treated as corrupt.
MAX_CHAIN_LENGTH = 10_000


class RefreshTokenStore:
    """
    Reads and writes RefreshToken rows through one session.

    rotate() and revoke() are compare-and-swap updates on revoked_at, so of
    several callers presenting the same token only one can revoke it.
    """

    def __init__(self, session: Session, clock=utcnow) -> None:
        self.session = session
        self._clock = clock

    def find(self, token: str) -> RefreshToken | None:
        """Return the token row in any state, or None."""
        if not token:
            return None
        with db_errors(self.session, "refresh_token.find"):
            return (
                self.session.query(RefreshToken)
                .filter(RefreshToken.token == token)
                .first()
            )

    def find_active(self, token: str) -> RefreshToken | None:
        """Return the token row only if it is neither revoked nor expired."""
        row = self.find(token)
        if row is None or not row.is_active(self._clock()):
            return None
        return row

    def add(self, token: RefreshToken) -> RefreshToken:
        """Insert a freshly minted token."""
        with db_errors(self.session, "refresh_token.add"):
            self.session.add(token)
            self.session.commit()
        return token

    def _swap_revoked(
        self,
        token_id: uuid.UUID,
        now: datetime,
        client_ip: str | None,
        replaced_by: str | None = None,
    ) -> bool:
        """Set revoked_at only if it is still NULL; True when this call won."""
        values = {"revoked_at": now, "revoked_by_ip": client_ip}
        if replaced_by is not None:
            values["replaced_by_token"] = replaced_by
        result = self.session.execute(
            update(RefreshToken)
            .where(RefreshToken.id == token_id, RefreshToken.revoked_at.is_(None))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def rotate(self, old: RefreshToken, new: RefreshToken, client_ip: str) -> RefreshToken:
        """
        Revoke old and insert new in one transaction.

        Raises TokenReuseDetected (after rolling back) when old was already
        revoked, e.g. by a concurrent rotation that won the swap.
        """
        old_id = old.id
        with db_errors(self.session, "refresh_token.rotate"):
            if not self._swap_revoked(old_id, self._clock(), client_ip, replaced_by=new.token):
                self.session.rollback()
                raise TokenReuseDetected(old_id)
            self.session.add(new)
            self.session.commit()
        return new

    def revoke(self, token: RefreshToken, client_ip: str | None) -> bool:
        """Revoke without a successor. Returns False if it was already revoked."""
        token_id = token.id
        with db_errors(self.session, "refresh_token.revoke"):
            revoked = self._swap_revoked(token_id, self._clock(), client_ip)
            self.session.commit()
        return revoked

    def revoke_chain(
        self,
        token: str,
        client_ip: str | None,
        spare: str | None = None,
    ) -> int:
        """
        Revoke every still-active token descending from token via replaced_by_token.

        The presented token is revoked too if it is somehow still active. spare
        names one node left untouched (its descendants are still revoked).
        Runs in a single transaction and returns the number of rows revoked.
        """
        now = self._clock()
        revoked = 0
        seen: set[str] = set()
        current: str | None = token
        with db_errors(self.session, "refresh_token.revoke_chain"):
            while current and current not in seen and len(seen) < MAX_CHAIN_LENGTH:
                seen.add(current)
                node = (
                    self.session.query(RefreshToken)
                    .filter(RefreshToken.token == current)
                    .populate_existing()
                    .first()
                )
                if node is None:
                    break
                if (
                    node.token != spare
                    and node.revoked_at is None
                    and self._swap_revoked(node.id, now, client_ip)
                ):
                    revoked += 1
                current = node.replaced_by_token
            self.session.commit()
        if len(seen) >= MAX_CHAIN_LENGTH:
            logger.error("Refresh token chain walk stopped after %s nodes", MAX_CHAIN_LENGTH)
        return revoked

    def list_active_for_user(self, user_id: uuid.UUID) -> list[RefreshToken]:
        """Active tokens of a user, newest first."""
        now = self._clock()
        with db_errors(self.session, "refresh_token.list_active"):
            return (
                self.session.query(RefreshToken)
                .filter(
                    RefreshToken.user_id == user_id,
                    RefreshToken.revoked_at.is_(None),
                    RefreshToken.expires_at > now,
                )
                .order_by(RefreshToken.created_at.desc())
                .all()
            )
