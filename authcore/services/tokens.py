"""Token issuer: signed JWT access tokens and opaque refresh tokens."""

from __future__ import annotations

import logging
import secrets
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import jwt

from authcore.core.config import AuthConfig
from authcore.core.errors import AuthenticationFailed
from authcore.models import RefreshToken
from authcore.models.base import utcnow

if TYPE_CHECKING:
    from authcore.services.refresh_store import RefreshTokenStore

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"

# 64 random bytes -> 86 URL-safe characters (512 bits), under the 100-char column.
REFRESH_TOKEN_BYTES = 64

REQUIRED_ACCESS_CLAIMS = ["sub", "tenant_id", "typ", "exp", "iat"]


@dataclass(frozen=True)
class Identity:
    """Who a token speaks for: a user inside exactly one tenant."""

    user_id: uuid.UUID
    tenant_id: uuid.UUID


@dataclass(frozen=True)
class AccessTokenClaims:
    """Verified contents of an access token."""

    identity: Identity
    issued_at: datetime
    expires_at: datetime


class TokenIssuer:
    """
    Mints and verifies tokens with an explicit AuthConfig.

    The algorithm comes from configuration only; a token's own header never
    decides how it is verified.
    """

    def __init__(self, config: AuthConfig, clock: Callable[[], datetime] = utcnow) -> None:
        self.config = config
        self._clock = clock

    def issue_access_token(self, identity: Identity) -> str:
        """Create a signed JWT with sub, tenant_id, typ, iat and exp."""
        now = self._clock()
        payload: dict[str, Any] = {
            "sub": str(identity.user_id),
            "tenant_id": str(identity.tenant_id),
            "typ": ACCESS_TOKEN_TYPE,
            "iat": now,
            "exp": now + self.config.access_ttl,
        }
        return jwt.encode(payload, self.config.secret, algorithm=self.config.algorithm)

    def verify_access_token(self, token: str) -> AccessTokenClaims:
        """
        Verify signature, algorithm and expiry; return the decoded identity.

        No leeway: a token is rejected from the second its exp is reached.
        Raises AuthenticationFailed on any failure.
        """
        if not token:
            raise AuthenticationFailed("Invalid or expired token.")
        try:
            header = jwt.get_unverified_header(token)
            if header.get("alg") != self.config.algorithm:
                raise jwt.InvalidAlgorithmError("Unexpected token algorithm")
            payload = jwt.decode(
                token,
                self.config.secret,
                algorithms=[self.config.algorithm],
                leeway=0,
                options={"require": REQUIRED_ACCESS_CLAIMS},
            )
        except jwt.PyJWTError as e:
            logger.debug("Access token rejected: %s", e.__class__.__name__)
            raise AuthenticationFailed("Invalid or expired token.") from e

        if payload.get("typ") != ACCESS_TOKEN_TYPE:
            raise AuthenticationFailed("Invalid or expired token.")
        try:
            identity = Identity(
                user_id=uuid.UUID(str(payload["sub"])),
                tenant_id=uuid.UUID(str(payload["tenant_id"])),
            )
            issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
        except (TypeError, ValueError) as e:
            raise AuthenticationFailed("Invalid or expired token.") from e
        return AccessTokenClaims(identity=identity, issued_at=issued_at, expires_at=expires_at)

    def mint_refresh_token(self, user_id: uuid.UUID, client_ip: str) -> RefreshToken:
        """Build an unsaved refresh token; rotation inserts it inside its own transaction."""
        now = self._clock()
        return RefreshToken(
            id=uuid.uuid4(),
            user_id=user_id,
            token=secrets.token_urlsafe(REFRESH_TOKEN_BYTES),
            created_by_ip=client_ip,
            created_at=now,
            expires_at=now + self.config.refresh_ttl,
            revoked_at=None,
            revoked_by_ip=None,
            replaced_by_token=None,
        )

    def issue_refresh_token(
        self,
        user_id: uuid.UUID,
        client_ip: str,
        store: RefreshTokenStore,
    ) -> RefreshToken:
        """Mint a refresh token and persist it through the store."""
        token = self.mint_refresh_token(user_id, client_ip)
        store.add(token)
        return token
