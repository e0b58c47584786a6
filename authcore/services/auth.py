"""Authentication orchestrator: login, refresh and revoke on top of the token store.

This is the only entry point the HTTP layer uses. Every public method works
on one request's session and keeps no state between calls; the refresh token
chain in the database is the whole session state.

Failures that could reveal whether a user exists, or why a token was
rejected, all surface as the same AuthenticationFailed.
"""

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from authcore.core.config import AuthConfig
from authcore.core.database import db_errors
from authcore.core.errors import AuthenticationFailed, TokenReuseDetected, ValidationFailed
from authcore.core.security import DUMMY_PASSWORD_HASH, DUMMY_PASSWORD_SALT, verify_password
from authcore.models import RefreshToken, User
from authcore.models.base import utcnow
from authcore.models.refresh_token import IP_ADDRESS_MAX_LEN
from authcore.services.privileges import PermissionSet, PrivilegeCache, PrivilegeResolver
from authcore.services.refresh_store import RefreshTokenStore
from authcore.services.tokens import Identity, TokenIssuer

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT_IP = "unknown"


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: RefreshToken
    expires_in: int


@dataclass(frozen=True)
class LoginResult(TokenPair):
    user: User


def _client_ip(client_ip: str | None) -> str:
    ip = (client_ip or "").strip() or UNKNOWN_CLIENT_IP
    return ip[:IP_ADDRESS_MAX_LEN]


class AuthService:
    """Composes the credential verifier, token issuer, token store and privilege resolver."""

    def __init__(
        self,
        session: Session,
        config: AuthConfig,
        cache: PrivilegeCache | None = None,
        include_inactive_applications: bool = True,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.session = session
        self.config = config
        self._clock = clock
        self.issuer = TokenIssuer(config, clock=clock)
        self.store = RefreshTokenStore(session, clock=clock)
        self.resolver = PrivilegeResolver(
            session,
            include_inactive_applications=include_inactive_applications,
            cache=cache,
        )

    @property
    def access_expires_in(self) -> int:
        return int(self.config.access_ttl.total_seconds())

    def _find_user(self, name_or_email: str) -> User | None:
        value = name_or_email.lower()
        # Usernames cannot contain "@", so the two lookups never overlap.
        column = User.email if "@" in value else User.username
        with db_errors(self.session, "auth.find_user"):
            return self.session.query(User).filter(func.lower(column) == value).first()

    def login(self, name_or_email: str, password: str, client_ip: str | None) -> LoginResult:
        """
        Verify credentials and issue an access token plus a persisted refresh token.

        Unknown user, wrong password, inactive user and inactive tenant all
        raise the same AuthenticationFailed.
        """
        errors: dict[str, str] = {}
        name_or_email = (name_or_email or "").strip()
        if not name_or_email:
            errors["name_or_email"] = "Name or email is required."
        if not password:
            errors["password"] = "Password is required."
        if errors:
            raise ValidationFailed(errors)

        ip = _client_ip(client_ip)
        user = self._find_user(name_or_email)
        if user is None:
            verify_password(DUMMY_PASSWORD_HASH, DUMMY_PASSWORD_SALT, password)
            logger.info("Login failed from ip=%s", ip)
            raise AuthenticationFailed()

        password_ok = verify_password(user.password_hash, user.password_salt, password)
        with db_errors(self.session, "auth.load_tenant"):
            tenant_active = user.tenant.active
        if not password_ok or not user.active or not tenant_active:
            logger.info("Login failed from ip=%s", ip)
            raise AuthenticationFailed()

        user.last_login_at = self._clock()
        access_token = self.issuer.issue_access_token(Identity(user.id, user.tenant_id))
        # The store commits, which also persists last_login_at.
        refresh_token = self.issuer.issue_refresh_token(user.id, ip, self.store)
        logger.info("Login succeeded user=%s tenant=%s ip=%s", user.id, user.tenant_id, ip)
        return LoginResult(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=self.access_expires_in,
            user=user,
        )

    def _contain_reuse(
        self,
        token: str,
        user_id: uuid.UUID,
        ip: str,
        spare: str | None = None,
    ) -> None:
        revoked = self.store.revoke_chain(token, ip, spare=spare)
        logger.warning(
            "Refresh token reuse detected: user=%s ip=%s descendants_revoked=%s",
            user_id,
            ip,
            revoked,
        )

    def refresh(self, presented_token: str, client_ip: str | None) -> TokenPair:
        """
        Rotate a refresh token and mint a fresh access token for its user.

        A revoked token triggers reuse containment on its whole chain. A call
        that loses a concurrent rotation of the same token takes the same path
        but spares the successor the winning call minted, so exactly one token
        of the chain stays active.
        """
        presented_token = (presented_token or "").strip()
        if not presented_token:
            raise AuthenticationFailed("Invalid refresh token.")
        ip = _client_ip(client_ip)

        row = self.store.find(presented_token)
        if row is None:
            raise AuthenticationFailed("Invalid refresh token.")
        user_id = row.user_id
        if row.is_revoked:
            self._contain_reuse(presented_token, user_id, ip)
            raise AuthenticationFailed("Invalid refresh token.")
        if row.is_expired(self._clock()):
            raise AuthenticationFailed("Invalid refresh token.")

        with db_errors(self.session, "auth.load_user"):
            user = self.session.get(User, user_id)
            user_usable = user is not None and user.active and user.tenant.active
        if not user_usable:
            raise AuthenticationFailed("Invalid refresh token.")
        identity = Identity(user.id, user.tenant_id)

        successor = self.issuer.mint_refresh_token(user_id, ip)
        try:
            self.store.rotate(row, successor, ip)
        except TokenReuseDetected:
            # Lost the swap to a concurrent rotation: its successor stays the one live token.
            with db_errors(self.session, "auth.load_winner"):
                winner = row.replaced_by_token
            self._contain_reuse(presented_token, user_id, ip, spare=winner)
            raise AuthenticationFailed("Invalid refresh token.")

        return TokenPair(
            access_token=self.issuer.issue_access_token(identity),
            refresh_token=successor,
            expires_in=self.access_expires_in,
        )

    def revoke(self, presented_token: str, client_ip: str | None) -> None:
        """
        Revoke a refresh token without a successor (logout).

        Revoking an already-revoked token is a no-op success and does not
        trigger reuse containment.
        """
        presented_token = (presented_token or "").strip()
        if not presented_token:
            raise AuthenticationFailed("Invalid refresh token.")
        ip = _client_ip(client_ip)

        row = self.store.find(presented_token)
        if row is None:
            raise AuthenticationFailed("Invalid refresh token.")
        if row.is_revoked:
            logger.info("Revoke of already revoked token user=%s ip=%s; no-op", row.user_id, ip)
            return
        user_id = row.user_id
        if self.store.revoke(row, ip):
            logger.info("Refresh token revoked user=%s ip=%s", user_id, ip)

    def authenticate(self, access_token: str) -> User:
        """Verify a bearer access token and return its still-active user."""
        claims = self.issuer.verify_access_token(access_token)
        identity = claims.identity
        with db_errors(self.session, "auth.authenticate"):
            user = self.session.get(User, identity.user_id)
            usable = (
                user is not None
                and user.active
                and user.tenant_id == identity.tenant_id
                and user.tenant.active
            )
        if not usable:
            raise AuthenticationFailed("Invalid or expired token.")
        return user

    def effective_privileges(self, identity: Identity) -> dict[uuid.UUID, PermissionSet]:
        return self.resolver.resolve(identity.user_id, identity.tenant_id)

    def active_sessions(self, identity: Identity) -> list[RefreshToken]:
        return self.store.list_active_for_user(identity.user_id)
