"""Privilege resolver: effective per-resource permissions of a user inside its tenant.

A user's permission on a resource is the bitwise OR of the grants of every
active role assigned to that user in the tenant. No roles means an empty
mapping, which callers treat as deny-all.

Whether resources of an inactive Application (or inactive resources) still
contribute is a policy flag: by default they do, and activation is enforced
by the API layer that exposes the application.
"""

import logging
import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, fields

from sqlalchemy.orm import Session

from authcore.core.database import db_errors
from authcore.models import (
    PRIVILEGE_ACTIONS,
    AppResource,
    Application,
    Role,
    RolePrivilege,
    User,
    UserRole,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PermissionSet:
    """Seven grant bits on a single resource."""

    create: bool = False
    read: bool = False
    update: bool = False
    delete: bool = False
    export: bool = False
    import_: bool = False
    print_: bool = False

    @classmethod
    def from_bits(cls, bits: dict[str, bool]) -> "PermissionSet":
        """Build from a mapping keyed by action name ("import", "print", ...)."""
        unknown = set(bits) - set(PRIVILEGE_ACTIONS)
        if unknown:
            raise ValueError(f"Unknown privilege action(s): {', '.join(sorted(unknown))}")
        return cls(**{_attr(action): bool(value) for action, value in bits.items()})

    def __or__(self, other: "PermissionSet") -> "PermissionSet":
        if not isinstance(other, PermissionSet):
            return NotImplemented
        return PermissionSet(
            **{f.name: getattr(self, f.name) or getattr(other, f.name) for f in fields(self)}
        )

    def allows(self, action: str) -> bool:
        if action not in PRIVILEGE_ACTIONS:
            raise ValueError(f"Unknown privilege action: {action}")
        return getattr(self, _attr(action))

    def as_dict(self) -> dict[str, bool]:
        return {action: getattr(self, _attr(action)) for action in PRIVILEGE_ACTIONS}

    def any(self) -> bool:
        return any(self.as_dict().values())


def _attr(action: str) -> str:
    """Attribute name for an action; import/print are Python keywords or builtins."""
    return f"{action}_" if action in ("import", "print") else action


NO_PERMISSIONS = PermissionSet()

CacheKey = tuple[uuid.UUID, uuid.UUID, bool]


class PrivilegeCache:
    """
    Thread-safe TTL cache of resolved permission maps keyed by (tenant, user, policy).

    A ttl of 0 disables caching. Entries are not invalidated by writes made in
    other processes; they expire after ttl_seconds.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[CacheKey, tuple[float, dict[uuid.UUID, PermissionSet]]] = {}
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0

    def get(self, key: CacheKey) -> dict[uuid.UUID, PermissionSet] | None:
        if not self.enabled:
            return None
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if self._clock() - stored_at >= self.ttl_seconds:
                del self._entries[key]
                return None
            return dict(value)

    def put(self, key: CacheKey, value: dict[uuid.UUID, PermissionSet]) -> None:
        if not self.enabled:
            return
        with self._lock:
            self._entries[key] = (self._clock(), dict(value))

    def invalidate(self, tenant_id: uuid.UUID, user_id: uuid.UUID | None = None) -> None:
        """Drop entries of one user, or of every user in the tenant when user_id is None."""
        with self._lock:
            for key in list(self._entries):
                if key[0] == tenant_id and (user_id is None or key[1] == user_id):
                    del self._entries[key]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class PrivilegeResolver:
    """Resolves effective permissions from role assignments and role privileges."""

    def __init__(
        self,
        session: Session,
        include_inactive_applications: bool = True,
        cache: PrivilegeCache | None = None,
    ) -> None:
        self.session = session
        self.include_inactive_applications = include_inactive_applications
        self.cache = cache

    def _fetch_privileges(self, user_id: uuid.UUID, tenant_id: uuid.UUID) -> list[RolePrivilege]:
        query = (
            self.session.query(RolePrivilege)
            .join(Role, Role.id == RolePrivilege.role_id)
            .join(UserRole, UserRole.role_id == Role.id)
            .join(User, User.id == UserRole.user_id)
            .join(AppResource, AppResource.id == RolePrivilege.resource_id)
            .join(Application, Application.id == AppResource.application_id)
            .filter(
                UserRole.user_id == user_id,
                User.tenant_id == tenant_id,
                Role.tenant_id == tenant_id,
                Role.active.is_(True),
            )
        )
        if not self.include_inactive_applications:
            query = query.filter(Application.active.is_(True), AppResource.active.is_(True))
        with db_errors(self.session, "privileges.resolve"):
            return query.all()

    def resolve(self, user_id: uuid.UUID, tenant_id: uuid.UUID) -> dict[uuid.UUID, PermissionSet]:
        """
        Map resource id -> OR of grant bits across the user's roles in the tenant.

        Returns an empty dict for a user without roles (or outside the tenant).
        """
        key: CacheKey = (tenant_id, user_id, self.include_inactive_applications)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        effective: dict[uuid.UUID, PermissionSet] = {}
        for row in self._fetch_privileges(user_id, tenant_id):
            granted = PermissionSet.from_bits(row.grant_bits())
            effective[row.resource_id] = effective.get(row.resource_id, NO_PERMISSIONS) | granted

        logger.debug(
            "Resolved privileges user=%s tenant=%s resources=%s",
            user_id,
            tenant_id,
            len(effective),
        )
        if self.cache is not None:
            self.cache.put(key, effective)
        return effective

    def permissions_for(
        self,
        user_id: uuid.UUID,
        tenant_id: uuid.UUID,
        resource_id: uuid.UUID,
    ) -> PermissionSet:
        """Effective bits on one resource; all False when nothing is granted."""
        return self.resolve(user_id, tenant_id).get(resource_id, NO_PERMISSIONS)

    def is_allowed(
        self,
        user_id: uuid.UUID,
        tenant_id: uuid.UUID,
        resource_id: uuid.UUID,
        action: str,
    ) -> bool:
        return self.permissions_for(user_id, tenant_id, resource_id).allows(action)
