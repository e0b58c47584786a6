"""Shared helpers for tests that need a real database: one throwaway SQLite file per test case."""

import os
import tempfile
import unittest
from datetime import timedelta

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from authcore.core.config import AuthConfig
from authcore.models import AppResource, Base, Role, Tenant, User
from authcore.services.admin import AdminService

TEST_SECRET = "unit-test-signing-secret-0123456789abcdef"
PASSWORD = "correct-horse-battery"

# Low bcrypt cost keeps user creation fast in tests.
TEST_BCRYPT_ROUNDS = 4


def make_config(**overrides: object) -> AuthConfig:
    """AuthConfig with test defaults; override any field by keyword."""
    values: dict[str, object] = {
        "secret": TEST_SECRET,
        "algorithm": "HS256",
        "access_ttl": timedelta(minutes=15),
        "refresh_ttl": timedelta(days=7),
    }
    values.update(overrides)
    return AuthConfig(**values)


class DatabaseTestCase(unittest.TestCase):
    """
    Creates the full schema in a fresh on-disk SQLite file.

    An on-disk file (not :memory:) lets several sessions see each other's
    commits, which the rotation race tests rely on.
    """

    def setUp(self) -> None:
        fd, self.db_path = tempfile.mkstemp(suffix=".sqlite3")
        os.close(fd)
        self.addCleanup(os.remove, self.db_path)
        self.engine = create_engine(
            f"sqlite:///{self.db_path}",
            connect_args={"check_same_thread": False},
        )
        self.addCleanup(self.engine.dispose)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        self.session = self.Session()
        self.addCleanup(self.session.close)
        self.admin = AdminService(self.session, bcrypt_rounds=TEST_BCRYPT_ROUNDS)

    def new_session(self) -> Session:
        """A second, independent session on the same database."""
        session = self.Session()
        self.addCleanup(session.close)
        return session

    def make_tenant(self, code: str = "T1", name: str | None = None) -> Tenant:
        return self.admin.create_tenant(code, name or f"Tenant {code}")

    def make_user(
        self,
        tenant: Tenant,
        username: str = "alice",
        email: str | None = None,
        password: str = PASSWORD,
    ) -> User:
        return self.admin.create_user(
            tenant.id,
            username,
            email or f"{username}@example.com",
            password,
        )

    def make_resource(
        self,
        app_code: str = "ERP",
        resource_code: str = "X",
        capabilities: dict[str, bool] | None = None,
    ) -> AppResource:
        application = self.admin.create_application(app_code, f"{app_code} application")
        if capabilities is None:
            capabilities = {"create": True, "read": True, "update": True, "delete": True}
        return self.admin.add_resource(
            application.id,
            resource_code,
            f"Resource {resource_code}",
            capabilities,
        )

    def make_role(self, tenant: Tenant, code: str, grants: dict[str, AppResource]) -> Role:
        """Create a role granting each named action on the given resource."""
        role = self.admin.create_role(tenant.id, code, f"Role {code}")
        by_resource: dict = {}
        for action, resource in grants.items():
            by_resource.setdefault(resource.id, {})[action] = True
        for resource_id, bits in by_resource.items():
            self.admin.set_role_privilege(role.id, resource_id, bits)
        return role
