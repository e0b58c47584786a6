"""Tests for authcore.services.privileges: OR aggregation, tenant scoping, policy flag and cache."""

import unittest
import uuid

from authcore.core.errors import ValidationFailed
from authcore.models import RolePrivilege
from authcore.services.admin import AdminService
from authcore.services.privileges import (
    NO_PERMISSIONS,
    PermissionSet,
    PrivilegeCache,
    PrivilegeResolver,
)
from tests.support import TEST_BCRYPT_ROUNDS, DatabaseTestCase


class TestPermissionSet(unittest.TestCase):
    def test_or_combines_bits(self) -> None:
        combined = PermissionSet(read=True) | PermissionSet(update=True, print_=True)
        self.assertEqual(combined, PermissionSet(read=True, update=True, print_=True))

    def test_from_bits_uses_action_names(self) -> None:
        perm = PermissionSet.from_bits({"import": True, "read": False})
        self.assertTrue(perm.allows("import"))
        self.assertFalse(perm.allows("read"))
        self.assertEqual(
            list(perm.as_dict()),
            ["create", "read", "update", "delete", "export", "import", "print"],
        )

    def test_unknown_action_rejected(self) -> None:
        with self.assertRaises(ValueError):
            PermissionSet.from_bits({"approve": True})
        with self.assertRaises(ValueError):
            NO_PERMISSIONS.allows("approve")

    def test_empty_set_grants_nothing(self) -> None:
        self.assertFalse(NO_PERMISSIONS.any())
        self.assertTrue(PermissionSet(export=True).any())


class TestPrivilegeCache(unittest.TestCase):
    def setUp(self) -> None:
        self.now = 0.0
        self.cache = PrivilegeCache(30, clock=lambda: self.now)
        self.tenant_id = uuid.uuid4()
        self.user_id = uuid.uuid4()
        self.key = (self.tenant_id, self.user_id, True)
        self.value = {uuid.uuid4(): PermissionSet(read=True)}

    def test_entry_expires_after_ttl(self) -> None:
        self.cache.put(self.key, self.value)
        self.now = 29.0
        self.assertEqual(self.cache.get(self.key), self.value)
        self.now = 30.0
        self.assertIsNone(self.cache.get(self.key))

    def test_invalidate_by_user_and_tenant(self) -> None:
        other_key = (self.tenant_id, uuid.uuid4(), True)
        self.cache.put(self.key, self.value)
        self.cache.put(other_key, self.value)
        self.cache.invalidate(self.tenant_id, self.user_id)
        self.assertIsNone(self.cache.get(self.key))
        self.assertIsNotNone(self.cache.get(other_key))
        self.cache.invalidate(self.tenant_id)
        self.assertIsNone(self.cache.get(other_key))

    def test_zero_ttl_disables_cache(self) -> None:
        cache = PrivilegeCache(0)
        cache.put(self.key, self.value)
        self.assertIsNone(cache.get(self.key))


class PrivilegeTestCase(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.tenant = self.make_tenant("T1")
        self.user = self.make_user(self.tenant)
        self.resource = self.make_resource()
        self.resolver = PrivilegeResolver(self.session)


class TestResolve(PrivilegeTestCase):
    def test_two_roles_yield_or_of_their_bits(self) -> None:
        reader = self.make_role(self.tenant, "READER", {"read": self.resource})
        writer = self.make_role(self.tenant, "WRITER", {"update": self.resource})
        self.admin.assign_role(self.user.id, reader.id)
        self.admin.assign_role(self.user.id, writer.id)

        perms = self.resolver.permissions_for(self.user.id, self.tenant.id, self.resource.id)

        self.assertEqual(perms, PermissionSet(read=True, update=True))
        self.assertTrue(self.resolver.is_allowed(self.user.id, self.tenant.id, self.resource.id, "update"))
        self.assertFalse(self.resolver.is_allowed(self.user.id, self.tenant.id, self.resource.id, "delete"))

    def test_user_without_roles_resolves_to_empty_mapping(self) -> None:
        self.assertEqual(self.resolver.resolve(self.user.id, self.tenant.id), {})
        self.assertEqual(
            self.resolver.permissions_for(self.user.id, self.tenant.id, self.resource.id),
            NO_PERMISSIONS,
        )

    def test_resolution_never_crosses_tenants(self) -> None:
        role = self.make_role(self.tenant, "READER", {"read": self.resource})
        self.admin.assign_role(self.user.id, role.id)
        other_tenant = self.make_tenant("T2")
        other_user = self.make_user(other_tenant, username="bob")

        self.assertEqual(self.resolver.resolve(self.user.id, other_tenant.id), {})
        with self.assertRaises(ValidationFailed):
            self.admin.assign_role(other_user.id, role.id)
        self.assertEqual(self.resolver.resolve(other_user.id, other_tenant.id), {})

    def test_inactive_role_does_not_contribute(self) -> None:
        role = self.make_role(self.tenant, "READER", {"read": self.resource})
        self.admin.assign_role(self.user.id, role.id)
        self.admin.set_role_active(role.id, False)
        self.assertEqual(self.resolver.resolve(self.user.id, self.tenant.id), {})

    def test_inactive_application_contributes_by_default(self) -> None:
        role = self.make_role(self.tenant, "READER", {"read": self.resource})
        self.admin.assign_role(self.user.id, role.id)
        self.admin.set_application_active(self.resource.application_id, False)

        perms = self.resolver.resolve(self.user.id, self.tenant.id)
        self.assertEqual(perms, {self.resource.id: PermissionSet(read=True)})

    def test_inactive_application_excluded_when_policy_says_so(self) -> None:
        role = self.make_role(self.tenant, "READER", {"read": self.resource})
        self.admin.assign_role(self.user.id, role.id)
        strict = PrivilegeResolver(self.session, include_inactive_applications=False)
        self.assertIn(self.resource.id, strict.resolve(self.user.id, self.tenant.id))

        self.admin.set_application_active(self.resource.application_id, False)
        self.assertEqual(strict.resolve(self.user.id, self.tenant.id), {})


class TestResolveWithCache(PrivilegeTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.cache = PrivilegeCache(300)
        self.admin = AdminService(self.session, cache=self.cache, bcrypt_rounds=TEST_BCRYPT_ROUNDS)
        self.resolver = PrivilegeResolver(self.session, cache=self.cache)
        self.role = self.make_role(self.tenant, "READER", {"read": self.resource})
        self.admin.assign_role(self.user.id, self.role.id)

    def test_repeat_lookup_served_from_cache(self) -> None:
        first = self.resolver.resolve(self.user.id, self.tenant.id)
        # Write behind the admin service's back: the cached answer stands.
        row = self.session.get(RolePrivilege, (self.role.id, self.resource.id))
        row.update = True
        self.session.commit()
        self.assertEqual(self.resolver.resolve(self.user.id, self.tenant.id), first)

    def test_admin_writes_invalidate_cached_entries(self) -> None:
        self.resolver.resolve(self.user.id, self.tenant.id)
        self.admin.set_role_privilege(self.role.id, self.resource.id, {"read": True, "delete": True})
        perms = self.resolver.permissions_for(self.user.id, self.tenant.id, self.resource.id)
        self.assertEqual(perms, PermissionSet(read=True, delete=True))
