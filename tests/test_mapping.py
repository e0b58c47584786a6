"""Unit tests for authcore.services.mapping: ignored attributes never reach transfer shapes."""

import unittest
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import inspect

from authcore.models import RefreshToken, User
from authcore.services.mapping import (
    MAPPING_RULES,
    permissions_to_response,
    refresh_token_to_session,
    user_to_summary,
)
from authcore.services.privileges import NO_PERMISSIONS, PermissionSet


class TestMappingRules(unittest.TestCase):
    def test_ignored_attributes_exist_on_source_and_not_on_target(self) -> None:
        for rule in MAPPING_RULES:
            attributes = set(inspect(rule.source).attrs.keys())
            for name in rule.ignored:
                with self.subTest(source=rule.source.__name__, name=name):
                    self.assertIn(name, attributes)
                    self.assertNotIn(name, rule.target.model_fields)

    def test_computed_fields_exist_on_target_only(self) -> None:
        for rule in MAPPING_RULES:
            attributes = set(inspect(rule.source).attrs.keys())
            for name in rule.computed:
                with self.subTest(source=rule.source.__name__, name=name):
                    self.assertIn(name, rule.target.model_fields)
                    self.assertNotIn(name, attributes)

    def test_secret_columns_are_always_ignored(self) -> None:
        ignored = {rule.source: set(rule.ignored) for rule in MAPPING_RULES}
        self.assertTrue({"password_hash", "password_salt"} <= ignored[User])
        self.assertIn("token", ignored[RefreshToken])


class TestConversions(unittest.TestCase):
    def test_user_summary_builds_full_name(self) -> None:
        user = User(
            id=uuid.uuid4(),
            tenant_id=uuid.uuid4(),
            username="alice",
            email="alice@example.com",
            first_name="Alice",
            last_name="Liddell",
            password_hash="h" * 60,
            password_salt="s" * 29,
        )
        summary = user_to_summary(user)
        self.assertEqual(summary.full_name, "Alice Liddell")
        self.assertNotIn("password_hash", summary.model_dump())

    def test_user_summary_falls_back_to_username(self) -> None:
        user = User(id=uuid.uuid4(), tenant_id=uuid.uuid4(), username="bob", email="bob@example.com")
        self.assertEqual(user_to_summary(user).full_name, "bob")

    def test_session_view_has_no_token_value(self) -> None:
        created = datetime(2026, 1, 1, 12, 0)
        token = RefreshToken(
            id=uuid.uuid4(),
            user_id=uuid.uuid4(),
            token="secret-token-value",
            created_by_ip="10.0.0.1",
            created_at=created,
            expires_at=created + timedelta(days=7),
        )
        session = refresh_token_to_session(token)
        self.assertEqual(session.created_at.tzinfo, timezone.utc)
        self.assertNotIn("secret-token-value", session.model_dump_json())

    def test_privileges_response_is_sorted_and_drops_empty_entries(self) -> None:
        ids = sorted((uuid.uuid4() for _ in range(3)), key=str)
        permissions = {
            ids[2]: PermissionSet(read=True),
            ids[1]: NO_PERMISSIONS,
            ids[0]: PermissionSet(import_=True),
        }
        response = permissions_to_response(uuid.uuid4(), uuid.uuid4(), permissions)
        self.assertEqual([r.resource_id for r in response.resources], [ids[0], ids[2]])
        dumped = response.resources[0].model_dump(by_alias=True)
        self.assertTrue(dumped["import"])
        self.assertFalse(dumped["print"])
