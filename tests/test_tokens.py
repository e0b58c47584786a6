"""Unit tests for authcore.services.tokens: access token round-trip and rejection paths."""

import unittest
import uuid
from datetime import timedelta
from unittest.mock import MagicMock

import jwt

from authcore.core.errors import AuthenticationFailed
from authcore.models.base import utcnow
from authcore.services.tokens import REFRESH_TOKEN_BYTES, Identity, TokenIssuer
from tests.support import TEST_SECRET, make_config


class TestAccessTokenRoundTrip(unittest.TestCase):
    def setUp(self) -> None:
        self.issuer = TokenIssuer(make_config())
        self.identity = Identity(uuid.uuid4(), uuid.uuid4())

    def test_issue_then_verify_returns_same_identity(self) -> None:
        token = self.issuer.issue_access_token(self.identity)
        claims = self.issuer.verify_access_token(token)
        self.assertEqual(claims.identity, self.identity)
        self.assertEqual(claims.expires_at - claims.issued_at, timedelta(minutes=15))

    def test_token_carries_expected_claims(self) -> None:
        token = self.issuer.issue_access_token(self.identity)
        payload = jwt.decode(token, TEST_SECRET, algorithms=["HS256"])
        self.assertEqual(payload["sub"], str(self.identity.user_id))
        self.assertEqual(payload["tenant_id"], str(self.identity.tenant_id))
        self.assertEqual(payload["typ"], "access")


class TestAccessTokenRejection(unittest.TestCase):
    def setUp(self) -> None:
        self.issuer = TokenIssuer(make_config())
        self.identity = Identity(uuid.uuid4(), uuid.uuid4())

    def _payload(self, **overrides: object) -> dict:
        now = utcnow()
        payload = {
            "sub": str(self.identity.user_id),
            "tenant_id": str(self.identity.tenant_id),
            "typ": "access",
            "iat": now,
            "exp": now + timedelta(minutes=5),
        }
        payload.update(overrides)
        return payload

    def test_different_secret_fails(self) -> None:
        other = TokenIssuer(make_config(secret="another-signing-secret-0123456789abcdef"))
        token = other.issue_access_token(self.identity)
        with self.assertRaises(AuthenticationFailed):
            self.issuer.verify_access_token(token)

    def test_algorithm_other_than_configured_fails(self) -> None:
        token = jwt.encode(self._payload(), TEST_SECRET, algorithm="HS512")
        with self.assertRaises(AuthenticationFailed):
            self.issuer.verify_access_token(token)

    def test_unsigned_token_fails(self) -> None:
        token = jwt.encode(self._payload(), None, algorithm="none")
        with self.assertRaises(AuthenticationFailed):
            self.issuer.verify_access_token(token)

    def test_expired_token_fails(self) -> None:
        past = utcnow() - timedelta(hours=1)
        old_issuer = TokenIssuer(make_config(), clock=lambda: past)
        token = old_issuer.issue_access_token(self.identity)
        with self.assertRaises(AuthenticationFailed):
            self.issuer.verify_access_token(token)

    def test_token_expired_one_second_ago_fails(self) -> None:
        # No leeway: exp one second in the past is already too late.
        issued = utcnow() - timedelta(minutes=15, seconds=1)
        token = TokenIssuer(make_config(), clock=lambda: issued).issue_access_token(self.identity)
        with self.assertRaises(AuthenticationFailed):
            self.issuer.verify_access_token(token)

    def test_exp_one_second_ago_in_raw_payload_fails(self) -> None:
        now = utcnow()
        payload = self._payload(iat=now - timedelta(minutes=1), exp=now - timedelta(seconds=1))
        token = jwt.encode(payload, TEST_SECRET, algorithm="HS256")
        with self.assertRaises(AuthenticationFailed):
            self.issuer.verify_access_token(token)

    def test_wrong_token_type_fails(self) -> None:
        token = jwt.encode(self._payload(typ="refresh"), TEST_SECRET, algorithm="HS256")
        with self.assertRaises(AuthenticationFailed):
            self.issuer.verify_access_token(token)

    def test_missing_tenant_claim_fails(self) -> None:
        payload = self._payload()
        del payload["tenant_id"]
        token = jwt.encode(payload, TEST_SECRET, algorithm="HS256")
        with self.assertRaises(AuthenticationFailed):
            self.issuer.verify_access_token(token)

    def test_non_uuid_subject_fails(self) -> None:
        token = jwt.encode(self._payload(sub="alice"), TEST_SECRET, algorithm="HS256")
        with self.assertRaises(AuthenticationFailed):
            self.issuer.verify_access_token(token)

    def test_garbage_and_empty_fail(self) -> None:
        for value in ("", "not.a.jwt", "abc"):
            with self.subTest(value=value):
                with self.assertRaises(AuthenticationFailed):
                    self.issuer.verify_access_token(value)


class TestRefreshTokenMinting(unittest.TestCase):
    def setUp(self) -> None:
        self.issuer = TokenIssuer(make_config(refresh_ttl=timedelta(days=2)))

    def test_minted_token_is_unsaved_and_active(self) -> None:
        user_id = uuid.uuid4()
        token = self.issuer.mint_refresh_token(user_id, "10.0.0.1")
        self.assertEqual(token.user_id, user_id)
        self.assertEqual(token.created_by_ip, "10.0.0.1")
        self.assertIsNone(token.revoked_at)
        self.assertIsNone(token.replaced_by_token)
        self.assertEqual(token.expires_at - token.created_at, timedelta(days=2))
        self.assertTrue(token.is_active())

    def test_tokens_are_long_and_unique(self) -> None:
        values = {self.issuer.mint_refresh_token(uuid.uuid4(), "ip").token for _ in range(50)}
        self.assertEqual(len(values), 50)
        for value in values:
            self.assertGreaterEqual(len(value), REFRESH_TOKEN_BYTES)
            self.assertLessEqual(len(value), 100)

    def test_issue_persists_through_store(self) -> None:
        store = MagicMock()
        token = self.issuer.issue_refresh_token(uuid.uuid4(), "10.0.0.1", store)
        store.add.assert_called_once_with(token)
