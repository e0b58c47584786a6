"""Tests for authcore.services.refresh_store: single-use rotation and chain containment."""

from datetime import timedelta

from authcore.core.errors import TokenReuseDetected
from authcore.models import RefreshToken
from authcore.models.base import as_utc, utcnow
from authcore.services.refresh_store import RefreshTokenStore
from authcore.services.tokens import TokenIssuer
from tests.support import DatabaseTestCase, make_config


class RefreshStoreTestCase(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        tenant = self.make_tenant()
        self.user = self.make_user(tenant)
        self.user_id = self.user.id
        self.issuer = TokenIssuer(make_config())
        self.store = RefreshTokenStore(self.session)

    def issue(self) -> str:
        return self.issuer.issue_refresh_token(self.user_id, "10.0.0.1", self.store).token

    def rotate(self, store: RefreshTokenStore, value: str) -> str:
        old = store.find(value)
        new = self.issuer.mint_refresh_token(self.user_id, "10.0.0.2")
        new_value = new.token
        store.rotate(old, new, "10.0.0.2")
        return new_value

    def active_tokens(self) -> list[str]:
        check = self.new_session()
        now = utcnow()
        return [
            t.token
            for t in check.query(RefreshToken).all()
            if t.is_active(now)
        ]


class TestFind(RefreshStoreTestCase):
    def test_find_returns_any_state_and_find_active_only_live(self) -> None:
        value = self.issue()
        self.assertIsNotNone(self.store.find_active(value))
        self.store.revoke(self.store.find(value), "10.0.0.9")
        self.assertIsNotNone(self.store.find(value))
        self.assertIsNone(self.store.find_active(value))

    def test_unknown_and_empty_tokens(self) -> None:
        self.assertIsNone(self.store.find("missing"))
        self.assertIsNone(self.store.find(""))
        self.assertIsNone(self.store.find_active("missing"))

    def test_expired_token_is_not_active(self) -> None:
        value = self.issue()
        later = RefreshTokenStore(self.session, clock=lambda: utcnow() + timedelta(days=8))
        self.assertIsNone(later.find_active(value))
        self.assertIsNotNone(later.find(value))

    def test_token_is_expired_at_its_exact_expiry_instant(self) -> None:
        value = self.issue()
        expires_at = as_utc(self.store.find(value).expires_at)
        at_expiry = RefreshTokenStore(self.session, clock=lambda: expires_at)
        just_before = RefreshTokenStore(
            self.session, clock=lambda: expires_at - timedelta(microseconds=1)
        )
        self.assertIsNone(at_expiry.find_active(value))
        self.assertIsNotNone(just_before.find_active(value))
        self.assertEqual(at_expiry.list_active_for_user(self.user_id), [])


class TestRotate(RefreshStoreTestCase):
    def test_rotate_revokes_old_and_links_successor(self) -> None:
        old_value = self.issue()
        new_value = self.rotate(self.store, old_value)

        old = self.new_session().query(RefreshToken).filter_by(token=old_value).one()
        self.assertIsNotNone(old.revoked_at)
        self.assertEqual(old.revoked_by_ip, "10.0.0.2")
        self.assertEqual(old.replaced_by_token, new_value)
        self.assertEqual(self.active_tokens(), [new_value])

    def test_second_rotation_of_same_row_loses_swap(self) -> None:
        value = self.issue()
        store_a = RefreshTokenStore(self.new_session())
        store_b = RefreshTokenStore(self.new_session())
        row_a = store_a.find(value)
        row_b = store_b.find(value)

        winner = self.issuer.mint_refresh_token(self.user_id, "10.0.0.2")
        winner_value = winner.token
        store_a.rotate(row_a, winner, "10.0.0.2")

        loser = self.issuer.mint_refresh_token(self.user_id, "10.0.0.3")
        with self.assertRaises(TokenReuseDetected):
            store_b.rotate(row_b, loser, "10.0.0.3")

        self.assertEqual(self.active_tokens(), [winner_value])
        self.assertEqual(self.new_session().query(RefreshToken).count(), 2)

    def test_revoke_is_single_use(self) -> None:
        value = self.issue()
        self.assertTrue(self.store.revoke(self.store.find(value), "10.0.0.9"))
        self.assertFalse(self.store.revoke(self.store.find(value), "10.0.0.9"))


class TestRevokeChain(RefreshStoreTestCase):
    def test_three_generation_chain_is_contained(self) -> None:
        first = self.issue()
        second = self.rotate(self.store, first)
        third = self.rotate(self.store, second)
        self.assertEqual(self.active_tokens(), [third])

        revoked = self.store.revoke_chain(first, "10.6.6.6")

        self.assertEqual(revoked, 1)
        self.assertEqual(self.active_tokens(), [])
        row = self.new_session().query(RefreshToken).filter_by(token=third).one()
        self.assertEqual(row.revoked_by_ip, "10.6.6.6")

    def test_spare_node_survives_but_descendants_do_not(self) -> None:
        first = self.issue()
        second = self.rotate(self.store, first)
        self.assertEqual(self.store.revoke_chain(first, "10.6.6.6", spare=second), 0)
        self.assertEqual(self.active_tokens(), [second])

    def test_chain_with_cycle_terminates(self) -> None:
        first = self.issue()
        second = self.rotate(self.store, first)
        row = self.session.query(RefreshToken).filter_by(token=second).one()
        row.replaced_by_token = first
        self.session.commit()

        self.assertEqual(self.store.revoke_chain(first, "10.6.6.6"), 1)
        self.assertEqual(self.active_tokens(), [])

    def test_unknown_token_revokes_nothing(self) -> None:
        self.issue()
        self.assertEqual(self.store.revoke_chain("missing", "10.6.6.6"), 0)


class TestListActive(RefreshStoreTestCase):
    def test_lists_only_active_tokens_of_user(self) -> None:
        kept = self.issue()
        rotated = self.issue()
        successor = self.rotate(self.store, rotated)
        other = self.make_user(self.user.tenant, username="bob")
        self.issuer.issue_refresh_token(other.id, "10.0.0.1", self.store)

        values = {t.token for t in self.store.list_active_for_user(self.user_id)}
        self.assertEqual(values, {kept, successor})
