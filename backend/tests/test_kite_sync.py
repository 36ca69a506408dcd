"""
Tests for the Kite sync orchestrator.

Validates snapshot persistence, sync-status bookkeeping on success and
failure, and that authentication failures stay distinguishable.
"""

from unittest.mock import patch

import pytest

from conftest import FakeKiteClient
from exceptions.exceptions import (
    ConfigurationException,
    InvalidTokenException,
    KiteException,
    MalformedResponseException,
    SnapshotSyncException,
)
from services.kite_sync import KiteSyncService

SELF_HOLDINGS = [
    {"tradingsymbol": "INFY", "quantity": 10, "t1_quantity": 5, "average_price": 20},
    {"tradingsymbol": "TCS", "quantity": 2, "average_price": 3000},
]
SELF_POSITIONS = {
    "net": [{"tradingsymbol": "SBIN", "product": "MIS", "quantity": 5, "average_price": 800, "last_price": 810, "pnl": 50}],
    "day": [{"tradingsymbol": "IGNORED", "quantity": 1}],
}
MOM_HOLDINGS = [{"tradingsymbol": "INFY", "quantity": 5, "average_price": 32}]


def make_factory(per_account):
    """per_account: account_id -> kwargs for FakeKiteClient"""
    created = {}

    def factory(account, access_token=None):
        client = FakeKiteClient(account, access_token, **per_account.get(account.id, {}))
        created[account.id] = client
        return client

    factory.created = created
    return factory


@pytest.fixture
def logged_in(token_store):
    token_store.set_stored_access_token("self", "tok-self")
    token_store.set_stored_access_token("mom", "tok-mom")
    return token_store


def build_service(accounts, token_store, snapshot_store, per_account):
    return KiteSyncService(accounts, token_store, snapshot_store, client_factory=make_factory(per_account), max_workers=2)


class TestFetchPortfolio:
    def test_normalizes_holdings_and_net_positions(self, accounts, logged_in, snapshot_store):
        service = build_service(accounts, logged_in, snapshot_store, {
            "self": {"holdings": SELF_HOLDINGS, "positions": SELF_POSITIONS},
        })

        portfolio = service.fetch_portfolio_for_account("self")

        assert portfolio.account_label == "Me"
        assert [h.ticker for h in portfolio.holdings] == ["INFY", "TCS"]
        assert portfolio.holdings[0].quantity == 15
        assert portfolio.holdings[0].account_id == "self"
        assert [p.ticker for p in portfolio.positions] == ["SBIN"]
        assert portfolio.fetched_at
        # fetch alone persists nothing
        assert snapshot_store.get_snapshot("self") is None

    def test_client_receives_decrypted_token(self, accounts, logged_in, snapshot_store):
        factory = make_factory({})
        service = KiteSyncService(accounts, logged_in, snapshot_store, client_factory=factory)
        service.fetch_portfolio_for_account("mom")
        assert factory.created["mom"].access_token == "tok-mom"

    def test_missing_token_requires_authentication(self, accounts, token_store, snapshot_store):
        service = build_service(accounts, token_store, snapshot_store, {})
        with pytest.raises(InvalidTokenException) as excinfo:
            service.fetch_portfolio_for_account("self")
        assert excinfo.value.account_id == "self"
        assert "missing" in str(excinfo.value)


class TestSyncAccount:
    def test_success_persists_snapshot_and_status(self, accounts, logged_in, snapshot_store):
        service = build_service(accounts, logged_in, snapshot_store, {
            "self": {"holdings": SELF_HOLDINGS, "positions": SELF_POSITIONS},
        })

        portfolio = service.sync_account("self")

        snapshot = snapshot_store.get_snapshot("self")
        assert snapshot["fetched_at"] == portfolio.fetched_at
        assert [h["ticker"] for h in snapshot["holdings"]] == ["INFY", "TCS"]
        assert snapshot["positions"][0]["ticker"] == "SBIN"

        status = snapshot_store.get_sync_status("self")
        assert status["last_sync_at"]
        assert status["last_error"] is None
        assert status["last_error_at"] is None

    def test_resync_replaces_snapshot(self, accounts, logged_in, snapshot_store):
        build_service(accounts, logged_in, snapshot_store, {"self": {"holdings": SELF_HOLDINGS}}).sync_account("self")
        build_service(accounts, logged_in, snapshot_store, {"self": {"holdings": []}}).sync_account("self")

        assert len(snapshot_store.all_snapshots()) == 1
        assert snapshot_store.get_snapshot("self")["holdings"] == []

    def test_success_clears_previous_error(self, accounts, logged_in, snapshot_store):
        snapshot_store.update_sync_status("self", last_error="boom", last_error_at="2026-10-18T10:00:00+00:00")
        build_service(accounts, logged_in, snapshot_store, {}).sync_account("self")

        status = snapshot_store.get_sync_status("self")
        assert status["last_error"] is None
        assert status["last_error_at"] is None

    def test_fetch_failure_records_status_then_raises(self, accounts, logged_in, snapshot_store):
        snapshot_store.update_sync_status("self", last_sync_at="2026-10-18T10:00:00+00:00")
        service = build_service(accounts, logged_in, snapshot_store, {
            "self": {"error": KiteException("Gateway timeout")},
        })

        with pytest.raises(KiteException):
            service.sync_account("self")

        status = snapshot_store.get_sync_status("self")
        assert status["last_error"] == "Gateway timeout"
        assert status["last_error_at"]
        assert status["last_sync_at"] == "2026-10-18T10:00:00+00:00"
        assert snapshot_store.get_snapshot("self") is None

    def test_normalization_failure_records_status_before_raising(self, accounts, logged_in, snapshot_store):
        service = build_service(accounts, logged_in, snapshot_store, {
            "self": {"holdings": ["not-a-record"]},
        })
        recorded = []
        original = snapshot_store.update_sync_status

        def spy(account_id, **kwargs):
            recorded.append(kwargs)
            return original(account_id, **kwargs)

        with patch.object(snapshot_store, "update_sync_status", side_effect=spy):
            with pytest.raises(MalformedResponseException):
                service.sync_account("self")

        assert recorded and recorded[-1]["last_error"]
        assert snapshot_store.get_sync_status("self")["last_error"]
        assert snapshot_store.get_snapshot("self") is None

    def test_auth_failure_is_distinct_and_recorded(self, accounts, logged_in, snapshot_store):
        service = build_service(accounts, logged_in, snapshot_store, {
            "self": {"error": InvalidTokenException("self", "Incorrect `api_key` or `access_token`.")},
        })

        with pytest.raises(InvalidTokenException) as excinfo:
            service.sync_account("self")

        assert not isinstance(excinfo.value, KiteException)
        assert snapshot_store.get_sync_status("self")["last_error"] == "Incorrect `api_key` or `access_token`."

    def test_status_write_failure_does_not_hide_original_error(self, accounts, logged_in, snapshot_store):
        service = build_service(accounts, logged_in, snapshot_store, {
            "self": {"error": KiteException("upstream down")},
        })
        with patch.object(snapshot_store, "update_sync_status", side_effect=OSError("disk full")):
            with pytest.raises(KiteException, match="upstream down"):
                service.sync_account("self")

    def test_unknown_account(self, accounts, logged_in, snapshot_store):
        service = build_service(accounts, logged_in, snapshot_store, {})
        with pytest.raises(ConfigurationException):
            service.sync_account("stranger")


class TestTrySyncAccount:
    def test_auth_errors_pass_through(self, accounts, token_store, snapshot_store):
        service = build_service(accounts, token_store, snapshot_store, {})
        with pytest.raises(InvalidTokenException):
            service.try_sync_account("self")

    def test_unknown_account_is_not_wrapped(self, accounts, logged_in, snapshot_store):
        service = build_service(accounts, logged_in, snapshot_store, {})

        with pytest.raises(ConfigurationException, match="Known ids: self, mom"):
            service.try_sync_account("dad")

        assert snapshot_store.get_sync_status("dad") is None

    def test_other_errors_are_wrapped(self, accounts, logged_in, snapshot_store):
        cause = KiteException("Gateway timeout")
        service = build_service(accounts, logged_in, snapshot_store, {"self": {"error": cause}})

        with pytest.raises(SnapshotSyncException) as excinfo:
            service.try_sync_account("self")

        assert excinfo.value.cause is cause
        assert str(excinfo.value) == "Gateway timeout"


class TestAllAccounts:
    def test_one_failure_does_not_block_others(self, accounts, logged_in, snapshot_store):
        service = build_service(accounts, logged_in, snapshot_store, {
            "self": {"error": KiteException("network down")},
            "mom": {"holdings": MOM_HOLDINGS},
        })

        report = service.sync_all_accounts()

        assert report.synced == ["mom"]
        assert report.reauth_required == []
        assert [e.account_id for e in report.errors] == ["self"]
        assert snapshot_store.get_snapshot("mom") is not None

    def test_reauth_accounts_are_reported(self, accounts, token_store, snapshot_store):
        token_store.set_stored_access_token("mom", "tok-mom")
        service = build_service(accounts, token_store, snapshot_store, {})

        report = service.sync_all_accounts()

        assert report.synced == ["mom"]
        assert report.reauth_required == ["self"]
        assert report.to_dict()["errors"][0]["account_id"] == "self"

    def test_live_combined_portfolio(self, accounts, logged_in, snapshot_store):
        service = build_service(accounts, logged_in, snapshot_store, {
            "self": {"holdings": SELF_HOLDINGS, "positions": SELF_POSITIONS},
            "mom": {"holdings": MOM_HOLDINGS},
        })

        view = service.fetch_combined_portfolio()

        assert [a.account_id for a in view.accounts] == ["self", "mom"]
        infy = view.combined.holdings[0]
        assert infy.ticker == "INFY"
        assert infy.quantity == 20
        assert infy.average_buy_price == pytest.approx((15 * 20 + 5 * 32) / 20)
        assert view.combined.positions[0].account_id == "combined"
        assert view.combined.fetched_at is not None
        assert view.errors == []

    def test_live_combined_with_no_successes(self, accounts, token_store, snapshot_store):
        service = build_service(accounts, token_store, snapshot_store, {})

        view = service.fetch_combined_portfolio()

        assert view.accounts == []
        assert view.combined.fetched_at is None
        assert view.reauth_required_accounts == ["self", "mom"]
        assert len(view.errors) == 2
