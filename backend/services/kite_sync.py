# @role: Fetches, normalizes and persists Kite portfolio snapshots per account
# @used_by: kite_auth.py, portfolio_router.py, kite_auth_router.py, scheduler.py
# @filter_type: logic
# @tags: sync, kite, snapshot, orchestrator
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from brokers.kite.kite_client import KiteClient
from config.kite_accounts import KiteAccountConfig, KiteAccounts
from config.logging_config import get_loggers
from db.snapshot_store import SnapshotStore
from exceptions.exceptions import ConfigurationException, InvalidTokenException, SnapshotSyncException
from services.normalizer import normalize_holding, normalize_position
from services.portfolio_merger import combine_portfolios
from services.token_store import KiteTokenStore
from util.portfolio_schema import AccountError, AccountPortfolio, PortfolioView
from util.util import utc_now_iso

logger, sync_logger = get_loggers()


@dataclass
class AccountFetchResult:
    """Outcome of fetching one account: either a portfolio or an error."""
    account_id: str
    portfolio: Optional[AccountPortfolio] = None
    error: Optional[str] = None
    reauth_required: bool = False

    @property
    def ok(self) -> bool:
        return self.portfolio is not None


@dataclass
class SyncReport:
    synced: List[str] = field(default_factory=list)
    reauth_required: List[str] = field(default_factory=list)
    errors: List[AccountError] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "synced": self.synced,
            "reauth_required": self.reauth_required,
            "errors": [e.model_dump() for e in self.errors],
        }


class KiteSyncService:
    def __init__(
        self,
        accounts: KiteAccounts,
        token_store: KiteTokenStore,
        snapshot_store: SnapshotStore,
        client_factory: Callable[[KiteAccountConfig, str], KiteClient] = KiteClient,
        max_workers: int = 4,
    ):
        self.accounts = accounts
        self.token_store = token_store
        self.snapshot_store = snapshot_store
        self.client_factory = client_factory
        self.max_workers = max_workers

    def _client_for(self, account: KiteAccountConfig) -> KiteClient:
        access_token = self.token_store.get_stored_access_token(account.id)
        if not access_token:
            raise InvalidTokenException(account.id, f"Kite access token missing for {account.label}.")
        return self.client_factory(account, access_token)

    def _fetch(self, account: KiteAccountConfig) -> AccountPortfolio:
        client = self._client_for(account)
        raw_holdings = client.holdings()
        raw_positions = client.positions()

        holdings = [normalize_holding(h, account.id, account.label) for h in raw_holdings]
        positions = [normalize_position(p, account.id) for p in raw_positions["net"]]

        return AccountPortfolio(
            account_id=account.id,
            account_label=account.label,
            holdings=holdings,
            positions=positions,
            fetched_at=utc_now_iso(),
        )

    def fetch_portfolio_for_account(self, account_id: str) -> AccountPortfolio:
        """Live fetch + normalize for one account; nothing is persisted."""
        return self._fetch(self.accounts.get(account_id))

    def sync_account(self, account_id: str) -> AccountPortfolio:
        """
        Refresh one account's snapshot from Kite.

        The sync status row is updated on success and on failure; on failure it
        is written before the exception propagates. InvalidTokenException is
        raised unchanged so callers can send the user to login instead of retrying.
        """
        account = self.accounts.get(account_id)
        start = time.perf_counter()
        try:
            portfolio = self._fetch(account)
            portfolio.fetched_at = self.snapshot_store.upsert_snapshot(
                account.id,
                holdings=[h.model_dump() for h in portfolio.holdings],
                positions=[p.model_dump() for p in portfolio.positions],
                fetched_at=portfolio.fetched_at,
            )
            self.snapshot_store.update_sync_status(
                account.id,
                last_sync_at=utc_now_iso(),
                last_error=None,
                last_error_at=None,
            )
        except Exception as e:
            message = str(e) or "Failed to sync Kite snapshot"
            sync_logger.error(f"❌ Sync failed for {account.id}: {message}")
            try:
                self.snapshot_store.update_sync_status(
                    account.id,
                    last_error=message,
                    last_error_at=utc_now_iso(),
                )
            except Exception:
                sync_logger.exception(f"Failed to record sync error for {account.id}")
            raise

        portfolio.last_synced_at = portfolio.fetched_at
        sync_logger.info(
            "✅ Synced %s: %d holdings, %d positions in %.2fs",
            account.id, len(portfolio.holdings), len(portfolio.positions), time.perf_counter() - start,
        )
        return portfolio

    def try_sync_account(self, account_id: str) -> AccountPortfolio:
        """
        sync_account, with every fetch or storage failure wrapped in
        SnapshotSyncException. Authentication and unknown-account errors keep
        their own types.
        """
        try:
            return self.sync_account(account_id)
        except (InvalidTokenException, ConfigurationException):
            raise
        except Exception as e:
            raise SnapshotSyncException(str(e) or "Failed to sync portfolio", cause=e) from e

    def _run_per_account(self, func) -> List[AccountFetchResult]:
        results: Dict[str, AccountFetchResult] = {}
        with ThreadPoolExecutor(max_workers=max(1, self.max_workers)) as executor:
            future_to_id = {executor.submit(func, account.id): account.id for account in self.accounts}
            for future in as_completed(future_to_id):
                account_id = future_to_id[future]
                try:
                    results[account_id] = AccountFetchResult(account_id, portfolio=future.result())
                except InvalidTokenException as e:
                    results[account_id] = AccountFetchResult(account_id, error=str(e), reauth_required=True)
                except Exception as e:
                    logger.error(f"❌ Failed to fetch Kite data for {account_id}: {e}")
                    results[account_id] = AccountFetchResult(account_id, error=str(e) or "Failed to fetch Kite data")
        # configured order, not completion order
        return [results[account_id] for account_id in self.accounts.ids]

    def sync_all_accounts(self) -> SyncReport:
        report = SyncReport()
        for result in self._run_per_account(self.sync_account):
            if result.ok:
                report.synced.append(result.account_id)
                continue
            if result.reauth_required:
                report.reauth_required.append(result.account_id)
            report.errors.append(AccountError(account_id=result.account_id, message=result.error))
        sync_logger.info(
            "Sync run finished: %d synced, %d need login, %d errors",
            len(report.synced), len(report.reauth_required), len(report.errors),
        )
        return report

    def fetch_combined_portfolio(self) -> PortfolioView:
        """Live fetch of every account merged into one view; accounts that fail are reported, not fatal."""
        results = self._run_per_account(self.fetch_portfolio_for_account)
        portfolios = [r.portfolio for r in results if r.ok]
        return PortfolioView(
            combined=combine_portfolios(portfolios),
            accounts=portfolios,
            errors=[AccountError(account_id=r.account_id, message=r.error) for r in results if not r.ok],
            reauth_required_accounts=[r.account_id for r in results if r.reauth_required],
        )
