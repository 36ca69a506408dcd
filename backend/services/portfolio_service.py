# @role: Builds the dashboard portfolio view from stored snapshots and live quotes
# @used_by: portfolio_router.py, dependencies.py
# @filter_type: logic
# @tags: portfolio, snapshot, combined-view
import logging
from typing import Dict

from pydantic import ValidationError

from config.kite_accounts import KiteAccountConfig, KiteAccounts
from db.snapshot_store import SnapshotStore
from services.market_data import QuoteService
from services.portfolio_merger import combine_portfolios
from util.portfolio_schema import AccountError, AccountPortfolio, Holding, Position, PortfolioView

logger = logging.getLogger(__name__)


class PortfolioService:
    def __init__(self, accounts: KiteAccounts, snapshot_store: SnapshotStore, quote_service: QuoteService):
        self.accounts = accounts
        self.snapshot_store = snapshot_store
        self.quote_service = quote_service

    def _account_view(self, account: KiteAccountConfig, snapshot: Dict, status: Dict) -> AccountPortfolio:
        sync_error = (status or {}).get("last_error")
        if not snapshot:
            return AccountPortfolio(
                account_id=account.id,
                account_label=account.label,
                needs_sync=True,
                sync_error=sync_error,
            )

        holdings = [
            Holding.model_validate({**row, "account_id": account.id, "account_label": account.label})
            for row in snapshot.get("holdings") or []
        ]
        positions = [Position.model_validate(row) for row in snapshot.get("positions") or []]

        return AccountPortfolio(
            account_id=account.id,
            account_label=account.label,
            holdings=self.quote_service.apply_market_quotes(holdings),
            positions=positions,
            fetched_at=snapshot.get("fetched_at"),
            last_synced_at=snapshot.get("fetched_at"),
            needs_sync=False,
            sync_error=sync_error,
        )

    def get_portfolio(self) -> PortfolioView:
        snapshots = {row["account_id"]: row for row in self.snapshot_store.all_snapshots()}
        statuses = {row["account_id"]: row for row in self.snapshot_store.get_sync_statuses()}

        accounts, errors = [], []
        for account in self.accounts:
            try:
                accounts.append(self._account_view(account, snapshots.get(account.id), statuses.get(account.id)))
            except ValidationError as e:
                logger.error(f"❌ Stored snapshot for {account.id} is unreadable: {e}")
                errors.append(AccountError(account_id=account.id, message="Stored snapshot is unreadable; sync again."))
                accounts.append(AccountPortfolio(account_id=account.id, account_label=account.label, needs_sync=True))

        logger.info("Built portfolio view for %d accounts", len(accounts))
        return PortfolioView(
            combined=combine_portfolios(accounts),
            accounts=accounts,
            errors=errors,
        )
