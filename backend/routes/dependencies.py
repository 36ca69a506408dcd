# @role: Builds the service graph once from EnvConfig and exposes FastAPI dependencies
# @used_by: main.py, portfolio_router.py, kite_auth_router.py, scheduler.py
# @filter_type: system
# @tags: dependencies, wiring, config
from dataclasses import dataclass
from functools import lru_cache

from config.env_setup import EnvConfig, env
from config.kite_accounts import KiteAccounts
from db.config_store import BaseConfigStore, EdgeConfigStore, TinyDBConfigStore
from db.snapshot_store import SnapshotStore
from db.tinydb.client import get_table
from services.kite_auth import KiteAuthService
from services.kite_sync import KiteSyncService
from services.market_data import QuoteService
from services.portfolio_service import PortfolioService
from services.token_store import KiteTokenStore
from util.crypto import TokenCipher


@dataclass
class Services:
    config: EnvConfig
    accounts: KiteAccounts
    token_store: KiteTokenStore
    snapshot_store: SnapshotStore
    sync_service: KiteSyncService
    auth_service: KiteAuthService
    portfolio_service: PortfolioService


def build_config_store(config: EnvConfig) -> BaseConfigStore:
    if config.CONFIG_STORE == "edge":
        return EdgeConfigStore(config.EDGE_CONFIG_ID, config.VERCEL_ACCESS_TOKEN)
    return TinyDBConfigStore(get_table("config_store", config.DB_DIR))


def build_services(config: EnvConfig) -> Services:
    accounts = KiteAccounts.from_env(config)
    token_store = KiteTokenStore(build_config_store(config), TokenCipher(config.TOKEN_ENCRYPTION_KEY))
    snapshot_store = SnapshotStore(get_table("portfolio", config.DB_DIR))
    sync_service = KiteSyncService(accounts, token_store, snapshot_store, max_workers=config.SYNC_MAX_WORKERS)
    return Services(
        config=config,
        accounts=accounts,
        token_store=token_store,
        snapshot_store=snapshot_store,
        sync_service=sync_service,
        auth_service=KiteAuthService(accounts, token_store, sync_service, app_url=config.APP_URL),
        portfolio_service=PortfolioService(
            accounts, snapshot_store, QuoteService(max_workers=config.QUOTE_MAX_WORKERS)
        ),
    )


@lru_cache(maxsize=1)
def get_services() -> Services:
    return build_services(env)


def get_sync_service() -> KiteSyncService:
    return get_services().sync_service


def get_auth_service() -> KiteAuthService:
    return get_services().auth_service


def get_portfolio_service() -> PortfolioService:
    return get_services().portfolio_service
