# @role: Kite login flow: login URL/state, request-token exchange, session checks
# @used_by: kite_auth_router.py, dependencies.py
# @filter_type: logic
# @tags: kite, auth, login, session
import secrets
from typing import Callable, Optional, Tuple

from brokers.kite.kite_client import KiteClient, build_login_url
from config.kite_accounts import KiteAccountConfig, KiteAccounts
from config.logging_config import get_loggers
from exceptions.exceptions import ConfigurationException, InvalidLoginStateException, InvalidTokenException, KiteException
from services.kite_sync import KiteSyncService
from services.token_store import KiteTokenStore
from util.portfolio_schema import AccountPortfolio

logger, sync_logger = get_loggers()

STATE_NONCE_BYTES = 24


def parse_state(state: str) -> str:
    """'<account_id>:<nonce>' -> account_id"""
    account_id = (state or "").split(":")[0]
    if not account_id:
        raise InvalidLoginStateException("Could not determine Kite account from OAuth state.")
    return account_id


class KiteAuthService:
    def __init__(
        self,
        accounts: KiteAccounts,
        token_store: KiteTokenStore,
        sync_service: KiteSyncService,
        app_url: str,
        client_factory: Callable[..., KiteClient] = KiteClient,
    ):
        self.accounts = accounts
        self.token_store = token_store
        self.sync_service = sync_service
        self.app_url = app_url.rstrip("/")
        self.client_factory = client_factory

    @property
    def redirect_uri(self) -> str:
        return f"{self.app_url}/api/kite/callback"

    def build_login_url(self, account_id: Optional[str] = None) -> Tuple[str, str]:
        """Returns (login_url, state). Defaults to the first configured account."""
        account = self.accounts.get(account_id or self.accounts.ids[0])
        state = f"{account.id}:{secrets.token_hex(STATE_NONCE_BYTES)}"
        return build_login_url(account.api_key, state, self.redirect_uri), state

    def resolve_state(self, stored_state: Optional[str], provided_state: Optional[str]) -> KiteAccountConfig:
        if not stored_state:
            raise InvalidLoginStateException("OAuth state cookie missing.")
        if provided_state and provided_state != stored_state:
            raise InvalidLoginStateException("Invalid OAuth state.")
        try:
            return self.accounts.get(parse_state(provided_state or stored_state))
        except ConfigurationException as e:
            raise InvalidLoginStateException(str(e)) from e

    def complete_login(self, request_token: str, stored_state: Optional[str], provided_state: Optional[str] = None) -> AccountPortfolio:
        """
        Exchange the request token, store the encrypted access token and take a
        first snapshot of the account.
        """
        account = self.resolve_state(stored_state, provided_state)
        client = self.client_factory(account)
        access_token = client.generate_session(request_token)
        self.token_store.set_stored_access_token(account.id, access_token)
        logger.info(f"✅ Kite login completed for {account.id}")
        return self.sync_service.sync_account(account.id)

    def session_status(self, account_id: str) -> dict:
        account = self.accounts.get(account_id)
        access_token = self.token_store.get_stored_access_token(account.id)
        if not access_token:
            return {"account_id": account.id, "logged_in": False}
        try:
            profile = self.client_factory(account, access_token).profile()
        except InvalidTokenException:
            logger.debug(f"Kite session invalid or expired for {account.id}")
            return {"account_id": account.id, "logged_in": False}
        except KiteException as e:
            logger.warning(f"⚠️ Could not verify Kite session for {account.id}: {e}")
            return {"account_id": account.id, "logged_in": False, "error": str(e)}
        return {
            "account_id": account.id,
            "logged_in": True,
            "user_name": (profile or {}).get("user_name"),
            "token_updated_at": self.token_store.get_token_updated_at(account.id),
        }
