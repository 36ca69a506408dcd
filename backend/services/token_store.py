# @role: Encrypted Kite access token storage per account
# @used_by: kite_sync.py, kite_auth.py, dependencies.py
# @filter_type: logic
# @tags: tokens, credentials, encryption
import threading
from typing import Dict, Optional

from db.config_store import BaseConfigStore
from exceptions.exceptions import DecryptionException
from util.crypto import TokenCipher
from util.portfolio_schema import StoredToken
from util.util import utc_now_iso
from config.logging_config import get_loggers

logger, sync_logger = get_loggers()

TOKEN_CONFIG_KEY = "kite_tokens"


class KiteTokenStore:
    """
    All account tokens live in one JSON map under TOKEN_CONFIG_KEY:
    {account_id: {"token": <ciphertext>, "updated_at": <iso>}}.

    The config store can only replace a whole key, so every write is a
    read-modify-write of the full map. Writers in this process are serialized
    on a lock; writers in other processes can still overwrite each other.
    """

    def __init__(self, config_store: BaseConfigStore, cipher: TokenCipher):
        self.config_store = config_store
        self.cipher = cipher
        self._write_lock = threading.Lock()

    def _read_token_map(self) -> Dict[str, dict]:
        value = self.config_store.get_value(TOKEN_CONFIG_KEY)
        return dict(value) if isinstance(value, dict) else {}

    def get_stored_access_token(self, account_id: str) -> Optional[str]:
        """
        Decrypted token, or None when absent. A token that fails to decrypt
        (corrupt payload, rotated key) is logged and reported as absent so the
        user is sent through login again.
        """
        payload = self._read_token_map().get(account_id)
        if not isinstance(payload, dict) or not payload.get("token"):
            return None

        try:
            return self.cipher.decrypt(payload["token"])
        except DecryptionException as e:
            logger.error(f"❌ Failed to decrypt Kite token for account {account_id}: {e}")
            return None

    def set_stored_access_token(self, account_id: str, raw_token: str) -> None:
        with self._write_lock:
            token_map = self._read_token_map()
            token_map[account_id] = StoredToken(
                token=self.cipher.encrypt(raw_token),
                updated_at=utc_now_iso(),
            ).model_dump()
            self.config_store.upsert(TOKEN_CONFIG_KEY, token_map)
        logger.info(f"🔑 Stored access token for {account_id}")

    def get_token_updated_at(self, account_id: str) -> Optional[str]:
        payload = self._read_token_map().get(account_id)
        return payload.get("updated_at") if isinstance(payload, dict) else None
