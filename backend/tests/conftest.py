"""
Pytest configuration for the portfolio backend tests.

Puts backend/ on sys.path (the packages are imported top-level, as the app
does) and provides in-memory stores and a fake Kite client.
"""

import os
import sys
import tempfile
from pathlib import Path

# Keep per-run log files out of the source tree
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="portfolio-logs-"))

backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

import pytest
from tinydb import TinyDB
from tinydb.storages import MemoryStorage

from config.env_setup import EnvConfig
from config.kite_accounts import KiteAccounts
from db.config_store import TinyDBConfigStore
from db.snapshot_store import SnapshotStore
from services.token_store import KiteTokenStore
from util.crypto import TokenCipher

ENCRYPTION_KEY = "k" * 40

TEST_ENVIRON = {
    "KITE_ACCOUNT_IDS": "self, mom",
    "KITE_API_KEY_SELF": "key-self",
    "KITE_API_SECRET_SELF": "secret-self",
    "KITE_ACCOUNT_SELF_LABEL": "Me",
    "KITE_API_KEY_MOM": "key-mom",
    "KITE_API_SECRET_MOM": "secret-mom",
    "TOKEN_ENCRYPTION_KEY": ENCRYPTION_KEY,
    "APP_URL": "http://127.0.0.1:8000/",
}


class FakeKiteClient:
    """Stands in for brokers.kite.kite_client.KiteClient."""

    def __init__(self, account, access_token=None, holdings=None, positions=None, error=None,
                 profile=None, session_token="fresh-token"):
        self.account = account
        self.access_token = access_token
        self._holdings = holdings if holdings is not None else []
        self._positions = positions if positions is not None else {"net": [], "day": []}
        self._error = error
        self._profile = profile or {"user_name": "Test User"}
        self._session_token = session_token
        self.calls = []

    def holdings(self):
        self.calls.append("holdings")
        if self._error:
            raise self._error
        return self._holdings

    def positions(self):
        self.calls.append("positions")
        if self._error:
            raise self._error
        return self._positions

    def profile(self):
        if self._error:
            raise self._error
        return self._profile

    def generate_session(self, request_token):
        self.calls.append(("generate_session", request_token))
        if self._error:
            raise self._error
        return self._session_token


@pytest.fixture
def env_config():
    return EnvConfig(TEST_ENVIRON)


@pytest.fixture
def accounts(env_config):
    return KiteAccounts.from_env(env_config)


@pytest.fixture
def memory_db():
    db = TinyDB(storage=MemoryStorage)
    yield db
    db.close()


@pytest.fixture
def cipher():
    return TokenCipher(ENCRYPTION_KEY)


@pytest.fixture
def config_store():
    return TinyDBConfigStore(TinyDB(storage=MemoryStorage))


@pytest.fixture
def token_store(config_store, cipher):
    return KiteTokenStore(config_store, cipher)


@pytest.fixture
def snapshot_store(memory_db):
    return SnapshotStore(memory_db)
