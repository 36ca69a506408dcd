# @role: Environment loader for backend settings
# @used_by: main.py, dependencies.py, kite_accounts.py, scheduler.py
# @filter_type: utility
# @tags: env, config, bootstrap
# config/env_setup.py

import os
from pathlib import Path
from dotenv import load_dotenv

# ─── Determine project root & ENV ────────────────────────────────────────────
ROOT = Path(__file__).resolve().parent.parent
ENV  = os.getenv("ENV", "development").lower()

# ─── Load the right .env file ────────────────────────────────────────────────
env_path = ROOT / f".env.{ENV}"
if env_path.exists():
    load_dotenv(env_path)


def _as_int(value, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_bool(value, default: bool = False) -> bool:
    if value is None:
        return default
    return str(value).strip().lower() in ("1", "true", "yes", "on")


# ─── Expose your environment settings ────────────────────────────────────────
class EnvConfig:
    """
    Settings read once from the process environment.

    Build one instance at startup and hand it to each component; pass
    `environ` explicitly to build one from a plain dict (tests, scripts).
    The raw mapping is kept for per-account keys such as KITE_API_KEY_<SUFFIX>.
    """

    def __init__(self, environ=None):
        environ = dict(os.environ if environ is None else environ)
        self.environ               = environ
        self.ENV                   = environ.get("ENV", ENV).lower()
        self.APP_URL               = environ.get("APP_URL", "http://127.0.0.1:8000")
        self.FRONTEND_URL          = environ.get("FRONTEND_URL", "http://localhost:3000")
        self.KITE_ACCOUNT_IDS      = environ.get("KITE_ACCOUNT_IDS", "")
        self.TOKEN_ENCRYPTION_KEY  = environ.get("TOKEN_ENCRYPTION_KEY")
        self.CONFIG_STORE          = environ.get("CONFIG_STORE", "tinydb").lower()
        self.EDGE_CONFIG_ID        = environ.get("EDGE_CONFIG_ID")
        self.VERCEL_ACCESS_TOKEN   = environ.get("VERCEL_ACCESS_TOKEN")
        self.DB_DIR                = Path(environ.get("DB_DIR", ROOT / "db" / "tinydb" / "tables"))
        self.LOG_DIR               = Path(environ.get("LOG_DIR", ROOT / "logs"))
        self.SYNC_MAX_WORKERS      = _as_int(environ.get("SYNC_MAX_WORKERS"), 4)
        self.QUOTE_MAX_WORKERS     = _as_int(environ.get("QUOTE_MAX_WORKERS"), 8)
        self.SYNC_SCHEDULE_ENABLED = _as_bool(environ.get("SYNC_SCHEDULE_ENABLED"), False)

    def get(self, key: str, default=None):
        return self.environ.get(key, default)


env = EnvConfig()
