# @role: TinyDB client accessor
# @used_by: config_store.py, snapshot_store.py, dependencies.py
# @filter_type: utility
# @tags: tinydb, db, client
import os
from tinydb import TinyDB
from pathlib import Path

# Logger setup
from config.logging_config import get_loggers
logger, sync_logger = get_loggers()

# Directory to store TinyDB tables
DEFAULT_DB_DIR = Path(__file__).resolve().parents[1] / "tinydb" / "tables"

# Cache for open table instances
_table_cache = {}

def get_table(name: str, db_dir: Path = None) -> TinyDB:
    """
    Returns a TinyDB instance backed by {db_dir}/{name}.json.
    db_dir defaults to $DB_DIR, then /db/tinydb/tables.
    """
    base = Path(db_dir or os.getenv("DB_DIR") or DEFAULT_DB_DIR)
    path = base / f"{name}.json"
    cache_key = str(path)

    if cache_key in _table_cache:
        logger.debug(f"Using cached TinyDB table for: {name}")
        return _table_cache[cache_key]

    try:
        base.mkdir(parents=True, exist_ok=True)
        db = TinyDB(str(path))
        _table_cache[cache_key] = db
        logger.info(f"✅ Loaded TinyDB table: {path}")
        return db
    except Exception:
        logger.exception(f"❌ Failed to load TinyDB table: {path}")
        raise
