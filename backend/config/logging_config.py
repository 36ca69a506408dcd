# logging_config.py: singleton logger factory

import logging
from pathlib import Path
from datetime import datetime
import os
from pytz import timezone

from config.env_setup import env

india_tz = timezone("Asia/Kolkata")

_portfolio_logger = None
_sync_logger = None

FORMAT = '%(asctime)s — %(levelname)s — %(name)s — %(message)s'


def _attach_file_handler(logger: logging.Logger, path: Path):
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(FORMAT))
    logger.addHandler(handler)


def get_loggers():
    """
    Return the (portfolio, sync) loggers, creating the per-run log directory on first use.
    The directory is env.LOG_DIR (default <backend>/logs)/<run_id>.
    """
    global _portfolio_logger, _sync_logger

    if _portfolio_logger and _sync_logger:
        return _portfolio_logger, _sync_logger

    run_id = datetime.now(india_tz).strftime("%Y%m%d_%H%M%S")
    log_dir = Path(env.LOG_DIR) / run_id
    os.makedirs(log_dir, exist_ok=True)

    # Portfolio Logger
    _portfolio_logger = logging.getLogger("portfolio")
    if not _portfolio_logger.hasHandlers():
        _portfolio_logger.setLevel(logging.INFO)
        _attach_file_handler(_portfolio_logger, log_dir / "portfolio.log")

    # Sync Logger
    _sync_logger = logging.getLogger("sync")
    if not _sync_logger.hasHandlers():
        _sync_logger.setLevel(logging.INFO)
        _attach_file_handler(_sync_logger, log_dir / "sync.log")

    return _portfolio_logger, _sync_logger
