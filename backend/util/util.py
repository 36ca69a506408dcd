# @role: Helper utilities for timestamps and safe arithmetic
# @used_by: kite_sync.py, token_store.py, snapshot_store.py, portfolio_service.py, portfolio_merger.py
# @filter_type: utility
# @tags: utility, helpers, tools
from datetime import datetime, timezone
from typing import Iterable, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    return utc_now().isoformat()


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string; naive values are read as UTC. Returns None when unparseable."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def latest_timestamp(values: Iterable[Optional[str]]) -> Optional[str]:
    """Max of the given ISO timestamps, or None when none parse."""
    parsed = [ts for ts in (parse_timestamp(v) for v in values) if ts is not None]
    if not parsed:
        return None
    return max(parsed).isoformat()


def safe_div(numerator: float, denominator: float) -> float:
    return 0.0 if denominator == 0 else numerator / denominator
