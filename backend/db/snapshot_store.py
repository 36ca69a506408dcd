# @role: Latest portfolio snapshot and sync status per Kite account
# @used_by: kite_sync.py, portfolio_service.py, dependencies.py
# @filter_type: utility
# @tags: tinydb, snapshot, sync-status
import logging
import threading
from typing import Dict, List, Optional

from tinydb import TinyDB, Query

from util.portfolio_schema import SyncStatus
from util.util import utc_now_iso

logger = logging.getLogger(__name__)

AccountQuery = Query()


class SnapshotStore:
    """
    Two TinyDB tables keyed by account_id, both last-write-wins:
    `portfolio_snapshots` (holdings, positions, fetched_at) and `sync_status`.
    """

    def __init__(self, db: TinyDB):
        self.snapshots = db.table("portfolio_snapshots")
        self.statuses = db.table("sync_status")
        self._lock = threading.Lock()

    # --- snapshots ---

    def upsert_snapshot(self, account_id: str, holdings: List[dict], positions: List[dict], fetched_at: str = None) -> str:
        fetched_at = fetched_at or utc_now_iso()
        record = {
            "account_id": account_id,
            "holdings": holdings,
            "positions": positions,
            "fetched_at": fetched_at,
        }
        with self._lock:
            self.snapshots.upsert(record, AccountQuery.account_id == account_id)
        logger.info("Snapshot stored for %s (%d holdings, %d positions)", account_id, len(holdings), len(positions))
        return fetched_at

    def get_snapshot(self, account_id: str) -> Optional[Dict]:
        with self._lock:
            return self.snapshots.get(AccountQuery.account_id == account_id)

    def all_snapshots(self) -> List[Dict]:
        with self._lock:
            rows = self.snapshots.all()
        return sorted(rows, key=lambda row: row.get("fetched_at") or "", reverse=True)

    # --- sync status ---

    def update_sync_status(self, account_id: str, last_sync_at=None, last_error=None, last_error_at=None) -> Dict:
        """
        Upsert the status row. A None last_sync_at keeps the stored one;
        the error fields are always overwritten.
        """
        with self._lock:
            existing = self.statuses.get(AccountQuery.account_id == account_id) or {}
            if last_sync_at is None:
                last_sync_at = existing.get("last_sync_at")
            record = SyncStatus(
                account_id=account_id,
                last_sync_at=last_sync_at,
                last_error=last_error,
                last_error_at=last_error_at,
            ).model_dump()
            self.statuses.upsert(record, AccountQuery.account_id == account_id)
        return record

    def get_sync_status(self, account_id: str) -> Optional[Dict]:
        with self._lock:
            return self.statuses.get(AccountQuery.account_id == account_id)

    def get_sync_statuses(self) -> List[Dict]:
        with self._lock:
            return self.statuses.all()
