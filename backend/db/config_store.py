# @role: Key-value configuration store (local TinyDB or Vercel Edge Config)
# @used_by: token_store.py, dependencies.py
# @filter_type: utility
# @tags: config, kv, edge-config, tinydb
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import requests
from tinydb import TinyDB, Query

from exceptions.exceptions import ConfigurationException

logger = logging.getLogger(__name__)

ItemQuery = Query()


class BaseConfigStore(ABC):
    """
    Flat key -> JSON value store. There is no partial update of nested values:
    callers replace a key's whole value with upsert().
    """

    @abstractmethod
    def list_items(self) -> List[Dict[str, Any]]:
        """Return every item as {"key": ..., "value": ...}."""
        pass

    @abstractmethod
    def upsert(self, key: str, value: Any) -> None:
        """Create or replace the value stored under key."""
        pass

    def get_value(self, key: str) -> Optional[Any]:
        for item in self.list_items():
            if item.get("key") == key:
                return item.get("value")
        return None


class TinyDBConfigStore(BaseConfigStore):
    def __init__(self, db: TinyDB):
        self.db = db
        self._lock = threading.Lock()

    def list_items(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [{"key": doc.get("key"), "value": doc.get("value")} for doc in self.db.all()]

    def upsert(self, key: str, value: Any) -> None:
        with self._lock:
            self.db.upsert({"key": key, "value": value}, ItemQuery.key == key)
        logger.debug("Upserted config key %s", key)


def extract_items(payload) -> List[Dict[str, Any]]:
    """Edge Config answers either a bare list or {"items": [...]}."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("items"), list):
        return payload["items"]
    return []


class EdgeConfigStore(BaseConfigStore):
    BASE_URL = "https://api.vercel.com/v1/edge-config"

    def __init__(self, edge_config_id: str, access_token: str, session: requests.Session = None, timeout: float = 10):
        if not edge_config_id:
            raise ConfigurationException("EDGE_CONFIG_ID is not configured.")
        if not access_token:
            raise ConfigurationException("VERCEL_ACCESS_TOKEN is required to manage Edge Config.")
        self.url = f"{self.BASE_URL}/{edge_config_id}/items"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {access_token}"})

    def list_items(self) -> List[Dict[str, Any]]:
        response = self.session.get(self.url, timeout=self.timeout)
        if not response.ok:
            raise requests.HTTPError(
                f"Edge Config request failed: {response.status_code} {response.reason}",
                response=response,
            )
        return extract_items(response.json())

    def upsert(self, key: str, value: Any) -> None:
        response = self.session.patch(
            self.url,
            json={"items": [{"key": key, "value": value, "operation": "upsert"}]},
            timeout=self.timeout,
        )
        if not response.ok:
            raise requests.HTTPError(
                f"Failed to update Edge Config: {response.status_code} {response.text}",
                response=response,
            )
        logger.info("Edge Config key %s updated", key)
