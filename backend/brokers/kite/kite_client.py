# @role: Per-account Kite client and session manager
# @used_by: kite_sync.py, kite_auth.py, dependencies.py
# @filter_type: utility
# @tags: kite, client, auth
import logging
from typing import Dict, List
from urllib.parse import urlencode

import requests
from kiteconnect import KiteConnect
from kiteconnect import exceptions as kite_errors

from config.kite_accounts import KiteAccountConfig
from exceptions.exceptions import InvalidTokenException, KiteException, MalformedResponseException

# Logger setup
logger = logging.getLogger(__name__)

LOGIN_URL = "https://kite.zerodha.com/connect/login"


class KiteClient:
    """
    Thin wrapper over KiteConnect for one configured account.

    Translates SDK failures into the backend's exceptions:
    TokenException / HTTP 401 -> InvalidTokenException, DataException ->
    MalformedResponseException, anything else -> KiteException.
    """

    def __init__(self, account: KiteAccountConfig, access_token: str = None, kite: KiteConnect = None):
        self.account = account
        self.kite = kite or KiteConnect(api_key=account.api_key)
        if access_token:
            self.kite.set_access_token(access_token)

    def _call(self, label: str, func, *args, **kwargs):
        try:
            return func(*args, **kwargs)
        except kite_errors.TokenException as e:
            logger.warning(f"🚫 Token rejected for {self.account.id} ({label}): {e}")
            raise InvalidTokenException(self.account.id, str(e)) from e
        except kite_errors.DataException as e:
            logger.error(f"❌ Malformed Kite response for {self.account.id} ({label}): {e}")
            raise MalformedResponseException(f"Unexpected Kite response for {label}: {e}") from e
        except kite_errors.KiteException as e:
            if getattr(e, "code", None) == 401:
                raise InvalidTokenException(self.account.id, str(e)) from e
            logger.error(f"❌ Kite API error for {self.account.id} ({label}): {e}")
            raise KiteException(f"Kite API error ({self.account.label} {label}): {e}") from e
        except requests.RequestException as e:
            logger.error(f"❌ Network error talking to Kite for {self.account.id} ({label}): {e}")
            raise KiteException(f"Kite request failed ({self.account.label} {label}): {e}") from e

    def holdings(self) -> List[Dict]:
        data = self._call("/portfolio/holdings", self.kite.holdings)
        if not isinstance(data, list):
            raise MalformedResponseException(f"Expected a list of holdings, got {type(data).__name__}")
        return data

    def positions(self) -> Dict[str, List[Dict]]:
        data = self._call("/portfolio/positions", self.kite.positions)
        if not isinstance(data, dict) or not isinstance(data.get("net", []), list) or not isinstance(data.get("day", []), list):
            raise MalformedResponseException("Expected positions with 'net' and 'day' lists")
        return {"net": data.get("net", []), "day": data.get("day", [])}

    def profile(self) -> Dict:
        return self._call("/user/profile", self.kite.profile)

    def generate_session(self, request_token: str) -> str:
        """Exchange a request token for an access token (SDK signs api_key+request_token+api_secret)."""
        try:
            data = self.kite.generate_session(request_token, api_secret=self.account.api_secret)
        except kite_errors.KiteException as e:
            logger.error(f"❌ Failed to generate Kite session for {self.account.id}: {e}")
            raise KiteException(str(e)) from e
        except requests.RequestException as e:
            raise KiteException(f"Failed to exchange Kite request token for {self.account.label}: {e}") from e

        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token:
            raise MalformedResponseException(f"Kite session response for {self.account.label} has no access_token")
        self.kite.set_access_token(access_token)
        logger.info(f"✅ Access token generated for {self.account.id}")
        return access_token


def build_login_url(api_key: str, state: str, redirect_uri: str) -> str:
    query = urlencode({"api_key": api_key, "v": "3", "state": state, "redirect_uri": redirect_uri})
    return f"{LOGIN_URL}?{query}"
