# @role: Parses the configured Kite accounts and their API credentials
# @used_by: kite_sync.py, kite_auth.py, portfolio_service.py, dependencies.py
# @filter_type: utility
# @tags: kite, accounts, config
import re
from dataclasses import dataclass
from typing import Dict, List

from exceptions.exceptions import ConfigurationException


@dataclass(frozen=True)
class KiteAccountConfig:
    id: str
    label: str
    api_key: str
    api_secret: str
    env_suffix: str

    def public(self) -> Dict[str, str]:
        return {"id": self.id, "label": self.label}


def normalize_suffix(account_id: str) -> str:
    """'mom-2' -> 'MOM_2'"""
    return re.sub(r"[^a-zA-Z0-9]", "_", account_id.strip()).upper()


def parse_account_ids(raw: str) -> List[str]:
    return [part.strip() for part in (raw or "").split(",") if part.strip()]


def build_account_config(account_id: str, environ) -> KiteAccountConfig:
    suffix = normalize_suffix(account_id)
    api_key = environ.get(f"KITE_API_KEY_{suffix}")
    api_secret = environ.get(f"KITE_API_SECRET_{suffix}")
    label = environ.get(f"KITE_ACCOUNT_{suffix}_LABEL") or account_id

    if not api_key:
        raise ConfigurationException(f'Missing KITE_API_KEY_{suffix} for Kite account "{account_id}".')
    if not api_secret:
        raise ConfigurationException(f'Missing KITE_API_SECRET_{suffix} for Kite account "{account_id}".')

    return KiteAccountConfig(
        id=account_id,
        label=label,
        api_key=api_key,
        api_secret=api_secret,
        env_suffix=suffix,
    )


class KiteAccounts:
    """Ordered registry of configured Kite accounts."""

    def __init__(self, accounts: List[KiteAccountConfig]):
        if not accounts:
            raise ConfigurationException(
                'KITE_ACCOUNT_IDS is not configured. Provide a comma separated list such as "self,mom".'
            )
        self._accounts = list(accounts)

    @classmethod
    def from_env(cls, config) -> "KiteAccounts":
        ids = parse_account_ids(config.KITE_ACCOUNT_IDS)
        return cls([build_account_config(account_id, config.environ) for account_id in ids])

    def __iter__(self):
        return iter(self._accounts)

    def __len__(self):
        return len(self._accounts)

    @property
    def ids(self) -> List[str]:
        return [account.id for account in self._accounts]

    def get(self, account_id: str) -> KiteAccountConfig:
        for account in self._accounts:
            if account.id == account_id:
                return account
        raise ConfigurationException(
            f'Unknown Kite account "{account_id}". Known ids: {", ".join(self.ids)}'
        )

    def public(self) -> List[Dict[str, str]]:
        return [account.public() for account in self._accounts]
