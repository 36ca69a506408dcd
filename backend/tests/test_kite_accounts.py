import pytest

from config.env_setup import EnvConfig
from config.kite_accounts import KiteAccounts, normalize_suffix, parse_account_ids
from exceptions.exceptions import ConfigurationException


def test_suffix_normalization():
    assert normalize_suffix("mom-2") == "MOM_2"
    assert normalize_suffix(" self ") == "SELF"


def test_parse_ids_skips_blanks():
    assert parse_account_ids(" self, ,mom,") == ["self", "mom"]
    assert parse_account_ids(None) == []


def test_accounts_from_env(accounts):
    assert accounts.ids == ["self", "mom"]
    me = accounts.get("self")
    assert me.label == "Me"
    assert me.api_key == "key-self"
    assert me.api_secret == "secret-self"
    # label falls back to the id
    assert accounts.get("mom").label == "mom"
    assert accounts.public() == [{"id": "self", "label": "Me"}, {"id": "mom", "label": "mom"}]


def test_unknown_account_lists_known_ids(accounts):
    with pytest.raises(ConfigurationException, match="self, mom"):
        accounts.get("dad")


def test_no_accounts_configured():
    with pytest.raises(ConfigurationException, match="KITE_ACCOUNT_IDS"):
        KiteAccounts.from_env(EnvConfig({}))


def test_missing_secret():
    config = EnvConfig({"KITE_ACCOUNT_IDS": "self", "KITE_API_KEY_SELF": "k"})
    with pytest.raises(ConfigurationException, match="KITE_API_SECRET_SELF"):
        KiteAccounts.from_env(config)


def test_env_config_defaults():
    config = EnvConfig({"SYNC_MAX_WORKERS": "nope", "SYNC_SCHEDULE_ENABLED": "yes"})
    assert config.CONFIG_STORE == "tinydb"
    assert config.SYNC_MAX_WORKERS == 4
    assert config.SYNC_SCHEDULE_ENABLED is True
    assert config.get("MISSING", "x") == "x"
