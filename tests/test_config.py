"""Tests for environment configuration."""

from __future__ import annotations

import pytest

from core.exceptions import InvalidConfigurationError
from core.models import Feature
from utils.config import Config, parse_features

RECON_VARS = [
    "RECON_STORE_FILE", "RECON_REPORT_NAME", "RECON_FEATURES", "RECON_USER_COND", "RECON_GROUP_COND",
    "RECON_ANY_OBJECT_COND", "RECON_PAGE_SIZE", "LDAP_SERVER", "LDAP_USERNAME", "LDAP_PASSWORD", "LDAP_BASE_DN",
]


@pytest.fixture
def config(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in RECON_VARS:
        monkeypatch.delenv(name, raising=False)
    return Config()


def test_defaults(config) -> None:
    conf = config.build_reportlet_conf()

    assert conf.name == "reconciliation"
    assert conf.features == [Feature.KEY, Feature.USERNAME, Feature.GROUP_NAME]
    assert conf.user_matching_cond is None
    assert config.page_size == 10
    assert not config.validate_store_config()
    assert config.get_missing_store_vars() == ["RECON_STORE_FILE"]
    assert config.ldap_defaults() == {}


def test_environment_values(config, monkeypatch) -> None:
    monkeypatch.setenv("RECON_REPORT_NAME", "nightly")
    monkeypatch.setenv("RECON_FEATURES", "key,status")
    monkeypatch.setenv("RECON_USER_COND", "status==active")
    monkeypatch.setenv("RECON_PAGE_SIZE", "50")
    monkeypatch.setenv("LDAP_SERVER", "ldap://dc")
    monkeypatch.setenv("LDAP_BASE_DN", "dc=example")

    conf = config.build_reportlet_conf()

    assert conf.name == "nightly"
    assert conf.features == [Feature.KEY, Feature.STATUS]
    assert conf.user_matching_cond == "status==active"
    assert config.page_size == 50
    assert config.ldap_defaults() == {"server": "ldap://dc", "base_dn": "dc=example"}


def test_arguments_override_environment(config, monkeypatch) -> None:
    monkeypatch.setenv("RECON_USER_COND", "status==active")
    monkeypatch.setenv("RECON_GROUP_COND", "name==staff")

    conf = config.build_reportlet_conf(features="username", user_cond="username==bob")

    assert conf.features == [Feature.USERNAME]
    assert conf.user_matching_cond == "username==bob"
    assert conf.group_matching_cond == "name==staff"


@pytest.mark.parametrize("value", ["ten", "0", "-5"])
def test_invalid_page_size(config, monkeypatch, value) -> None:
    monkeypatch.setenv("RECON_PAGE_SIZE", value)

    with pytest.raises(InvalidConfigurationError):
        config.page_size


def test_parse_features_is_case_insensitive_and_unique() -> None:
    assert parse_features("Key, GROUPNAME,key,,lastLoginDate") == [
        Feature.KEY, Feature.GROUP_NAME, Feature.LAST_LOGIN_DATE
    ]


def test_parse_features_rejects_unknown_names() -> None:
    with pytest.raises(InvalidConfigurationError):
        parse_features("key,shoeSize")
