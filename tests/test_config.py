"""Tests for configuration loading and secret resolution."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from catalog_sync import config as config_module
from catalog_sync.config import ConfigurationError, OktaConfig, load_config
from catalog_sync.secrets import resolve_database_url, resolve_secret

ENV_KEYS = [
    "OKTA_ORG_URL", "OKTA_TOKEN", "OKTA_GROUPS", "OKTA_NAMING_STRATEGY",
    "OKTA_USER_NAMING_STRATEGY", "OKTA_ANNOTATIONS", "OKTA_PAGE_LIMIT",
    "OKTA_REQUEST_TIMEOUT", "DATABASE_URL", "PG_HOST", "PG_PORT", "PG_USER",
    "PG_PASSWORD", "PG_DATABASE",
    "OKTA_SYNC_INTERVAL_MIN", "SCHEDULER_MAX_RETRIES",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(config_module, "load_dotenv", lambda: None)


class TestOktaConfigFromMapping:
    def test_minimal(self) -> None:
        cfg = OktaConfig.from_mapping({"orgUrl": "https://okta", "token": "secret"})
        assert cfg.org_url == "https://okta"
        assert cfg.token == "secret"
        assert cfg.groups is None
        assert cfg.naming_strategy is None
        assert cfg.user_naming_strategy is None

    def test_all_keys(self) -> None:
        cfg = OktaConfig.from_mapping({
            "orgUrl": "https://okta",
            "token": "secret",
            "groups": ["group1", "group2"],
            "namingStrategy": "kebab-case-name",
            "userNamingStrategy": "strip-domain-email",
            "annotations": {"a": "b"},
        })
        assert cfg.groups == ("group1", "group2")
        assert cfg.naming_strategy == "kebab-case-name"
        assert cfg.user_naming_strategy == "strip-domain-email"
        assert cfg.annotations == {"a": "b"}

    @pytest.mark.parametrize(
        "mapping",
        [
            {"token": "secret"},
            {"orgUrl": "https://okta"},
            {"orgUrl": "", "token": "secret"},
        ],
    )
    def test_missing_required_key(self, mapping) -> None:
        with pytest.raises(ConfigurationError):
            OktaConfig.from_mapping(mapping)

    def test_groups_must_be_a_list_of_strings(self) -> None:
        with pytest.raises(ConfigurationError):
            OktaConfig.from_mapping({"orgUrl": "https://okta", "token": "t", "groups": "g1"})
        with pytest.raises(ConfigurationError):
            OktaConfig.from_mapping({"orgUrl": "https://okta", "token": "t", "groups": [1]})

    @pytest.mark.parametrize("groups", [5, {"group1": True}, "group1"])
    def test_groups_of_wrong_type(self, groups) -> None:
        with pytest.raises(ConfigurationError, match="groups"):
            OktaConfig.from_mapping({"orgUrl": "https://okta", "token": "t", "groups": groups})

    def test_configuration_error_is_a_value_error(self) -> None:
        assert issubclass(ConfigurationError, ValueError)


class TestLoadConfig:
    def test_okta_unconfigured(self) -> None:
        cfg = load_config()
        assert cfg.okta is None
        assert cfg.database.url.startswith("postgresql://")

    def test_okta_from_env(self, monkeypatch) -> None:
        monkeypatch.setenv("OKTA_ORG_URL", "https://example.okta.com")
        monkeypatch.setenv("OKTA_TOKEN", "secret")
        monkeypatch.setenv("OKTA_GROUPS", "group1, group2,,")
        monkeypatch.setenv("OKTA_NAMING_STRATEGY", "kebab-case-name")
        monkeypatch.setenv("OKTA_ANNOTATIONS", '{"example.com/source": "okta"}')
        monkeypatch.setenv("OKTA_SYNC_INTERVAL_MIN", "15")

        cfg = load_config()

        assert cfg.okta.org_url == "https://example.okta.com"
        assert cfg.okta.groups == ("group1", "group2")
        assert cfg.okta.naming_strategy == "kebab-case-name"
        assert cfg.okta.user_naming_strategy is None
        assert cfg.okta.annotations == {"example.com/source": "okta"}
        assert cfg.scheduler.okta_group_interval_min == 15

    def test_half_configured_okta_is_an_error(self, monkeypatch) -> None:
        monkeypatch.setenv("OKTA_ORG_URL", "https://example.okta.com")
        with pytest.raises(ConfigurationError, match="token"):
            load_config()

    def test_invalid_annotations_json(self, monkeypatch) -> None:
        monkeypatch.setenv("OKTA_ORG_URL", "https://example.okta.com")
        monkeypatch.setenv("OKTA_TOKEN", "secret")
        monkeypatch.setenv("OKTA_ANNOTATIONS", "{not json")
        with pytest.raises(ConfigurationError):
            load_config()


class TestSecrets:
    def test_literal_value_is_unchanged(self) -> None:
        assert resolve_secret("plain-token") == "plain-token"

    @patch("boto3.client")
    def test_aws_secret_with_json_key(self, boto_client: MagicMock) -> None:
        boto_client.return_value.get_secret_value.return_value = {
            "SecretString": '{"token": "from-aws"}'
        }

        assert resolve_secret("aws-secret://catalog-sync#token") == "from-aws"
        boto_client.return_value.get_secret_value.assert_called_once_with(
            SecretId="catalog-sync"
        )

    @patch("boto3.client")
    def test_token_reference_resolved_in_config(self, boto_client: MagicMock) -> None:
        boto_client.return_value.get_secret_value.return_value = {"SecretString": "abc"}

        cfg = OktaConfig.from_mapping(
            {"orgUrl": "https://okta", "token": "aws-secret://okta-token"}
        )

        assert cfg.token == "abc"

    def test_database_url_from_pg_vars(self, monkeypatch) -> None:
        monkeypatch.setenv("PG_HOST", "db.internal")
        monkeypatch.setenv("PG_PASSWORD", "pw")
        assert resolve_database_url() == "postgresql://catalog:pw@db.internal:5432/catalog"

    def test_database_url_wins(self, monkeypatch) -> None:
        monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@h/d")
        assert resolve_database_url() == "postgresql://u:p@h/d"
