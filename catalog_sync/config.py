"""Configuration via environment variables with cloud-native secret support.

Supports:
  - Environment variables (local dev)
  - .env files
  - AWS Secrets Manager / GCP Secret Manager references for secrets
  - Plain mappings using the catalog's camelCase keys (orgUrl, token, ...)
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from dotenv import load_dotenv

from catalog_sync.secrets import resolve_database_url, resolve_secret


class ConfigurationError(ValueError):
    """A required key is missing or a configured value is not recognised."""


@dataclass(frozen=True)
class DatabaseConfig:
    url: str
    min_connections: int = 2
    max_connections: int = 10


@dataclass(frozen=True)
class OktaConfig:
    org_url: str
    token: str
    groups: Optional[tuple[str, ...]] = None  # None = no filter
    naming_strategy: Optional[str] = None
    user_naming_strategy: Optional[str] = None
    annotations: dict[str, str] = field(default_factory=dict)
    page_limit: int = 200
    request_timeout: float = 30.0

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "OktaConfig":
        """Build from the camelCase keys used in catalog provider config."""
        org_url = data.get("orgUrl")
        if not org_url or not isinstance(org_url, str):
            raise ConfigurationError("Missing required config value at 'orgUrl'")
        token = data.get("token")
        if not token or not isinstance(token, str):
            raise ConfigurationError("Missing required config value at 'token'")

        groups = data.get("groups")
        if groups is not None:
            if not isinstance(groups, (list, tuple)) or not all(
                isinstance(g, str) for g in groups
            ):
                raise ConfigurationError("Config value at 'groups' must be a list of strings")
            groups = tuple(groups)

        annotations = data.get("annotations") or {}
        if not isinstance(annotations, Mapping):
            raise ConfigurationError("Config value at 'annotations' must be a mapping")

        return cls(
            org_url=org_url,
            token=resolve_secret(token),
            groups=groups,
            naming_strategy=data.get("namingStrategy"),
            user_naming_strategy=data.get("userNamingStrategy"),
            annotations={str(k): str(v) for k, v in annotations.items()},
            page_limit=int(data.get("pageLimit", 200)),
            request_timeout=float(data.get("requestTimeout", 30.0)),
        )


@dataclass(frozen=True)
class SchedulerConfig:
    okta_group_interval_min: int = 60
    misfire_grace_time: int = 300
    max_retries: int = 3


@dataclass(frozen=True)
class CatalogSyncConfig:
    database: DatabaseConfig
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    okta: Optional[OktaConfig] = None
    batch_size: int = 500


def _split_list(raw: str) -> Optional[tuple[str, ...]]:
    items = [s.strip() for s in raw.split(",") if s.strip()]
    return tuple(items) if items else None


def _load_okta_config() -> Optional[OktaConfig]:
    org_url = os.environ.get("OKTA_ORG_URL", "")
    token_raw = os.environ.get("OKTA_TOKEN", "")
    if not org_url and not token_raw:
        return None

    annotations_raw = os.environ.get("OKTA_ANNOTATIONS", "")
    try:
        annotations = json.loads(annotations_raw) if annotations_raw else {}
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"OKTA_ANNOTATIONS is not valid JSON: {exc}") from exc

    mapping: dict[str, Any] = {
        "orgUrl": org_url,
        "token": token_raw,
        "annotations": annotations,
        "namingStrategy": os.environ.get("OKTA_NAMING_STRATEGY") or None,
        "userNamingStrategy": os.environ.get("OKTA_USER_NAMING_STRATEGY") or None,
        "pageLimit": os.environ.get("OKTA_PAGE_LIMIT", "200"),
        "requestTimeout": os.environ.get("OKTA_REQUEST_TIMEOUT", "30"),
    }
    groups = _split_list(os.environ.get("OKTA_GROUPS", ""))
    if groups is not None:
        mapping["groups"] = list(groups)
    return OktaConfig.from_mapping(mapping)


def load_config() -> CatalogSyncConfig:
    """Load configuration from environment variables. Unconfigured providers are skipped.

    Okta is considered configured as soon as either OKTA_ORG_URL or OKTA_TOKEN
    is set; a half-configured provider is a ConfigurationError rather than a
    silent skip.
    """
    load_dotenv()

    database = DatabaseConfig(
        url=resolve_database_url(),
        min_connections=int(os.environ.get("DB_MIN_CONNECTIONS", "2")),
        max_connections=int(os.environ.get("DB_MAX_CONNECTIONS", "10")),
    )

    scheduler = SchedulerConfig(
        okta_group_interval_min=int(os.environ.get("OKTA_SYNC_INTERVAL_MIN", "60")),
        misfire_grace_time=int(os.environ.get("SCHEDULER_MISFIRE_GRACE_TIME", "300")),
        max_retries=int(os.environ.get("SCHEDULER_MAX_RETRIES", "3")),
    )

    return CatalogSyncConfig(
        database=database,
        scheduler=scheduler,
        okta=_load_okta_config(),
        batch_size=int(os.environ.get("CATALOG_BATCH_SIZE", "500")),
    )
