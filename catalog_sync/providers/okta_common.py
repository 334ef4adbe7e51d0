"""Helpers shared by Okta-backed providers: client and default annotations."""

from __future__ import annotations

from catalog_sync.config import OktaConfig
from catalog_sync.entities import ANNOTATION_LOCATION, ANNOTATION_ORIGIN_LOCATION
from catalog_sync.okta_client import OktaClient


def build_client(config: OktaConfig) -> OktaClient:
    return OktaClient(
        config.org_url,
        config.token,
        page_limit=config.page_limit,
        timeout=config.request_timeout,
    )


def build_default_annotations(config: OktaConfig) -> dict[str, str]:
    """Location annotations for the org, overlaid with configured annotations."""
    location = f"url:{config.org_url}"
    annotations = {
        ANNOTATION_LOCATION: location,
        ANNOTATION_ORIGIN_LOCATION: location,
    }
    annotations.update(config.annotations)
    return annotations
