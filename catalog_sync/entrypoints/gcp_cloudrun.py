"""GCP Cloud Run Job entry point for catalog provider runs.

Usage:
  SYNC_PROVIDER=okta_group python -m catalog_sync.entrypoints.gcp_cloudrun
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys

from catalog_sync.cli import _connected_provider
from catalog_sync.config import load_config
from catalog_sync.db import Database
from catalog_sync.logging_config import configure_logging

logger = logging.getLogger("catalog_sync.cloudrun")


def main() -> None:
    configure_logging(os.environ.get("LOG_LEVEL", "INFO"))

    provider_name = os.environ.get("SYNC_PROVIDER", "")
    if not provider_name:
        logger.error("SYNC_PROVIDER env var is required")
        sys.exit(1)

    logger.info("Cloud Run Job started for provider=%s", provider_name)

    config = load_config()
    db = Database(config.database)

    try:
        provider = _connected_provider(provider_name, config, db)
        if provider is None:
            logger.warning("Provider %s not configured, exiting", provider_name)
            return
        count = asyncio.run(provider.run_with_tracking(db))
        logger.info("Run complete for %s: %d entities", provider_name, count)
    except Exception as exc:
        logger.error("Run failed for %s: %s", provider_name, exc, exc_info=True)
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
