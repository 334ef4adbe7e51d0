"""AWS Lambda handler for catalog provider runs.

Triggered by an EventBridge schedule; each invocation runs one provider.

Event format:
  {"provider": "okta_group"}
"""

from __future__ import annotations

import asyncio
import json
import logging
import os

from catalog_sync.cli import _connected_provider
from catalog_sync.config import load_config
from catalog_sync.db import Database
from catalog_sync.logging_config import configure_logging

logger = logging.getLogger("catalog_sync.lambda")


def handler(event: dict, context) -> dict:
    """Lambda entry point."""
    configure_logging(os.environ.get("LOG_LEVEL", "INFO"))

    provider_name = event.get("provider", "")
    if not provider_name:
        return {"statusCode": 400, "body": "Missing 'provider' in event"}

    logger.info("Lambda invoked for provider=%s", provider_name)

    config = load_config()
    db = Database(config.database)

    try:
        provider = _connected_provider(provider_name, config, db)
        if provider is None:
            return {
                "statusCode": 200,
                "body": json.dumps(
                    {"skipped": True, "reason": f"{provider_name} not configured"}
                ),
            }
        count = asyncio.run(provider.run_with_tracking(db))
        return {
            "statusCode": 200,
            "body": json.dumps({"provider": provider_name, "entities": count}),
        }
    except Exception as exc:
        logger.error("Run failed for %s: %s", provider_name, exc, exc_info=True)
        return {
            "statusCode": 500,
            "body": json.dumps({"provider": provider_name, "error": str(exc)}),
        }
    finally:
        db.close()
