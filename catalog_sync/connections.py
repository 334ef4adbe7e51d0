"""Entity provider connections: where provider mutations end up."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any, TextIO

from catalog_sync.db import Database
from catalog_sync.entities import entity_ref

logger = logging.getLogger("catalog_sync.connections")


class DatabaseEntityConnection:
    """Stores one provider's mutations in the ``catalog_entities`` table.

    A full mutation replaces everything previously stored for the provider,
    in one transaction; an empty one removes it all.
    """

    def __init__(self, db: Database, provider_name: str, batch_size: int = 500) -> None:
        self.db = db
        self.provider_name = provider_name
        self.batch_size = batch_size

    async def apply_mutation(self, mutation: dict[str, Any]) -> None:
        if mutation.get("type") != "full":
            raise ValueError(f"Unsupported mutation type: {mutation.get('type')!r}")
        await asyncio.to_thread(self._apply_full, mutation["entities"])

    def _apply_full(self, deferred: list[dict[str, Any]]) -> None:
        rows: dict[str, tuple] = {}
        for item in deferred:
            entity = item["entity"]
            ref = entity_ref(entity)
            if ref in rows:
                logger.warning(
                    "Duplicate entity %s in mutation, keeping the last one",
                    ref,
                    extra={"provider": self.provider_name},
                )
            rows[ref] = (
                ref,
                item["locationKey"],
                entity["kind"],
                entity["metadata"]["name"],
                entity,
            )

        upserted, deleted = self.db.replace_entities(
            self.provider_name, list(rows.values()), page_size=self.batch_size
        )
        logger.info(
            "Replaced entities: %d upserted, %d deleted",
            upserted,
            deleted,
            extra={"provider": self.provider_name, "entities": upserted},
        )


class StdoutEntityConnection:
    """Prints mutations as JSON instead of storing them (dry runs)."""

    def __init__(self, stream: TextIO = sys.stdout) -> None:
        self.stream = stream

    async def apply_mutation(self, mutation: dict[str, Any]) -> None:
        json.dump(mutation, self.stream, indent=2, sort_keys=True)
        self.stream.write("\n")
