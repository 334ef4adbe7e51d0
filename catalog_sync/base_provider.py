"""Abstract base class for catalog entity providers."""

from __future__ import annotations

import asyncio
import logging
import time
import traceback
from abc import ABC, abstractmethod
from typing import Any, Optional, Protocol

from catalog_sync.db import Database

logger = logging.getLogger("catalog_sync.provider")


class NotInitializedError(RuntimeError):
    """run() was called before connect()."""


class EntityProviderConnection(Protocol):
    """The catalog side of a provider: accepts entity mutations."""

    async def apply_mutation(self, mutation: dict[str, Any]) -> None: ...


class BaseEntityProvider(ABC):
    """Each provider implements run() and get_provider_name()."""

    PROVIDER_NAME: str = ""

    def __init__(self) -> None:
        self.connection: Optional[EntityProviderConnection] = None

    @abstractmethod
    def get_provider_name(self) -> str:
        """Unique name, also used as the location key of its entities."""

    def connect(self, connection: EntityProviderConnection) -> None:
        if self.connection is not None:
            raise RuntimeError(f"{self.get_provider_name()} is already connected")
        self.connection = connection

    def _require_connection(self) -> EntityProviderConnection:
        if self.connection is None:
            raise NotInitializedError("Not initialized")
        return self.connection

    @abstractmethod
    async def run(self) -> int:
        """Run one full pass. Returns the number of entities submitted."""

    async def run_with_tracking(self, db: Database) -> int:
        """Wrap run() with ingestion_runs tracking."""
        provider_name = self.get_provider_name()
        run_id = await asyncio.to_thread(
            db.record_run_start, provider=self.PROVIDER_NAME, location_key=provider_name
        )
        started = time.monotonic()
        try:
            count = await self.run()
        except Exception as exc:
            await asyncio.to_thread(
                db.record_run_end,
                run_id=run_id,
                status="FAILED",
                error_message=str(exc)[:1000],
                error_detail={"traceback": traceback.format_exc()},
            )
            logger.error(
                "Run failed: %s",
                exc,
                extra={"provider": self.PROVIDER_NAME, "run_id": run_id},
            )
            raise

        await asyncio.to_thread(
            db.record_run_end, run_id=run_id, status="SUCCESS", entities_submitted=count
        )
        logger.info(
            "Run complete",
            extra={
                "provider": self.PROVIDER_NAME,
                "entities": count,
                "run_id": run_id,
                "duration_s": round(time.monotonic() - started, 3),
            },
        )
        return count
