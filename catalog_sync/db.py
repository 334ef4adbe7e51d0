"""Database helpers: connection pool, full-replace entity writes, run tracking."""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from typing import Any, Generator, Optional, Sequence

import psycopg2
import psycopg2.extras
import psycopg2.pool

from catalog_sync.config import DatabaseConfig

logger = logging.getLogger("catalog_sync.db")

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS catalog_entities (
    provider_name  TEXT        NOT NULL,
    entity_ref     TEXT        NOT NULL,
    location_key   TEXT        NOT NULL,
    kind           TEXT        NOT NULL,
    name           TEXT        NOT NULL,
    entity         JSONB       NOT NULL,
    created_at     TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at     TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    PRIMARY KEY (provider_name, entity_ref)
);

CREATE TABLE IF NOT EXISTS ingestion_runs (
    id                 UUID        PRIMARY KEY,
    provider           TEXT        NOT NULL,
    location_key       TEXT,
    status             TEXT        NOT NULL,
    started_at         TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    finished_at        TIMESTAMPTZ,
    entities_submitted INTEGER     NOT NULL DEFAULT 0,
    error_message      TEXT,
    error_detail       JSONB
);
"""


class Database:
    """Thin wrapper around a ThreadedConnectionPool."""

    def __init__(self, config: DatabaseConfig) -> None:
        self._pool = psycopg2.pool.ThreadedConnectionPool(
            minconn=config.min_connections,
            maxconn=config.max_connections,
            dsn=config.url,
        )

    def close(self) -> None:
        self._pool.closeall()

    @contextmanager
    def connection(self) -> Generator:
        conn = self._pool.getconn()
        try:
            yield conn
        finally:
            self._pool.putconn(conn)

    @contextmanager
    def transaction(self) -> Generator:
        """Yield a cursor inside an auto-commit/rollback transaction."""
        with self.connection() as conn:
            try:
                with conn.cursor() as cur:
                    yield cur
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def ensure_schema(self) -> None:
        with self.transaction() as cur:
            cur.execute(SCHEMA_SQL)

    # ------------------------------------------------------------------
    # Catalog entities
    # ------------------------------------------------------------------

    def replace_entities(
        self,
        provider_name: str,
        rows: Sequence[tuple[str, str, str, str, Any]],
        page_size: int = 500,
    ) -> tuple[int, int]:
        """Make ``rows`` the complete set of entities stored for a provider.

        ``rows`` are (entity_ref, location_key, kind, name, entity) with unique
        refs. Runs in a single transaction. Returns (upserted, deleted).
        """
        refs = [row[0] for row in rows]
        with self.transaction() as cur:
            cur.execute(
                """DELETE FROM catalog_entities
                   WHERE provider_name = %s AND NOT (entity_ref = ANY(%s))""",
                (provider_name, refs),
            )
            deleted = cur.rowcount
            if rows:
                psycopg2.extras.execute_values(
                    cur,
                    """INSERT INTO catalog_entities
                       (provider_name, entity_ref, location_key, kind, name, entity)
                       VALUES %s
                       ON CONFLICT (provider_name, entity_ref) DO UPDATE SET
                           location_key = EXCLUDED.location_key,
                           kind = EXCLUDED.kind,
                           name = EXCLUDED.name,
                           entity = EXCLUDED.entity,
                           updated_at = NOW()""",
                    [
                        (provider_name, ref, location_key, kind, name,
                         psycopg2.extras.Json(entity))
                        for ref, location_key, kind, name, entity in rows
                    ],
                    page_size=page_size,
                )
        return len(rows), deleted

    # ------------------------------------------------------------------
    # Ingestion run tracking
    # ------------------------------------------------------------------

    def record_run_start(self, provider: str, location_key: Optional[str] = None) -> str:
        """Insert a new ingestion_runs row with status RUNNING. Returns the run id."""
        run_id = str(uuid.uuid4())
        with self.transaction() as cur:
            cur.execute(
                """INSERT INTO ingestion_runs (id, provider, location_key, status)
                   VALUES (%s, %s, %s, 'RUNNING')""",
                (run_id, provider, location_key),
            )
        return run_id

    def record_run_end(
        self,
        run_id: str,
        status: str,
        entities_submitted: int = 0,
        error_message: Optional[str] = None,
        error_detail: Optional[dict] = None,
    ) -> None:
        """Finalise an ingestion_runs row."""
        with self.transaction() as cur:
            cur.execute(
                """UPDATE ingestion_runs
                   SET status = %s,
                       finished_at = NOW(),
                       entities_submitted = %s,
                       error_message = %s,
                       error_detail = %s
                   WHERE id = %s""",
                (
                    status,
                    entities_submitted,
                    error_message,
                    psycopg2.extras.Json(error_detail) if error_detail else None,
                    run_id,
                ),
            )

    def get_recent_runs(
        self, provider: Optional[str] = None, limit: int = 10
    ) -> list[dict[str, Any]]:
        """Fetch recent ingestion runs for status display."""
        query = """SELECT id, provider, location_key, status, started_at,
                          finished_at, entities_submitted, error_message
                   FROM ingestion_runs"""
        params: tuple = ()
        if provider:
            query += " WHERE provider = %s"
            params = (provider,)
        query += " ORDER BY started_at DESC LIMIT %s"

        with self.transaction() as cur:
            cur.execute(query, params + (limit,))
            cols = [d[0] for d in cur.description]
            return [dict(zip(cols, row)) for row in cur.fetchall()]
