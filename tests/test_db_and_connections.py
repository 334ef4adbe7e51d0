"""Tests for the database helpers and the entity provider connections."""

from __future__ import annotations

import io
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from catalog_sync.base_provider import BaseEntityProvider
from catalog_sync.config import DatabaseConfig
from catalog_sync.connections import DatabaseEntityConnection, StdoutEntityConnection
from catalog_sync.db import Database
from catalog_sync.entities import build_group_entity, entity_ref, full_mutation


@pytest.fixture
def pool():
    with patch("catalog_sync.db.psycopg2.pool.ThreadedConnectionPool") as pool_cls:
        yield pool_cls.return_value


@pytest.fixture
def cursor(pool):
    conn = pool.getconn.return_value
    cur = conn.cursor.return_value.__enter__.return_value
    cur.rowcount = 3
    return cur


@pytest.fixture
def db(pool) -> Database:
    return Database(DatabaseConfig(url="postgresql://u:p@h/d"))


class TestDatabase:
    @patch("catalog_sync.db.psycopg2.extras.execute_values")
    def test_replace_entities_deletes_missing_then_upserts(
        self, execute_values: MagicMock, db: Database, cursor, pool
    ) -> None:
        entity = build_group_entity("admins", ["u1"])
        rows = [("group:default/admins", "okta-group-x", "Group", "admins", entity)]

        upserted, deleted = db.replace_entities("okta-group-x", rows)

        assert (upserted, deleted) == (1, 3)
        sql, params = cursor.execute.call_args.args
        assert sql.lstrip().startswith("DELETE FROM catalog_entities")
        assert params == ("okta-group-x", ["group:default/admins"])
        execute_values.assert_called_once()
        values = execute_values.call_args.args[2]
        assert values[0][:5] == (
            "okta-group-x", "group:default/admins", "okta-group-x", "Group", "admins",
        )
        pool.getconn.return_value.commit.assert_called_once()

    @patch("catalog_sync.db.psycopg2.extras.execute_values")
    def test_replace_with_no_entities_only_deletes(
        self, execute_values: MagicMock, db: Database, cursor
    ) -> None:
        assert db.replace_entities("okta-group-x", []) == (0, 3)
        execute_values.assert_not_called()

    def test_transaction_rolls_back_on_error(self, db: Database, cursor, pool) -> None:
        cursor.execute.side_effect = RuntimeError("deadlock detected")

        with pytest.raises(RuntimeError):
            db.replace_entities("okta-group-x", [])

        conn = pool.getconn.return_value
        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()
        pool.putconn.assert_called_once_with(conn)

    def test_record_run_start_returns_id(self, db: Database, cursor) -> None:
        run_id = db.record_run_start(provider="okta_group", location_key="okta-group-x")
        assert len(run_id) == 36
        assert cursor.execute.call_args.args[1] == (run_id, "okta_group", "okta-group-x")

    def test_get_recent_runs_filters_by_provider(self, db: Database, cursor) -> None:
        cursor.description = [("id",), ("provider",)]
        cursor.fetchall.return_value = [("r1", "okta_group")]

        runs = db.get_recent_runs(provider="okta_group", limit=5)

        assert runs == [{"id": "r1", "provider": "okta_group"}]
        sql, params = cursor.execute.call_args.args
        assert "WHERE provider = %s" in sql
        assert params == ("okta_group", 5)


class TestDatabaseEntityConnection:
    @pytest.mark.asyncio
    async def test_full_mutation_replaces_provider_entities(self) -> None:
        db = MagicMock()
        db.replace_entities.return_value = (2, 0)
        connection = DatabaseEntityConnection(db, "okta-group-https://okta")
        entities = [build_group_entity("a", []), build_group_entity("b", ["u1"])]

        await connection.apply_mutation(full_mutation(entities, "okta-group-https://okta"))

        provider_name, rows = db.replace_entities.call_args.args
        assert provider_name == "okta-group-https://okta"
        assert [row[0] for row in rows] == ["group:default/a", "group:default/b"]
        assert rows[1][4]["spec"]["members"] == ["u1"]

    @pytest.mark.asyncio
    async def test_empty_full_mutation_clears_provider(self) -> None:
        db = MagicMock()
        db.replace_entities.return_value = (0, 4)
        connection = DatabaseEntityConnection(db, "okta-group-https://okta")

        await connection.apply_mutation({"type": "full", "entities": []})

        db.replace_entities.assert_called_once_with(
            "okta-group-https://okta", [], page_size=500
        )

    @pytest.mark.asyncio
    async def test_duplicate_refs_keep_last(self, caplog) -> None:
        db = MagicMock()
        db.replace_entities.return_value = (1, 0)
        connection = DatabaseEntityConnection(db, "p")
        first = build_group_entity("ops", ["u1"])
        second = build_group_entity("ops", ["u2"])

        await connection.apply_mutation(full_mutation([first, second], "p"))

        rows = db.replace_entities.call_args.args[1]
        assert len(rows) == 1
        assert rows[0][4]["spec"]["members"] == ["u2"]
        assert "Duplicate entity group:default/ops" in caplog.text

    @pytest.mark.asyncio
    async def test_delta_mutations_are_rejected(self) -> None:
        connection = DatabaseEntityConnection(MagicMock(), "p")
        with pytest.raises(ValueError):
            await connection.apply_mutation({"type": "delta", "added": [], "removed": []})


@pytest.mark.asyncio
async def test_stdout_connection_prints_mutation() -> None:
    stream = io.StringIO()
    mutation = full_mutation([build_group_entity("a", [])], "loc")

    await StdoutEntityConnection(stream).apply_mutation(mutation)

    assert json.loads(stream.getvalue()) == mutation


def test_entity_ref_is_lowercased() -> None:
    assert entity_ref(build_group_entity("Admins", [])) == "group:default/admins"


class _StaticProvider(BaseEntityProvider):
    PROVIDER_NAME = "static"

    def __init__(self, error=None) -> None:
        super().__init__()
        self.error = error

    def get_provider_name(self) -> str:
        return "static-provider"

    async def run(self) -> int:
        connection = self._require_connection()
        if self.error:
            raise self.error
        await connection.apply_mutation(full_mutation([], self.get_provider_name()))
        return 0


class TestRunWithTracking:
    @pytest.mark.asyncio
    async def test_success_is_recorded(self) -> None:
        db = MagicMock()
        db.record_run_start.return_value = "run-1"
        provider = _StaticProvider()
        provider.connect(AsyncMock())

        assert await provider.run_with_tracking(db) == 0

        db.record_run_start.assert_called_once_with(
            provider="static", location_key="static-provider"
        )
        db.record_run_end.assert_called_once_with(
            run_id="run-1", status="SUCCESS", entities_submitted=0
        )

    @pytest.mark.asyncio
    async def test_failure_is_recorded_and_reraised(self) -> None:
        db = MagicMock()
        db.record_run_start.return_value = "run-2"
        provider = _StaticProvider(error=ConnectionError("okta down"))
        provider.connect(AsyncMock())

        with pytest.raises(ConnectionError):
            await provider.run_with_tracking(db)

        kwargs = db.record_run_end.call_args.kwargs
        assert kwargs["status"] == "FAILED"
        assert kwargs["error_message"] == "okta down"
        assert "ConnectionError" in kwargs["error_detail"]["traceback"]
