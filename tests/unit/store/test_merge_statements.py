"""Unit tests for dialect-specific merge statements."""

from __future__ import annotations

import pytest

from core.errors import DwdStoreError
from store.merge_statements import build_merge_statement


def test_postgres_measurement_merge_orders_rows_by_key() -> None:
    """PostgreSQL merge should read JSON rows in key order and upsert on the key."""
    sql = build_merge_statement("postgresql", "measurement").text

    assert "jsonb_to_recordset(CAST(:rows AS jsonb))" in sql
    assert "ORDER BY r.station_id, r.measured_at" in sql
    assert "ON CONFLICT (station_id, measured_at) DO UPDATE SET" in sql


def test_sqlite_station_merge_updates_non_key_columns() -> None:
    """SQLite merge should update every non-key column from excluded."""
    sql = build_merge_statement("sqlite", "station").text

    assert "json_each(:rows)" in sql
    assert "region = excluded.region" in sql
    assert "station_id = excluded.station_id" not in sql


def test_build_merge_statement_rejects_unsupported_dialect() -> None:
    """Dialects without a merge implementation should fail fast."""
    with pytest.raises(DwdStoreError, match="mssql"):
        build_merge_statement("mssql", "measurement")
