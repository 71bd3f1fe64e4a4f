"""Upsert writer for station and measurement batches.

This module applies one batch to the destination store as a single
set-based merge inside its own transaction. Writing the same batch
again leaves the store unchanged, so retries are safe.
"""

from __future__ import annotations

from typing import Sequence

from sqlalchemy import TextClause
from sqlalchemy.engine import Engine

from core.constants import MERGE_ROWS_PARAMETER
from core.types import LoadRecord, MeasurementRecord, RecordKind, StationRecord
from store.merge_statements import build_merge_statement
from store.record_payload import encode_measurement_rows, encode_station_rows


class UpsertWriter:
    """Set-based merge writer bound to one engine.

    The writer holds no connection between calls; each write checks a
    connection out of the engine pool and returns it when the batch
    transaction ends. One writer may be shared by all workers.
    """

    def __init__(self, engine: Engine) -> None:
        """Create a writer and prepare the dialect's merge statements.

        Args:
            engine: Destination store engine.

        Raises:
            DwdStoreError: If the engine dialect has no merge implementation.
        """
        self._engine = engine
        self._statements: dict[RecordKind, TextClause] = {
            "station": build_merge_statement(engine.dialect.name, "station"),
            "measurement": build_merge_statement(engine.dialect.name, "measurement"),
        }

    def write_stations(self, records: Sequence[StationRecord]) -> int:
        """Merge a batch of station records.

        Args:
            records: Station records with unique station ids.

        Returns:
            Number of records submitted.
        """
        return self._merge("station", encode_station_rows(records), len(records))

    def write_measurements(self, records: Sequence[MeasurementRecord]) -> int:
        """Merge a batch of measurement records.

        Args:
            records: Measurement records with unique (station_id, measured_at) keys.

        Returns:
            Number of records submitted.
        """
        return self._merge("measurement", encode_measurement_rows(records), len(records))

    def write_batch(self, kind: RecordKind, records: Sequence[LoadRecord]) -> int:
        """Merge a batch of records of the given kind."""
        if kind == "station":
            return self.write_stations([_as_station(record) for record in records])
        return self.write_measurements([_as_measurement(record) for record in records])

    def _merge(self, kind: RecordKind, payload: str, record_count: int) -> int:
        if record_count == 0:
            return 0
        with self._engine.begin() as connection:
            connection.execute(self._statements[kind], {MERGE_ROWS_PARAMETER: payload})
        return record_count


def _as_station(record: LoadRecord) -> StationRecord:
    if not isinstance(record, StationRecord):
        raise TypeError(f"Expected StationRecord, got {type(record).__name__}")
    return record


def _as_measurement(record: LoadRecord) -> MeasurementRecord:
    if not isinstance(record, MeasurementRecord):
        raise TypeError(f"Expected MeasurementRecord, got {type(record).__name__}")
    return record
