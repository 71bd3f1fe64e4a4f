"""Unit tests for set-based upsert writes against SQLite."""

from __future__ import annotations

import threading
from datetime import date, datetime

from sqlalchemy import event, func, select
from sqlalchemy.exc import OperationalError

from core.config import RetryOptions
from core.types import MeasurementRecord, StationRecord
from store.retry_policy import RetryPolicy
from store.schema import MEASUREMENT_TABLE, STATION_TABLE
from store.upsert_writer import UpsertWriter


def _measurement(
    minute: int,
    air_temperature: float | None,
    station_id: str = "01048",
) -> MeasurementRecord:
    return MeasurementRecord(
        station_id=station_id,
        measured_at=datetime(2021, 9, 1, minute // 60, minute % 60),
        quality_level=3,
        pressure=None,
        air_temperature=air_temperature,
        ground_temperature=17.2,
        relative_humidity=65.0,
        dew_point=11.0,
    )


def _measurement_rows(engine) -> list[tuple]:
    query = select(
        MEASUREMENT_TABLE.c.station_id,
        MEASUREMENT_TABLE.c.measured_at,
        MEASUREMENT_TABLE.c.air_temperature,
    ).order_by(MEASUREMENT_TABLE.c.station_id, MEASUREMENT_TABLE.c.measured_at)
    with engine.connect() as connection:
        return [tuple(row) for row in connection.execute(query)]


def test_write_stations_round_trips_all_columns(store_engine) -> None:
    """Station merge should persist every column including null dates."""
    writer = UpsertWriter(store_engine)
    record = StationRecord(
        station_id="01048",
        valid_from=date(1937, 1, 1),
        valid_to=None,
        elevation=228.0,
        latitude=51.1278,
        longitude=13.7543,
        name="Dresden-Klotzsche",
        region="Sachsen",
    )

    written = writer.write_stations([record])
    with store_engine.connect() as connection:
        row = connection.execute(select(STATION_TABLE)).one()

    assert written == 1
    assert (row.station_id, row.valid_from, row.valid_to, row.name, row.region) == (
        "01048",
        date(1937, 1, 1),
        None,
        "Dresden-Klotzsche",
        "Sachsen",
    )


def test_write_measurements_is_idempotent(store_engine) -> None:
    """Writing the same batch twice should leave the store unchanged."""
    writer = UpsertWriter(store_engine)
    batch = [_measurement(0, 18.5), _measurement(10, None)]

    writer.write_measurements(batch)
    first_state = _measurement_rows(store_engine)
    writer.write_measurements(batch)

    assert _measurement_rows(store_engine) == first_state
    assert first_state[1][2] is None


def test_write_measurements_last_batch_wins(store_engine) -> None:
    """A later batch with the same key should update the stored values."""
    writer = UpsertWriter(store_engine)

    writer.write_measurements([_measurement(0, 18.5)])
    writer.write_measurements([_measurement(0, 19.0), _measurement(10, 18.9)])

    assert _measurement_rows(store_engine) == [
        ("01048", datetime(2021, 9, 1, 0, 0), 19.0),
        ("01048", datetime(2021, 9, 1, 0, 10), 18.9),
    ]


def test_write_batch_skips_empty_batch(store_engine) -> None:
    """Empty batches should not touch the store."""
    writer = UpsertWriter(store_engine)

    assert writer.write_batch("measurement", []) == 0
    assert _measurement_rows(store_engine) == []


def test_concurrent_writes_with_overlapping_keys_keep_last_commit(store_engine) -> None:
    """Concurrent merges should store each key once, holding the last committed batch."""
    writer = UpsertWriter(store_engine)
    commit_order: list[str] = []
    event.listen(
        store_engine,
        "commit",
        lambda _connection: commit_order.append(threading.current_thread().name),
    )
    batches = [
        [_measurement(minute, float(worker)) for minute in range(0, 300, 10)]
        for worker in range(4)
    ]
    errors: list[Exception] = []

    def _write(batch: list[MeasurementRecord]) -> None:
        try:
            writer.write_measurements(batch)
        except Exception as error:  # noqa: BLE001
            errors.append(error)

    threads = [
        threading.Thread(target=_write, args=(batch,), name=str(worker))
        for worker, batch in enumerate(batches)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    rows = _measurement_rows(store_engine)
    assert errors == []
    assert len(rows) == 30
    assert sorted(commit_order) == ["0", "1", "2", "3"]
    assert {row[2] for row in rows} == {float(commit_order[-1])}


def test_retried_write_is_persisted_once(store_engine) -> None:
    """A batch that fails transiently four times should be stored exactly once."""
    writer = UpsertWriter(store_engine)
    sleeps: list[float] = []
    policy = RetryPolicy(RetryOptions(5, 1.0, 20.0), sleep=sleeps.append)
    batch = [_measurement(0, 18.5), _measurement(10, 18.4)]
    attempts = {"count": 0}

    def _flaky_write() -> int:
        attempts["count"] += 1
        if attempts["count"] <= 4:
            raise OperationalError("INSERT", None, Exception("database is locked"))
        return writer.write_measurements(batch)

    written = policy.call(_flaky_write, "merge_measurement:a.zip#0")
    with store_engine.connect() as connection:
        stored = connection.execute(select(func.count()).select_from(MEASUREMENT_TABLE)).scalar()

    assert (written, stored, sleeps) == (2, 2, [1.0, 2.0, 4.0, 8.0])
