"""Per-batch deduplication transform.

This module keeps at most one record per natural key inside a batch.
The first record seen for a key wins and later ones are dropped
silently. Source archives are known to repeat rows, and a set-based
merge cannot touch the same key twice in one statement.

Deduplication is per batch only. When two batches carry the same key
the store merge resolves it and the batch written last wins.
"""

from __future__ import annotations

from datetime import datetime
from typing import Hashable, Iterable

from core.types import LoadRecord, MeasurementRecord, StationRecord


def record_key(record: LoadRecord) -> Hashable:
    """Return the natural key of a record.

    Args:
        record: Station or measurement record.

    Returns:
        ``station_id`` for stations, ``(station_id, measured_at)`` for measurements.
    """
    if isinstance(record, StationRecord):
        return station_key(record)
    return measurement_key(record)


def station_key(record: StationRecord) -> str:
    """Natural key of a station row."""
    return record.station_id


def measurement_key(record: MeasurementRecord) -> tuple[str, datetime]:
    """Natural key of a measurement row."""
    return (record.station_id, record.measured_at)


def deduplicate_batch(records: Iterable[LoadRecord]) -> list[LoadRecord]:
    """Drop records whose key was already seen earlier in the batch.

    Args:
        records: Records of one batch, in encounter order.

    Returns:
        Records with unique keys, first occurrence kept, order preserved.
    """
    unique_records: list[LoadRecord] = []
    seen_keys: set[Hashable] = set()
    for record in records:
        key = record_key(record)
        if key in seen_keys:
            continue
        seen_keys.add(key)
        unique_records.append(record)
    return unique_records
