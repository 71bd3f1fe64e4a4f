"""Structured merge payloads for station and measurement batches.

This module serializes a whole batch into one JSON array so the merge
receives the batch as a single bind parameter instead of one round
trip per row. Column names match the destination tables.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from typing import Sequence

from core.constants import PAYLOAD_DATE_FORMAT, PAYLOAD_TIMESTAMP_FORMAT
from core.types import MeasurementRecord, StationRecord

STATION_COLUMNS = (
    "station_id",
    "valid_from",
    "valid_to",
    "elevation",
    "latitude",
    "longitude",
    "name",
    "region",
)
MEASUREMENT_COLUMNS = (
    "station_id",
    "measured_at",
    "quality_level",
    "pressure",
    "air_temperature",
    "ground_temperature",
    "relative_humidity",
    "dew_point",
)


def station_to_payload(record: StationRecord) -> dict[str, object]:
    """Serialize a station record into a JSON-safe row.

    Args:
        record: Station record.

    Returns:
        Row keyed by destination column name.
    """
    return {
        "station_id": record.station_id,
        "valid_from": _format_date(record.valid_from),
        "valid_to": _format_date(record.valid_to),
        "elevation": record.elevation,
        "latitude": record.latitude,
        "longitude": record.longitude,
        "name": record.name,
        "region": record.region,
    }


def measurement_to_payload(record: MeasurementRecord) -> dict[str, object]:
    """Serialize a measurement record into a JSON-safe row.

    Args:
        record: Measurement record.

    Returns:
        Row keyed by destination column name.
    """
    return {
        "station_id": record.station_id,
        "measured_at": _format_timestamp(record.measured_at),
        "quality_level": record.quality_level,
        "pressure": record.pressure,
        "air_temperature": record.air_temperature,
        "ground_temperature": record.ground_temperature,
        "relative_humidity": record.relative_humidity,
        "dew_point": record.dew_point,
    }


def encode_station_rows(records: Sequence[StationRecord]) -> str:
    """Encode a station batch as one JSON array."""
    return json.dumps([station_to_payload(record) for record in records])


def encode_measurement_rows(records: Sequence[MeasurementRecord]) -> str:
    """Encode a measurement batch as one JSON array."""
    return json.dumps([measurement_to_payload(record) for record in records])


def _format_date(value: date | None) -> str | None:
    return value.strftime(PAYLOAD_DATE_FORMAT) if value is not None else None


def _format_timestamp(value: datetime) -> str:
    return value.strftime(PAYLOAD_TIMESTAMP_FORMAT)
