"""Unit tests for merge payload encoding."""

from __future__ import annotations

import json
from datetime import date, datetime

from core.types import MeasurementRecord, StationRecord
from store.record_payload import encode_measurement_rows, station_to_payload


def test_encode_measurement_rows_formats_timestamp_and_nulls() -> None:
    """Measurement payload should use SQL timestamp text and JSON null."""
    record = MeasurementRecord(
        "01048", datetime(2021, 9, 1, 0, 10), 3, None, 18.5, 17.2, 65.0, 11.0
    )

    rows = json.loads(encode_measurement_rows([record]))

    assert rows[0]["measured_at"] == "2021-09-01 00:10:00"
    assert rows[0]["pressure"] is None


def test_station_to_payload_formats_dates() -> None:
    """Station dates should serialize as ISO dates."""
    record = StationRecord("01048", date(1937, 1, 1), None, 228.0, 51.1, 13.7, "Dresden", "Sachsen")

    payload = station_to_payload(record)

    assert (payload["valid_from"], payload["valid_to"]) == ("1937-01-01", None)
