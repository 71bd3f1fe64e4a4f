"""Unit tests for station and measurement line decoding."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from core.errors import DwdDecodeError
from core.types import MeasurementRecord, StationRecord
from ingest.record_parser import (
    normalize_station_id,
    parse_line,
    parse_measurement_line,
    parse_reading,
    parse_station_line,
)


def _station_line(
    station_id: str = "01048",
    valid_from: str = "19370101",
    valid_to: str = "20221231",
    elevation: str = "228",
    latitude: str = "51.1278",
    longitude: str = "13.7543",
    name: str = "Dresden-Klotzsche",
    region: str = "Sachsen",
) -> str:
    return (
        f"{station_id:<5} {valid_from:<8} {valid_to:<8} {elevation:>14} "
        f"{latitude:>11} {longitude:>9} {name:<40} {region}"
    )


def test_parse_station_line_decodes_fixed_width_fields() -> None:
    """Station line should decode every fixed-width column."""
    record = parse_station_line(_station_line())

    assert record == StationRecord(
        station_id="01048",
        valid_from=date(1937, 1, 1),
        valid_to=date(2022, 12, 31),
        elevation=228.0,
        latitude=51.1278,
        longitude=13.7543,
        name="Dresden-Klotzsche",
        region="Sachsen",
    )


def test_parse_station_line_maps_blank_fields_to_none() -> None:
    """Blank station columns should become absent values."""
    record = parse_station_line(_station_line(valid_to="", elevation=""))

    assert (record.valid_to, record.elevation) == (None, None)


def test_parse_station_line_pads_short_station_id() -> None:
    """Station ids shorter than five characters should be zero padded."""
    record = parse_station_line(_station_line(station_id="44"))

    assert record.station_id == "00044"


def test_parse_station_line_rejects_short_line() -> None:
    """Lines that do not match the layout should fail to decode."""
    with pytest.raises(DwdDecodeError):
        parse_station_line("01048 19370101 20221231 228")


def test_parse_station_line_rejects_invalid_date() -> None:
    """Calendar-invalid dates should fail to decode."""
    with pytest.raises(DwdDecodeError):
        parse_station_line(_station_line(valid_from="19371301"))


def test_parse_station_line_keeps_sentinel_as_number() -> None:
    """The missing-reading sentinel only applies to measurements."""
    record = parse_station_line(_station_line(elevation="-999"))

    assert record.elevation == -999.0


def test_parse_measurement_line_decodes_reference_row() -> None:
    """Measurement line should decode with sentinel and padding handling."""
    record = parse_measurement_line("1048;202109010000;3;-999;18.5; 17.2;65.0;11.0")

    assert record == MeasurementRecord(
        station_id="01048",
        measured_at=datetime(2021, 9, 1, 0, 0),
        quality_level=3,
        pressure=None,
        air_temperature=18.5,
        ground_temperature=17.2,
        relative_humidity=65.0,
        dew_point=11.0,
    )


def test_parse_measurement_line_ignores_trailing_marker() -> None:
    """Fields after the dew point, such as eor, should be ignored."""
    record = parse_measurement_line(
        "       1048;202109010010;    3;   -999;  18.4;  17.0;  66.0;  11.2;eor"
    )

    assert (record.measured_at, record.dew_point) == (datetime(2021, 9, 1, 0, 10), 11.2)


def test_parse_measurement_line_rejects_too_few_fields() -> None:
    """Lines with fewer than eight fields should fail to decode."""
    with pytest.raises(DwdDecodeError):
        parse_measurement_line("1048;202109010000;3;-999;18.5;17.2;65.0")


def test_parse_measurement_line_rejects_blank_quality_level() -> None:
    """Quality level is mandatory."""
    with pytest.raises(DwdDecodeError):
        parse_measurement_line("1048;202109010000; ;-999;18.5;17.2;65.0;11.0")


def test_parse_measurement_line_rejects_malformed_timestamp() -> None:
    """Timestamps must be twelve digits."""
    with pytest.raises(DwdDecodeError):
        parse_measurement_line("1048;2021-09-01;3;-999;18.5;17.2;65.0;11.0")


@pytest.mark.parametrize("raw_value", ["nan", "inf", "1,5", "1 000", "abc"])
def test_parse_reading_rejects_non_decimal_text(raw_value: str) -> None:
    """Readings must be plain decimal numbers."""
    with pytest.raises(DwdDecodeError):
        parse_reading(raw_value, "air_temperature")


@pytest.mark.parametrize("raw_value", ["-999", " -999 ", "", "   "])
def test_parse_reading_maps_missing_values_to_none(raw_value: str) -> None:
    """Blank readings and the sentinel both mean absent."""
    assert parse_reading(raw_value, "pressure") is None


def test_parse_reading_keeps_other_negative_values() -> None:
    """Only the exact sentinel literal is treated as missing."""
    assert parse_reading("-999.5", "pressure") == -999.5


def test_normalize_station_id_rejects_long_code() -> None:
    """Station ids longer than five characters are invalid."""
    with pytest.raises(DwdDecodeError):
        normalize_station_id("123456")


def test_parse_line_dispatches_on_kind() -> None:
    """parse_line should select the decoder by record kind."""
    record = parse_line("1048;202109010000;3;-999;18.5;17.2;65.0;11.0", "measurement")

    assert isinstance(record, MeasurementRecord)
