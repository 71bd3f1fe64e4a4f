"""Record parser for DWD station and measurement lines.

This module decodes one raw text line into a typed record. It is pure
and stateless: malformed lines raise ``DwdDecodeError`` and the caller
decides whether to skip them.

Two data-quality policies live here. Measurement readings that are
blank or the literal ``-999`` become ``None`` rather than a number,
and station fields that are blank become ``None`` rather than
an empty string or zero.
"""

from __future__ import annotations

import re
from datetime import date, datetime

from core.constants import (
    MEASUREMENT_FIELD_SEPARATOR,
    MEASUREMENT_MIN_FIELDS,
    MEASUREMENT_TIMESTAMP_FORMAT,
    MISSING_READING_SENTINEL,
    STATION_DATE_FORMAT,
    STATION_ID_LENGTH,
)
from core.errors import DwdDecodeError
from core.types import LoadRecord, MeasurementRecord, RecordKind, StationRecord

_STATION_PATTERN = re.compile(
    r"(?P<station_id>.{5})\s"
    r"(?P<valid_from>.{8})\s"
    r"(?P<valid_to>.{8})\s"
    r"(?P<elevation>.{14})\s"
    r"(?P<latitude>.{11})\s"
    r"(?P<longitude>.{9})\s"
    r"(?P<name>.{40})\s"
    r"(?P<region>.+)$"
)
_NUMBER_PATTERN = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_INTEGER_PATTERN = re.compile(r"[+-]?\d+")


def parse_line(line: str, kind: RecordKind) -> LoadRecord:
    """Decode one line into the record type for ``kind``.

    Args:
        line: Raw source line without header handling.
        kind: Either ``"station"`` or ``"measurement"``.

    Returns:
        Decoded record.

    Raises:
        DwdDecodeError: If the line is malformed.
    """
    if kind == "station":
        return parse_station_line(line)
    return parse_measurement_line(line)


def parse_station_line(line: str) -> StationRecord:
    """Decode one fixed-width station description line.

    Args:
        line: Raw line from the station description file.

    Returns:
        Decoded station record.

    Raises:
        DwdDecodeError: If the line does not match the fixed-width layout
            or a field is malformed.
    """
    match = _STATION_PATTERN.match(line.rstrip("\r\n"))
    if match is None:
        raise DwdDecodeError(
            "Station line does not match the fixed-width layout "
            "(id 5, dates 8+8, elevation 14, latitude 11, longitude 9, name 40, region)."
        )
    columns = {name: value.strip() for name, value in match.groupdict().items()}
    return StationRecord(
        station_id=normalize_station_id(columns["station_id"]),
        valid_from=_parse_optional_date(columns["valid_from"], "valid_from"),
        valid_to=_parse_optional_date(columns["valid_to"], "valid_to"),
        elevation=_parse_optional_number(columns["elevation"], "elevation"),
        latitude=_parse_optional_number(columns["latitude"], "latitude"),
        longitude=_parse_optional_number(columns["longitude"], "longitude"),
        name=columns["name"] or None,
        region=columns["region"] or None,
    )


def parse_measurement_line(line: str) -> MeasurementRecord:
    """Decode one semicolon-separated measurement line.

    Args:
        line: Raw line from an archive entry.

    Returns:
        Decoded measurement record.

    Raises:
        DwdDecodeError: If the line has too few fields or a field is malformed.
    """
    fields = [field.strip() for field in line.split(MEASUREMENT_FIELD_SEPARATOR)]
    if len(fields) < MEASUREMENT_MIN_FIELDS:
        raise DwdDecodeError(
            f"Measurement line has {len(fields)} fields, expected at least "
            f"{MEASUREMENT_MIN_FIELDS}."
        )
    return MeasurementRecord(
        station_id=normalize_station_id(fields[0]),
        measured_at=_parse_timestamp(fields[1]),
        quality_level=_parse_quality_level(fields[2]),
        pressure=parse_reading(fields[3], "pressure"),
        air_temperature=parse_reading(fields[4], "air_temperature"),
        ground_temperature=parse_reading(fields[5], "ground_temperature"),
        relative_humidity=parse_reading(fields[6], "relative_humidity"),
        dew_point=parse_reading(fields[7], "dew_point"),
    )


def normalize_station_id(raw_value: str) -> str:
    """Left-pad a station code with zeros to five characters.

    Args:
        raw_value: Station code as found in the source, e.g. ``"1048"``.

    Returns:
        Five-character code, e.g. ``"01048"``.

    Raises:
        DwdDecodeError: If the code is blank or longer than five characters.
    """
    station_id = raw_value.strip()
    if not station_id or len(station_id) > STATION_ID_LENGTH:
        raise DwdDecodeError(
            f"Invalid station id '{raw_value}': expected 1 to {STATION_ID_LENGTH} characters."
        )
    return station_id.rjust(STATION_ID_LENGTH, "0")


def parse_reading(raw_value: str, field_name: str) -> float | None:
    """Parse an optional sensor reading.

    Blank values and the ``-999`` sentinel both mean "no reading".

    Args:
        raw_value: Trimmed field text.
        field_name: Field name for error messages.

    Returns:
        Parsed value, or None when the reading is missing.

    Raises:
        DwdDecodeError: If the value is not a plain decimal number.
    """
    if raw_value.strip() == MISSING_READING_SENTINEL:
        return None
    return _parse_optional_number(raw_value, field_name)


def _parse_optional_number(raw_value: str, field_name: str) -> float | None:
    value = raw_value.strip()
    if not value:
        return None
    if _NUMBER_PATTERN.fullmatch(value) is None:
        raise DwdDecodeError(f"Invalid {field_name} value '{raw_value}': expected a number.")
    return float(value)


def _parse_optional_date(raw_value: str, field_name: str) -> date | None:
    value = raw_value.strip()
    if not value:
        return None
    if len(value) != 8 or not value.isdigit():
        raise DwdDecodeError(f"Invalid {field_name} date '{raw_value}': expected YYYYMMDD.")
    try:
        return datetime.strptime(value, STATION_DATE_FORMAT).date()
    except ValueError as error:
        raise DwdDecodeError(
            f"Invalid {field_name} date '{raw_value}': expected YYYYMMDD."
        ) from error


def _parse_timestamp(raw_value: str) -> datetime:
    if len(raw_value) != 12 or not raw_value.isdigit():
        raise DwdDecodeError(f"Invalid timestamp '{raw_value}': expected YYYYMMDDHHmm.")
    try:
        return datetime.strptime(raw_value, MEASUREMENT_TIMESTAMP_FORMAT)
    except ValueError as error:
        raise DwdDecodeError(
            f"Invalid timestamp '{raw_value}': expected YYYYMMDDHHmm."
        ) from error


def _parse_quality_level(raw_value: str) -> int:
    if _INTEGER_PATTERN.fullmatch(raw_value) is None:
        raise DwdDecodeError(f"Invalid quality level '{raw_value}': expected an integer.")
    return int(raw_value)
