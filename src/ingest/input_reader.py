"""Lazy record streams over station files and measurement archives.

This module joins line sources with the record parser. A line that
fails to decode is logged and skipped so one bad row never aborts a
multi-gigabyte archive; skips are counted in ``DecodeStats``.
"""

from __future__ import annotations

from contextlib import closing
from pathlib import Path
from typing import Callable, Generator, Iterator

from core.errors import DwdDecodeError
from core.logging_config import get_logger
from core.types import (
    DecodeStats,
    LoadRecord,
    MeasurementRecord,
    RecordKind,
    SourceLine,
    StationRecord,
)
from ingest.line_source import archive_lines, station_lines
from ingest.record_parser import parse_line

_LOGGER = get_logger(__name__)

MeasurementPredicate = Callable[[MeasurementRecord], bool]


def read_station_records(
    station_path: Path,
    encoding: str,
    stats: DecodeStats,
) -> Iterator[StationRecord]:
    """Stream decoded station records from the station description file.

    Args:
        station_path: Fixed-width station description file.
        encoding: Text encoding of the file.
        stats: Counters updated while the stream is consumed.

    Yields:
        Decoded station records in file order.

    Raises:
        DwdIngestError: If the file cannot be read.
    """
    lines = station_lines(station_path, encoding)
    with closing(_decode_lines(lines, "station", station_path, stats)) as records:
        for record in records:
            yield _expect_station(record)


def read_measurement_records(
    archive_path: Path,
    encoding: str,
    stats: DecodeStats,
    predicate: MeasurementPredicate | None = None,
) -> Iterator[MeasurementRecord]:
    """Stream decoded measurement records from one archive.

    Args:
        archive_path: Zip archive holding one delimited-text entry.
        encoding: Text encoding of the entry.
        stats: Counters updated while the stream is consumed.
        predicate: Optional filter; rejected records are counted, not yielded.

    Yields:
        Decoded measurement records in file order.

    Raises:
        DwdIngestError: If the archive cannot be read.
    """
    lines = archive_lines(archive_path, encoding)
    with closing(_decode_lines(lines, "measurement", archive_path, stats)) as records:
        for record in records:
            measurement = _expect_measurement(record)
            if predicate is not None and not predicate(measurement):
                stats.records_filtered += 1
                continue
            yield measurement


def _decode_lines(
    lines: Generator[SourceLine, None, None],
    kind: RecordKind,
    source_path: Path,
    stats: DecodeStats,
) -> Generator[LoadRecord, None, None]:
    with closing(lines):
        for line in lines:
            stats.lines_read += 1
            try:
                record = parse_line(line.text, kind)
            except DwdDecodeError as error:
                stats.lines_skipped += 1
                _LOGGER.warning(
                    "line_skipped",
                    source_path=str(source_path),
                    line_number=line.line_number,
                    kind=kind,
                    reason=str(error),
                )
                continue
            yield record


def _expect_station(record: LoadRecord) -> StationRecord:
    if not isinstance(record, StationRecord):
        raise TypeError(f"Expected StationRecord, got {type(record).__name__}")
    return record


def _expect_measurement(record: LoadRecord) -> MeasurementRecord:
    if not isinstance(record, MeasurementRecord):
        raise TypeError(f"Expected MeasurementRecord, got {type(record).__name__}")
    return record
