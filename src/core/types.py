"""Shared typed models.

This module defines the record, batch and result models used by the
ingest, transform and store layers to keep interfaces explicit.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Literal, NamedTuple, Union

RecordKind = Literal["station", "measurement"]
LoadStage = Literal["bootstrapped", "loading_stations", "loading_measurements", "done"]


@dataclass(frozen=True)
class StationRecord:
    """One station description row.

    Attributes:
        station_id: Five-character zero-padded station code.
        valid_from: First day the description applies, if known.
        valid_to: Last day the description applies, if known.
        elevation: Station height above sea level in meters.
        latitude: Geographic latitude in degrees.
        longitude: Geographic longitude in degrees.
        name: Station display name.
        region: Federal state the station belongs to.
    """

    station_id: str
    valid_from: date | None
    valid_to: date | None
    elevation: float | None
    latitude: float | None
    longitude: float | None
    name: str | None
    region: str | None


@dataclass(frozen=True)
class MeasurementRecord:
    """One ten-minute air temperature measurement row.

    Attributes:
        station_id: Five-character zero-padded station code.
        measured_at: Measurement timestamp at minute resolution.
        quality_level: Source quality flag.
        pressure: Air pressure at station height (hPa).
        air_temperature: Air temperature 2m above ground (degrees C).
        ground_temperature: Air temperature 5cm above ground (degrees C).
        relative_humidity: Relative humidity (percent).
        dew_point: Dew point temperature (degrees C).
    """

    station_id: str
    measured_at: datetime
    quality_level: int
    pressure: float | None
    air_temperature: float | None
    ground_temperature: float | None
    relative_humidity: float | None
    dew_point: float | None


LoadRecord = Union[StationRecord, MeasurementRecord]


class SourceLine(NamedTuple):
    """One non-empty source line with its one-based physical line number."""

    line_number: int
    text: str


@dataclass
class DecodeStats:
    """Mutable per-file decode counters, owned by a single worker."""

    lines_read: int = 0
    lines_skipped: int = 0
    records_filtered: int = 0


@dataclass(frozen=True)
class FileLoadResult:
    """Outcome of loading one source file.

    Attributes:
        source_path: Loaded file.
        records_read: Records decoded and accepted by the predicate.
        records_written: Records submitted to the store after deduplication.
        duplicates_dropped: Records dropped as in-batch duplicates.
        lines_skipped: Lines skipped because they failed to decode.
        records_filtered: Decoded records rejected by the predicate.
        batches_written: Number of batches merged into the store.
    """

    source_path: Path
    records_read: int
    records_written: int
    duplicates_dropped: int
    lines_skipped: int
    records_filtered: int
    batches_written: int


@dataclass(frozen=True)
class LoadSummary:
    """Outcome of a completed load run."""

    stations: FileLoadResult
    measurements: tuple[FileLoadResult, ...]
    final_stage: LoadStage = "done"

    @property
    def records_written(self) -> int:
        """Total records submitted across stations and measurements."""
        measurement_count = sum(result.records_written for result in self.measurements)
        return self.stations.records_written + measurement_count
