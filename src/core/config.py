"""Runtime configuration model for dwd-loader.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Mapping

from core.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_DATA_DIR,
    DEFAULT_DATABASE_URL,
    DEFAULT_MAX_WORKERS,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_BASE_DELAY_SECONDS,
    DEFAULT_RETRY_MAX_DELAY_SECONDS,
    DEFAULT_STATION_FILE_NAME,
    DEFAULT_TEXT_ENCODING,
)
from core.errors import DwdConfigError

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off", "")


@dataclass(frozen=True)
class RetryOptions:
    """Retry policy parameters for store operations.

    Attributes:
        max_attempts: Total attempts including the first one.
        base_delay_seconds: Delay before the first retry; doubles per attempt.
        max_delay_seconds: Upper bound for any single delay.
    """

    max_attempts: int = DEFAULT_RETRY_ATTEMPTS
    base_delay_seconds: float = DEFAULT_RETRY_BASE_DELAY_SECONDS
    max_delay_seconds: float = DEFAULT_RETRY_MAX_DELAY_SECONDS

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise DwdConfigError(
                f"Invalid retry attempts {self.max_attempts}: expected at least 1."
            )
        if self.base_delay_seconds < 0 or self.max_delay_seconds < 0:
            raise DwdConfigError(
                "Invalid retry delays: base and max delay must not be negative."
            )


@dataclass(frozen=True)
class LoaderConfig:
    """Validated runtime configuration.

    Attributes:
        database_url: SQLAlchemy URL of the destination store.
        data_dir: Local directory holding the station file and archives.
        station_file_name: File name of the station description file.
        max_workers: Maximum number of archive files processed concurrently.
        batch_size: Records per write batch.
        retry: Retry policy parameters.
        measurement_months: Calendar months to keep; empty keeps all.
        remote_uri: Optional ``s3://`` prefix used to populate an empty data dir.
        s3_region: Optional AWS region for the remote source.
        s3_profile: Optional AWS profile for boto3 session initialization.
        s3_endpoint_url: Optional endpoint for S3-compatible mirrors.
        isolation_level: Optional transaction isolation level for writes.
        text_encoding: Encoding of station files and archive entries.
        truncate_before_load: Empty both tables before loading.
    """

    database_url: str = DEFAULT_DATABASE_URL
    data_dir: Path = DEFAULT_DATA_DIR
    station_file_name: str = DEFAULT_STATION_FILE_NAME
    max_workers: int = DEFAULT_MAX_WORKERS
    batch_size: int = DEFAULT_BATCH_SIZE
    retry: RetryOptions = field(default_factory=RetryOptions)
    measurement_months: tuple[int, ...] = ()
    remote_uri: str | None = None
    s3_region: str | None = None
    s3_profile: str | None = None
    s3_endpoint_url: str | None = None
    isolation_level: str | None = None
    text_encoding: str = DEFAULT_TEXT_ENCODING
    truncate_before_load: bool = False

    def __post_init__(self) -> None:
        _require_positive("max_workers", self.max_workers)
        _require_positive("batch_size", self.batch_size)
        for month in self.measurement_months:
            if not 1 <= month <= 12:
                raise DwdConfigError(
                    f"Invalid measurement month {month}: expected a value from 1 to 12."
                )

    @property
    def station_file_path(self) -> Path:
        """Full path of the station description file."""
        return self.data_dir / self.station_file_name

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "LoaderConfig":
        """Build config from process environment variables.

        Args:
            environ: Optional mapping used instead of ``os.environ``.

        Returns:
            A validated config object.

        Raises:
            DwdConfigError: If environment values are invalid.
        """
        env = os.environ if environ is None else environ
        retry = RetryOptions(
            max_attempts=_parse_int(env, "DWD_RETRY_ATTEMPTS", DEFAULT_RETRY_ATTEMPTS),
            base_delay_seconds=_parse_float(
                env, "DWD_RETRY_BASE_DELAY", DEFAULT_RETRY_BASE_DELAY_SECONDS
            ),
            max_delay_seconds=_parse_float(
                env, "DWD_RETRY_MAX_DELAY", DEFAULT_RETRY_MAX_DELAY_SECONDS
            ),
        )
        return cls(
            database_url=env.get("DWD_DATABASE_URL", DEFAULT_DATABASE_URL),
            data_dir=Path(env.get("DWD_DATA_DIR", str(DEFAULT_DATA_DIR))).expanduser().resolve(),
            station_file_name=env.get("DWD_STATION_FILE", DEFAULT_STATION_FILE_NAME),
            max_workers=_parse_int(env, "DWD_MAX_WORKERS", DEFAULT_MAX_WORKERS),
            batch_size=_parse_int(env, "DWD_BATCH_SIZE", DEFAULT_BATCH_SIZE),
            retry=retry,
            measurement_months=parse_months(env.get("DWD_MEASUREMENT_MONTHS", "")),
            remote_uri=env.get("DWD_REMOTE_URI") or None,
            s3_region=env.get("DWD_S3_REGION") or None,
            s3_profile=env.get("DWD_S3_PROFILE") or None,
            s3_endpoint_url=env.get("DWD_S3_ENDPOINT_URL") or None,
            isolation_level=env.get("DWD_ISOLATION_LEVEL") or None,
            text_encoding=env.get("DWD_TEXT_ENCODING", DEFAULT_TEXT_ENCODING),
            truncate_before_load=_parse_bool(env, "DWD_TRUNCATE"),
        )


def parse_months(raw_value: str) -> tuple[int, ...]:
    """Parse a comma-separated month list such as ``"6,7,8"``.

    Args:
        raw_value: Raw comma-separated text; blank means no filter.

    Returns:
        Sorted unique month numbers.

    Raises:
        DwdConfigError: If an entry is not an integer.
    """
    months: set[int] = set()
    for part in raw_value.split(","):
        if not part.strip():
            continue
        try:
            months.add(int(part))
        except ValueError as error:
            raise DwdConfigError(
                f"Invalid DWD_MEASUREMENT_MONTHS entry '{part.strip()}': expected integers "
                "from 1 to 12 separated by commas."
            ) from error
    return tuple(sorted(months))


def _parse_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw_value = env.get(name)
    if raw_value is None or not raw_value.strip():
        return default
    try:
        return int(raw_value)
    except ValueError as error:
        raise DwdConfigError(
            f"Invalid {name} value: expected integer, got '{raw_value}'. "
            f"Set {name} to a numeric value."
        ) from error


def _parse_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw_value = env.get(name)
    if raw_value is None or not raw_value.strip():
        return default
    try:
        return float(raw_value)
    except ValueError as error:
        raise DwdConfigError(
            f"Invalid {name} value: expected number of seconds, got '{raw_value}'."
        ) from error


def _parse_bool(env: Mapping[str, str], name: str) -> bool:
    raw_value = env.get(name, "").strip().lower()
    if raw_value in _TRUE_VALUES:
        return True
    if raw_value in _FALSE_VALUES:
        return False
    raise DwdConfigError(
        f"Invalid {name} value '{raw_value}': expected one of "
        f"{', '.join(_TRUE_VALUES + _FALSE_VALUES[:-1])}."
    )


def _require_positive(name: str, value: int) -> None:
    if value < 1:
        raise DwdConfigError(f"Invalid {name} {value}: expected a positive integer.")
