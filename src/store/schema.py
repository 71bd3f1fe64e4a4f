"""Destination table definitions and schema bootstrap.

This module declares the station and measurement tables and creates
them idempotently: existing tables and indexes are left untouched.
"""

from __future__ import annotations

from sqlalchemy import (
    CHAR,
    REAL,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
)
from sqlalchemy.engine import Engine

from core.constants import MEASUREMENT_TABLE_NAME, STATION_ID_LENGTH, STATION_TABLE_NAME
from core.logging_config import get_logger
from store.retry_policy import RetryPolicy

_LOGGER = get_logger(__name__)

METADATA = MetaData()

STATION_TABLE = Table(
    STATION_TABLE_NAME,
    METADATA,
    Column("station_id", CHAR(STATION_ID_LENGTH), nullable=False),
    Column("valid_from", Date, nullable=True),
    Column("valid_to", Date, nullable=True),
    Column("elevation", REAL, nullable=True),
    Column("latitude", REAL, nullable=True),
    Column("longitude", REAL, nullable=True),
    Column("name", String(255), nullable=True),
    Column("region", String(255), nullable=True),
    PrimaryKeyConstraint("station_id", name="pk_station"),
)

MEASUREMENT_TABLE = Table(
    MEASUREMENT_TABLE_NAME,
    METADATA,
    Column("station_id", CHAR(STATION_ID_LENGTH), nullable=False),
    Column("measured_at", DateTime, nullable=False),
    Column("quality_level", Integer, nullable=False),
    Column("pressure", REAL, nullable=True),
    Column("air_temperature", REAL, nullable=True),
    Column("ground_temperature", REAL, nullable=True),
    Column("relative_humidity", REAL, nullable=True),
    Column("dew_point", REAL, nullable=True),
    PrimaryKeyConstraint("station_id", "measured_at", name="pk_measurement"),
    Index("ix_measurement_measured_at", "measured_at"),
)


def bootstrap_schema(engine: Engine, retry_policy: RetryPolicy) -> None:
    """Create destination tables and indexes when they do not exist.

    Args:
        engine: Destination store engine.
        retry_policy: Policy guarding the DDL against transient faults.

    Raises:
        DwdStoreError: If DDL fails fatally or retries are exhausted.
    """

    def _create_all() -> None:
        with engine.begin() as connection:
            METADATA.create_all(connection, checkfirst=True)

    retry_policy.call(_create_all, "bootstrap_schema")
    _LOGGER.info(
        "schema_bootstrapped",
        dialect=engine.dialect.name,
        tables=sorted(METADATA.tables),
    )


def truncate_tables(engine: Engine, retry_policy: RetryPolicy) -> None:
    """Delete every row from the destination tables.

    Args:
        engine: Destination store engine.
        retry_policy: Policy guarding the statements against transient faults.

    Raises:
        DwdStoreError: If the delete fails fatally or retries are exhausted.
    """

    def _delete_all() -> None:
        with engine.begin() as connection:
            connection.execute(MEASUREMENT_TABLE.delete())
            connection.execute(STATION_TABLE.delete())

    retry_policy.call(_delete_all, "truncate_tables")
    _LOGGER.info("tables_truncated", dialect=engine.dialect.name)
