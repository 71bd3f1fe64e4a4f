"""Set-based merge statements for the supported store dialects.

Each statement reads the whole batch from the single JSON bind
parameter ``:rows``, inserts keys that are absent and updates keys that
are present in one ``INSERT ... ON CONFLICT DO UPDATE`` statement.

``ON CONFLICT`` takes a row lock on every conflicting key, so two
merges touching the same key serialize on that row: whichever commits
second turns its insert into an update and its values win. Rows are
fed in key order so concurrent merges lock shared keys in the same
order.
"""

from __future__ import annotations

from typing import Sequence

from sqlalchemy import TextClause, text

from core.constants import MEASUREMENT_TABLE_NAME, MERGE_ROWS_PARAMETER, STATION_TABLE_NAME
from core.errors import DwdStoreError
from core.types import RecordKind
from store.record_payload import MEASUREMENT_COLUMNS, STATION_COLUMNS

_POSTGRES_COLUMN_TYPES = {
    "station_id": "char(5)",
    "valid_from": "date",
    "valid_to": "date",
    "elevation": "real",
    "latitude": "real",
    "longitude": "real",
    "name": "varchar(255)",
    "region": "varchar(255)",
    "measured_at": "timestamp",
    "quality_level": "integer",
    "pressure": "real",
    "air_temperature": "real",
    "ground_temperature": "real",
    "relative_humidity": "real",
    "dew_point": "real",
}
_MERGE_TARGETS: dict[RecordKind, tuple[str, tuple[str, ...], tuple[str, ...]]] = {
    "station": (STATION_TABLE_NAME, STATION_COLUMNS, ("station_id",)),
    "measurement": (MEASUREMENT_TABLE_NAME, MEASUREMENT_COLUMNS, ("station_id", "measured_at")),
}
SUPPORTED_DIALECTS = ("postgresql", "sqlite")


def build_merge_statement(dialect_name: str, kind: RecordKind) -> TextClause:
    """Build the merge statement for a dialect and record kind.

    Args:
        dialect_name: SQLAlchemy dialect name, e.g. ``"postgresql"``.
        kind: Record kind selecting the target table.

    Returns:
        Executable statement taking one ``rows`` JSON parameter.

    Raises:
        DwdStoreError: If the dialect has no merge implementation.
    """
    table_name, columns, key_columns = _MERGE_TARGETS[kind]
    if dialect_name == "postgresql":
        sql = _postgres_merge_sql(table_name, columns, key_columns)
    elif dialect_name == "sqlite":
        sql = _sqlite_merge_sql(table_name, columns, key_columns)
    else:
        raise DwdStoreError(
            f"Unsupported store dialect '{dialect_name}' for merge. "
            f"Supported dialects: {', '.join(SUPPORTED_DIALECTS)}."
        )
    return text(sql)


def _postgres_merge_sql(
    table_name: str,
    columns: Sequence[str],
    key_columns: Sequence[str],
) -> str:
    column_list = ", ".join(columns)
    select_list = ", ".join(f"r.{column}" for column in columns)
    record_shape = ", ".join(f"{column} {_POSTGRES_COLUMN_TYPES[column]}" for column in columns)
    order_list = ", ".join(f"r.{column}" for column in key_columns)
    return (
        f"INSERT INTO {table_name} ({column_list}) "
        f"SELECT {select_list} "
        f"FROM jsonb_to_recordset(CAST(:{MERGE_ROWS_PARAMETER} AS jsonb)) AS r({record_shape}) "
        f"ORDER BY {order_list} "
        f"{_on_conflict_clause(columns, key_columns, 'EXCLUDED')}"
    )


def _sqlite_merge_sql(
    table_name: str,
    columns: Sequence[str],
    key_columns: Sequence[str],
) -> str:
    column_list = ", ".join(columns)
    select_list = ", ".join(f"json_extract(value, '$.{column}')" for column in columns)
    order_list = ", ".join(f"json_extract(value, '$.{column}')" for column in key_columns)
    # "WHERE true" keeps SQLite from parsing ON CONFLICT as a join constraint.
    return (
        f"INSERT INTO {table_name} ({column_list}) "
        f"SELECT {select_list} "
        f"FROM json_each(:{MERGE_ROWS_PARAMETER}) WHERE true "
        f"ORDER BY {order_list} "
        f"{_on_conflict_clause(columns, key_columns, 'excluded')}"
    )


def _on_conflict_clause(
    columns: Sequence[str],
    key_columns: Sequence[str],
    excluded_alias: str,
) -> str:
    update_list = ", ".join(
        f"{column} = {excluded_alias}.{column}"
        for column in columns
        if column not in key_columns
    )
    key_list = ", ".join(key_columns)
    return f"ON CONFLICT ({key_list}) DO UPDATE SET {update_list}"
