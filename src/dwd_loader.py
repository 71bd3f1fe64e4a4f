"""Public import surface for dwd-loader.

This module provides a stable import path for library users.
It re-exports the runner, configuration and record models.
"""

from __future__ import annotations

from core.config import LoaderConfig, RetryOptions
from core.types import FileLoadResult, LoadSummary, MeasurementRecord, StationRecord
from ingest.pipeline import LoadPipelineRunner, bootstrap_store, fetch_sources, load_all
from ingest.record_parser import parse_measurement_line, parse_station_line
from store.retry_policy import RetryPolicy, is_transient_error
from store.upsert_writer import UpsertWriter
from transforms.batch_deduplication import deduplicate_batch

__all__ = [
    "FileLoadResult",
    "LoadPipelineRunner",
    "LoadSummary",
    "LoaderConfig",
    "MeasurementRecord",
    "RetryOptions",
    "RetryPolicy",
    "StationRecord",
    "UpsertWriter",
    "bootstrap_store",
    "deduplicate_batch",
    "fetch_sources",
    "is_transient_error",
    "load_all",
    "parse_measurement_line",
    "parse_station_line",
]
