"""Load orchestration for station and measurement files.

This module drives a run through its stages: bootstrap the schema,
load the station file sequentially, then load every measurement
archive in a bounded pool of worker threads. Each worker owns one
archive at a time end to end: read, decode, chunk, deduplicate, merge.

The first fatal failure in any worker stops the whole run. Siblings
finish the merge they are executing, start nothing new, and the runner
raises ``DwdPipelineError`` naming the failing file and batch.
"""

from __future__ import annotations

import queue
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from contextlib import closing
from functools import partial
from pathlib import Path
from typing import Callable, Iterator, Sequence

from sqlalchemy.engine import Engine

from core.config import LoaderConfig
from core.constants import ARCHIVE_FILE_PATTERN, WORKER_THREAD_PREFIX
from core.errors import (
    DwdCancelledError,
    DwdError,
    DwdIngestError,
    DwdPipelineError,
    DwdStoreError,
)
from core.logging_config import get_logger
from core.types import (
    DecodeStats,
    FileLoadResult,
    LoadRecord,
    LoadStage,
    LoadSummary,
    RecordKind,
)
from ingest.batching import chunk_records
from ingest.input_reader import read_measurement_records, read_station_records
from ingest.remote_fetch import RemoteFetcher
from store.database import create_store_engine
from store.retry_policy import RetryPolicy
from store.schema import bootstrap_schema, truncate_tables
from store.upsert_writer import UpsertWriter
from transforms.batch_deduplication import deduplicate_batch
from transforms.record_filters import build_month_filter

_LOGGER = get_logger(__name__)


class LoadPipelineRunner:
    """Stateful runner for one bounded, run-to-completion load."""

    def __init__(
        self,
        config: LoaderConfig,
        engine: Engine | None = None,
        fetcher: RemoteFetcher | None = None,
        sleep: Callable[[float], object] | None = None,
    ) -> None:
        """Create a runner.

        Args:
            config: Runtime configuration.
            engine: Optional engine; when omitted one is created from config
                and disposed when the run ends.
            fetcher: Optional remote fetcher for an empty data directory.
            sleep: Sleep function used between retries; defaults to a wait that
                returns early when the run is cancelled.
        """
        self._config = config
        self._owns_engine = engine is None
        self._engine = engine if engine is not None else create_store_engine(config)
        self._cancel_event = threading.Event()
        self._retry_policy = RetryPolicy(
            config.retry,
            sleep=sleep if sleep is not None else self._cancel_event.wait,
            stop_event=self._cancel_event,
        )
        self._writer = UpsertWriter(self._engine)
        self._fetcher = fetcher if fetcher is not None else RemoteFetcher(config)
        self._measurement_filter = build_month_filter(config.measurement_months)
        self._failure_lock = threading.Lock()
        self._first_failure: DwdPipelineError | None = None
        self._stage: LoadStage | None = None

    @property
    def stage(self) -> LoadStage | None:
        """Most recently entered stage, or None before the run starts."""
        return self._stage

    def cancel(self) -> None:
        """Request cancellation; in-flight merges finish, no new batch starts."""
        self._cancel_event.set()

    def run(self) -> LoadSummary:
        """Execute all stages and return the run summary.

        Returns:
            Per-file results for the station file and every archive.

        Raises:
            DwdPipelineError: If a file failed fatally.
            DwdCancelledError: If cancellation was requested.
            DwdStoreError: If schema bootstrap failed.
            DwdConfigError: If the data directory is empty and cannot be fetched.
        """
        try:
            self._bootstrap()
            self._ensure_source_files()
            stations = self._load_stations()
            measurements = self._load_measurements()
            self._enter_stage("done")
        except DwdCancelledError:
            _LOGGER.warning("load_cancelled", stage=self._stage)
            raise
        except DwdError as error:
            _LOGGER.error("load_failed", stage=self._stage, error=str(error))
            raise
        finally:
            if self._owns_engine:
                self._engine.dispose()
        summary = LoadSummary(stations=stations, measurements=measurements)
        _log_load_completion(summary)
        return summary

    def _bootstrap(self) -> None:
        bootstrap_schema(self._engine, self._retry_policy)
        if self._config.truncate_before_load:
            truncate_tables(self._engine, self._retry_policy)
        self._enter_stage("bootstrapped")

    def _ensure_source_files(self) -> None:
        data_dir = self._config.data_dir
        if data_dir.is_dir() and any(path.is_file() for path in data_dir.iterdir()):
            return
        self._fetcher.fetch_all(data_dir)

    def _load_stations(self) -> FileLoadResult:
        self._enter_stage("loading_stations")
        station_path = self._config.station_file_path
        stats = DecodeStats()
        records = read_station_records(station_path, self._config.text_encoding, stats)
        return self._load_file(station_path, "station", records, stats)

    def _load_measurements(self) -> tuple[FileLoadResult, ...]:
        self._enter_stage("loading_measurements")
        archive_paths = sorted(self._config.data_dir.glob(ARCHIVE_FILE_PATTERN))
        if not archive_paths:
            _LOGGER.warning("no_archives_found", data_dir=str(self._config.data_dir))
            return ()
        pending: queue.SimpleQueue[Path] = queue.SimpleQueue()
        for archive_path in archive_paths:
            pending.put(archive_path)
        worker_count = min(self._config.max_workers, len(archive_paths))
        with ThreadPoolExecutor(
            max_workers=worker_count,
            thread_name_prefix=WORKER_THREAD_PREFIX,
        ) as executor:
            futures = [
                executor.submit(self._drain_archives, pending) for _ in range(worker_count)
            ]
            try:
                wait(futures)
            except KeyboardInterrupt:
                self.cancel()
                raise
        if self._first_failure is not None:
            raise self._first_failure
        for future in futures:
            error = future.exception()
            if error is not None and not isinstance(error, DwdCancelledError):
                raise error
        results: list[FileLoadResult] = []
        for future in futures:
            results.extend(future.result())
        return tuple(sorted(results, key=lambda result: result.source_path))

    def _drain_archives(self, pending: queue.SimpleQueue[Path]) -> list[FileLoadResult]:
        results: list[FileLoadResult] = []
        while not self._cancel_event.is_set():
            try:
                archive_path = pending.get_nowait()
            except queue.Empty:
                break
            try:
                results.append(self._load_archive(archive_path))
            except DwdCancelledError:
                raise
            except DwdPipelineError as error:
                self._record_failure(error)
                raise
            except Exception as error:
                failure = DwdPipelineError(
                    _pipeline_failure_message(archive_path, None, error),
                    source_path=archive_path,
                    batch_index=None,
                )
                self._record_failure(failure)
                raise failure from error
        if self._cancel_event.is_set() and self._first_failure is None:
            raise DwdCancelledError("Load cancelled before all archives were processed.")
        return results

    def _load_archive(self, archive_path: Path) -> FileLoadResult:
        stats = DecodeStats()
        records = read_measurement_records(
            archive_path,
            self._config.text_encoding,
            stats,
            self._measurement_filter,
        )
        return self._load_file(archive_path, "measurement", records, stats)

    def _load_file(
        self,
        source_path: Path,
        kind: RecordKind,
        records: Iterator[LoadRecord],
        stats: DecodeStats,
    ) -> FileLoadResult:
        records_read = 0
        records_written = 0
        duplicates_dropped = 0
        batch_index = 0
        try:
            with closing(chunk_records(records, self._config.batch_size)) as batches:
                for batch in batches:
                    self._raise_if_cancelled()
                    unique_records = deduplicate_batch(batch)
                    records_written += self._write_batch(
                        source_path, kind, batch_index, unique_records
                    )
                    records_read += len(batch)
                    duplicates_dropped += len(batch) - len(unique_records)
                    batch_index += 1
        except DwdCancelledError:
            raise
        except DwdError as error:
            if _is_interrupted_retry(error, self._cancel_event):
                raise DwdCancelledError(
                    f"Load cancelled while retrying batch {batch_index} of {source_path}."
                ) from error
            failed_batch = None if isinstance(error, DwdIngestError) else batch_index
            raise DwdPipelineError(
                _pipeline_failure_message(source_path, failed_batch, error),
                source_path=source_path,
                batch_index=failed_batch,
            ) from error
        finally:
            _close_if_generator(records)
        result = FileLoadResult(
            source_path=source_path,
            records_read=records_read,
            records_written=records_written,
            duplicates_dropped=duplicates_dropped,
            lines_skipped=stats.lines_skipped,
            records_filtered=stats.records_filtered,
            batches_written=batch_index,
        )
        _log_file_completion(kind, result)
        return result

    def _write_batch(
        self,
        source_path: Path,
        kind: RecordKind,
        batch_index: int,
        records: Sequence[LoadRecord],
    ) -> int:
        operation = partial(self._writer.write_batch, kind, records)
        description = f"merge_{kind}:{source_path.name}#{batch_index}"
        written = self._retry_policy.call(operation, description)
        _LOGGER.info(
            "batch_written",
            source_path=str(source_path),
            kind=kind,
            batch_index=batch_index,
            record_count=written,
        )
        return written

    def _raise_if_cancelled(self) -> None:
        if self._cancel_event.is_set():
            raise DwdCancelledError("Load cancelled; no further batches are started.")

    def _record_failure(self, error: DwdPipelineError) -> None:
        with self._failure_lock:
            if self._first_failure is None:
                self._first_failure = error
        self._cancel_event.set()

    def _enter_stage(self, stage: LoadStage) -> None:
        self._stage = stage
        _LOGGER.info("load_stage_entered", stage=stage)


def load_all(config: LoaderConfig) -> LoadSummary:
    """Run a complete load with a fresh engine.

    Args:
        config: Runtime configuration.

    Returns:
        Run summary.

    Raises:
        DwdError: If any stage fails or the run is cancelled.
    """
    runner = LoadPipelineRunner(config)
    return runner.run()


def bootstrap_store(config: LoaderConfig) -> None:
    """Create the destination schema without loading data.

    Args:
        config: Runtime configuration.

    Raises:
        DwdStoreError: If DDL fails.
    """
    engine = create_store_engine(config)
    try:
        bootstrap_schema(engine, RetryPolicy(config.retry))
    finally:
        engine.dispose()


def fetch_sources(config: LoaderConfig, fetcher: RemoteFetcher | None = None) -> list[Path]:
    """Download source files into the data directory from the remote URI.

    Args:
        config: Runtime configuration.
        fetcher: Optional fetcher, used by tests.

    Returns:
        Downloaded file paths.

    Raises:
        DwdConfigError: If no remote URI is configured.
        DwdIngestError: If listing or downloading fails.
    """
    active_fetcher = fetcher if fetcher is not None else RemoteFetcher(config)
    return active_fetcher.fetch_all(config.data_dir)


def _is_interrupted_retry(error: DwdError, cancel_event: threading.Event) -> bool:
    return isinstance(error, DwdStoreError) and error.transient and cancel_event.is_set()


def _close_if_generator(records: Iterator[LoadRecord]) -> None:
    close = getattr(records, "close", None)
    if callable(close):
        close()


def _pipeline_failure_message(
    source_path: Path,
    batch_index: int | None,
    error: Exception,
) -> str:
    location = f"{source_path}" if batch_index is None else f"{source_path} batch {batch_index}"
    return f"Load aborted while processing {location}: {error}"


def _log_file_completion(kind: RecordKind, result: FileLoadResult) -> None:
    _LOGGER.info(
        "file_loaded",
        kind=kind,
        source_path=str(result.source_path),
        records_read=result.records_read,
        records_written=result.records_written,
        duplicates_dropped=result.duplicates_dropped,
        lines_skipped=result.lines_skipped,
        records_filtered=result.records_filtered,
        batches_written=result.batches_written,
    )


def _log_load_completion(summary: LoadSummary) -> None:
    _LOGGER.info(
        "load_completed",
        station_count=summary.stations.records_written,
        archive_count=len(summary.measurements),
        records_written=summary.records_written,
        lines_skipped=summary.stations.lines_skipped
        + sum(result.lines_skipped for result in summary.measurements),
    )
