"""dwd-loader exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each subsystem raises a specific error type for debuggability.
"""

from __future__ import annotations

from pathlib import Path


class DwdError(Exception):
    """Base exception for all dwd-loader failures."""


class DwdConfigError(DwdError):
    """Raised for invalid runtime configuration."""


class DwdIngestError(DwdError):
    """Raised for source file reading and fetch failures."""


class DwdDecodeError(DwdIngestError):
    """Raised when one source line cannot be decoded into a record."""


class DwdStoreError(DwdError):
    """Raised for destination store failures.

    Attributes:
        attempts: Number of attempts made before giving up.
        transient: Whether the last failure was classified as transient.
    """

    def __init__(self, message: str, attempts: int = 1, transient: bool = False) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.transient = transient


class DwdDependencyError(DwdError):
    """Raised when an optional runtime dependency is missing."""


class DwdPipelineError(DwdError):
    """Raised when a load run aborts on a fatal file or batch failure.

    Attributes:
        source_path: File whose processing failed.
        batch_index: Zero-based batch index, or None if no batch was involved.
    """

    def __init__(self, message: str, source_path: Path, batch_index: int | None) -> None:
        super().__init__(message)
        self.source_path = source_path
        self.batch_index = batch_index


class DwdCancelledError(DwdError):
    """Raised when a load run stops because cancellation was requested."""
