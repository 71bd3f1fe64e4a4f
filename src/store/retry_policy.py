"""Retry policy for destination store operations.

This module classifies store failures as transient or fatal and
re-executes transient ones with bounded exponential backoff. Fatal
failures propagate on the first attempt.

Transient faults are lock and deadlock conflicts, serialization
failures, throttling or resource exhaustion, temporary unavailability
and failures while establishing a connection.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, TypeVar

from sqlalchemy.exc import DBAPIError, DisconnectionError, OperationalError, SQLAlchemyError
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    stop_when_event_set,
    wait_exponential,
)

from core.config import RetryOptions
from core.errors import DwdStoreError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)

ResultT = TypeVar("ResultT")

TRANSIENT_SQLSTATES = frozenset(
    {
        "40001",  # serialization_failure
        "40P01",  # deadlock_detected
        "55P03",  # lock_not_available
        "53000",  # insufficient_resources
        "53300",  # too_many_connections
        "57P01",  # admin_shutdown
        "57P02",  # crash_shutdown
        "57P03",  # cannot_connect_now
    }
)
CONNECTION_SQLSTATE_CLASS = "08"

# SQL Server / Azure SQL error numbers treated as transient by SqlClient.
TRANSIENT_SQLSERVER_CODES = frozenset(
    {
        1204,
        1205,
        1222,
        49918,
        49919,
        49920,
        4060,
        4221,
        40143,
        40613,
        40501,
        40540,
        40197,
        42108,
        42109,
        10929,
        10928,
        10060,
        997,
        233,
    }
)
_SQLITE_TRANSIENT_MESSAGES = (
    "database is locked",
    "database is busy",
    "database table is locked",
)


def is_transient_error(error: BaseException) -> bool:
    """Return whether a store failure is expected to succeed on retry.

    Args:
        error: Exception raised by a store operation.

    Returns:
        True for known recoverable faults, False for everything else.
    """
    if isinstance(error, DisconnectionError):
        return True
    if not isinstance(error, DBAPIError):
        return False
    if error.connection_invalidated:
        return True
    driver_error = error.orig
    sqlstate = _driver_sqlstate(driver_error)
    if sqlstate is not None:
        return sqlstate in TRANSIENT_SQLSTATES or sqlstate.startswith(CONNECTION_SQLSTATE_CLASS)
    error_number = _driver_error_number(driver_error)
    if error_number is not None:
        return error_number in TRANSIENT_SQLSERVER_CODES
    message = str(driver_error).lower()
    if any(fragment in message for fragment in _SQLITE_TRANSIENT_MESSAGES):
        return True
    if _is_sqlite_error(driver_error):
        return False
    # No server-side code at all: the failure happened while connecting.
    return isinstance(error, OperationalError)


class RetryPolicy:
    """Bounded exponential-backoff retry wrapper for store operations."""

    def __init__(
        self,
        options: RetryOptions,
        sleep: Callable[[float], object] = time.sleep,
        stop_event: threading.Event | None = None,
    ) -> None:
        """Create a retry policy.

        Args:
            options: Attempt count and delay bounds.
            sleep: Sleep function, replaceable in tests.
            stop_event: Optional event that ends retrying once set. The last
                failure is then raised without further attempts.
        """
        self._options = options
        self._sleep = sleep
        self._stop_event = stop_event

    @property
    def options(self) -> RetryOptions:
        """Retry parameters in effect."""
        return self._options

    def call(self, operation: Callable[[], ResultT], description: str) -> ResultT:
        """Run an operation, retrying transient failures.

        Args:
            operation: Zero-argument callable performing one store operation.
            description: Operation name used in logs and error messages.

        Returns:
            The operation result.

        Raises:
            DwdStoreError: If the failure is fatal or all attempts failed.
        """
        stop = stop_after_attempt(self._options.max_attempts)
        if self._stop_event is not None:
            stop = stop | stop_when_event_set(self._stop_event)
        retrying = Retrying(
            stop=stop,
            wait=wait_exponential(
                multiplier=self._options.base_delay_seconds,
                max=self._options.max_delay_seconds,
            ),
            retry=retry_if_exception(is_transient_error),
            sleep=self._sleep,
            before_sleep=_build_retry_logger(description, self._options.max_attempts),
            reraise=True,
        )
        try:
            return retrying(operation)
        except SQLAlchemyError as error:
            attempts = retrying.statistics.get("attempt_number", 1)
            transient = is_transient_error(error)
            raise DwdStoreError(
                _failure_message(description, attempts, transient, error),
                attempts=attempts,
                transient=transient,
            ) from error


def _build_retry_logger(
    description: str, max_attempts: int
) -> Callable[[RetryCallState], None]:
    def _log_retry(retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        error = outcome.exception() if outcome is not None else None
        next_action = retry_state.next_action
        _LOGGER.warning(
            "store_retry_scheduled",
            operation=description,
            attempt=retry_state.attempt_number,
            max_attempts=max_attempts,
            delay_seconds=next_action.sleep if next_action is not None else None,
            error=_short_error(error),
        )

    return _log_retry


def _failure_message(
    description: str,
    attempts: int,
    transient: bool,
    error: BaseException,
) -> str:
    if transient:
        return (
            f"Store operation '{description}' failed after {attempts} attempts with a "
            f"transient fault: {_short_error(error)}. Check store load and connectivity, "
            "then rerun; completed batches are safe to write again."
        )
    return (
        f"Store operation '{description}' failed with a non-retryable error: "
        f"{_short_error(error)}. Check the destination schema and data."
    )


def _driver_sqlstate(driver_error: object) -> str | None:
    for attribute in ("pgcode", "sqlstate"):
        value = getattr(driver_error, attribute, None)
        if isinstance(value, str) and value:
            return value
    return None


def _driver_error_number(driver_error: object) -> int | None:
    for attribute in ("number", "errno"):
        value = getattr(driver_error, attribute, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    args = getattr(driver_error, "args", ())
    if args and isinstance(args[0], int) and not isinstance(args[0], bool):
        return args[0]
    return None


def _is_sqlite_error(driver_error: object) -> bool:
    return type(driver_error).__module__.startswith("sqlite3")


def _short_error(error: BaseException | None) -> str | None:
    if error is None:
        return None
    if isinstance(error, DBAPIError):
        text = str(error.orig).strip()
        return text.splitlines()[0] if text else repr(error.orig)
    return str(error)
