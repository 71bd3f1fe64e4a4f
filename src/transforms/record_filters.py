"""Record predicates applied before batching.

This module builds optional domain filters for measurement streams.
"""

from __future__ import annotations

from typing import Callable, Iterable

from core.errors import DwdConfigError
from core.types import MeasurementRecord


def build_month_filter(
    months: Iterable[int],
) -> Callable[[MeasurementRecord], bool] | None:
    """Build a predicate keeping measurements taken in the given months.

    The month is matched independently of the year, so ``[9]`` keeps every
    September in the archive.

    Args:
        months: Calendar months from 1 to 12. Empty means no filtering.

    Returns:
        Predicate, or None when no month restriction applies.

    Raises:
        DwdConfigError: If a month is outside 1..12.
    """
    allowed_months = frozenset(months)
    if not allowed_months:
        return None
    invalid_months = sorted(month for month in allowed_months if not 1 <= month <= 12)
    if invalid_months:
        raise DwdConfigError(
            f"Invalid measurement months {invalid_months}: expected values from 1 to 12."
        )

    def _in_months(record: MeasurementRecord) -> bool:
        return record.measured_at.month in allowed_months

    return _in_months
