"""Unit tests for measurement record filters."""

from __future__ import annotations

from datetime import datetime

import pytest

from core.errors import DwdConfigError
from core.types import MeasurementRecord
from transforms.record_filters import build_month_filter


def _measurement_at(measured_at: datetime) -> MeasurementRecord:
    return MeasurementRecord("01048", measured_at, 3, None, 18.5, None, None, None)


def test_build_month_filter_returns_none_without_months() -> None:
    """No months means no filtering."""
    assert build_month_filter(()) is None


def test_build_month_filter_matches_month_in_any_year() -> None:
    """Month filter should ignore the year."""
    predicate = build_month_filter([9])

    assert predicate is not None
    assert predicate(_measurement_at(datetime(1994, 9, 30, 23, 50)))
    assert predicate(_measurement_at(datetime(2021, 9, 1)))
    assert not predicate(_measurement_at(datetime(2021, 10, 1)))


def test_build_month_filter_rejects_invalid_month() -> None:
    """Months outside 1..12 should be rejected."""
    with pytest.raises(DwdConfigError):
        build_month_filter([0, 6])
