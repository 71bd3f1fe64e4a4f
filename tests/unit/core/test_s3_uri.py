"""Unit tests for S3 URI parsing."""

from __future__ import annotations

import pytest

from core.errors import DwdConfigError
from core.s3_uri import S3Location, parse_s3_uri


def test_parse_s3_uri_normalizes_prefix() -> None:
    """Prefix should end with a single slash."""
    assert parse_s3_uri("s3://dwd-mirror/ten_minutes/air_temperature") == S3Location(
        bucket="dwd-mirror",
        prefix="ten_minutes/air_temperature/",
    )


def test_parse_s3_uri_rejects_other_schemes() -> None:
    """Only s3:// URIs are supported."""
    with pytest.raises(DwdConfigError):
        parse_s3_uri("https://opendata.dwd.de/climate")
