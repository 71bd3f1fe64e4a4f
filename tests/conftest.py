"""Pytest configuration for repository test runs."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


def pytest_sessionstart() -> None:
    """Add src directory to sys.path for test imports."""
    project_root = Path(__file__).resolve().parent.parent
    src_path = project_root / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))


@pytest.fixture
def loader_config(tmp_path: Path):
    """Config pointing at a file-backed SQLite store and an empty data dir."""
    from core.config import LoaderConfig, RetryOptions

    return LoaderConfig(
        database_url=f"sqlite:///{tmp_path / 'dwd.sqlite'}",
        data_dir=tmp_path / "data",
        max_workers=3,
        batch_size=100,
        retry=RetryOptions(max_attempts=5, base_delay_seconds=1.0, max_delay_seconds=20.0),
    )


@pytest.fixture
def store_engine(loader_config):
    """Engine with the destination schema already created."""
    from store.database import create_store_engine
    from store.retry_policy import RetryPolicy
    from store.schema import bootstrap_schema

    engine = create_store_engine(loader_config)
    bootstrap_schema(engine, RetryPolicy(loader_config.retry))
    yield engine
    engine.dispose()
