"""Unit tests for CLI command handling."""

from __future__ import annotations

import pytest

from cli.main import EXIT_CANCELLED, EXIT_FAILURE, build_parser, main
from core.errors import DwdCancelledError
from ingest.pipeline import LoadPipelineRunner
from tests.archive_builders import measurement_row, prepare_data_dir, write_measurement_archive


@pytest.fixture(autouse=True)
def _clear_loader_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("DWD_REMOTE_URI", "DWD_MEASUREMENT_MONTHS", "DWD_TRUNCATE"):
        monkeypatch.delenv(name, raising=False)


def _global_args(tmp_path) -> list[str]:
    return [
        "--data-dir",
        str(tmp_path / "data"),
        "--database-url",
        f"sqlite:///{tmp_path / 'dwd.sqlite'}",
    ]


def test_cli_load_prints_one_summary_line_per_file(tmp_path, capsys) -> None:
    """CLI load should print tab-separated results for every loaded file."""
    data_dir = prepare_data_dir(tmp_path / "data")
    write_measurement_archive(data_dir / "a.zip", [measurement_row("1048", "202109010000")])

    exit_code = main([*_global_args(tmp_path), "load", "--max-workers", "2"])
    lines = capsys.readouterr().out.strip().splitlines()

    assert exit_code == 0
    assert [line.split("\t")[:3] for line in lines] == [
        ["station", "zehn_min_tu_Beschreibung_Stationen.txt", "3"],
        ["measurement", "a.zip", "1"],
    ]


def test_cli_bootstrap_creates_schema(tmp_path, capsys) -> None:
    """CLI bootstrap should create the database file and report success."""
    exit_code = main([*_global_args(tmp_path), "bootstrap"])

    assert exit_code == 0 and capsys.readouterr().out.strip() == "schema ready"
    assert (tmp_path / "dwd.sqlite").exists()


def test_cli_load_without_sources_returns_failure(tmp_path, capsys) -> None:
    """CLI should report config errors on stderr with exit code 1."""
    exit_code = main([*_global_args(tmp_path), "load"])

    assert exit_code == EXIT_FAILURE
    assert "DWD_REMOTE_URI" in capsys.readouterr().err


def test_cli_fetch_requires_remote_uri(tmp_path) -> None:
    """CLI fetch should fail without a remote source."""
    assert main([*_global_args(tmp_path), "fetch"]) == EXIT_FAILURE


def test_cli_load_returns_cancelled_exit_code(
    tmp_path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Cancelled runs should exit with 130."""

    def _cancelled_run(self):
        raise DwdCancelledError("Load cancelled")

    monkeypatch.setattr(LoadPipelineRunner, "run", _cancelled_run)

    assert main([*_global_args(tmp_path), "load"]) == EXIT_CANCELLED


def test_parser_rejects_month_out_of_range() -> None:
    """Month flags should be limited to calendar months."""
    with pytest.raises(SystemExit):
        build_parser().parse_args(["load", "--month", "13"])
