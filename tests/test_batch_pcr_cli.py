"""Tests for scripts/batch_pcr.py - argument parsing, exit codes and output files."""
from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from scripts.batch_pcr import EXIT_BAD_INPUT, EXIT_OK, main, parse_args


@pytest.fixture
def reactions_csv(tmp_path, scenario_rows) -> Path:
    path = tmp_path / "reactions.csv"
    frame = pd.DataFrame(scenario_rows, columns=["extension_time", "anneal_temp", "unique_id"])
    frame.to_csv(path, index=False)
    return path


@pytest.mark.unit
def test_cli_defaults_leave_settings_to_config() -> None:
    args = parse_args(["reactions.csv"])
    assert args.input == Path("reactions.csv")
    assert args.output is None
    assert args.thermocycler_count is None
    assert args.max_ext_comb_diff is None
    # None lets PCR_CHECK_REP decide
    assert args.check_rep is None


@pytest.mark.unit
def test_cli_parses_hardware_flags() -> None:
    args = parse_args(
        ["r.csv", "--thermocycler-count", "2", "--temp-range", "10.5", "--check-rep", "--quiet"]
    )
    assert args.thermocycler_count == 2
    assert args.temp_range == 10.5
    assert args.check_rep is True
    assert args.quiet is True


@pytest.mark.unit
def test_cli_prints_grouping_and_writes_assignments(
    reactions_csv, tmp_path, capsys, monkeypatch, restore_root_logger
) -> None:
    monkeypatch.delenv("PCR_THERMOCYCLER_COUNT", raising=False)
    output = tmp_path / "out" / "assignments.csv"

    code = main([str(reactions_csv), "--output", str(output), "--check-rep", "--quiet",
                 "--log-dir", str(tmp_path / "logs")])

    assert code == EXIT_OK
    printed = capsys.readouterr().out
    assert printed.splitlines()[0] == "4 total clusters"
    frame = pd.read_csv(output)
    assert len(frame) == 13
    assert frame["thermocycler_group"].nunique() == 4


@pytest.mark.unit
def test_cli_missing_file_exits_with_bad_input(tmp_path, restore_root_logger) -> None:
    code = main([str(tmp_path / "missing.csv"), "--quiet", "--log-dir", str(tmp_path)])
    assert code == EXIT_BAD_INPUT


@pytest.mark.unit
def test_cli_bad_hardware_exits_with_bad_input(reactions_csv, tmp_path, restore_root_logger) -> None:
    code = main([str(reactions_csv), "--row-count", "0", "--quiet", "--log-dir", str(tmp_path)])
    assert code == EXIT_BAD_INPUT


@pytest.mark.unit
def test_cli_empty_csv_exits_with_bad_input(tmp_path, restore_root_logger) -> None:
    path = tmp_path / "empty.csv"
    path.write_text("extension_time,anneal_temp\n")
    code = main([str(path), "--quiet", "--log-dir", str(tmp_path)])
    assert code == EXIT_BAD_INPUT


@pytest.mark.unit
def test_cli_zero_byte_csv_exits_with_bad_input(tmp_path, restore_root_logger) -> None:
    path = tmp_path / "blank.csv"
    path.write_bytes(b"")
    code = main([str(path), "--quiet", "--log-dir", str(tmp_path)])
    assert code == EXIT_BAD_INPUT


@pytest.mark.unit
def test_cli_verbose_logs_stage_timings(reactions_csv, tmp_path, restore_root_logger) -> None:
    log_dir = tmp_path / "logs"
    code = main([str(reactions_csv), "--verbose", "--quiet", "--log-dir", str(log_dir)])

    assert code == EXIT_OK
    for handler in restore_root_logger.handlers:
        handler.flush()
    log_text = (log_dir / "batching.log").read_text()
    assert "PERFORMANCE REPORT: extension_clustering" in log_text
    assert "merge_loop" in log_text
