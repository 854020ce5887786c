"""Unit tests for logging utilities.

Tests the console filter and the batching logging setup.
"""
from __future__ import annotations

import logging
import logging.handlers

import pytest

from pcr_batching.logging_utils import ColoredFormatter, ConsoleFilter, setup_batching_logging


def _record(name, level, msg="message"):
    return logging.LogRecord(
        name=name,
        level=level,
        pathname="",
        lineno=0,
        msg=msg,
        args=(),
        exc_info=None,
    )


# ==============================================================================
# ConsoleFilter Tests
# ==============================================================================

@pytest.mark.unit
@pytest.mark.parametrize("level", [logging.WARNING, logging.ERROR, logging.CRITICAL])
def test_console_filter_allows_warnings_from_anywhere(level):
    assert ConsoleFilter().filter(_record("pcr_batching.clustering.graph", level)) is True


@pytest.mark.unit
@pytest.mark.parametrize("name", ["pcr_batching.batcher", "pcr_batching.reporting", "batch_pcr"])
def test_console_filter_allows_run_summaries(name):
    assert ConsoleFilter().filter(_record(name, logging.INFO)) is True


@pytest.mark.unit
def test_console_filter_hides_stage_details_by_default():
    record = _record("pcr_batching.clustering.graph", logging.INFO)
    assert ConsoleFilter().filter(record) is False
    assert ConsoleFilter(show_stage_details=True).filter(record) is True


@pytest.mark.unit
def test_console_filter_blocks_debug_and_unrelated_info():
    console_filter = ConsoleFilter(show_stage_details=True)
    assert console_filter.filter(_record("pcr_batching.batcher", logging.DEBUG)) is False
    assert console_filter.filter(_record("pandas", logging.INFO)) is False


@pytest.mark.unit
def test_colored_formatter_wraps_level_color():
    formatter = ColoredFormatter("%(message)s")
    formatted = formatter.format(_record("x", logging.WARNING, "careful"))
    assert formatted.startswith("\033[33m")
    assert formatted.endswith("\033[0m")
    assert "careful" in formatted


# ==============================================================================
# setup_batching_logging() Tests
# ==============================================================================

@pytest.mark.unit
def test_quiet_mode_only_writes_the_log_file(tmp_path, restore_root_logger):
    setup_batching_logging(quiet=True, log_dir=tmp_path)

    assert len(restore_root_logger.handlers) == 1
    assert isinstance(restore_root_logger.handlers[0], logging.handlers.RotatingFileHandler)
    assert (tmp_path / "batching.log").exists()


@pytest.mark.unit
def test_full_setup_adds_filtered_console(tmp_path, restore_root_logger):
    log_dir = tmp_path / "nested" / "logs"
    setup_batching_logging(verbose=True, log_dir=log_dir)

    console = [
        h for h in restore_root_logger.handlers
        if not isinstance(h, logging.handlers.RotatingFileHandler)
    ]
    assert len(console) == 1
    (console_filter,) = console[0].filters
    assert isinstance(console_filter, ConsoleFilter)
    assert console_filter.show_stage_details is True

    logging.getLogger("pcr_batching.clustering.graph").debug("merged 1 and 2")
    for handler in restore_root_logger.handlers:
        handler.flush()
    assert "merged 1 and 2" in (log_dir / "batching.log").read_text()
