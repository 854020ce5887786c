"""Shared pytest configuration and fixtures for the test suite.

This module centralizes:
- Path setup (eliminates sys.path hacks in individual test files)
- Pytest markers for test categorization (unit, property)
- Operation fixtures shared by the clustering and batching tests
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest


# ==============================================================================
# Path Setup - Ensures pcr_batching/ and scripts/ are importable
# ==============================================================================

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from pcr_batching.config import BatcherSettings, extension_stage  # noqa: E402
from pcr_batching.models import PcrOperation  # noqa: E402


# ==============================================================================
# Pytest Configuration
# ==============================================================================

def pytest_configure(config):
    """Register custom markers for test categorization."""
    config.addinivalue_line(
        "markers",
        "unit: Fast tests with no I/O",
    )
    config.addinivalue_line(
        "markers",
        "property: Hypothesis property-based tests",
    )


# ==============================================================================
# Operation Fixtures
# ==============================================================================

# Intended groupings by sight: (extension_time, anneal_temp, unique_id)
SCENARIO_GROUPS = [
    [(60, 69, 1), (60, 72, 2), (62, 80, 3)],
    [(370, 69, 4), (362, 72, 5), (340, 72, 6), (352, 80, 7)],
    [(770, 69, 8), (762, 72, 9), (740, 72, 10), (752, 80, 11)],
    # 12 sits next to group 3 by extension time, but its anneal temp is far
    # outside group 3's gradient.
    [(770, 40, 12), (500, 41, 13)],
]


def make_ops(rows):
    return [PcrOperation(extension_time=e, anneal_temp=t, unique_id=i) for e, t, i in rows]


@pytest.fixture
def scenario_rows():
    """``(extension_time, anneal_temp, unique_id)`` for the 13 scenario reactions."""
    return [row for group in SCENARIO_GROUPS for row in group]


@pytest.fixture
def scenario_operations():
    """13 reactions that should land in exactly four thermocycler groups."""
    return make_ops([row for group in SCENARIO_GROUPS for row in group])


@pytest.fixture
def scenario_groups():
    return sorted(sorted(i for _, _, i in group) for group in SCENARIO_GROUPS)


@pytest.fixture
def default_settings():
    return BatcherSettings()


@pytest.fixture
def extension_settings(default_settings):
    return extension_stage(default_settings)


# ==============================================================================
# Logging Fixtures
# ==============================================================================

@pytest.fixture
def restore_root_logger():
    """Put the root logger's handlers back after a test reconfigures logging."""
    root_logger = logging.getLogger()
    handlers = root_logger.handlers[:]
    level = root_logger.level
    yield root_logger
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(level)
