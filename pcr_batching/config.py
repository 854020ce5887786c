"""Configuration helpers for the gradient PCR batcher."""
from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from dotenv import load_dotenv

from pcr_batching.errors import ConfigurationError
from pcr_batching.models import PcrOperation, anneal_temp_of, extension_time_of

PROJECT_ROOT = Path(__file__).resolve().parents[1]
ENV_PATH = PROJECT_ROOT / ".env"

# Load environment variables early so downstream modules can rely on them.
load_dotenv(ENV_PATH, override=False)

THERMOCYCLER_COUNT_ENV = "PCR_THERMOCYCLER_COUNT"
ROW_COUNT_ENV = "PCR_ROW_COUNT"
COLUMN_COUNT_ENV = "PCR_COLUMN_COUNT"
TEMP_RANGE_ENV = "PCR_TEMP_RANGE"
MAND_EXT_COMB_DIFF_ENV = "PCR_MAND_EXT_COMB_DIFF"
MAX_EXT_COMB_DIFF_ENV = "PCR_MAX_EXT_COMB_DIFF"
MAND_TANNEAL_COMB_DIFF_ENV = "PCR_MAND_TANNEAL_COMB_DIFF"
MAX_TANNEAL_COMB_DIFF_ENV = "PCR_MAX_TANNEAL_COMB_DIFF"
CHECK_REP_ENV = "PCR_CHECK_REP"

# Settings that work well for the BIOFAB PCR workflow (4 gradient thermocyclers).
DEFAULT_THERMOCYCLER_COUNT = 4
DEFAULT_ROW_COUNT = 8
DEFAULT_COLUMN_COUNT = 12
DEFAULT_TEMP_RANGE = 17.0  # degrees C of gradient available in one thermocycler
DEFAULT_MAND_EXT_COMB_DIFF = 30.0
DEFAULT_MAX_EXT_COMB_DIFF = 300.0
DEFAULT_MAND_TANNEAL_COMB_DIFF = 0.3
DEFAULT_MAX_TANNEAL_COMB_DIFF = 3.0

AttributeGetter = Callable[[PcrOperation], float]


@dataclass(frozen=True)
class ThermocyclerSettings:
    """Physical layout of the available gradient thermocyclers."""

    thermocycler_count: int = DEFAULT_THERMOCYCLER_COUNT
    row_count: int = DEFAULT_ROW_COUNT
    column_count: int = DEFAULT_COLUMN_COUNT
    temp_range: float = DEFAULT_TEMP_RANGE

    def __post_init__(self) -> None:
        for name in ("thermocycler_count", "row_count", "column_count"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise ConfigurationError(f"{name} must be a positive integer; received {value!r}")
        if not _is_non_negative(self.temp_range):
            raise ConfigurationError(f"temp_range must be >= 0; received {self.temp_range!r}")

    @property
    def wells_per_thermocycler(self) -> int:
        return self.row_count * self.column_count


@dataclass(frozen=True)
class StageThresholds:
    """Distances that force or forbid a merge regardless of capacity."""

    forced_distance: float
    prevented_distance: float

    def __post_init__(self) -> None:
        if not _is_non_negative(self.forced_distance):
            raise ConfigurationError(
                f"forced_distance must be >= 0; received {self.forced_distance!r}"
            )
        if not _is_non_negative(self.prevented_distance):
            raise ConfigurationError(
                f"prevented_distance must be >= 0; received {self.prevented_distance!r}"
            )
        if self.forced_distance > self.prevented_distance:
            raise ConfigurationError(
                "forced_distance (%s) cannot exceed prevented_distance (%s)"
                % (self.forced_distance, self.prevented_distance)
            )


@dataclass(frozen=True)
class BatcherSettings:
    """Everything the two-stage batcher needs, resolved once before a run."""

    thermocycler: ThermocyclerSettings = field(default_factory=ThermocyclerSettings)
    extension: StageThresholds = field(
        default_factory=lambda: StageThresholds(DEFAULT_MAND_EXT_COMB_DIFF, DEFAULT_MAX_EXT_COMB_DIFF)
    )
    anneal: StageThresholds = field(
        default_factory=lambda: StageThresholds(
            DEFAULT_MAND_TANNEAL_COMB_DIFF, DEFAULT_MAX_TANNEAL_COMB_DIFF
        )
    )
    check_rep: bool = False


@dataclass(frozen=True)
class StageSettings:
    """Constraints for a single clustering stage.

    ``attribute`` is the value clustered on; ``other_attribute`` is the value
    whose combined spread must stay within ``range_limit``. A ``range_limit``
    of None disables the range rule.
    """

    name: str
    capacity_limit: int
    pair_size_cap: int
    forced_distance: float
    prevented_distance: float
    attribute: AttributeGetter
    other_attribute: AttributeGetter
    range_limit: Optional[float] = None

    def __post_init__(self) -> None:
        if self.capacity_limit < 1:
            raise ConfigurationError(
                f"{self.name}: capacity_limit must be >= 1; received {self.capacity_limit!r}"
            )
        if self.pair_size_cap < 1:
            raise ConfigurationError(
                f"{self.name}: pair_size_cap must be >= 1; received {self.pair_size_cap!r}"
            )
        if self.range_limit is not None and not _is_non_negative(self.range_limit):
            raise ConfigurationError(
                f"{self.name}: range_limit must be >= 0; received {self.range_limit!r}"
            )
        # Reuse the threshold validation.
        StageThresholds(self.forced_distance, self.prevented_distance)


def extension_stage(settings: BatcherSettings) -> StageSettings:
    """Stage 1: group by extension time, one group per thermocycler."""
    cycler = settings.thermocycler
    return StageSettings(
        name="extension",
        capacity_limit=cycler.thermocycler_count,
        pair_size_cap=cycler.wells_per_thermocycler,
        range_limit=cycler.temp_range,
        forced_distance=settings.extension.forced_distance,
        prevented_distance=settings.extension.prevented_distance,
        attribute=extension_time_of,
        other_attribute=anneal_temp_of,
    )


def anneal_stage(settings: BatcherSettings) -> StageSettings:
    """Stage 2: group one thermocycler's operations by annealing temperature, one per row."""
    cycler = settings.thermocycler
    return StageSettings(
        name="anneal",
        capacity_limit=cycler.row_count,
        pair_size_cap=cycler.column_count,
        range_limit=None,
        forced_distance=settings.anneal.forced_distance,
        prevented_distance=settings.anneal.prevented_distance,
        attribute=anneal_temp_of,
        other_attribute=extension_time_of,
    )


def _is_non_negative(value: Any) -> bool:
    try:
        return float(value) >= 0 and not math.isnan(float(value))
    except (TypeError, ValueError):
        return False


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    raw = _get_env(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer; received '{raw}'.") from exc


def _env_float(name: str, default: float) -> float:
    raw = _get_env(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number; received '{raw}'.") from exc


def _env_bool(name: str, default: bool) -> bool:
    raw = _get_env(name)
    if raw is None:
        return default
    lowered = raw.lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise ConfigurationError(f"{name} must be a boolean flag; received '{raw}'.")


def default_options() -> Dict[str, Any]:
    """Flat option names accepted by ``get_batcher_settings``, with env overrides applied."""
    return {
        "thermocycler_count": _env_int(THERMOCYCLER_COUNT_ENV, DEFAULT_THERMOCYCLER_COUNT),
        "row_count": _env_int(ROW_COUNT_ENV, DEFAULT_ROW_COUNT),
        "column_count": _env_int(COLUMN_COUNT_ENV, DEFAULT_COLUMN_COUNT),
        "temp_range": _env_float(TEMP_RANGE_ENV, DEFAULT_TEMP_RANGE),
        "mand_ext_comb_diff": _env_float(MAND_EXT_COMB_DIFF_ENV, DEFAULT_MAND_EXT_COMB_DIFF),
        "max_ext_comb_diff": _env_float(MAX_EXT_COMB_DIFF_ENV, DEFAULT_MAX_EXT_COMB_DIFF),
        "mand_tanneal_comb_diff": _env_float(
            MAND_TANNEAL_COMB_DIFF_ENV, DEFAULT_MAND_TANNEAL_COMB_DIFF
        ),
        "max_tanneal_comb_diff": _env_float(MAX_TANNEAL_COMB_DIFF_ENV, DEFAULT_MAX_TANNEAL_COMB_DIFF),
        "check_rep": _env_bool(CHECK_REP_ENV, False),
    }


def get_batcher_settings(**overrides: Any) -> BatcherSettings:
    """Resolve batcher settings: defaults, then environment, then explicit overrides.

    Overrides whose value is None are ignored so CLI flags can be passed through
    unconditionally.
    """
    options = default_options()
    unknown = sorted(set(overrides) - set(options))
    if unknown:
        raise ConfigurationError(f"Unknown batcher option(s): {', '.join(unknown)}")
    options.update({key: value for key, value in overrides.items() if value is not None})

    return BatcherSettings(
        thermocycler=ThermocyclerSettings(
            thermocycler_count=options["thermocycler_count"],
            row_count=options["row_count"],
            column_count=options["column_count"],
            temp_range=options["temp_range"],
        ),
        extension=StageThresholds(
            forced_distance=options["mand_ext_comb_diff"],
            prevented_distance=options["max_ext_comb_diff"],
        ),
        anneal=StageThresholds(
            forced_distance=options["mand_tanneal_comb_diff"],
            prevented_distance=options["max_tanneal_comb_diff"],
        ),
        check_rep=bool(options["check_rep"]),
    )
