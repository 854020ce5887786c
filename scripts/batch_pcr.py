#!/usr/bin/env python3
"""
Batch PCR reactions onto gradient thermocyclers.

Reads a CSV with extension_time, anneal_temp and (optionally) unique_id
columns, groups the reactions by extension time per thermocycler and by
annealing temperature per row, and prints the grouping.

Usage:
    python scripts/batch_pcr.py reactions.csv
    python scripts/batch_pcr.py reactions.csv --thermocycler-count 2 --temp-range 10
    python scripts/batch_pcr.py reactions.csv --output assignments.csv
    python scripts/batch_pcr.py reactions.csv --check-rep --verbose
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from pcr_batching.assignment import assign_groups  # noqa: E402
from pcr_batching.batcher import batch_operations  # noqa: E402
from pcr_batching.config import get_batcher_settings  # noqa: E402
from pcr_batching.errors import ConfigurationError, InvalidInputError  # noqa: E402
from pcr_batching.logging_utils import setup_batching_logging  # noqa: E402
from pcr_batching.reporting import (  # noqa: E402
    assignments_to_frame,
    format_batching,
    load_operations_csv,
)

logger = logging.getLogger("batch_pcr")

EXIT_OK = 0
EXIT_BAD_INPUT = 2


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Group PCR reactions by extension time and annealing temperature."
    )
    parser.add_argument("input", type=Path, help="CSV of reactions to batch.")
    parser.add_argument("--output", type=Path, default=None, help="Write per-reaction assignments here.")

    hardware = parser.add_argument_group("thermocyclers")
    hardware.add_argument("--thermocycler-count", type=int, default=None)
    hardware.add_argument("--row-count", type=int, default=None)
    hardware.add_argument("--column-count", type=int, default=None)
    hardware.add_argument("--temp-range", type=float, default=None,
                          help="Gradient width in degrees C available in one thermocycler.")

    thresholds = parser.add_argument_group("merge thresholds")
    thresholds.add_argument("--mand-ext-comb-diff", type=float, default=None,
                            help="Always share a thermocycler below this extension time difference.")
    thresholds.add_argument("--max-ext-comb-diff", type=float, default=None,
                            help="Never share a thermocycler at or above this extension time difference.")
    thresholds.add_argument("--mand-tanneal-comb-diff", type=float, default=None,
                            help="Always share a row below this annealing temperature difference.")
    thresholds.add_argument("--max-tanneal-comb-diff", type=float, default=None,
                            help="Never share a row at or above this annealing temperature difference.")

    parser.add_argument("--check-rep", action="store_true", default=None,
                        help="Verify clustering invariants after every merge (slow).")
    parser.add_argument("--log-dir", type=Path, default=None)
    parser.add_argument("--verbose", action="store_true", help="Show per-stage clustering logs.")
    parser.add_argument("--quiet", action="store_true", help="No console logging.")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_batching_logging(quiet=args.quiet, verbose=args.verbose, log_dir=args.log_dir)

    try:
        settings = get_batcher_settings(
            thermocycler_count=args.thermocycler_count,
            row_count=args.row_count,
            column_count=args.column_count,
            temp_range=args.temp_range,
            mand_ext_comb_diff=args.mand_ext_comb_diff,
            max_ext_comb_diff=args.max_ext_comb_diff,
            mand_tanneal_comb_diff=args.mand_tanneal_comb_diff,
            max_tanneal_comb_diff=args.max_tanneal_comb_diff,
            check_rep=args.check_rep,
        )
        operations = load_operations_csv(args.input)
        result = batch_operations(operations, settings)
    except (ConfigurationError, InvalidInputError, FileNotFoundError) as exc:
        logger.error("Batching failed: %s", exc)
        return EXIT_BAD_INPUT

    print(format_batching(result))

    if args.verbose:
        for report in result.reports:
            logger.info("\n%s", report.format_report(verbose=True))

    if args.output is not None:
        frame = assignments_to_frame(assign_groups(result))
        args.output.parent.mkdir(parents=True, exist_ok=True)
        frame.to_csv(args.output, index=False)
        logger.info("Wrote %d assignments to %s", len(frame), args.output)

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
