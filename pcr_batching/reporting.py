"""Readable summaries of a batching run, plus CSV input and output."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Sequence, Union

import pandas as pd

from pcr_batching.assignment import BatchAssignment
from pcr_batching.batcher import BatchingResult
from pcr_batching.clustering.models import ClusterNode
from pcr_batching.errors import InvalidInputError
from pcr_batching.models import PcrOperation, build_operation

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("extension_time", "anneal_temp")
ASSIGNMENT_COLUMNS = [
    "unique_id",
    "extension_time",
    "anneal_temp",
    "thermocycler_group",
    "row_group",
    "group_extension_time",
    "row_anneal_temp",
]


def describe_cluster(node: ClusterNode, value_name: str = "extension", other_name: str = "anneal") -> str:
    """One-line summary: member ids, range and mean of the clustered value, range of the other."""
    ids = [op.unique_id for op in node.members()]
    return (
        f"{ids} {value_name} range: {node.min_value:g}-{node.max_value:g} "
        f"(mean {node.mean_value:.2f}), {other_name} range: {node.min_other:g}-{node.max_other:g}"
    )


def format_batching(result: BatchingResult) -> str:
    lines = [f"{len(result)} total clusters"]
    for extension_cluster, row_clusters in result.items():
        lines.append("{ " + describe_cluster(extension_cluster) + " }")
        for row_idx, row_cluster in enumerate(row_clusters):
            lines.append(
                f"    row group {row_idx}: "
                + describe_cluster(row_cluster, value_name="anneal", other_name="extension")
            )
    if result.overflow:
        lines.append(
            "WARNING: grouping exceeds the configured hardware "
            f"({result.settings.thermocycler.thermocycler_count} thermocyclers x "
            f"{result.settings.thermocycler.row_count} rows)"
        )
    return "\n".join(lines)


def load_operations_csv(path: Union[str, Path]) -> List[PcrOperation]:
    """Read operations from a CSV with ``extension_time`` and ``anneal_temp`` columns.

    An optional ``unique_id`` column labels each row; without it, the row
    number is used.
    """
    try:
        frame = pd.read_csv(path)
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as exc:
        raise InvalidInputError(f"{path}: not a readable CSV ({exc})") from exc
    missing = [col for col in REQUIRED_COLUMNS if col not in frame.columns]
    if missing:
        raise InvalidInputError(f"{path}: missing required column(s) {', '.join(missing)}")
    if "unique_id" not in frame.columns:
        frame["unique_id"] = range(len(frame))

    operations = [
        build_operation(row.extension_time, row.anneal_temp, row.unique_id)
        for row in frame.itertuples(index=False)
    ]
    logger.info("Loaded %d PCR operations from %s", len(operations), path)
    return operations


def assignments_to_frame(assignments: Sequence[BatchAssignment]) -> pd.DataFrame:
    rows = [
        {
            "unique_id": a.operation.unique_id,
            "extension_time": a.operation.extension_time,
            "anneal_temp": a.operation.anneal_temp,
            "thermocycler_group": a.thermocycler_group,
            "row_group": a.row_group,
            "group_extension_time": a.extension_time,
            "row_anneal_temp": a.anneal_temp,
        }
        for a in assignments
    ]
    frame = pd.DataFrame(rows, columns=ASSIGNMENT_COLUMNS)
    return frame.sort_values(["thermocycler_group", "row_group"], kind="mergesort").reset_index(drop=True)
