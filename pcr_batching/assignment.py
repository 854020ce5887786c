"""Turn a batching result into per-operation thermocycler and row numbers."""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from pcr_batching.batcher import BatchingResult
from pcr_batching.clustering.models import ClusterNode
from pcr_batching.models import PcrOperation


@dataclass(frozen=True)
class BatchAssignment:
    """Where one operation runs."""

    operation: PcrOperation
    thermocycler_group: int  # 0-based, ascending mean extension time
    row_group: int  # 0-based within the thermocycler, ascending mean anneal temp
    extension_time: float  # shared by the whole thermocycler group (its longest member)
    anneal_temp: float  # mean annealing temperature of the row group


def _ordered(clusters: Sequence[ClusterNode]) -> List[ClusterNode]:
    return sorted(clusters, key=lambda node: (node.mean_value, node.anchor))


def assign_groups(result: BatchingResult) -> List[BatchAssignment]:
    """Number thermocycler groups and row groups and label every operation.

    A thermocycler runs one extension step, so its group is marked with the
    longest extension time it contains; each row is marked with its mean
    annealing temperature.
    """
    assignments: List[BatchAssignment] = []
    for cycler_idx, extension_cluster in enumerate(_ordered(list(result.keys()))):
        for row_idx, row_cluster in enumerate(_ordered(result[extension_cluster])):
            for operation in row_cluster.members():
                assignments.append(
                    BatchAssignment(
                        operation=operation,
                        thermocycler_group=cycler_idx,
                        row_group=row_idx,
                        extension_time=extension_cluster.max_value,
                        anneal_temp=row_cluster.mean_value,
                    )
                )
    return assignments


def relabel(result: BatchingResult) -> List[PcrOperation]:
    """Copies of every operation with ``extension_group`` and ``tanneal_group`` set."""
    return [
        a.operation.with_groups(a.thermocycler_group, a.row_group) for a in assign_groups(result)
    ]
