"""Two-stage gradient PCR batching.

Operations are first clustered by extension time into at most one group per
thermocycler, refusing any group that would overflow a thermocycler's wells
or its temperature gradient. Each thermocycler group is then clustered again
by annealing temperature into at most one group per row, refusing rows wider
than the column count. Close operations are merged even when that leaves a
thermocycler or row empty; far-apart operations are never merged even when
that leaves more groups than hardware.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from pcr_batching.clustering.graph import ClusterGraph
from pcr_batching.clustering.models import ClusterNode
from pcr_batching.config import (
    BatcherSettings,
    StageSettings,
    anneal_stage,
    extension_stage,
    get_batcher_settings,
)
from pcr_batching.errors import InvalidInputError
from pcr_batching.models import PcrOperation, build_operation, operations_from_dicts
from pcr_batching.profiling import PerformanceReport

logger = logging.getLogger(__name__)


@dataclass
class BatchingResult:
    """Thermocycler groups (by extension time) mapped to their row groups (by anneal temp).

    Groups are ordered by their smallest original operation index.
    """

    groups: Dict[ClusterNode, List[ClusterNode]]
    settings: BatcherSettings
    reports: List[PerformanceReport] = field(default_factory=list)

    def __iter__(self) -> Iterator[ClusterNode]:
        return iter(self.groups)

    def __len__(self) -> int:
        return len(self.groups)

    def __getitem__(self, extension_cluster: ClusterNode) -> List[ClusterNode]:
        return self.groups[extension_cluster]

    def items(self) -> Iterable[Tuple[ClusterNode, List[ClusterNode]]]:
        return self.groups.items()

    def keys(self) -> Iterable[ClusterNode]:
        return self.groups.keys()

    @property
    def operation_count(self) -> int:
        return sum(cluster.size for cluster in self.groups)

    @property
    def thermocycler_overflow(self) -> bool:
        return len(self.groups) > self.settings.thermocycler.thermocycler_count

    @property
    def row_overflow(self) -> bool:
        rows = self.settings.thermocycler.row_count
        return any(len(row_groups) > rows for row_groups in self.groups.values())

    @property
    def overflow(self) -> bool:
        """True when the hardware cannot hold the grouping as returned."""
        return self.thermocycler_overflow or self.row_overflow


class PcrBatcher:
    """Collects PCR operations and batches them onto gradient thermocyclers.

    Settings resolve as defaults, then ``PCR_*`` environment variables, then
    keyword overrides (``thermocycler_count``, ``row_count``, ``column_count``,
    ``temp_range``, ``mand_ext_comb_diff``, ``max_ext_comb_diff``,
    ``mand_tanneal_comb_diff``, ``max_tanneal_comb_diff``, ``check_rep``).
    """

    def __init__(self, settings: Optional[BatcherSettings] = None, **overrides: Any) -> None:
        if settings is not None and overrides:
            raise TypeError("Pass either a BatcherSettings or keyword overrides, not both")
        self.settings = settings or get_batcher_settings(**overrides)
        self._operations: List[PcrOperation] = []

    @property
    def pcr_operations(self) -> List[PcrOperation]:
        return list(self._operations)

    def add_pcr_operation(
        self,
        extension_time: float,
        anneal_temp: float,
        unique_id: Any = None,
    ) -> PcrOperation:
        operation = build_operation(extension_time, anneal_temp, unique_id)
        self._operations.append(operation)
        return operation

    def add_many_pcr_operations(self, rows: Iterable[Dict[str, Any]]) -> List[PcrOperation]:
        operations = operations_from_dicts(rows)
        self._operations.extend(operations)
        return operations

    def add_operations(self, operations: Iterable[PcrOperation]) -> None:
        self._operations.extend(operations)

    def batch(self, check_rep: Optional[bool] = None) -> BatchingResult:
        """Batch every added operation.

        Args:
            check_rep: Verify clustering invariants after every merge. Very slow;
                defaults to ``settings.check_rep``.
        """
        return batch_operations(self._operations, self.settings, check_rep=check_rep)


def run_stage(
    operations: List[PcrOperation],
    stage: StageSettings,
    check_rep: bool,
    reports: List[PerformanceReport],
) -> List[ClusterNode]:
    graph = ClusterGraph(operations, stage, check_rep=check_rep)
    clusters = graph.perform_clustering()
    reports.append(graph.report)
    return clusters


def batch_operations(
    operations: Iterable[PcrOperation],
    settings: Optional[BatcherSettings] = None,
    check_rep: Optional[bool] = None,
) -> BatchingResult:
    """Cluster by extension time, then cluster each group by annealing temperature.

    Raises:
        InvalidInputError: ``operations`` is empty.
    """
    operations = list(operations)
    if not operations:
        raise InvalidInputError("No PCR operations to batch")
    settings = settings or get_batcher_settings()
    check = settings.check_rep if check_rep is None else check_rep

    logger.info(
        "Batching %d PCR operations onto %d thermocyclers (%dx%d wells, %.4g C gradient)",
        len(operations),
        settings.thermocycler.thermocycler_count,
        settings.thermocycler.row_count,
        settings.thermocycler.column_count,
        settings.thermocycler.temp_range,
    )

    reports: List[PerformanceReport] = []
    extension_clusters = run_stage(operations, extension_stage(settings), check, reports)

    # Each thermocycler group is clustered independently on fresh leaves.
    row_stage = anneal_stage(settings)
    groups: Dict[ClusterNode, List[ClusterNode]] = {}
    for extension_cluster in extension_clusters:
        groups[extension_cluster] = run_stage(extension_cluster.members(), row_stage, check, reports)

    result = BatchingResult(groups=groups, settings=settings, reports=reports)
    logger.info(
        "Batched %d operations into %d thermocycler groups and %d row groups",
        result.operation_count,
        len(groups),
        sum(len(rows) for rows in groups.values()),
    )
    if result.overflow:
        logger.warning(
            "Batching needs more hardware than configured (thermocycler overflow=%s, row overflow=%s)",
            result.thermocycler_overflow,
            result.row_overflow,
        )
    return result
