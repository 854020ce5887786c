"""Constrained agglomerative clustering over one attribute of a batch of operations.

A ClusterGraph is built once from a list of operations, run once with
``perform_clustering`` and then read. Construction turns every operation into
a singleton cluster and seeds the candidate queue with the MST edges of the
all-pairs distance graph. The merge loop repeatedly joins the closest queued
pair, rewriting the remaining candidate pairs to point at the new cluster,
until the stopping rule fires.
"""
from __future__ import annotations

import logging
from collections import Counter
from enum import Enum
from typing import List, Optional, Sequence

from pcr_batching.clustering.constraints import MergeConstraint
from pcr_batching.clustering.models import ClusterNode, ClusterTree
from pcr_batching.clustering.queue import CandidateQueue
from pcr_batching.clustering.spanning_tree import build_dissimilarity_matrix, mst_candidate_edges
from pcr_batching.config import StageSettings
from pcr_batching.errors import InternalInvariantViolation, InvalidInputError
from pcr_batching.models import PcrOperation
from pcr_batching.profiling import PerformanceReport, profile_phase

logger = logging.getLogger(__name__)


class GraphState(str, Enum):
    BUILDING = "building"
    MERGING = "merging"
    DONE = "done"


def _id_multiset(operations: Sequence[PcrOperation]) -> Counter:
    try:
        return Counter(op.unique_id for op in operations)
    except TypeError:
        # unhashable ids
        return Counter(repr(op.unique_id) for op in operations)


class ClusterGraph:
    """Clusters operations on ``stage.attribute`` under the stage's constraints.

    Args:
        operations: Non-empty sequence of operations. Not mutated.
        stage: Capacity limit, pair size cap, range limit, thresholds and
            attribute accessors for this stage.
        check_rep: Verify the representation invariants after construction
            and after every merge. Slow; meant for tests.
    """

    def __init__(
        self,
        operations: Sequence[PcrOperation],
        stage: StageSettings,
        check_rep: bool = False,
    ) -> None:
        operations = list(operations)
        if not operations:
            raise InvalidInputError(f"{stage.name}: cannot cluster an empty list of operations")

        self.state = GraphState.BUILDING
        self.stage = stage
        self.constraint = MergeConstraint.for_stage(stage)
        self.tree = ClusterTree(stage.attribute, stage.other_attribute)
        self.queue = CandidateQueue()
        self.final_cluster: Optional[ClusterNode] = None
        self.check_rep_enabled = check_rep
        self.report = PerformanceReport(
            operation=f"{stage.name}_clustering",
            metadata={"operations": len(operations)},
        )
        self._initial_ids = _id_multiset(operations)

        with profile_phase("build_leaves", self.report):
            leaves = [self.tree.add_leaf(op) for op in operations]
        self.initial_count = len(leaves)
        self.current_count = len(leaves)

        if len(leaves) == 1:
            # The queue holds pairs, so a lone cluster lives in its own slot.
            self.final_cluster = leaves[0]
        else:
            with profile_phase("dissimilarity_matrix", self.report, {"n": len(leaves)}):
                matrix = build_dissimilarity_matrix(leaves, self.constraint)
            with profile_phase("minimum_spanning_tree", self.report) as meta:
                edges = mst_candidate_edges(matrix)
                meta["edges"] = len(edges)
            for edge in edges:
                self.queue.push(leaves[edge.child], leaves[edge.parent], edge.weight)

        self.state = GraphState.MERGING
        if self.check_rep_enabled:
            self.check_rep()

    @property
    def merge_count(self) -> int:
        return self.tree.merge_count

    def should_continue(self) -> bool:
        """Stopping rule, evaluated before every merge.

        Never merge at or beyond ``prevented_distance``. Above capacity, merge
        the closest pair unconditionally; at or below capacity, only merge
        pairs within ``forced_distance``.
        """
        nearest = self.queue.min_priority()
        if nearest is None or nearest >= self.stage.prevented_distance:
            return False
        if self.current_count <= self.stage.capacity_limit:
            return nearest <= self.stage.forced_distance
        return True

    def combine_nearest_clusters(self) -> ClusterNode:
        """Merge the closest queued pair and rewrite the queue around the result."""
        if self.state is not GraphState.MERGING:
            raise InternalInvariantViolation(f"Cannot merge while graph is {self.state.value}")
        a, b, distance = self.queue.pop()
        merged = self.tree.merge(a, b, distance)
        self.current_count -= 1
        logger.debug(
            "%s: merged clusters %d (n=%d) and %d (n=%d) -> %d at distance %.4g; %d clusters left",
            self.stage.name,
            a.index,
            a.size,
            b.index,
            b.size,
            merged.index,
            distance,
            self.current_count,
        )

        self._rewrite_pairs(a, b, merged)

        if not self.queue:
            if self.current_count != 1:
                raise InternalInvariantViolation(
                    f"Candidate queue emptied with {self.current_count} clusters remaining"
                )
            self.final_cluster = merged
        return merged

    def _rewrite_pairs(self, a: ClusterNode, b: ClusterNode, merged: ClusterNode) -> None:
        for x, y, priority in self.queue.items():
            if x is a or x is b:
                other = y
            elif y is a or y is b:
                other = x
            else:
                continue

            self.queue.remove(x, y)
            if other is a or other is b:
                logger.debug("%s: dropped self-pair for cluster %d", self.stage.name, merged.index)
                continue

            new_priority = self.constraint.distance(merged, other)
            existing = self.queue.priority(merged, other)
            if existing is not None:
                if existing != new_priority:
                    raise InternalInvariantViolation(
                        f"Duplicate pair ({merged.index}, {other.index}) queued at {existing} "
                        f"but recomputed as {new_priority}"
                    )
                logger.debug(
                    "%s: dropped duplicate pair (%d, %d)", self.stage.name, merged.index, other.index
                )
                continue
            self.queue.push(merged, other, new_priority)

    def perform_clustering(self, check_rep: Optional[bool] = None) -> List[ClusterNode]:
        """Run the merge loop to completion and return the top-level clusters.

        Calling this again after the graph is done just returns the result.
        """
        if self.state is GraphState.DONE:
            return self.cluster_set()
        check = self.check_rep_enabled if check_rep is None else check_rep

        with profile_phase("merge_loop", self.report) as meta:
            while self.should_continue():
                self.combine_nearest_clusters()
                if check:
                    self.check_rep()
            meta["merges"] = self.merge_count
        self.state = GraphState.DONE

        clusters = self.cluster_set()
        logger.info(
            "%s clustering: %d operations -> %d clusters after %d merges (%.1fms)",
            self.stage.name,
            self.initial_count,
            len(clusters),
            self.merge_count,
            self.report.total_duration_ms,
        )
        if len(clusters) > self.stage.capacity_limit:
            logger.warning(
                "%s clustering left %d clusters for %d slots; remaining pairs exceed the "
                "prevented distance %.4g or break a hard limit",
                self.stage.name,
                len(clusters),
                self.stage.capacity_limit,
                self.stage.prevented_distance,
            )
        return clusters

    def cluster_set(self) -> List[ClusterNode]:
        """Current top-level clusters, ordered by their smallest original index."""
        if self.final_cluster is not None:
            return [self.final_cluster]
        return sorted(self.tree.top_level_nodes(), key=lambda node: node.anchor)

    def check_rep(self) -> None:
        """Verify the graph's invariants; raise InternalInvariantViolation on drift.

        O(n) tree walk plus a multiset comparison.
        """
        tops = self.tree.top_level_nodes()
        if len(tops) != self.current_count:
            raise InternalInvariantViolation(
                f"current_count is {self.current_count} but {len(tops)} clusters are top-level"
            )
        if self.current_count != self.initial_count - self.merge_count:
            raise InternalInvariantViolation(
                f"{self.merge_count} merges from {self.initial_count} operations "
                f"cannot leave {self.current_count} clusters"
            )

        for a, b, _ in self.queue.items():
            if not (a.is_top_level and b.is_top_level):
                raise InternalInvariantViolation(
                    f"Queued pair ({a.index}, {b.index}) references a merged cluster"
                )
        if len(self.queue) != self.current_count - 1:
            raise InternalInvariantViolation(
                f"{len(self.queue)} queued pairs cannot span {self.current_count} clusters"
            )
        if self.current_count == 1 and self.final_cluster is not tops[0]:
            raise InternalInvariantViolation("Single remaining cluster is not recorded as final")

        members: List[PcrOperation] = []
        for node in tops:
            members.extend(node.members())
        if len(members) != self.initial_count or sum(n.size for n in tops) != self.initial_count:
            raise InternalInvariantViolation(
                f"Clusters hold {len(members)} members (sizes sum to "
                f"{sum(n.size for n in tops)}); expected {self.initial_count}"
            )
        if _id_multiset(members) != self._initial_ids:
            raise InternalInvariantViolation("Operation ids in clusters differ from the input ids")
