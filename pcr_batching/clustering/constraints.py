"""Pairwise merge distance with hard capacity and gradient-range limits."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
from scipy.spatial.distance import cdist

from pcr_batching.clustering.models import ClusterNode
from pcr_batching.config import StageSettings

# Larger than any real distance; never satisfies a merge threshold.
FORBIDDEN = math.inf


def is_forbidden(distance: float) -> bool:
    return distance == FORBIDDEN


@dataclass(frozen=True)
class MergeConstraint:
    """Distance function for one stage.

    A merge is forbidden when the combined cluster would hold more than
    ``pair_size_cap`` operations OR when the combined spread of the other
    attribute would exceed ``range_limit``. Either condition alone blocks it.
    Allowed merges are scored by the gap between the two cluster means.
    """

    pair_size_cap: int
    range_limit: Optional[float] = None

    @classmethod
    def for_stage(cls, stage: StageSettings) -> MergeConstraint:
        return cls(pair_size_cap=stage.pair_size_cap, range_limit=stage.range_limit)

    def combined_other_range(self, a: ClusterNode, b: ClusterNode) -> float:
        return max(a.max_other, b.max_other) - min(a.min_other, b.min_other)

    def allows(self, a: ClusterNode, b: ClusterNode) -> bool:
        if a.size + b.size > self.pair_size_cap:
            return False
        if self.range_limit is not None and self.combined_other_range(a, b) > self.range_limit:
            return False
        return True

    def distance(self, a: ClusterNode, b: ClusterNode) -> float:
        if not self.allows(a, b):
            return FORBIDDEN
        return abs(a.mean_value - b.mean_value)

    def pairwise(self, nodes: Sequence[ClusterNode]) -> np.ndarray:
        """Dense distance matrix over ``nodes``; entry (i, j) equals ``distance(nodes[i], nodes[j])``."""
        n = len(nodes)
        if n == 0:
            return np.zeros((0, 0))
        means = np.fromiter((node.mean_value for node in nodes), dtype=np.float64, count=n)
        sizes = np.fromiter((node.size for node in nodes), dtype=np.int64, count=n)

        matrix = cdist(means[:, None], means[:, None], metric="cityblock")
        forbidden = (sizes[:, None] + sizes[None, :]) > self.pair_size_cap
        if self.range_limit is not None:
            low = np.fromiter((node.min_other for node in nodes), dtype=np.float64, count=n)
            high = np.fromiter((node.max_other for node in nodes), dtype=np.float64, count=n)
            spread = np.maximum(high[:, None], high[None, :]) - np.minimum(low[:, None], low[None, :])
            forbidden |= spread > self.range_limit
        matrix[forbidden] = FORBIDDEN
        return matrix
