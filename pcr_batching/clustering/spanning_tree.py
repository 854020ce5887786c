"""Dissimilarity matrix and minimum-spanning-tree candidate reduction.

Only the n - 1 edges of a minimum spanning tree are offered to the merge loop:
the nearest mergeable pair of a single-link style agglomeration is always an
MST edge, so the other O(n^2) pairs never need to enter the queue.
"""
from __future__ import annotations

import logging
from typing import List, NamedTuple, Sequence

import numpy as np

from pcr_batching.clustering.constraints import MergeConstraint
from pcr_batching.clustering.models import ClusterNode

logger = logging.getLogger(__name__)


class CandidateEdge(NamedTuple):
    child: int
    parent: int
    weight: float


def build_dissimilarity_matrix(nodes: Sequence[ClusterNode], constraint: MergeConstraint) -> np.ndarray:
    """All-pairs merge distances, O(n^2). Forbidden pairs carry ``FORBIDDEN``."""
    return constraint.pairwise(nodes)


def prim_parents(matrix: np.ndarray) -> np.ndarray:
    """Dense Prim's algorithm rooted at node 0.

    Returns ``parent`` where ``parent[i]`` is the tree neighbour through which
    node ``i`` was reached (``-1`` for the root). Ties go to the lowest index,
    and a parent is only replaced by a strictly shorter edge, so the result is
    deterministic. Infinite (forbidden) weights are used only when a node
    cannot be reached any other way; such a node keeps the root as parent.
    """
    n = matrix.shape[0]
    parent = np.full(n, -1, dtype=np.int64)
    if n <= 1:
        return parent

    visited = np.zeros(n, dtype=bool)
    visited[0] = True
    key = np.array(matrix[0], dtype=np.float64, copy=True)
    parent[1:] = 0

    for _ in range(n - 1):
        unvisited = np.flatnonzero(~visited)
        nearest = int(unvisited[np.argmin(key[unvisited])])
        visited[nearest] = True

        row = matrix[nearest]
        closer = ~visited & (row < key)
        key[closer] = row[closer]
        parent[closer] = nearest

    return parent


def mst_candidate_edges(matrix: np.ndarray) -> List[CandidateEdge]:
    """One candidate ``{i, parent[i]}`` per non-root node, weighted from ``matrix``."""
    parent = prim_parents(matrix)
    edges = [
        CandidateEdge(child=i, parent=int(parent[i]), weight=float(matrix[i, parent[i]]))
        for i in range(1, matrix.shape[0])
    ]
    n = matrix.shape[0]
    logger.debug("MST reduction kept %d of %d candidate pairs", len(edges), n * (n - 1) // 2)
    return edges
