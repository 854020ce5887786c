"""Constrained agglomerative clustering engine."""
from pcr_batching.clustering.constraints import FORBIDDEN, MergeConstraint, is_forbidden
from pcr_batching.clustering.graph import ClusterGraph, GraphState
from pcr_batching.clustering.models import ClusterNode, ClusterTree, combine_means
from pcr_batching.clustering.queue import CandidateQueue, pair_key
from pcr_batching.clustering.spanning_tree import (
    CandidateEdge,
    build_dissimilarity_matrix,
    mst_candidate_edges,
    prim_parents,
)

__all__ = [
    "FORBIDDEN",
    "MergeConstraint",
    "is_forbidden",
    "ClusterGraph",
    "GraphState",
    "ClusterNode",
    "ClusterTree",
    "combine_means",
    "CandidateQueue",
    "pair_key",
    "CandidateEdge",
    "build_dissimilarity_matrix",
    "mst_candidate_edges",
    "prim_parents",
]
