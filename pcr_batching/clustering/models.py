"""Merge tree for constrained agglomerative clustering.

The tree is an append-only arena: one leaf per operation, one internal node
per merge. Nodes point down to their children by reference and up to the node
that absorbed them by arena index (``merged_into``), which is written exactly
once. A node whose ``merged_into`` is None is a top-level cluster.
"""
from __future__ import annotations

from typing import Callable, Iterator, List, Optional, Tuple

from pcr_batching.errors import InternalInvariantViolation
from pcr_batching.models import PcrOperation


class ClusterNode:
    """A leaf (one operation) or the result of merging two clusters."""

    __slots__ = (
        "index",
        "size",
        "min_value",
        "max_value",
        "mean_value",
        "min_other",
        "max_other",
        "anchor",
        "children",
        "operation",
        "merge_distance",
        "_merged_into",
    )

    def __init__(
        self,
        *,
        index: int,
        size: int,
        min_value: float,
        max_value: float,
        mean_value: float,
        min_other: float,
        max_other: float,
        anchor: int,
        children: Optional[Tuple[ClusterNode, ClusterNode]] = None,
        operation: Optional[PcrOperation] = None,
        merge_distance: Optional[float] = None,
    ) -> None:
        self.index = index
        self.size = size
        self.min_value = min_value
        self.max_value = max_value
        self.mean_value = mean_value
        self.min_other = min_other
        self.max_other = max_other
        self.anchor = anchor  # smallest leaf index in this subtree
        self.children = children
        self.operation = operation
        self.merge_distance = merge_distance
        self._merged_into: Optional[int] = None

    @property
    def merged_into(self) -> Optional[int]:
        return self._merged_into

    @merged_into.setter
    def merged_into(self, parent_index: int) -> None:
        if self._merged_into is not None:
            raise InternalInvariantViolation(
                f"Cluster {self.index} already merged into {self._merged_into}; "
                f"refusing to re-point it at {parent_index}"
            )
        self._merged_into = parent_index

    @property
    def is_leaf(self) -> bool:
        return self.children is None

    @property
    def is_top_level(self) -> bool:
        return self._merged_into is None

    @property
    def other_spread(self) -> float:
        return self.max_other - self.min_other

    def members(self) -> List[PcrOperation]:
        """Recover member operations by walking down to the leaves.

        Uses an explicit stack so deep, chain-shaped trees cannot exhaust the
        recursion limit. Leaves come out left to right.
        """
        found: List[PcrOperation] = []
        stack: List[ClusterNode] = [self]
        while stack:
            node = stack.pop()
            if node.children is None:
                found.append(node.operation)
            else:
                left, right = node.children
                stack.append(right)
                stack.append(left)
        return found

    def __repr__(self) -> str:
        kind = "leaf" if self.is_leaf else "merged"
        return (
            f"ClusterNode(index={self.index}, {kind}, size={self.size}, "
            f"range={self.min_value:g}-{self.max_value:g}, mean={self.mean_value:g})"
        )


def combine_means(n1: int, n2: int, mean1: float, mean2: float) -> float:
    """Count-weighted mean of two clusters."""
    return (n1 * mean1 + n2 * mean2) / (n1 + n2)


class ClusterTree:
    """Arena owning every node created by one clustering stage."""

    def __init__(
        self,
        attribute: Callable[[PcrOperation], float],
        other_attribute: Callable[[PcrOperation], float],
    ) -> None:
        self.attribute = attribute
        self.other_attribute = other_attribute
        self._nodes: List[ClusterNode] = []
        self.leaf_count = 0

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[ClusterNode]:
        return iter(self._nodes)

    def node(self, index: int) -> ClusterNode:
        return self._nodes[index]

    @property
    def merge_count(self) -> int:
        return len(self._nodes) - self.leaf_count

    def add_leaf(self, operation: PcrOperation) -> ClusterNode:
        if self.merge_count:
            raise InternalInvariantViolation("Leaves must be added before the first merge")
        value = float(self.attribute(operation))
        other = float(self.other_attribute(operation))
        index = len(self._nodes)
        leaf = ClusterNode(
            index=index,
            size=1,
            min_value=value,
            max_value=value,
            mean_value=value,
            min_other=other,
            max_other=other,
            anchor=index,
            operation=operation,
        )
        self._nodes.append(leaf)
        self.leaf_count += 1
        return leaf

    def merge(self, a: ClusterNode, b: ClusterNode, distance: Optional[float] = None) -> ClusterNode:
        """Create the parent of two top-level clusters and retire both."""
        if a is b:
            raise InternalInvariantViolation(f"Cannot merge cluster {a.index} with itself")
        for child in (a, b):
            if not child.is_top_level:
                raise InternalInvariantViolation(
                    f"Cluster {child.index} was already merged into {child.merged_into}"
                )
        index = len(self._nodes)
        parent = ClusterNode(
            index=index,
            size=a.size + b.size,
            min_value=min(a.min_value, b.min_value),
            max_value=max(a.max_value, b.max_value),
            mean_value=combine_means(a.size, b.size, a.mean_value, b.mean_value),
            min_other=min(a.min_other, b.min_other),
            max_other=max(a.max_other, b.max_other),
            anchor=min(a.anchor, b.anchor),
            children=(a, b),
            merge_distance=distance,
        )
        self._nodes.append(parent)
        a.merged_into = index
        b.merged_into = index
        return parent

    def find_top_level(self, node: ClusterNode) -> ClusterNode:
        """Follow ``merged_into`` links up to the cluster that currently holds ``node``."""
        current = node
        steps = 0
        while current.merged_into is not None:
            current = self._nodes[current.merged_into]
            steps += 1
            if steps > len(self._nodes):
                raise InternalInvariantViolation(f"merged_into cycle reached from cluster {node.index}")
        return current

    def top_level_nodes(self) -> List[ClusterNode]:
        """Current top-level clusters, ordered by arena index."""
        return [node for node in self._nodes if node.merged_into is None]
