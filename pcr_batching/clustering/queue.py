"""Priority queue of candidate merges between top-level clusters."""
from __future__ import annotations

import heapq
import itertools
from typing import Dict, Iterator, List, Optional, Tuple

from pcr_batching.clustering.models import ClusterNode

PairKey = Tuple[int, int]


def pair_key(a: ClusterNode, b: ClusterNode) -> PairKey:
    """Order-independent key for a pair of clusters."""
    return (a.index, b.index) if a.index < b.index else (b.index, a.index)


class CandidateQueue:
    """Min-queue of cluster pairs keyed by merge distance.

    Backed by ``heapq`` with lazy invalidation: removing or re-prioritising a
    pair retires its heap entry in place and the dead entry is discarded when
    it surfaces. Equal distances are broken by the smallest original singleton
    index on each side, so runs are reproducible.
    """

    def __init__(self) -> None:
        self._heap: List[list] = []
        self._entries: Dict[PairKey, list] = {}
        self._sequence = itertools.count()

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def __contains__(self, pair: Tuple[ClusterNode, ClusterNode]) -> bool:
        return pair_key(*pair) in self._entries

    def __iter__(self) -> Iterator[Tuple[ClusterNode, ClusterNode, float]]:
        return iter(self.items())

    def items(self) -> List[Tuple[ClusterNode, ClusterNode, float]]:
        """Snapshot of live entries as ``(a, b, priority)``; safe to mutate the queue while iterating."""
        return [(entry[5][0], entry[5][1], entry[0]) for entry in self._entries.values()]

    def push(self, a: ClusterNode, b: ClusterNode, priority: float) -> None:
        """Insert a pair, replacing its priority if it is already queued."""
        key = pair_key(a, b)
        if key in self._entries:
            self._retire(key)
        low, high = sorted((a.anchor, b.anchor))
        entry = [priority, low, high, next(self._sequence), key, (a, b)]
        self._entries[key] = entry
        heapq.heappush(self._heap, entry)

    def remove(self, a: ClusterNode, b: ClusterNode) -> float:
        """Drop a pair and return the priority it had. Raises KeyError if absent."""
        key = pair_key(a, b)
        if key not in self._entries:
            raise KeyError(key)
        return self._retire(key)

    def priority(self, a: ClusterNode, b: ClusterNode) -> Optional[float]:
        entry = self._entries.get(pair_key(a, b))
        return None if entry is None else entry[0]

    def peek(self) -> Optional[Tuple[ClusterNode, ClusterNode, float]]:
        """Closest pair without removing it, or None when the queue is empty."""
        self._discard_stale()
        if not self._heap:
            return None
        entry = self._heap[0]
        a, b = entry[5]
        return a, b, entry[0]

    def pop(self) -> Tuple[ClusterNode, ClusterNode, float]:
        """Remove and return the closest pair. Raises IndexError when empty."""
        self._discard_stale()
        if not self._heap:
            raise IndexError("pop from an empty CandidateQueue")
        entry = heapq.heappop(self._heap)
        del self._entries[entry[4]]
        a, b = entry[5]
        return a, b, entry[0]

    def min_priority(self) -> Optional[float]:
        top = self.peek()
        return None if top is None else top[2]

    def _retire(self, key: PairKey) -> float:
        entry = self._entries.pop(key)
        entry[5] = None  # heap entry is now dead
        return entry[0]

    def _discard_stale(self) -> None:
        while self._heap and self._heap[0][5] is None:
            heapq.heappop(self._heap)
