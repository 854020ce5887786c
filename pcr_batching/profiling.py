"""Phase timing for batching runs.

Each clustering stage records how long the matrix build, MST reduction and
merge loop took, so slow batches can be diagnosed from the logs.
"""
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class TimingMetric:
    """Container for a single timing measurement."""

    name: str
    duration_ms: float
    timestamp: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        meta_str = ", ".join(f"{k}={v}" for k, v in self.metadata.items()) if self.metadata else ""
        return f"{self.name}: {self.duration_ms:.2f}ms" + (f" ({meta_str})" if meta_str else "")


@dataclass
class PerformanceReport:
    """Timings collected for one clustering stage."""

    operation: str
    phases: List[TimingMetric] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def total_duration_ms(self) -> float:
        return sum(phase.duration_ms for phase in self.phases)

    def add_phase(self, phase: TimingMetric) -> None:
        self.phases.append(phase)

    def phase(self, name: str) -> Optional[TimingMetric]:
        return next((p for p in self.phases if p.name == name), None)

    def get_phase_breakdown(self) -> Dict[str, float]:
        """Get percentage breakdown of time spent in each phase."""
        total = self.total_duration_ms
        if total == 0:
            return {}
        return {phase.name: (phase.duration_ms / total) * 100 for phase in self.phases}

    def format_report(self, verbose: bool = False) -> str:
        lines = [
            f"PERFORMANCE REPORT: {self.operation}",
            f"Total Duration: {self.total_duration_ms:.2f}ms",
        ]
        if self.metadata:
            lines.extend(f"  {key}: {value}" for key, value in self.metadata.items())

        breakdown = self.get_phase_breakdown()
        for phase in sorted(self.phases, key=lambda p: p.duration_ms, reverse=True):
            pct = breakdown.get(phase.name, 0.0)
            lines.append(f"  [{pct:5.1f}%] {phase.name}: {phase.duration_ms:.2f}ms")
            if verbose and phase.metadata:
                lines.extend(f"         {key}: {value}" for key, value in phase.metadata.items())
        return "\n".join(lines)


@contextmanager
def profile_phase(
    phase_name: str,
    report: Optional[PerformanceReport] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Iterator[Dict[str, Any]]:
    """Time a block and append it to ``report``.

    Yields the metadata dict so the block can record counts it only learns
    while running:

        with profile_phase("merge_loop", report) as meta:
            meta["merges"] = run_merges()
    """
    meta: Dict[str, Any] = dict(metadata or {})
    start_time = time.time()
    try:
        yield meta
    finally:
        duration_ms = (time.time() - start_time) * 1000
        metric = TimingMetric(
            name=phase_name,
            duration_ms=duration_ms,
            timestamp=time.time(),
            metadata=meta,
        )
        if report is not None:
            report.add_phase(metric)
        logger.debug("Phase [%s]: %.2fms", phase_name, duration_ms)
