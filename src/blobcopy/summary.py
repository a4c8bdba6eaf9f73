# src/blobcopy/summary.py
"""Aggregation of per-object copy results into a run summary."""

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List

import numpy as np

from blobcopy.models import CopyResult, CopyStatus


@dataclass(frozen=True)
class RunSummary:
    """
    Totals for one copy run.

    Attributes:
        total_elapsed_seconds (int): Sum of the elapsed time of every result.
        counts (Dict[CopyStatus, int]): Number of results per status.
        median_elapsed_s (float): Median duration of completed copies.
        p90_elapsed_s (float): 90th percentile duration of completed copies.
        failed (List[str]): Names of the objects that failed.
    """

    total_elapsed_seconds: int = 0
    counts: Dict[CopyStatus, int] = field(default_factory=dict)
    median_elapsed_s: float = 0.0
    p90_elapsed_s: float = 0.0
    failed: List[str] = field(default_factory=list)

    @classmethod
    def from_results(cls, results: Iterable[CopyResult]) -> "RunSummary":
        """
        Builds a summary from a sequence of results.

        Args:
            results (Iterable[CopyResult]): The results of a run.

        Returns:
            RunSummary: The aggregated totals.
        """
        results = list(results)
        counts: Counter = Counter(r.status for r in results)
        durations: List[int] = [
            r.elapsed_seconds for r in results if r.status is CopyStatus.COMPLETED
        ]
        return cls(
            total_elapsed_seconds=sum(r.elapsed_seconds for r in results),
            counts={status: counts.get(status, 0) for status in CopyStatus},
            median_elapsed_s=float(np.median(durations)) if durations else 0.0,
            p90_elapsed_s=float(np.percentile(durations, 90)) if durations else 0.0,
            failed=[r.object_name for r in results if r.status is CopyStatus.FAILED],
        )

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)

    def describe_counts(self) -> str:
        """Renders the non-zero counts, e.g. ``3 completed, 1 skipped``."""
        parts: List[str] = [
            f"{count} {status.value}" for status, count in self.counts.items() if count
        ]
        return ", ".join(parts) if parts else "no objects"
