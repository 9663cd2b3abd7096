"""
Duration statistics shared by the mining, metrics and aggregation modules.

Percentiles use nearest-rank indexing into the sorted samples
(``sorted[floor(n * p)]``), so the reported median and 95th percentile are
always observed durations. Empty sample sets summarize to zero.
"""

import math
from dataclasses import dataclass
from typing import Dict, Iterable

import numpy as np


@dataclass(frozen=True)
class TimingSummary:
    """Median, mean and 95th percentile of a set of durations in hours."""
    median_hours: float = 0.0
    mean_hours: float = 0.0
    p95_hours: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary."""
        return {
            "median_hours": self.median_hours,
            "mean_hours": self.mean_hours,
            "p95_hours": self.p95_hours,
        }


def percentile_index(n: int, fraction: float) -> int:
    """Index of the ``fraction`` percentile in a sorted list of ``n`` values."""
    return min(n - 1, int(math.floor(n * fraction)))


def summarize_durations(durations: Iterable[float]) -> TimingSummary:
    """
    Compute median, mean and p95 of durations.

    Args:
        durations: Duration samples in hours

    Returns:
        TimingSummary; all zero when there are no samples
    """
    values = np.sort(np.asarray(list(durations), dtype=float))
    n = len(values)
    if n == 0:
        return TimingSummary()

    # Summation error must not push the mean outside the observed range
    mean = min(max(float(values.mean()), float(values[0])), float(values[-1]))

    return TimingSummary(
        median_hours=float(values[n // 2]),
        mean_hours=mean,
        p95_hours=float(values[percentile_index(n, 0.95)]),
    )


def hours_between(start, end) -> float:
    """Elapsed hours between two datetimes."""
    return (end - start).total_seconds() / 3600
