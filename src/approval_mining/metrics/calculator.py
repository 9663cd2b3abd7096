"""
Process Metrics for Approval Workflow Mining.

Computes summary statistics over reconstructed cases and extracted variants:

- Case metrics: duration distribution with the shortest and longest case
- Variant metrics: coverage of the top 3 variants and path complexity
- Transition metrics: average, slowest and fastest transition times
- Performer metrics: workload per performer and the slowest performers
- Throughput metrics: cases per day/week and the busiest hour

Every metric has a defined neutral value for an empty dataset so that
consumers can render an empty state without special cases.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import timezone
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from ..mining.models import ProcessCase, Variant
from ..stats import percentile_index

logger = logging.getLogger(__name__)

TOP_VARIANT_COUNT = 3
DEFAULT_PERFORMER_SHARE = 0.2


@dataclass(frozen=True)
class CaseExtreme:
    """A case identified by its duration."""
    case_id: Optional[str] = None
    duration_hours: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {"case_id": self.case_id, "duration_hours": self.duration_hours}


@dataclass(frozen=True)
class TransitionExtreme:
    """A transition identified by its median time."""
    from_state: str = ""
    to_state: str = ""
    median_time_hours: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "from": self.from_state,
            "to": self.to_state,
            "median_time_hours": self.median_time_hours,
        }


@dataclass
class CaseMetrics:
    """Case duration distribution."""
    total_cases: int = 0
    average_case_duration: float = 0.0
    median_case_duration: float = 0.0
    percentile_95_case_duration: float = 0.0
    min_case_duration: float = 0.0
    max_case_duration: float = 0.0
    shortest_case: CaseExtreme = field(default_factory=CaseExtreme)
    longest_case: CaseExtreme = field(default_factory=CaseExtreme)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_cases": self.total_cases,
            "average_case_duration": self.average_case_duration,
            "median_case_duration": self.median_case_duration,
            "percentile_95_case_duration": self.percentile_95_case_duration,
            "min_case_duration": self.min_case_duration,
            "max_case_duration": self.max_case_duration,
            "shortest_case": self.shortest_case.to_dict(),
            "longest_case": self.longest_case.to_dict(),
        }


@dataclass
class VariantMetrics:
    """Variant coverage and complexity."""
    total_variants: int = 0
    most_common_variant: Optional[str] = None
    variant_coverage: float = 0.0  # % of cases in the top 3 variants
    variant_complexity: float = 0.0  # case-weighted mean sequence length

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_variants": self.total_variants,
            "most_common_variant": self.most_common_variant,
            "variant_coverage": self.variant_coverage,
            "variant_complexity": self.variant_complexity,
        }


@dataclass
class TransitionSummaryMetrics:
    """Transition timing extremes across all variants."""
    total_transitions: int = 0
    average_transition_time: float = 0.0
    slowest_transition: TransitionExtreme = field(default_factory=TransitionExtreme)
    fastest_transition: TransitionExtreme = field(default_factory=TransitionExtreme)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_transitions": self.total_transitions,
            "average_transition_time": self.average_transition_time,
            "slowest_transition": self.slowest_transition.to_dict(),
            "fastest_transition": self.fastest_transition.to_dict(),
        }


@dataclass
class PerformerWorkload:
    """Work handled by one performer across all variants."""
    total_transitions: int = 0
    total_time: float = 0.0
    activities: List[str] = field(default_factory=list)

    @property
    def average_time(self) -> float:
        """Mean time per handled transition in hours."""
        return self.total_time / self.total_transitions if self.total_transitions else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_transitions": self.total_transitions,
            "average_time": self.average_time,
            "activities": list(self.activities),
        }


@dataclass
class PerformerMetrics:
    """Workload per performer and the slowest performers."""
    total_performers: int = 0
    performer_workload: Dict[str, PerformerWorkload] = field(default_factory=dict)
    bottleneck_performers: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_performers": self.total_performers,
            "performer_workload": {p: w.to_dict() for p, w in self.performer_workload.items()},
            "bottleneck_performers": list(self.bottleneck_performers),
        }


@dataclass
class ThroughputMetrics:
    """Case arrival rates."""
    cases_per_day: float = 0.0
    cases_per_week: float = 0.0
    busiest_hour: Optional[str] = None  # YYYY-MM-DDTHH in UTC
    busiest_hour_case_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "cases_per_day": self.cases_per_day,
            "cases_per_week": self.cases_per_week,
            "busiest_hour": {
                "start": self.busiest_hour,
                "case_count": self.busiest_hour_case_count,
            },
        }


@dataclass
class ProcessMetrics:
    """All process metrics for one dataset."""
    case_metrics: CaseMetrics = field(default_factory=CaseMetrics)
    variant_metrics: VariantMetrics = field(default_factory=VariantMetrics)
    transition_metrics: TransitionSummaryMetrics = field(default_factory=TransitionSummaryMetrics)
    performer_metrics: PerformerMetrics = field(default_factory=PerformerMetrics)
    throughput_metrics: ThroughputMetrics = field(default_factory=ThroughputMetrics)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "case_metrics": self.case_metrics.to_dict(),
            "variant_metrics": self.variant_metrics.to_dict(),
            "transition_metrics": self.transition_metrics.to_dict(),
            "performer_metrics": self.performer_metrics.to_dict(),
            "throughput_metrics": self.throughput_metrics.to_dict(),
        }


def collect_performer_workload(variants: Sequence[Variant]) -> Dict[str, PerformerWorkload]:
    """
    Combine the performer breakdowns of every transition of every variant.

    The mean time of each breakdown entry is weighted by its count, and the
    target state of the transition is recorded as an activity the performer
    handled.

    Returns:
        performer -> PerformerWorkload, in discovery order
    """
    workload: Dict[str, PerformerWorkload] = {}
    for variant in variants:
        for transition in variant.transitions:
            for performer, stats in transition.performer_breakdown.items():
                entry = workload.setdefault(performer, PerformerWorkload())
                entry.total_transitions += stats.count
                entry.total_time += stats.mean_time_hours * stats.count
                if transition.to_state not in entry.activities:
                    entry.activities.append(transition.to_state)
    return workload


def rank_slowest_performers(
    workload: Dict[str, PerformerWorkload],
    share: float = DEFAULT_PERFORMER_SHARE,
) -> List[str]:
    """
    Get the slowest share of performers by mean time, at least one.

    Returns:
        Performer ids, slowest first; empty if there are no performers
    """
    if not workload:
        return []
    ranked = sorted(workload, key=lambda p: -workload[p].average_time)
    count = max(1, int(math.floor(len(ranked) * share)))
    return ranked[:count]


class MetricsCalculator:
    """Computes ProcessMetrics from cases and variants."""

    def __init__(self, performer_share: float = DEFAULT_PERFORMER_SHARE):
        """
        Initialize the calculator.

        Args:
            performer_share: Share of slowest performers to report
        """
        self.performer_share = performer_share

    def calculate(self, cases: Sequence[ProcessCase], variants: Sequence[Variant]) -> ProcessMetrics:
        """
        Compute all process metrics.

        Args:
            cases: Reconstructed cases
            variants: Variants extracted from the same cases

        Returns:
            ProcessMetrics; neutral values for an empty dataset
        """
        if not cases:
            logger.info("No cases to compute metrics for")
            return ProcessMetrics()

        return ProcessMetrics(
            case_metrics=self._case_metrics(cases),
            variant_metrics=self._variant_metrics(cases, variants),
            transition_metrics=self._transition_metrics(variants),
            performer_metrics=self._performer_metrics(variants),
            throughput_metrics=self._throughput_metrics(cases),
        )

    def _case_metrics(self, cases: Sequence[ProcessCase]) -> CaseMetrics:
        """Duration distribution of cases."""
        durations = np.array([c.duration_hours for c in cases], dtype=float)
        sorted_durations = np.sort(durations)
        n = len(sorted_durations)

        # argmin/argmax return the first extreme, matching case discovery order
        shortest = cases[int(np.argmin(durations))]
        longest = cases[int(np.argmax(durations))]

        return CaseMetrics(
            total_cases=n,
            average_case_duration=float(durations.mean()),
            median_case_duration=float(sorted_durations[n // 2]),
            percentile_95_case_duration=float(sorted_durations[percentile_index(n, 0.95)]),
            min_case_duration=float(sorted_durations[0]),
            max_case_duration=float(sorted_durations[-1]),
            shortest_case=CaseExtreme(shortest.case_id, shortest.duration_hours),
            longest_case=CaseExtreme(longest.case_id, longest.duration_hours),
        )

    def _variant_metrics(self, cases: Sequence[ProcessCase], variants: Sequence[Variant]) -> VariantMetrics:
        """Coverage and complexity of variants."""
        total_cases = len(cases)
        top_cases = sum(v.case_count for v in variants[:TOP_VARIANT_COUNT])
        weighted_length = sum(len(v.sequence) * v.case_count for v in variants)

        return VariantMetrics(
            total_variants=len(variants),
            most_common_variant=variants[0].variant_id if variants else None,
            variant_coverage=top_cases / total_cases * 100.0,
            variant_complexity=weighted_length / total_cases,
        )

    def _transition_metrics(self, variants: Sequence[Variant]) -> TransitionSummaryMetrics:
        """Timing extremes across all variant transitions."""
        transitions = [t for v in variants for t in v.transitions]
        positive_medians = [t.median_time_hours for t in transitions if t.median_time_hours > 0]

        slowest = TransitionExtreme()
        fastest: Optional[TransitionExtreme] = None

        for t in transitions:
            if t.median_time_hours > slowest.median_time_hours:
                slowest = TransitionExtreme(t.from_state, t.to_state, t.median_time_hours)
            if t.median_time_hours > 0 and (fastest is None or t.median_time_hours < fastest.median_time_hours):
                fastest = TransitionExtreme(t.from_state, t.to_state, t.median_time_hours)

        return TransitionSummaryMetrics(
            total_transitions=len(transitions),
            average_transition_time=float(np.mean(positive_medians)) if positive_medians else 0.0,
            slowest_transition=slowest,
            fastest_transition=fastest or TransitionExtreme(),
        )

    def _performer_metrics(self, variants: Sequence[Variant]) -> PerformerMetrics:
        """Workload per performer."""
        workload = collect_performer_workload(variants)
        return PerformerMetrics(
            total_performers=len(workload),
            performer_workload=workload,
            bottleneck_performers=rank_slowest_performers(workload, self.performer_share),
        )

    def _throughput_metrics(self, cases: Sequence[ProcessCase]) -> ThroughputMetrics:
        """Arrival rates based on case start times."""
        starts = sorted(c.start_time for c in cases)
        total_days = (starts[-1] - starts[0]).total_seconds() / 86400
        cases_per_day = len(cases) / max(total_days, 1.0)

        hourly: Dict[str, int] = {}
        for case in cases:
            hour_key = case.start_time.astimezone(timezone.utc).strftime("%Y-%m-%dT%H")
            hourly[hour_key] = hourly.get(hour_key, 0) + 1

        busiest_hour, busiest_count = None, 0
        for hour_key, count in hourly.items():
            if count > busiest_count:
                busiest_hour, busiest_count = hour_key, count

        return ThroughputMetrics(
            cases_per_day=cases_per_day,
            cases_per_week=cases_per_day * 7,
            busiest_hour=busiest_hour,
            busiest_hour_case_count=busiest_count,
        )


def calculate_process_metrics(
    cases: Sequence[ProcessCase],
    variants: Sequence[Variant],
    performer_share: float = DEFAULT_PERFORMER_SHARE,
) -> ProcessMetrics:
    """
    Convenience function to compute process metrics.

    Args:
        cases: Reconstructed cases
        variants: Variants extracted from the same cases
        performer_share: Share of slowest performers to report

    Returns:
        ProcessMetrics
    """
    return MetricsCalculator(performer_share=performer_share).calculate(cases, variants)
