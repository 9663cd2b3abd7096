"""
Bottleneck Detection for Approval Workflows.

A bottleneck is a transition or performer whose processing time is high
*and* that affects enough cases to matter. Transition bottlenecks are found
by one of two interchangeable policies:

- Percentile: the median times of every variant transition form a pool;
  a transition is flagged when its median reaches the pool's 90th
  percentile and its variant has enough cases.
- Expected time: a transition is flagged when its mean time exceeds the
  configured expected maximum for that step times a tolerance factor and
  its variant has enough cases. Steps without an expected time are not
  evaluated by this policy.

Performer bottlenecks are the slowest share of performers by mean time,
restricted to those who handled enough transitions to avoid flagging noise.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..mining.models import PerformerStats, Transition, TransitionKey, Variant
from ..stats import percentile_index
from ..templates import get_permit_template
from .calculator import DEFAULT_PERFORMER_SHARE, collect_performer_workload, rank_slowest_performers

logger = logging.getLogger(__name__)

DEFAULT_MIN_PERFORMER_TRANSITIONS = 5


class BottleneckType(Enum):
    """What a bottleneck record refers to."""

    TRANSITION = "transition"
    PERFORMER = "performer"


@dataclass(frozen=True)
class Bottleneck:
    """
    A flagged transition or performer.

    Attributes:
        type: Transition or performer
        identifier: "from → to" for transitions, performer id otherwise
        score: Mean time in hours; higher means more impact
        reason: Human-readable explanation
        affected_cases: Cases in the variant, or transitions handled
    """
    type: BottleneckType
    identifier: str
    score: float
    reason: str
    affected_cases: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "type": self.type.value,
            "identifier": self.identifier,
            "score": self.score,
            "reason": self.reason,
            "affected_cases": self.affected_cases,
        }


def transition_label(transition: Transition) -> str:
    """Display identifier of a transition."""
    return f"{transition.from_state} → {transition.to_state}"


class BottleneckPolicy(ABC):
    """Strategy deciding which variant transitions are bottlenecks."""

    name = ""

    def prepare(self, variants: Sequence[Variant]) -> None:
        """Compute any dataset-wide threshold before evaluation."""

    @abstractmethod
    def evaluate(self, transition: Transition, variant: Variant) -> Optional[str]:
        """
        Decide whether a transition of a variant is a bottleneck.

        Returns:
            The reason if it is a bottleneck, otherwise None
        """

    def find(self, variants: Sequence[Variant]) -> List[Bottleneck]:
        """Evaluate every transition of every variant."""
        self.prepare(variants)
        bottlenecks = []
        for variant in variants:
            for transition in variant.transitions:
                reason = self.evaluate(transition, variant)
                if reason:
                    bottlenecks.append(Bottleneck(
                        type=BottleneckType.TRANSITION,
                        identifier=transition_label(transition),
                        score=transition.mean_time_hours,
                        reason=reason,
                        affected_cases=variant.case_count,
                    ))
        return bottlenecks


class PercentileBottleneckPolicy(BottleneckPolicy):
    """Flags transitions whose median time is in the top percentile."""

    name = "percentile"

    def __init__(self, percentile: float = 0.9, min_case_count: int = 10):
        """
        Initialize the policy.

        Args:
            percentile: Fraction in [0, 1) locating the threshold in the
                        sorted pool of transition median times
            min_case_count: Minimum variant case count to flag a transition
        """
        if not 0.0 <= percentile < 1.0:
            raise ValueError(f"percentile must be in [0, 1), got {percentile}")
        self.percentile = percentile
        self.min_case_count = min_case_count
        self.threshold: Optional[float] = None

    def prepare(self, variants: Sequence[Variant]) -> None:
        pool = sorted(t.median_time_hours for v in variants for t in v.transitions)
        self.threshold = pool[percentile_index(len(pool), self.percentile)] if pool else None
        logger.debug(f"Percentile threshold over {len(pool)} transitions: {self.threshold}")

    def evaluate(self, transition: Transition, variant: Variant) -> Optional[str]:
        if self.threshold is None:
            return None
        if transition.median_time_hours >= self.threshold and variant.case_count >= self.min_case_count:
            return (
                f"High median time ({transition.median_time_hours:.1f}h) "
                f"in {self.percentile * 100:.0f}th percentile"
            )
        return None


class ExpectedTimeBottleneckPolicy(BottleneckPolicy):
    """Flags transitions whose mean time exceeds the expected maximum."""

    name = "expected_time"

    def __init__(
        self,
        expected_times: Optional[Mapping[TransitionKey, float]] = None,
        tolerance: float = 1.2,
        min_case_count: int = 5,
    ):
        """
        Initialize the policy.

        Args:
            expected_times: (from, to) -> expected maximum hours
                            (defaults to the permit workflow's)
            tolerance: Multiplier on the expected maximum
            min_case_count: Minimum variant case count to flag a transition
        """
        if tolerance <= 0:
            raise ValueError(f"tolerance must be positive, got {tolerance}")
        self.expected_times = dict(
            expected_times if expected_times is not None else get_permit_template().expected_times
        )
        self.tolerance = tolerance
        self.min_case_count = min_case_count

    def evaluate(self, transition: Transition, variant: Variant) -> Optional[str]:
        expected = self.expected_times.get(transition.key)
        if expected is None:
            return None
        if transition.mean_time_hours > expected * self.tolerance and variant.case_count >= self.min_case_count:
            return (
                f"Exceeds expected time ({transition.mean_time_hours:.1f}h "
                f"vs expected max {expected:.1f}h)"
            )
        return None


def get_bottleneck_policy(name: str, **kwargs: Any) -> BottleneckPolicy:
    """
    Build a bottleneck policy by name.

    Args:
        name: "percentile" or "expected_time"
        **kwargs: Policy parameters

    Raises:
        ValueError: If the name is not a known policy
    """
    policies = {
        PercentileBottleneckPolicy.name: PercentileBottleneckPolicy,
        ExpectedTimeBottleneckPolicy.name: ExpectedTimeBottleneckPolicy,
    }
    if name not in policies:
        raise ValueError(f"Unknown bottleneck policy: {name}. Use one of {sorted(policies)}.")
    return policies[name](**kwargs)


def find_performer_bottlenecks(
    variants: Sequence[Variant],
    share: float = DEFAULT_PERFORMER_SHARE,
    min_transitions: int = DEFAULT_MIN_PERFORMER_TRANSITIONS,
) -> List[Bottleneck]:
    """
    Flag the slowest performers with a significant workload.

    Args:
        variants: All extracted variants
        share: Share of slowest performers considered (at least one)
        min_transitions: Minimum transitions handled to be flagged

    Returns:
        Performer bottlenecks, slowest first
    """
    workload = collect_performer_workload(variants)
    bottlenecks = []
    for performer in rank_slowest_performers(workload, share):
        entry = workload[performer]
        if entry.total_transitions < min_transitions:
            continue
        bottlenecks.append(Bottleneck(
            type=BottleneckType.PERFORMER,
            identifier=performer,
            score=entry.average_time,
            reason=(
                f"Consistently slow performance ({entry.average_time:.1f}h avg) "
                f"across {len(entry.activities)} activities"
            ),
            affected_cases=entry.total_transitions,
        ))
    return bottlenecks


def identify_bottlenecks(
    variants: Sequence[Variant],
    policy: Optional[BottleneckPolicy] = None,
    performer_share: float = DEFAULT_PERFORMER_SHARE,
    min_performer_transitions: int = DEFAULT_MIN_PERFORMER_TRANSITIONS,
) -> List[Bottleneck]:
    """
    Find transition and performer bottlenecks.

    Args:
        variants: All extracted variants
        policy: Transition policy (defaults to PercentileBottleneckPolicy)
        performer_share: Share of slowest performers considered
        min_performer_transitions: Minimum workload for a performer bottleneck

    Returns:
        All bottlenecks sorted by score, highest first
    """
    policy = policy or PercentileBottleneckPolicy()
    bottlenecks = policy.find(variants)
    bottlenecks.extend(find_performer_bottlenecks(variants, performer_share, min_performer_transitions))
    bottlenecks.sort(key=lambda b: -b.score)

    logger.info(f"Identified {len(bottlenecks)} bottlenecks using {policy.name} policy")
    return bottlenecks


@dataclass(frozen=True)
class WorkerPerformance:
    """One performer's mean time compared with the expected time."""
    worker_id: str
    process_count: int
    mean_time: float
    is_over_expected: bool
    percentage_over: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "worker_id": self.worker_id,
            "process_count": self.process_count,
            "mean_time": self.mean_time,
            "is_over_expected": self.is_over_expected,
            "percentage_over": self.percentage_over,
        }


def analyze_worker_performance(
    performer_breakdown: Mapping[str, PerformerStats],
    expected_time: Optional[float],
) -> List[WorkerPerformance]:
    """
    Compare each performer's mean time on a transition with its expected time.

    Args:
        performer_breakdown: performer -> stats for one transition
        expected_time: Expected maximum hours, or None if not configured

    Returns:
        One entry per performer; empty when no expected time is configured
    """
    if not expected_time or not performer_breakdown:
        return []

    results = []
    for worker_id, stats in performer_breakdown.items():
        percentage_over = (stats.mean_time_hours - expected_time) / expected_time * 100
        results.append(WorkerPerformance(
            worker_id=worker_id,
            process_count=stats.count,
            mean_time=stats.mean_time_hours,
            is_over_expected=stats.mean_time_hours > expected_time,
            percentage_over=max(0.0, percentage_over),
        ))
    return results
