"""
Variant Aggregation for Approval Workflow Mining.

Merges a selection of variants into one combined view. Topology and volume
come from different places:

- Topology (which states and transitions are shown) is the union of the
  selected variants. States are exposed as an unordered collection, never
  as a synthetic linear sequence, since selected variants may disagree on
  order.
- Volume (counts, timings, performers, occupancy) comes from the total flow
  data of the whole dataset when it is supplied, so an edge shared with an
  unselected variant still shows all of its traffic. Without total flow
  data the selected variants' own statistics are recombined.

Every aggregated transition and state also lists the selected variants that
contribute to it, with their own numbers, for traceability.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..mining.flow import TotalFlowData
from ..mining.models import Transition, TransitionKey, Variant
from ..mining.variants import summarize_performers
from ..stats import summarize_durations

logger = logging.getLogger(__name__)

VOLUME_TOTAL_FLOW = "total_flow"
VOLUME_SELECTED_VARIANTS = "selected_variants"


@dataclass(frozen=True)
class TransitionContribution:
    """One selected variant's own numbers for a transition."""
    variant_id: str
    count: int
    median_time_hours: float
    mean_time_hours: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "variant_id": self.variant_id,
            "count": self.count,
            "median_time_hours": self.median_time_hours,
            "mean_time_hours": self.mean_time_hours,
        }


@dataclass(frozen=True)
class StateContribution:
    """One selected variant's own occupancy of a state."""
    variant_id: str
    unique_case_count: int
    unique_cases: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "variant_id": self.variant_id,
            "unique_case_count": self.unique_case_count,
            "unique_cases": list(self.unique_cases),
        }


@dataclass(frozen=True)
class AggregatedTransition:
    """A transition of the combined view with its contributing variants."""
    transition: Transition
    contributing_variants: Tuple[TransitionContribution, ...]

    @property
    def key(self) -> TransitionKey:
        """Composite (from, to) key."""
        return self.transition.key

    @property
    def count(self) -> int:
        """Volume of the transition."""
        return self.transition.count

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        data = self.transition.to_dict()
        data["contributing_variants"] = [c.to_dict() for c in self.contributing_variants]
        return data


@dataclass(frozen=True)
class AggregatedStateOccupancy:
    """Occupancy of a state in the combined view."""
    state: str
    unique_case_count: int
    unique_cases: Tuple[str, ...]
    contributing_variants: Tuple[StateContribution, ...]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "state": self.state,
            "unique_case_count": self.unique_case_count,
            "unique_cases": list(self.unique_cases),
            "contributing_variants": [c.to_dict() for c in self.contributing_variants],
        }


@dataclass(frozen=True)
class AggregatedVariant:
    """
    Combined view of a selection of variants.

    Attributes:
        variant_ids: Ids of the aggregated variants, in the order given
        states: Union of the selected variants' states (no implied order)
        total_case_count: Cases in the selected variants
        transitions: Union of the selected variants' transitions
        state_occupancy: Occupancy per state
        total_median_hours: Case-weighted median of variant median durations
        total_mean_hours: Case-weighted mean of variant median durations
        total_percentile_95_hours: Case-weighted p95 of variant median durations
        volume_source: "total_flow" or "selected_variants"
    """
    variant_ids: Tuple[str, ...] = ()
    states: Tuple[str, ...] = ()
    total_case_count: int = 0
    transitions: Tuple[AggregatedTransition, ...] = ()
    state_occupancy: Tuple[AggregatedStateOccupancy, ...] = ()
    total_median_hours: float = 0.0
    total_mean_hours: float = 0.0
    total_percentile_95_hours: float = 0.0
    volume_source: str = VOLUME_SELECTED_VARIANTS

    def get_transition(self, from_state: str, to_state: str) -> Optional[AggregatedTransition]:
        """Find the aggregated transition for a (from, to) pair."""
        for transition in self.transitions:
            if transition.key == (from_state, to_state):
                return transition
        return None

    def get_state_occupancy(self, state: str) -> Optional[AggregatedStateOccupancy]:
        """Find the aggregated occupancy of a state."""
        for occupancy in self.state_occupancy:
            if occupancy.state == state:
                return occupancy
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "variant_ids": list(self.variant_ids),
            "states": list(self.states),
            "total_case_count": self.total_case_count,
            "transitions": [t.to_dict() for t in self.transitions],
            "state_occupancy": [s.to_dict() for s in self.state_occupancy],
            "total_median_hours": self.total_median_hours,
            "total_mean_hours": self.total_mean_hours,
            "total_percentile_95_hours": self.total_percentile_95_hours,
            "volume_source": self.volume_source,
        }


@dataclass
class _TransitionAccumulator:
    """Fallback volume of one transition recombined from selected variants."""
    count: int = 0
    samples: List[float] = field(default_factory=list)
    performer_samples: Dict[str, List[float]] = field(default_factory=dict)
    contributions: List[TransitionContribution] = field(default_factory=list)


class VariantAggregator:
    """Builds an AggregatedVariant from a selection of variants."""

    def __init__(self, total_flow: Optional[TotalFlowData] = None):
        """
        Initialize the aggregator.

        Args:
            total_flow: Dataset-wide volume; when None, volume is recombined
                        from the selected variants
        """
        self.total_flow = total_flow

    def aggregate(self, variants: Sequence[Variant]) -> AggregatedVariant:
        """
        Combine the selected variants.

        Args:
            variants: Selected variants

        Returns:
            AggregatedVariant; empty with zero totals if nothing is selected
        """
        volume_source = VOLUME_TOTAL_FLOW if self.total_flow is not None else VOLUME_SELECTED_VARIANTS
        if not variants:
            return AggregatedVariant(volume_source=volume_source)

        states = tuple(dict.fromkeys(state for v in variants for state in v.sequence))

        accumulators: Dict[TransitionKey, _TransitionAccumulator] = {}
        for variant in variants:
            for transition in variant.transitions:
                acc = accumulators.setdefault(transition.key, _TransitionAccumulator())
                acc.count += transition.count
                # Weight each variant's median by its occurrence count
                acc.samples.extend([transition.median_time_hours] * transition.count)
                for performer, stats in transition.performer_breakdown.items():
                    acc.performer_samples.setdefault(performer, []).extend(
                        [stats.median_time_hours] * stats.count
                    )
                acc.contributions.append(TransitionContribution(
                    variant_id=variant.variant_id,
                    count=transition.count,
                    median_time_hours=transition.median_time_hours,
                    mean_time_hours=transition.mean_time_hours,
                ))

        transitions = tuple(
            AggregatedTransition(
                transition=self._transition_volume(key, acc),
                contributing_variants=tuple(acc.contributions),
            )
            for key, acc in accumulators.items()
        )

        weighted_totals = [
            v.total_median_hours for v in variants for _ in range(v.case_count)
        ]
        totals = summarize_durations(weighted_totals)

        logger.debug(
            f"Aggregated {len(variants)} variants: {len(states)} states, "
            f"{len(transitions)} transitions, volume from {volume_source}"
        )

        return AggregatedVariant(
            variant_ids=tuple(v.variant_id for v in variants),
            states=states,
            total_case_count=sum(v.case_count for v in variants),
            transitions=transitions,
            state_occupancy=self._state_occupancy(variants, states),
            total_median_hours=totals.median_hours,
            total_mean_hours=totals.mean_hours,
            total_percentile_95_hours=totals.p95_hours,
            volume_source=volume_source,
        )

    def _transition_volume(self, key: TransitionKey, acc: _TransitionAccumulator) -> Transition:
        """Volume of a topology transition."""
        if self.total_flow is not None:
            total = self.total_flow.transition_stats(key)
            if total is not None:
                return total
            logger.warning(f"Transition {key[0]} -> {key[1]} missing from total flow data")

        return Transition.from_samples(
            from_state=key[0],
            to_state=key[1],
            count=acc.count,
            timing=summarize_durations(acc.samples),
            performer_breakdown=summarize_performers(acc.performer_samples),
        )

    def _state_occupancy(
        self,
        variants: Sequence[Variant],
        states: Tuple[str, ...],
    ) -> Tuple[AggregatedStateOccupancy, ...]:
        """Occupancy per state of the combined view."""
        contributions: Dict[str, List[StateContribution]] = {state: [] for state in states}
        selected_cases: Dict[str, Dict[str, None]] = {state: {} for state in states}

        for variant in variants:
            for occupancy in variant.state_occupancy:
                contributions[occupancy.state].append(StateContribution(
                    variant_id=variant.variant_id,
                    unique_case_count=occupancy.unique_case_count,
                    unique_cases=occupancy.unique_cases,
                ))
                for case_id in occupancy.unique_cases:
                    selected_cases[occupancy.state][case_id] = None

        result = []
        for state in states:
            if self.total_flow is not None:
                unique_cases = tuple(sorted(self.total_flow.state_case_ids(state)))
            else:
                unique_cases = tuple(selected_cases[state])
            result.append(AggregatedStateOccupancy(
                state=state,
                unique_case_count=len(unique_cases),
                unique_cases=unique_cases,
                contributing_variants=tuple(contributions[state]),
            ))
        return tuple(result)


def aggregate_variants(
    variants: Sequence[Variant],
    total_flow: Optional[TotalFlowData] = None,
) -> AggregatedVariant:
    """
    Convenience function to aggregate a selection of variants.

    Args:
        variants: Selected variants
        total_flow: Dataset-wide volume (recommended)

    Returns:
        AggregatedVariant
    """
    return VariantAggregator(total_flow).aggregate(variants)
