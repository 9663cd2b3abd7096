"""
Total flow data: transition and state volume over the whole dataset.

This is the volume source of truth for variant aggregation. It is computed
from every case regardless of any variant selection, so the traffic shown on
an edge does not shrink when a user inspects only some of the variants that
use it.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple

from ..stats import summarize_durations
from .cases import iter_directly_follows
from .models import ProcessCase, Transition, TransitionKey
from .variants import summarize_performers

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FlowSamples:
    """All observations of one transition across the dataset."""
    count: int
    durations: Tuple[float, ...]
    performer_durations: Dict[str, Tuple[float, ...]]


@dataclass(frozen=True)
class TotalFlowData:
    """
    Transition and state-occupancy volume over all cases.

    Attributes:
        transitions: (from, to) -> every observation of the pair
        state_cases: state -> distinct case ids that visited it
        total_cases: Number of cases in the dataset
    """
    transitions: Dict[TransitionKey, FlowSamples]
    state_cases: Dict[str, FrozenSet[str]]
    total_cases: int

    def has_transition(self, key: TransitionKey) -> bool:
        """Check if a transition was observed anywhere in the dataset."""
        return key in self.transitions

    def transition_stats(self, key: TransitionKey) -> Optional[Transition]:
        """
        Summarize all observations of a transition.

        Args:
            key: (from, to) pair

        Returns:
            Transition with dataset-wide count, timing and performers,
            or None if the pair never occurred
        """
        samples = self.transitions.get(key)
        if samples is None:
            return None
        return Transition.from_samples(
            from_state=key[0],
            to_state=key[1],
            count=samples.count,
            timing=summarize_durations(samples.durations),
            performer_breakdown=summarize_performers(
                {p: list(d) for p, d in samples.performer_durations.items()}
            ),
        )

    def state_case_ids(self, state: str) -> FrozenSet[str]:
        """Distinct case ids that visited a state."""
        return self.state_cases.get(state, frozenset())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary with summarized transitions."""
        return {
            "total_cases": self.total_cases,
            "transitions": [self.transition_stats(key).to_dict() for key in self.transitions],
            "state_occupancy": {
                state: len(case_ids) for state, case_ids in self.state_cases.items()
            },
        }


def compute_total_flow(cases: Sequence[ProcessCase]) -> TotalFlowData:
    """
    Collect every transition occurrence and state visit in the dataset.

    Args:
        cases: Every reconstructed case of the log

    Returns:
        TotalFlowData independent of any variant selection
    """
    durations: Dict[TransitionKey, List[float]] = {}
    performer_durations: Dict[TransitionKey, Dict[str, List[float]]] = {}
    state_cases: Dict[str, Dict[str, None]] = {}

    for case in cases:
        for event in case.events:
            state_cases.setdefault(event.state, {})[case.case_id] = None

        for from_state, to_state, hours, performer in iter_directly_follows(case):
            key = (from_state, to_state)
            durations.setdefault(key, []).append(hours)
            by_performer = performer_durations.setdefault(key, {})
            if performer:
                by_performer.setdefault(performer, []).append(hours)

    logger.debug(f"Computed total flow over {len(cases)} cases: {len(durations)} transitions")

    return TotalFlowData(
        transitions={
            key: FlowSamples(
                count=len(samples),
                durations=tuple(samples),
                performer_durations={p: tuple(d) for p, d in performer_durations[key].items()},
            )
            for key, samples in durations.items()
        },
        state_cases={state: frozenset(ids) for state, ids in state_cases.items()},
        total_cases=len(cases),
    )
