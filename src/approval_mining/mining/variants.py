"""
Variant Extraction for Approval Workflow Mining.

Groups cases by their exact ordered state sequence. Identity is order- and
loop-sensitive: ``A,B,C`` and ``A,B,B,C`` are different variants.

Transition counts are occurrence counts. For every distinct adjacent pair of
the variant's sequence, each case's raw event stream is scanned for every
occurrence of the pair, so a variant ``A,B,A,B,C`` followed by 3 cases has
``count(A->B) == 6`` and ``count(B->A) == 3``.

State occupancy counts each case at most once per state, however many times
the case revisits it.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from ..stats import summarize_durations
from ..templates import WorkflowTemplate, get_permit_template
from .cases import iter_directly_follows
from .models import (
    PerformerStats,
    ProcessCase,
    StateOccupancy,
    Transition,
    TransitionKey,
    Variant,
)

logger = logging.getLogger(__name__)


def summarize_performers(performer_durations: Dict[str, List[float]]) -> Dict[str, PerformerStats]:
    """
    Summarize duration samples per performer.

    Args:
        performer_durations: performer -> duration samples in hours

    Returns:
        performer -> PerformerStats, in the input order
    """
    breakdown = {}
    for performer, durations in performer_durations.items():
        timing = summarize_durations(durations)
        breakdown[performer] = PerformerStats(
            count=len(durations),
            median_time_hours=timing.median_hours,
            mean_time_hours=timing.mean_hours,
        )
    return breakdown


def distinct_pairs(sequence: Sequence[str]) -> List[TransitionKey]:
    """Distinct adjacent pairs of a sequence, in first-appearance order."""
    return list(dict.fromkeys(zip(sequence, sequence[1:])))


class VariantExtractor:
    """
    Extracts variants from reconstructed cases.

    Known sequences from the workflow template receive their readable key
    as variant id; any other sequence receives ``unknown_<n>``, numbered in
    discovery order.
    """

    def __init__(self, template: Optional[WorkflowTemplate] = None):
        """
        Initialize the extractor.

        Args:
            template: Workflow template with the known variant registry
                      (defaults to the permit workflow)
        """
        self.template = template or get_permit_template()

    def extract(self, cases: Sequence[ProcessCase]) -> List[Variant]:
        """
        Group cases into variants.

        Args:
            cases: Reconstructed cases

        Returns:
            Variants sorted by case count, most common first; ties keep
            discovery order
        """
        groups: Dict[Tuple[str, ...], List[ProcessCase]] = {}
        for case in cases:
            groups.setdefault(case.sequence, []).append(case)

        variants = []
        unknown_counter = 1

        for sequence, variant_cases in groups.items():
            variant_id = self.template.identify_variant(sequence)
            if variant_id is None:
                variant_id = f"unknown_{unknown_counter}"
                unknown_counter += 1

            variants.append(self._build_variant(variant_id, sequence, variant_cases))

        variants.sort(key=lambda v: -v.case_count)

        logger.debug(f"Extracted {len(variants)} variants from {len(cases)} cases")
        return variants

    def _build_variant(
        self,
        variant_id: str,
        sequence: Tuple[str, ...],
        variant_cases: List[ProcessCase],
    ) -> Variant:
        """Compute transitions, occupancy and totals for one group of cases."""
        durations: Dict[TransitionKey, List[float]] = {key: [] for key in distinct_pairs(sequence)}
        performer_durations: Dict[TransitionKey, Dict[str, List[float]]] = {key: {} for key in durations}

        for case in variant_cases:
            for from_state, to_state, hours, performer in iter_directly_follows(case):
                key = (from_state, to_state)
                if key not in durations:
                    continue
                durations[key].append(hours)
                if performer:
                    performer_durations[key].setdefault(performer, []).append(hours)

        transitions = tuple(
            Transition.from_samples(
                from_state=key[0],
                to_state=key[1],
                count=len(samples),
                timing=summarize_durations(samples),
                performer_breakdown=summarize_performers(performer_durations[key]),
            )
            for key, samples in durations.items()
            if samples
        )

        state_occupancy = []
        for state in dict.fromkeys(sequence):
            unique_cases = tuple(
                case.case_id for case in variant_cases
                if any(event.state == state for event in case.events)
            )
            state_occupancy.append(StateOccupancy(
                state=state,
                unique_case_count=len(unique_cases),
                unique_cases=unique_cases,
            ))

        totals = summarize_durations(case.duration_hours for case in variant_cases)

        return Variant(
            variant_id=variant_id,
            sequence=sequence,
            case_count=len(variant_cases),
            cases=tuple(case.case_id for case in variant_cases),
            transitions=transitions,
            state_occupancy=tuple(state_occupancy),
            total_median_hours=totals.median_hours,
            total_mean_hours=totals.mean_hours,
            total_percentile_95_hours=totals.p95_hours,
        )


def extract_variants(
    cases: Sequence[ProcessCase],
    template: Optional[WorkflowTemplate] = None,
) -> List[Variant]:
    """
    Convenience function to extract variants from cases.

    Args:
        cases: Reconstructed cases
        template: Workflow template with known variants (defaults to permit)

    Returns:
        Variants sorted by case count descending
    """
    return VariantExtractor(template).extract(cases)
