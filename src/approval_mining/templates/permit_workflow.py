"""
Permit Application Workflow Template.

Defines the states, terminal states and known behavioral variants of the
permit application approval process:

    submitted -> intake_validation -> assigned_to_reviewer
        -> review_in_progress -> health_inspection -> approved

Applications may loop through an information request
(review_in_progress -> request_additional_info -> applicant_provided_info
-> review_in_progress), be rejected after inspection, or be withdrawn while
information is outstanding.

Expected transition times are the business expectation for each step and
are used by the expected-time bottleneck policy.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional, Sequence, Tuple


TransitionKey = Tuple[str, str]


@dataclass(frozen=True)
class VariantDefinition:
    """
    A named, known sequence of states.

    Attributes:
        key: Identifier used as the variant id when a sequence matches
        name: Human-readable name
        sequence: Ordered states of the variant
        probability: Expected share of cases following this variant
    """
    key: str
    name: str
    sequence: Tuple[str, ...]
    probability: float = 0.0


@dataclass(frozen=True)
class WorkflowTemplate:
    """
    Static description of an approval workflow.

    Attributes:
        name: Workflow identifier
        display_name: Human-readable name
        states: All states in the workflow, in canonical order
        terminal_states: States a complete case must end in
        variants: Known variant definitions, checked in order
        happy_path: The ideal sequence of states
        transition_time_ranges: (from, to) -> (min_hours, max_hours)
    """
    name: str
    display_name: str
    states: Tuple[str, ...]
    terminal_states: FrozenSet[str]
    variants: Tuple[VariantDefinition, ...] = ()
    happy_path: Tuple[str, ...] = ()
    transition_time_ranges: Dict[TransitionKey, Tuple[float, float]] = field(default_factory=dict)

    def identify_variant(self, sequence: Sequence[str]) -> Optional[str]:
        """
        Find the known variant matching a sequence exactly.

        Args:
            sequence: Ordered states of a case

        Returns:
            The variant key, or None if the sequence is not a known variant
        """
        candidate = tuple(sequence)
        for definition in self.variants:
            if definition.sequence == candidate:
                return definition.key
        return None

    def expected_time(self, from_state: str, to_state: str) -> Optional[float]:
        """
        Get the expected maximum processing time for a transition.

        Returns:
            Maximum expected hours, or None if no range is configured
        """
        time_range = self.transition_time_ranges.get((from_state, to_state))
        return time_range[1] if time_range else None

    @property
    def expected_times(self) -> Dict[TransitionKey, float]:
        """Expected maximum hours for every configured transition."""
        return {key: bounds[1] for key, bounds in self.transition_time_ranges.items()}

    def is_terminal(self, state: str) -> bool:
        """Check if a state ends a case."""
        return state in self.terminal_states


PERMIT_STATES: Tuple[str, ...] = (
    "submitted",
    "intake_validation",
    "assigned_to_reviewer",
    "review_in_progress",
    "request_additional_info",
    "applicant_provided_info",
    "health_inspection",
    "approved",
    "rejected",
    "withdrawn",
)

FINAL_STATES: FrozenSet[str] = frozenset(["approved", "rejected", "withdrawn"])

PERMIT_VARIANTS: Tuple[VariantDefinition, ...] = (
    VariantDefinition(
        key="direct_approval",
        name="Direct Approval",
        sequence=(
            "submitted", "intake_validation", "assigned_to_reviewer",
            "review_in_progress", "health_inspection", "approved",
        ),
        probability=0.6,
    ),
    VariantDefinition(
        key="info_loop",
        name="Request More Info",
        sequence=(
            "submitted", "intake_validation", "assigned_to_reviewer",
            "review_in_progress", "request_additional_info",
            "applicant_provided_info", "review_in_progress",
            "health_inspection", "approved",
        ),
        probability=0.25,
    ),
    VariantDefinition(
        key="rejected",
        name="Rejected at Final",
        sequence=(
            "submitted", "intake_validation", "assigned_to_reviewer",
            "review_in_progress", "health_inspection", "rejected",
        ),
        probability=0.1,
    ),
    VariantDefinition(
        key="withdrawn",
        name="Withdrawn",
        sequence=(
            "submitted", "intake_validation", "assigned_to_reviewer",
            "review_in_progress", "request_additional_info", "withdrawn",
        ),
        probability=0.05,
    ),
)

# Hours; the max is the bottleneck threshold for the expected-time policy
PERMIT_TRANSITION_TIME_RANGES: Dict[TransitionKey, Tuple[float, float]] = {
    ("submitted", "intake_validation"): (24, 48),
    ("intake_validation", "assigned_to_reviewer"): (0.1, 0.5),
    ("assigned_to_reviewer", "review_in_progress"): (48, 120),
    ("review_in_progress", "health_inspection"): (24, 168),
    ("review_in_progress", "request_additional_info"): (24, 168),
    ("request_additional_info", "applicant_provided_info"): (48, 72),
    ("applicant_provided_info", "review_in_progress"): (48, 336),
    ("health_inspection", "approved"): (24, 120),
    ("health_inspection", "rejected"): (24, 120),
    ("request_additional_info", "withdrawn"): (12, 48),
}


def get_permit_template() -> WorkflowTemplate:
    """
    Get the permit application workflow template.

    Returns:
        WorkflowTemplate for the permit approval process
    """
    return WorkflowTemplate(
        name="permit_application",
        display_name="Permit Application",
        states=PERMIT_STATES,
        terminal_states=FINAL_STATES,
        variants=PERMIT_VARIANTS,
        happy_path=PERMIT_VARIANTS[0].sequence,
        transition_time_ranges=dict(PERMIT_TRANSITION_TIME_RANGES),
    )
