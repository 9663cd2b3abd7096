"""
Flow Conservation Checking for Approval Workflow Mining.

Verifies that derived variants and the directly-follows graph are internally
consistent. Every state is classified, in this order:

1. Both start and end (single-state cases): exempt, always balanced
2. Start only: incoming flow must be 0
3. End only: outgoing flow must be 0
4. Intermediate: incoming flow must equal outgoing flow

Violations are diagnostics, never errors: they are returned as itemized
checks with expected vs actual counts and logged, and the rest of the
analysis continues on the (possibly inconsistent) data.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..mining.dfg import DirectlyFollowsGraph
from ..mining.models import PerformerStats, Transition, Variant

logger = logging.getLogger(__name__)

DFG_MARKER = "DFG"

DEFAULT_HIGH_FREQUENCY_THRESHOLD = 100


class ConservationStatus(Enum):
    """Outcome of a group of conservation checks."""

    PASS = "PASS"
    FAIL = "FAIL"


@dataclass(frozen=True)
class ConservationCheck:
    """
    Flow balance of one state in one variant (or in the DFG).

    Attributes:
        node: State name
        variant: Variant id, or "DFG" for graph-level checks
        incoming_count: Sum of incoming transition counts
        outgoing_counts: target -> transition count
        total_outgoing: Sum of outgoing transition counts
        is_balanced: Whether the state satisfies its rule
        error_message: Expected vs actual counts when unbalanced
    """
    node: str
    variant: str
    incoming_count: int
    outgoing_counts: Dict[str, int]
    total_outgoing: int
    is_balanced: bool
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "node": self.node,
            "variant": self.variant,
            "incoming_count": self.incoming_count,
            "outgoing_counts": dict(self.outgoing_counts),
            "total_outgoing": self.total_outgoing,
            "is_balanced": self.is_balanced,
            "error_message": self.error_message,
        }


@dataclass
class VariantConservationResult:
    """Checks for one variant and their combined status."""
    status: ConservationStatus
    checks: List[ConservationCheck] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "status": self.status.value,
            "checks": [c.to_dict() for c in self.checks],
        }


@dataclass
class ConservationSummary:
    """Human-readable findings of a conservation report."""
    critical_errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "critical_errors": self.critical_errors,
            "warnings": self.warnings,
            "recommendations": self.recommendations,
        }


@dataclass
class ConservationReport:
    """
    Conservation results across all variants and the DFG.

    Attributes:
        overall_status: PASS when every check is balanced
        total_checks: Number of checks performed
        passed_checks: Number of balanced checks
        failed_checks: Number of unbalanced checks
        node_results: Every check, variant checks first, DFG checks last
        variant_results: variant_id -> checks and status
        summary: Critical errors, warnings and recommendations
    """
    overall_status: ConservationStatus
    total_checks: int
    passed_checks: int
    failed_checks: int
    node_results: List[ConservationCheck]
    variant_results: Dict[str, VariantConservationResult]
    summary: ConservationSummary

    @property
    def passed(self) -> bool:
        """Whether every check passed."""
        return self.overall_status == ConservationStatus.PASS

    def get_failed_checks(self) -> List[ConservationCheck]:
        """Get the unbalanced checks."""
        return [c for c in self.node_results if not c.is_balanced]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "overall_status": self.overall_status.value,
            "total_checks": self.total_checks,
            "passed_checks": self.passed_checks,
            "failed_checks": self.failed_checks,
            "node_results": [c.to_dict() for c in self.node_results],
            "variant_results": {k: v.to_dict() for k, v in self.variant_results.items()},
            "summary": self.summary.to_dict(),
        }


def _evaluate_balance(
    incoming: int,
    outgoing: int,
    is_start: bool,
    is_end: bool,
) -> Tuple[bool, Optional[str]]:
    """Apply the conservation rule for a state's role."""
    if is_start and is_end:
        return True, None
    if is_start:
        if incoming == 0:
            return True, None
        return False, f"Start state should have incoming=0, but found incoming={incoming}"
    if is_end:
        if outgoing == 0:
            return True, None
        return False, f"End state should have outgoing=0, but found outgoing={outgoing}"
    if incoming == outgoing:
        return True, None
    return False, (
        f"Intermediate state should have incoming=outgoing, "
        f"but found incoming={incoming}, outgoing={outgoing}"
    )


def check_variant_conservation(variant: Variant) -> List[ConservationCheck]:
    """
    Check flow balance for every state of a variant.

    The variant's first state is its start state and its last state its
    end state.

    Args:
        variant: Variant to check

    Returns:
        One ConservationCheck per distinct state, in sequence order
    """
    incoming: Dict[str, int] = {state: 0 for state in variant.sequence}
    outgoing: Dict[str, Dict[str, int]] = {state: {} for state in variant.sequence}

    for transition in variant.transitions:
        incoming[transition.to_state] = incoming.get(transition.to_state, 0) + transition.count
        outgoing.setdefault(transition.from_state, {})[transition.to_state] = transition.count

    checks = []
    for state in incoming:
        targets = outgoing.get(state, {})
        total_outgoing = sum(targets.values())
        is_balanced, message = _evaluate_balance(
            incoming[state],
            total_outgoing,
            is_start=state == variant.start_state,
            is_end=state == variant.end_state,
        )
        checks.append(ConservationCheck(
            node=state,
            variant=variant.variant_id,
            incoming_count=incoming[state],
            outgoing_counts=targets,
            total_outgoing=total_outgoing,
            is_balanced=is_balanced,
            error_message=message,
        ))

    return checks


def check_dfg_conservation(dfg: DirectlyFollowsGraph) -> List[ConservationCheck]:
    """
    Check flow balance for every activity of the directly-follows graph.

    Args:
        dfg: Graph to check

    Returns:
        One ConservationCheck per node, with variant "DFG"
    """
    checks = []
    for activity, node in dfg.nodes.items():
        outgoing_counts = {edge.to_state: edge.count for edge in node.outgoing_edges}
        incoming_count = node.incoming_count
        total_outgoing = node.outgoing_count

        is_balanced, message = _evaluate_balance(
            incoming_count,
            total_outgoing,
            is_start=activity in dfg.start_activities,
            is_end=activity in dfg.end_activities,
        )
        checks.append(ConservationCheck(
            node=activity,
            variant=DFG_MARKER,
            incoming_count=incoming_count,
            outgoing_counts=outgoing_counts,
            total_outgoing=total_outgoing,
            is_balanced=is_balanced,
            error_message=message,
        ))

    return checks


def generate_conservation_report(
    variants: Sequence[Variant],
    dfg: DirectlyFollowsGraph,
    high_frequency_threshold: int = DEFAULT_HIGH_FREQUENCY_THRESHOLD,
) -> ConservationReport:
    """
    Run conservation checks over every variant and the DFG.

    Args:
        variants: All extracted variants
        dfg: Directly-follows graph of the whole dataset
        high_frequency_threshold: Incoming or outgoing volume above which an
                                  unbalanced node is reported as high-frequency

    Returns:
        ConservationReport with itemized checks and summary
    """
    variant_results: Dict[str, VariantConservationResult] = {}
    all_checks: List[ConservationCheck] = []

    for variant in variants:
        checks = check_variant_conservation(variant)
        has_failures = any(not c.is_balanced for c in checks)
        variant_results[variant.variant_id] = VariantConservationResult(
            status=ConservationStatus.FAIL if has_failures else ConservationStatus.PASS,
            checks=checks,
        )
        all_checks.extend(checks)

    all_checks.extend(check_dfg_conservation(dfg))

    passed_checks = sum(1 for c in all_checks if c.is_balanced)
    failed_checks = len(all_checks) - passed_checks
    summary = ConservationSummary()

    if failed_checks:
        summary.critical_errors.append(f"{failed_checks} conservation law violations detected")

        failed_variants = [
            variant_id for variant_id, result in variant_results.items()
            if result.status == ConservationStatus.FAIL
        ]
        if failed_variants:
            summary.critical_errors.append(f"Affected variants: {', '.join(failed_variants)}")

        summary.recommendations.append("Review event log data for missing or duplicate events")
        summary.recommendations.append("Verify timestamp ordering within each case")
        summary.recommendations.append("Check for incomplete case traces")

        for check in all_checks:
            if not check.is_balanced:
                logger.warning(
                    f"Conservation violation at {check.node} ({check.variant}): {check.error_message}"
                )

    high_frequency = [
        c for c in all_checks
        if not c.is_balanced
        and (c.incoming_count > high_frequency_threshold or c.total_outgoing > high_frequency_threshold)
    ]
    if high_frequency:
        summary.warnings.append(
            f"{len(high_frequency)} high-frequency nodes with conservation issues"
        )
        summary.recommendations.append("Prioritize fixing high-frequency conservation issues first")

    if not failed_checks:
        summary.recommendations.append("All conservation checks passed - data integrity confirmed")

    logger.info(f"Conservation: {passed_checks}/{len(all_checks)} checks passed")

    return ConservationReport(
        overall_status=ConservationStatus.FAIL if failed_checks else ConservationStatus.PASS,
        total_checks=len(all_checks),
        passed_checks=passed_checks,
        failed_checks=failed_checks,
        node_results=all_checks,
        variant_results=variant_results,
        summary=summary,
    )


def validate_worker_split_conservation(
    transition: Transition,
    performer_breakdown: Optional[Mapping[str, PerformerStats]] = None,
) -> Dict[str, Any]:
    """
    Check that a transition's performer counts add up to its count.

    Occurrences whose target event has no performer are not attributed to
    anyone, so such transitions are reported as not splitting cleanly.

    Args:
        transition: Transition to check
        performer_breakdown: Breakdown to check (defaults to the transition's)

    Returns:
        Dictionary with ``is_valid`` and expected/actual totals per performer
    """
    breakdown = transition.performer_breakdown if performer_breakdown is None else performer_breakdown
    actual_total = sum(stats.count for stats in breakdown.values())

    return {
        "is_valid": actual_total == transition.count,
        "expected_total": transition.count,
        "actual_total": actual_total,
        "breakdown": {performer: stats.count for performer, stats in breakdown.items()},
    }
