"""
Variant distribution verification.

Compares the share of cases each known variant actually received with the
share its workflow template expects, and flags variants whose actual
percentage is more than ``tolerance`` percentage points away.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..mining.models import Variant
from ..templates import WorkflowTemplate, get_permit_template

logger = logging.getLogger(__name__)

DEFAULT_DISTRIBUTION_TOLERANCE = 5.0


@dataclass
class VariantDistribution:
    """Expected vs actual share of one known variant."""
    variant_id: str
    name: str
    expected_count: int
    expected_percentage: float
    actual_count: int
    actual_percentage: float
    within_tolerance: bool

    @property
    def deviation(self) -> float:
        """Actual minus expected percentage points."""
        return self.actual_percentage - self.expected_percentage

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "variant_id": self.variant_id,
            "name": self.name,
            "expected_count": self.expected_count,
            "expected_percentage": self.expected_percentage,
            "actual_count": self.actual_count,
            "actual_percentage": self.actual_percentage,
            "deviation": self.deviation,
            "within_tolerance": self.within_tolerance,
        }


@dataclass
class DistributionVerification:
    """
    Distribution check of all known variants.

    Attributes:
        total_cases: Cases in the analyzed variants
        tolerance: Allowed deviation in percentage points
        entries: One entry per known variant of the template
        unknown_variant_cases: Cases whose sequence matches no known variant
    """
    total_cases: int = 0
    tolerance: float = DEFAULT_DISTRIBUTION_TOLERANCE
    entries: List[VariantDistribution] = field(default_factory=list)
    unknown_variant_cases: int = 0

    @property
    def all_within_tolerance(self) -> bool:
        return all(entry.within_tolerance for entry in self.entries)

    def get_failed(self) -> List[VariantDistribution]:
        """Get entries outside the tolerance."""
        return [entry for entry in self.entries if not entry.within_tolerance]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_cases": self.total_cases,
            "tolerance": self.tolerance,
            "all_within_tolerance": self.all_within_tolerance,
            "unknown_variant_cases": self.unknown_variant_cases,
            "entries": [entry.to_dict() for entry in self.entries],
        }


def verify_variant_distribution(
    variants: Sequence[Variant],
    template: Optional[WorkflowTemplate] = None,
    tolerance: float = DEFAULT_DISTRIBUTION_TOLERANCE,
) -> DistributionVerification:
    """
    Compare actual variant shares with the template's expected probabilities.

    Known variants that no case followed are reported with an actual count
    of 0. An empty dataset has no entries.

    Args:
        variants: Extracted variants
        template: Workflow template with variant probabilities
                  (defaults to the permit workflow)
        tolerance: Allowed deviation in percentage points

    Returns:
        DistributionVerification
    """
    template = template or get_permit_template()
    total_cases = sum(v.case_count for v in variants)
    if total_cases == 0:
        return DistributionVerification(tolerance=tolerance)

    counts = {v.variant_id: v.case_count for v in variants}
    known_ids = {definition.key for definition in template.variants}

    entries = []
    for definition in template.variants:
        expected_percentage = definition.probability * 100
        actual_count = counts.get(definition.key, 0)
        actual_percentage = actual_count / total_cases * 100
        entries.append(VariantDistribution(
            variant_id=definition.key,
            name=definition.name,
            expected_count=int(math.floor(total_cases * definition.probability + 0.5)),
            expected_percentage=expected_percentage,
            actual_count=actual_count,
            actual_percentage=actual_percentage,
            within_tolerance=abs(actual_percentage - expected_percentage) <= tolerance,
        ))

    verification = DistributionVerification(
        total_cases=total_cases,
        tolerance=tolerance,
        entries=entries,
        unknown_variant_cases=sum(c for vid, c in counts.items() if vid not in known_ids),
    )

    for entry in verification.get_failed():
        logger.warning(
            f"Variant {entry.variant_id} has {entry.actual_percentage:.1f}% of cases, "
            f"expected {entry.expected_percentage:.1f}% (±{tolerance:.1f})"
        )

    return verification
