"""
Variant Aggregation Module for Approval Workflow Mining.

Combines a user's selection of variants into one view whose topology comes
from the selection and whose volume comes from the whole dataset.

Example Usage:
    from approval_mining.aggregation import aggregate_variants, layout_key
    from approval_mining.mining import compute_total_flow

    total_flow = compute_total_flow(cases)
    view = aggregate_variants(selected_variants, total_flow)
    key = layout_key(view.variant_ids)
"""

from .aggregator import (
    VOLUME_SELECTED_VARIANTS,
    VOLUME_TOTAL_FLOW,
    AggregatedStateOccupancy,
    AggregatedTransition,
    AggregatedVariant,
    StateContribution,
    TransitionContribution,
    VariantAggregator,
    aggregate_variants,
)

from .layout import (
    InMemoryLayoutStore,
    LayoutStore,
    Positions,
    layout_key,
)

__all__ = [
    # Aggregation
    "VOLUME_SELECTED_VARIANTS",
    "VOLUME_TOTAL_FLOW",
    "AggregatedStateOccupancy",
    "AggregatedTransition",
    "AggregatedVariant",
    "StateContribution",
    "TransitionContribution",
    "VariantAggregator",
    "aggregate_variants",
    # Layout persistence
    "InMemoryLayoutStore",
    "LayoutStore",
    "Positions",
    "layout_key",
]
