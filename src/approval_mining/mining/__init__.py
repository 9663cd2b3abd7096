"""
Process Mining Core for Approval Workflows.

Turns a flat event log into the structures every downstream analysis uses:

- extract_cases: group events by case and order them by timestamp
- extract_variants: group cases by exact state sequence, with loop-aware
  transition counts and per-state occupancy
- build_directly_follows_graph: one graph over all cases
- compute_total_flow: dataset-wide transition and state volume

Example Usage:
    from approval_mining.mining import (
        extract_cases,
        extract_variants,
        build_directly_follows_graph,
    )

    cases = extract_cases(events)
    variants = extract_variants(cases)
    dfg = build_directly_follows_graph(cases)
"""

from .models import (
    Event,
    PerformerStats,
    ProcessCase,
    StateOccupancy,
    Transition,
    TransitionKey,
    Variant,
)

from .cases import (
    extract_cases,
    iter_directly_follows,
)

from .variants import (
    VariantExtractor,
    extract_variants,
    summarize_performers,
)

from .dfg import (
    DFGEdge,
    DFGNode,
    DFGValidation,
    DirectlyFollowsGraph,
    build_directly_follows_graph,
    get_dfg_statistics,
    validate_dfg_consistency,
)

from .flow import (
    FlowSamples,
    TotalFlowData,
    compute_total_flow,
)

__all__ = [
    # Models
    "Event",
    "PerformerStats",
    "ProcessCase",
    "StateOccupancy",
    "Transition",
    "TransitionKey",
    "Variant",
    # Cases
    "extract_cases",
    "iter_directly_follows",
    # Variants
    "VariantExtractor",
    "extract_variants",
    "summarize_performers",
    # DFG
    "DFGEdge",
    "DFGNode",
    "DFGValidation",
    "DirectlyFollowsGraph",
    "build_directly_follows_graph",
    "get_dfg_statistics",
    "validate_dfg_consistency",
    # Total flow
    "FlowSamples",
    "TotalFlowData",
    "compute_total_flow",
]
