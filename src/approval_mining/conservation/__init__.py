"""
Flow Conservation Checking Module for Approval Workflow Mining.

Validates the flow-balance invariants of extracted variants and of the
directly-follows graph:

- Intermediate states: incoming transitions == outgoing transitions
- Start-only states: no incoming transitions
- End-only states: no outgoing transitions
- States that both start and end cases: exempt

Example Usage:
    from approval_mining.conservation import generate_conservation_report

    report = generate_conservation_report(variants, dfg)
    print(report.overall_status.value)
    for check in report.get_failed_checks():
        print(check.node, check.error_message)
"""

from .checker import (
    DFG_MARKER,
    ConservationCheck,
    ConservationReport,
    ConservationStatus,
    ConservationSummary,
    VariantConservationResult,
    check_dfg_conservation,
    check_variant_conservation,
    generate_conservation_report,
    validate_worker_split_conservation,
)

__all__ = [
    "DFG_MARKER",
    "ConservationCheck",
    "ConservationReport",
    "ConservationStatus",
    "ConservationSummary",
    "VariantConservationResult",
    "check_dfg_conservation",
    "check_variant_conservation",
    "generate_conservation_report",
    "validate_worker_split_conservation",
]
