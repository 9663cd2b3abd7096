"""
Metrics and Bottleneck Detection Module for Approval Workflow Mining.

Key Components:
- MetricsCalculator: case, variant, transition, performer and throughput metrics
- PercentileBottleneckPolicy / ExpectedTimeBottleneckPolicy: interchangeable
  strategies for flagging slow transitions
- identify_bottlenecks: transition and performer bottlenecks ranked by score
- verify_variant_distribution: actual vs expected share of known variants

Example Usage:
    from approval_mining.metrics import (
        calculate_process_metrics,
        identify_bottlenecks,
        get_bottleneck_policy,
    )

    metrics = calculate_process_metrics(cases, variants)
    policy = get_bottleneck_policy("percentile", min_case_count=5)
    for bottleneck in identify_bottlenecks(variants, policy):
        print(bottleneck.identifier, bottleneck.reason)
"""

from .calculator import (
    CaseExtreme,
    CaseMetrics,
    MetricsCalculator,
    PerformerMetrics,
    PerformerWorkload,
    ProcessMetrics,
    ThroughputMetrics,
    TransitionExtreme,
    TransitionSummaryMetrics,
    VariantMetrics,
    calculate_process_metrics,
    collect_performer_workload,
    rank_slowest_performers,
)

from .distribution import (
    DistributionVerification,
    VariantDistribution,
    verify_variant_distribution,
)

from .bottleneck import (
    Bottleneck,
    BottleneckPolicy,
    BottleneckType,
    ExpectedTimeBottleneckPolicy,
    PercentileBottleneckPolicy,
    WorkerPerformance,
    analyze_worker_performance,
    find_performer_bottlenecks,
    get_bottleneck_policy,
    identify_bottlenecks,
)

__all__ = [
    # Metrics
    "CaseExtreme",
    "CaseMetrics",
    "MetricsCalculator",
    "PerformerMetrics",
    "PerformerWorkload",
    "ProcessMetrics",
    "ThroughputMetrics",
    "TransitionExtreme",
    "TransitionSummaryMetrics",
    "VariantMetrics",
    "calculate_process_metrics",
    "collect_performer_workload",
    "rank_slowest_performers",
    # Bottlenecks
    "Bottleneck",
    "BottleneckPolicy",
    "BottleneckType",
    "ExpectedTimeBottleneckPolicy",
    "PercentileBottleneckPolicy",
    "WorkerPerformance",
    "analyze_worker_performance",
    "find_performer_bottlenecks",
    "get_bottleneck_policy",
    "identify_bottlenecks",
    # Distribution
    "DistributionVerification",
    "VariantDistribution",
    "verify_variant_distribution",
]
