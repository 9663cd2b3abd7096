"""
End-to-end analysis of an approval workflow event log.

Runs the stages in order, each producing new structures from the previous
ones:

    events -> cases -> variants, DFG, total flow
           -> conservation report, metrics, bottlenecks, variant distribution

Aggregated views are computed on demand for a selection of variants, since
the selection changes far more often than the log.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from . import DEFAULT_CONFIG
from .aggregation import AggregatedVariant, VariantAggregator, layout_key
from .conservation import ConservationReport, generate_conservation_report
from .ingest import EventLogLoader
from .metrics import (
    Bottleneck,
    BottleneckPolicy,
    DistributionVerification,
    ProcessMetrics,
    calculate_process_metrics,
    get_bottleneck_policy,
    identify_bottlenecks,
    verify_variant_distribution,
)
from .mining import (
    DirectlyFollowsGraph,
    Event,
    ProcessCase,
    TotalFlowData,
    Variant,
    build_directly_follows_graph,
    compute_total_flow,
    extract_cases,
    extract_variants,
)
from .templates import WorkflowTemplate, get_permit_template

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """
    Everything derived from one event log.

    Attributes:
        cases: Reconstructed cases
        variants: Variants, most common first
        dfg: Directly-follows graph over all cases
        total_flow: Dataset-wide transition and state volume
        conservation: Flow conservation report
        metrics: Process metrics
        bottlenecks: Transition and performer bottlenecks, highest score first
        distribution: Actual vs expected share of known variants
        metadata: Metadata of the source log
    """
    cases: List[ProcessCase]
    variants: List[Variant]
    dfg: DirectlyFollowsGraph
    total_flow: TotalFlowData
    conservation: ConservationReport
    metrics: ProcessMetrics
    bottlenecks: List[Bottleneck]
    distribution: DistributionVerification = field(default_factory=DistributionVerification)
    metadata: Dict[str, Any] = field(default_factory=dict)
    _aggregations: Dict[Any, AggregatedVariant] = field(default_factory=dict, repr=False)

    def get_variant(self, variant_id: str) -> Optional[Variant]:
        """Find a variant by id."""
        for variant in self.variants:
            if variant.variant_id == variant_id:
                return variant
        return None

    def aggregate(self, variant_ids: Sequence[str], use_total_flow: bool = True) -> AggregatedVariant:
        """
        Aggregate a selection of variants.

        The selected variants are aggregated in ranking order, not in the
        order of ``variant_ids``, so a selection with the same ids in a
        different order gives the same cached aggregate.

        Args:
            variant_ids: Ids of the selected variants
            use_total_flow: Take volume from the whole dataset (default) or
                            from the selected variants only

        Raises:
            KeyError: If any id is not a variant of this result
        """
        missing = [vid for vid in variant_ids if self.get_variant(vid) is None]
        if missing:
            raise KeyError(f"Unknown variant ids: {', '.join(missing)}")

        cache_key = (layout_key(variant_ids), use_total_flow)
        if cache_key not in self._aggregations:
            selected = [v for v in self.variants if v.variant_id in set(variant_ids)]
            aggregator = VariantAggregator(self.total_flow if use_total_flow else None)
            self._aggregations[cache_key] = aggregator.aggregate(selected)
        return self._aggregations[cache_key]

    def to_dict(self) -> Dict[str, Any]:
        """Convert every output to a dictionary."""
        return {
            "metadata": dict(self.metadata),
            "variants": [v.to_dict() for v in self.variants],
            "dfg": self.dfg.to_dict(),
            "conservation": self.conservation.to_dict(),
            "metrics": self.metrics.to_dict(),
            "bottlenecks": [b.to_dict() for b in self.bottlenecks],
            "distribution": self.distribution.to_dict(),
        }


class AnalysisPipeline:
    """
    Runs the full analysis over an event log.

    Example:
        pipeline = AnalysisPipeline()
        result = pipeline.run_file("event_log.json")
        print(result.conservation.overall_status.value)
        view = result.aggregate(["info_loop", "withdrawn"])
    """

    def __init__(
        self,
        template: Optional[WorkflowTemplate] = None,
        config: Optional[Dict[str, Any]] = None,
        bottleneck_policy: Optional[BottleneckPolicy] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            template: Workflow template (defaults to the permit workflow)
            config: Overrides for DEFAULT_CONFIG
            bottleneck_policy: Transition bottleneck policy; built from the
                               config when not given
        """
        self.template = template or get_permit_template()
        self.config = {**DEFAULT_CONFIG, **(config or {})}
        self.bottleneck_policy = bottleneck_policy or self._policy_from_config()

    def _policy_from_config(self) -> BottleneckPolicy:
        """Build the configured bottleneck policy."""
        name = self.config["bottleneck_policy"]
        if name == "expected_time":
            return get_bottleneck_policy(
                name,
                expected_times=self.template.expected_times,
                tolerance=self.config["expected_time_tolerance"],
                min_case_count=self.config["min_expected_time_cases"],
            )
        return get_bottleneck_policy(
            name,
            percentile=self.config["bottleneck_percentile"],
            min_case_count=self.config["min_bottleneck_cases"],
        )

    def run_file(self, source: Union[str, Path, Dict[str, Any]]) -> AnalysisResult:
        """
        Load, validate and analyze an event log.

        Raises:
            EventLogValidationError: If the log is invalid
        """
        loader = EventLogLoader(self.template.terminal_states)
        loaded = loader.load(source)
        return self.run(loaded.events, metadata=loaded.metadata)

    def run(self, events: Iterable[Event], metadata: Optional[Dict[str, Any]] = None) -> AnalysisResult:
        """
        Analyze already validated events.

        Args:
            events: Parsed events
            metadata: Metadata of the source log

        Returns:
            AnalysisResult
        """
        cases = extract_cases(events)
        variants = extract_variants(cases, self.template)
        dfg = build_directly_follows_graph(cases)
        total_flow = compute_total_flow(cases)

        logger.info(
            f"Extracted {len(cases)} cases, {len(variants)} variants, "
            f"{len(dfg.nodes)} activities"
        )

        conservation = generate_conservation_report(
            variants,
            dfg,
            high_frequency_threshold=self.config["high_frequency_threshold"],
        )
        metrics = calculate_process_metrics(
            cases,
            variants,
            performer_share=self.config["performer_share"],
        )
        bottlenecks = identify_bottlenecks(
            variants,
            policy=self.bottleneck_policy,
            performer_share=self.config["performer_share"],
            min_performer_transitions=self.config["min_performer_transitions"],
        )
        distribution = verify_variant_distribution(
            variants,
            self.template,
            tolerance=self.config["distribution_tolerance"],
        )

        return AnalysisResult(
            cases=cases,
            variants=variants,
            dfg=dfg,
            total_flow=total_flow,
            conservation=conservation,
            metrics=metrics,
            bottlenecks=bottlenecks,
            distribution=distribution,
            metadata=dict(metadata or {}),
        )


def analyze_event_log(
    source: Union[str, Path, Dict[str, Any]],
    config: Optional[Dict[str, Any]] = None,
    template: Optional[WorkflowTemplate] = None,
) -> AnalysisResult:
    """
    Convenience function to analyze an event log file or dictionary.

    Args:
        source: Path to a JSON event log, or the parsed log
        config: Overrides for DEFAULT_CONFIG
        template: Workflow template (defaults to the permit workflow)

    Returns:
        AnalysisResult

    Raises:
        EventLogValidationError: If the log is invalid
    """
    return AnalysisPipeline(template=template, config=config).run_file(source)
