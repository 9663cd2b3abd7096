"""
Report Generator Module for Approval Workflow Mining.

Generates output in various formats:
- JSON for programmatic use
- Markdown for human reading

Includes timestamp, version, and the configuration the analysis ran with.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .. import DEFAULT_CONFIG, __version__
from ..pipeline import AnalysisResult


class ReportGenerator:
    """
    Generates reports from an analysis result in various formats.
    """

    def __init__(
        self,
        output_format: str = "json",
        config: Optional[Dict[str, Any]] = None,
        max_variants: int = 10,
    ):
        """
        Initialize the report generator.

        Args:
            output_format: Output format ('json' or 'markdown')
            config: Configuration used in the analysis
            max_variants: Variants listed in the Markdown report
        """
        self.output_format = output_format
        self.config = {**DEFAULT_CONFIG, **(config or {})}
        self.max_variants = max_variants

    def generate(self, result: AnalysisResult) -> str:
        """
        Generate a report from an analysis result.

        Args:
            result: Output of the analysis pipeline

        Returns:
            Formatted report string
        """
        if self.output_format == 'markdown':
            return self._generate_markdown(result)
        else:
            return self._generate_json(result)

    def _generate_json(self, result: AnalysisResult) -> str:
        """Generate JSON report."""
        report = {
            'metadata': self._generate_metadata(result),
            'summary': self._generate_summary(result),
            'variants': [v.to_dict() for v in result.variants],
            'conservation': result.conservation.to_dict(),
            'metrics': result.metrics.to_dict(),
            'bottlenecks': [b.to_dict() for b in result.bottlenecks],
            'distribution': result.distribution.to_dict(),
        }

        return json.dumps(report, indent=2, default=str)

    def _generate_markdown(self, result: AnalysisResult) -> str:
        """Generate Markdown report."""
        lines = []
        summary = self._generate_summary(result)
        case_metrics = result.metrics.case_metrics

        # Title and metadata
        lines.append("# Approval Workflow Mining Report")
        lines.append("")
        lines.append(f"**Generated**: {_utc_now()}")
        lines.append(f"**Version**: {__version__}")
        lines.append(f"**Bottleneck Policy**: {self.config['bottleneck_policy']}")
        lines.append("")

        # Summary
        lines.append("## Summary")
        lines.append("")
        lines.append(f"- **Total Cases**: {summary['total_cases']}")
        lines.append(f"- **Total Variants**: {summary['total_variants']}")
        lines.append(f"- **Activities**: {summary['total_activities']}")
        lines.append(f"- **Median Case Duration**: {case_metrics.median_case_duration:.1f}h")
        lines.append(f"- **95th Percentile Case Duration**: {case_metrics.percentile_95_case_duration:.1f}h")
        lines.append(f"- **Top 3 Variant Coverage**: {summary['variant_coverage']:.1f}%")
        lines.append(f"- **Conservation**: {summary['conservation_status']}")
        lines.append(f"- **Bottlenecks**: {summary['total_bottlenecks']}")
        lines.append("")

        # Variants
        lines.append("## Variants")
        lines.append("")
        lines.append("| Variant | Cases | Median Duration | Sequence |")
        lines.append("|---|---|---|---|")
        for variant in result.variants[:self.max_variants]:
            lines.append(
                f"| {variant.variant_id} | {variant.case_count} | "
                f"{variant.total_median_hours:.1f}h | {' → '.join(variant.sequence)} |"
            )
        if len(result.variants) > self.max_variants:
            lines.append("")
            lines.append(f"*{len(result.variants) - self.max_variants} more variants not shown.*")
        lines.append("")

        # Conservation
        lines.append("## Flow Conservation")
        lines.append("")
        conservation = result.conservation
        lines.append(
            f"{conservation.passed_checks} of {conservation.total_checks} checks passed "
            f"(**{conservation.overall_status.value}**)."
        )
        lines.append("")
        for error in conservation.summary.critical_errors:
            lines.append(f"- {error}")
        for warning in conservation.summary.warnings:
            lines.append(f"- Warning: {warning}")
        for check in conservation.get_failed_checks():
            lines.append(f"- `{check.variant}` / `{check.node}`: {check.error_message}")
        for recommendation in conservation.summary.recommendations:
            lines.append(f"- {recommendation}")
        lines.append("")

        # Bottlenecks
        lines.append("## Bottlenecks")
        lines.append("")
        if result.bottlenecks:
            lines.append("| Type | Identifier | Score | Affected | Reason |")
            lines.append("|---|---|---|---|---|")
            for bottleneck in result.bottlenecks:
                lines.append(
                    f"| {bottleneck.type.value} | {bottleneck.identifier} | "
                    f"{bottleneck.score:.1f}h | {bottleneck.affected_cases} | {bottleneck.reason} |"
                )
        else:
            lines.append("No bottlenecks identified.")
        lines.append("")

        # Variant distribution
        distribution = result.distribution
        if distribution.entries:
            lines.append("## Variant Distribution")
            lines.append("")
            lines.append(f"Tolerance: ±{distribution.tolerance:.1f} percentage points.")
            lines.append("")
            lines.append("| Variant | Expected | Actual | Within Tolerance |")
            lines.append("|---|---|---|---|")
            for entry in distribution.entries:
                lines.append(
                    f"| {entry.variant_id} | {entry.expected_percentage:.1f}% ({entry.expected_count}) | "
                    f"{entry.actual_percentage:.1f}% ({entry.actual_count}) | "
                    f"{'yes' if entry.within_tolerance else 'no'} |"
                )
            if distribution.unknown_variant_cases:
                lines.append("")
                lines.append(f"*{distribution.unknown_variant_cases} cases follow no known variant.*")
            lines.append("")

        # Appendix with reproducibility info
        lines.append("## Appendix: Parameters Used")
        lines.append("")
        for key in sorted(self.config):
            lines.append(f"- {key}: {self.config[key]}")

        return '\n'.join(lines)

    def _generate_metadata(self, result: AnalysisResult) -> Dict[str, Any]:
        """Generate report metadata."""
        return {
            'generated_at': _utc_now(),
            'version': __version__,
            'config': dict(self.config),
            'source': dict(result.metadata),
        }

    def _generate_summary(self, result: AnalysisResult) -> Dict[str, Any]:
        """Generate report summary."""
        transition_bottlenecks = sum(1 for b in result.bottlenecks if b.type.value == 'transition')

        return {
            'total_cases': len(result.cases),
            'total_variants': len(result.variants),
            'total_activities': len(result.dfg.nodes),
            'variant_coverage': result.metrics.variant_metrics.variant_coverage,
            'conservation_status': result.conservation.overall_status.value,
            'failed_conservation_checks': result.conservation.failed_checks,
            'total_bottlenecks': len(result.bottlenecks),
            'transition_bottlenecks': transition_bottlenecks,
            'performer_bottlenecks': len(result.bottlenecks) - transition_bottlenecks,
            'distribution_within_tolerance': result.distribution.all_within_tolerance,
        }


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


def generate_json_report(result: AnalysisResult, config: Optional[Dict[str, Any]] = None) -> str:
    """Convenience function for JSON report generation."""
    generator = ReportGenerator(output_format='json', config=config)
    return generator.generate(result)


def generate_markdown_report(result: AnalysisResult, config: Optional[Dict[str, Any]] = None) -> str:
    """Convenience function for Markdown report generation."""
    generator = ReportGenerator(output_format='markdown', config=config)
    return generator.generate(result)
