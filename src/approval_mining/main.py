"""
Main CLI entry point for the Approval Workflow Mining Engine.

Usage:
    approval-mining validate --input event_log.json
    approval-mining analyze --input event_log.json --output-dir ./output
    approval-mining aggregate --input event_log.json -v info_loop -v withdrawn
    approval-mining report --input event_log.json --format json|markdown
"""

import click
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional, Tuple

import numpy as np

from . import DEFAULT_CONFIG, __version__
from .ingest.loader import EventLogLoader, EventLogValidationError, validate_event_log
from .mining.dfg import get_dfg_statistics
from .pipeline import AnalysisResult, AnalysisPipeline
from .report.generator import ReportGenerator
from .templates import get_permit_template


def convert_for_json(obj: Any) -> Any:
    """Convert objects to JSON-serializable types, including numpy types."""
    if isinstance(obj, dict):
        return {str(k): convert_for_json(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [convert_for_json(item) for item in obj]
    elif isinstance(obj, (np.integer,)):
        return int(obj)
    elif isinstance(obj, (np.floating,)):
        return float(obj)
    elif isinstance(obj, np.ndarray):
        return obj.tolist()
    elif isinstance(obj, np.bool_):
        return bool(obj)
    else:
        return obj


class PipelineContext:
    """Holds configuration shared by CLI commands."""

    def __init__(self):
        self.config = DEFAULT_CONFIG.copy()
        self.template = get_permit_template()


pass_context = click.make_pass_decorator(PipelineContext, ensure=True)


@click.group()
@click.version_option(version=__version__)
@click.option('--verbose', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, verbose: bool):
    """Approval Workflow Mining Engine

    Extracts variants and a directly-follows graph from approval workflow
    event logs, checks flow conservation, and flags bottlenecks.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    ctx.ensure_object(PipelineContext)


@cli.command()
@click.option('--input', '-i', 'input_file', required=True, type=click.Path(exists=True),
              help='Event log JSON file')
@pass_context
def validate(ctx, input_file: str):
    """Validate an event log without analyzing it."""
    with open(input_file, 'r', encoding='utf-8') as f:
        try:
            raw = json.load(f)
        except json.JSONDecodeError as e:
            click.echo(f"Error: {input_file} is not valid JSON: {e}", err=True)
            sys.exit(1)

    result = validate_event_log(raw, ctx.template.terminal_states)

    for warning in result.warnings:
        click.echo(f"Warning: {warning}")

    if not result.valid:
        click.echo(f"Event log is invalid ({len(result.errors)} errors):", err=True)
        for error in result.errors:
            click.echo(f"  - {error}", err=True)
        sys.exit(1)

    click.echo(f"Event log is valid: {len(raw['events'])} events")


@cli.command()
@click.option('--input', '-i', 'input_file', required=True, type=click.Path(exists=True),
              help='Event log JSON file')
@click.option('--output-dir', '-o', required=True, type=click.Path(),
              help='Directory for analysis outputs')
@click.option('--policy', type=click.Choice(['percentile', 'expected_time']),
              default=None, help='Transition bottleneck policy')
@click.option('--min-cases', type=int, default=None,
              help='Minimum variant cases for a transition bottleneck')
@click.option('--percentile', type=float, default=None,
              help='Threshold percentile for the percentile policy, in [0, 1)')
@pass_context
def analyze(ctx, input_file: str, output_dir: str, policy: Optional[str],
            min_cases: Optional[int], percentile: Optional[float]):
    """Run variant, DFG, conservation and bottleneck analysis.

    Output files:
    - variants.json     - Variants with transitions and occupancy
    - dfg.json          - Directly-follows graph and statistics
    - conservation.json - Flow conservation report
    - metrics.json      - Process metrics
    - bottlenecks.json  - Flagged transitions and performers
    - distribution.json - Actual vs expected share of known variants
    """
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    _apply_overrides(ctx, policy, min_cases, percentile)

    click.echo(f"Analyzing {input_file} with {ctx.config['bottleneck_policy']} policy...")
    result = _run_pipeline(ctx, input_file)

    outputs = {
        'variants.json': [v.to_dict() for v in result.variants],
        'dfg.json': {**result.dfg.to_dict(), 'statistics': get_dfg_statistics(result.dfg)},
        'conservation.json': result.conservation.to_dict(),
        'metrics.json': result.metrics.to_dict(),
        'bottlenecks.json': [b.to_dict() for b in result.bottlenecks],
        'distribution.json': result.distribution.to_dict(),
    }
    for filename, data in outputs.items():
        with open(output_path / filename, 'w', encoding='utf-8') as f:
            json.dump(convert_for_json(data), f, indent=2, default=str)
        click.echo(f"  Wrote {filename}")

    click.echo(f"Cases: {len(result.cases)}")
    click.echo(f"Variants: {len(result.variants)}")
    click.echo(f"Conservation: {result.conservation.overall_status.value} "
               f"({result.conservation.failed_checks} failed checks)")
    click.echo(f"Bottlenecks: {len(result.bottlenecks)}")
    click.echo(f"Variants outside expected distribution: {len(result.distribution.get_failed())}")
    click.echo(f"Analysis complete. Results saved to {output_path}")


@cli.command()
@click.option('--input', '-i', 'input_file', required=True, type=click.Path(exists=True),
              help='Event log JSON file')
@click.option('--variant', '-v', 'variant_ids', required=True, multiple=True,
              help='Variant id to include (repeatable)')
@click.option('--no-total-flow', is_flag=True,
              help='Take volume from the selected variants instead of the whole dataset')
@click.option('--output', '-o', type=click.Path(), default=None,
              help='Output file (prints to stdout when omitted)')
@pass_context
def aggregate(ctx, input_file: str, variant_ids: Tuple[str, ...], no_total_flow: bool,
              output: Optional[str]):
    """Aggregate a selection of variants into one view."""
    result = _run_pipeline(ctx, input_file)

    try:
        aggregated = result.aggregate(list(variant_ids), use_total_flow=not no_total_flow)
    except KeyError as e:
        click.echo(f"Error: {e.args[0]}", err=True)
        available = ', '.join(v.variant_id for v in result.variants)
        click.echo(f"Available variants: {available}", err=True)
        sys.exit(1)

    content = json.dumps(convert_for_json(aggregated.to_dict()), indent=2, default=str)
    if output:
        with open(output, 'w', encoding='utf-8') as f:
            f.write(content)
        click.echo(f"Aggregated view saved to {output}")
    else:
        click.echo(content)


@cli.command()
@click.option('--input', '-i', 'input_file', required=True, type=click.Path(exists=True),
              help='Event log JSON file')
@click.option('--format', '-f', 'output_format', type=click.Choice(['json', 'markdown']),
              default='json', help='Output format')
@click.option('--output', '-o', type=click.Path(), default=None,
              help='Output file (prints to stdout when omitted)')
@click.option('--policy', type=click.Choice(['percentile', 'expected_time']),
              default=None, help='Transition bottleneck policy')
@pass_context
def report(ctx, input_file: str, output_format: str, output: Optional[str], policy: Optional[str]):
    """Generate a full analysis report in JSON or Markdown."""
    _apply_overrides(ctx, policy, None, None)
    result = _run_pipeline(ctx, input_file)

    generator = ReportGenerator(output_format=output_format, config=ctx.config)
    report_content = generator.generate(result)

    if output:
        with open(output, 'w', encoding='utf-8') as f:
            f.write(report_content)
        click.echo(f"Report saved to {output}")
    else:
        click.echo(report_content)


def _apply_overrides(ctx: PipelineContext, policy: Optional[str],
                     min_cases: Optional[int], percentile: Optional[float]):
    """Copy command line overrides into the context configuration."""
    if policy is not None:
        ctx.config['bottleneck_policy'] = policy
    if min_cases is not None:
        if ctx.config['bottleneck_policy'] == 'expected_time':
            ctx.config['min_expected_time_cases'] = min_cases
        else:
            ctx.config['min_bottleneck_cases'] = min_cases
    if percentile is not None:
        ctx.config['bottleneck_percentile'] = percentile


def _run_pipeline(ctx: PipelineContext, input_file: str) -> AnalysisResult:
    """Run the analysis, exiting with an error message on invalid input."""
    try:
        pipeline = AnalysisPipeline(template=ctx.template, config=ctx.config)
        loader = EventLogLoader(ctx.template.terminal_states)
        loaded = loader.load(input_file)
    except EventLogValidationError as e:
        click.echo(f"Error: event log is invalid ({len(e.errors)} errors):", err=True)
        for error in e.errors:
            click.echo(f"  - {error}", err=True)
        sys.exit(1)
    except ValueError as e:
        # Bad policy parameters or malformed JSON
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    return pipeline.run(loaded.events, metadata=loaded.metadata)


def main():
    """Main entry point."""
    cli()


if __name__ == '__main__':
    main()
