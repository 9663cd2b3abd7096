"""
Tests for metrics and bottleneck detection.

Tests cover:
- Duration statistics and percentile boundedness
- Case, variant, transition, performer and throughput metrics
- Percentile and expected-time bottleneck policies
- Performer bottlenecks and worker performance
- Variant distribution against expected probabilities
"""

import pytest

from approval_mining.metrics import (
    BottleneckType,
    DistributionVerification,
    ExpectedTimeBottleneckPolicy,
    MetricsCalculator,
    PercentileBottleneckPolicy,
    ProcessMetrics,
    analyze_worker_performance,
    calculate_process_metrics,
    collect_performer_workload,
    find_performer_bottlenecks,
    get_bottleneck_policy,
    identify_bottlenecks,
    rank_slowest_performers,
    verify_variant_distribution,
)
from approval_mining.ingest import parse_events
from approval_mining.mining import PerformerStats, Variant, extract_cases, extract_variants
from approval_mining.stats import percentile_index, summarize_durations
from approval_mining.templates import get_permit_template


class TestDurationStatistics:
    """Tests for summarize_durations."""

    def test_empty_is_zero(self):
        """Test that no samples summarize to zero."""
        summary = summarize_durations([])
        assert summary.median_hours == 0.0
        assert summary.mean_hours == 0.0
        assert summary.p95_hours == 0.0

    def test_nearest_rank(self):
        """Test nearest-rank median and p95."""
        summary = summarize_durations([5.0, 1.0, 3.0, 2.0])
        assert summary.median_hours == 3.0
        assert summary.mean_hours == pytest.approx(2.75)
        assert summary.p95_hours == 5.0

    @pytest.mark.parametrize("durations", [
        [1.0],
        [0.1, 0.1, 0.1],
        [0.0, 1000.0],
        [2.5, 7.25, 3.0, 100.0, 0.5, 12.0],
    ])
    def test_bounded_by_samples(self, durations):
        """Test that every statistic lies within [min, max]."""
        summary = summarize_durations(durations)
        for value in (summary.median_hours, summary.mean_hours, summary.p95_hours):
            assert min(durations) <= value <= max(durations)

    def test_percentile_index(self):
        """Test index clamping to the last element."""
        assert percentile_index(10, 0.9) == 9
        assert percentile_index(5, 0.9) == 4
        assert percentile_index(1, 0.95) == 0


class TestProcessMetrics:
    """Tests for MetricsCalculator."""

    def test_case_metrics(self, scenario_cases, scenario_variants):
        """Test the case duration distribution."""
        metrics = calculate_process_metrics(scenario_cases, scenario_variants).case_metrics

        assert metrics.total_cases == 4
        assert metrics.average_case_duration == pytest.approx(4.25)
        assert metrics.median_case_duration == 5.0
        assert metrics.percentile_95_case_duration == 6.0
        assert metrics.min_case_duration == 2.0
        assert metrics.max_case_duration == 6.0
        assert metrics.shortest_case.case_id == "case-1"
        assert metrics.longest_case.case_id == "case-2"

    def test_variant_metrics(self, scenario_cases, scenario_variants):
        """Test variant coverage and complexity."""
        metrics = calculate_process_metrics(scenario_cases, scenario_variants).variant_metrics

        assert metrics.total_variants == 3
        assert metrics.most_common_variant == "unknown_1"
        assert metrics.variant_coverage == pytest.approx(100.0)
        assert metrics.variant_complexity == pytest.approx(2.75)

    def test_transition_metrics(self, scenario_cases, scenario_variants):
        """Test transition timing extremes."""
        metrics = calculate_process_metrics(scenario_cases, scenario_variants).transition_metrics

        assert metrics.total_transitions == 5
        assert metrics.average_transition_time == pytest.approx(3.0)
        assert (metrics.slowest_transition.from_state, metrics.slowest_transition.to_state) == ("A", "E")
        assert metrics.slowest_transition.median_time_hours == 5.0
        assert metrics.fastest_transition.median_time_hours == 2.0

    def test_performer_workload(self, scenario_variants):
        """Test workload combined across variants."""
        workload = collect_performer_workload(scenario_variants)

        assert list(workload) == ["alice", "bob", "carol"]
        assert workload["alice"].total_transitions == 2
        assert workload["alice"].average_time == pytest.approx(2.0)
        assert workload["bob"].total_transitions == 3
        assert workload["bob"].activities == ["C", "B", "D"]
        assert workload["carol"].average_time == pytest.approx(4.0)

    def test_slowest_performers(self, scenario_variants):
        """Test that at least one slowest performer is reported."""
        workload = collect_performer_workload(scenario_variants)

        assert rank_slowest_performers(workload, 0.2) == ["carol"]
        assert rank_slowest_performers(workload, 1.0) == ["carol", "alice", "bob"]
        assert rank_slowest_performers({}, 0.2) == []

    def test_throughput(self, scenario_cases, scenario_variants):
        """Test arrival rate and busiest hour."""
        metrics = calculate_process_metrics(scenario_cases, scenario_variants).throughput_metrics

        assert metrics.cases_per_day == pytest.approx(4 / 3)
        assert metrics.cases_per_week == pytest.approx(28 / 3)
        assert metrics.busiest_hour == "2024-03-04T09"
        assert metrics.busiest_hour_case_count == 1

    def test_empty_dataset(self):
        """Test neutral values for no cases."""
        metrics = MetricsCalculator().calculate([], [])

        assert isinstance(metrics, ProcessMetrics)
        assert metrics.case_metrics.total_cases == 0
        assert metrics.variant_metrics.most_common_variant is None
        assert metrics.throughput_metrics.busiest_hour is None
        assert metrics.to_dict()["throughput_metrics"]["busiest_hour"] == {"start": None, "case_count": 0}


class TestPercentilePolicy:
    """Tests for PercentileBottleneckPolicy."""

    def test_threshold_from_pool(self, scenario_variants):
        """Test the 90th percentile of transition medians."""
        policy = PercentileBottleneckPolicy()
        policy.prepare(scenario_variants)
        assert policy.threshold == 5.0

    def test_min_case_count(self, scenario_variants):
        """Test that slow transitions of rare variants are not flagged."""
        assert PercentileBottleneckPolicy(min_case_count=10).find(scenario_variants) == []

    def test_flags_slow_transition(self, scenario_variants):
        """Test flagging the slowest transition."""
        bottlenecks = PercentileBottleneckPolicy(min_case_count=1).find(scenario_variants)

        assert len(bottlenecks) == 1
        assert bottlenecks[0].type == BottleneckType.TRANSITION
        assert bottlenecks[0].identifier == "A → E"
        assert bottlenecks[0].score == 5.0
        assert bottlenecks[0].reason == "High median time (5.0h) in 90th percentile"
        assert bottlenecks[0].affected_cases == 1

    def test_no_transitions(self):
        """Test a dataset without transitions."""
        assert PercentileBottleneckPolicy(min_case_count=0).find([]) == []

    @pytest.mark.parametrize("percentile", [-0.1, 1.0, 1.5])
    def test_invalid_percentile(self, percentile):
        """Test that out-of-range percentiles are rejected."""
        with pytest.raises(ValueError):
            PercentileBottleneckPolicy(percentile=percentile)


class TestExpectedTimePolicy:
    """Tests for ExpectedTimeBottleneckPolicy."""

    def test_flags_transitions_over_expected(self, scenario_variants):
        """Test flagging transitions slower than expected."""
        policy = ExpectedTimeBottleneckPolicy({("A", "B"): 1.0}, tolerance=1.2, min_case_count=1)
        bottlenecks = policy.find(scenario_variants)

        assert [b.identifier for b in bottlenecks] == ["A → B", "A → B"]
        assert bottlenecks[0].reason == "Exceeds expected time (2.0h vs expected max 1.0h)"

    def test_tolerance(self, scenario_variants):
        """Test that the tolerance factor widens the limit."""
        policy = ExpectedTimeBottleneckPolicy({("A", "B"): 1.0}, tolerance=2.5, min_case_count=1)
        assert policy.find(scenario_variants) == []

    def test_unconfigured_transitions_skipped(self, scenario_variants):
        """Test that transitions without an expected time are not evaluated."""
        policy = ExpectedTimeBottleneckPolicy({}, min_case_count=1)
        assert policy.find(scenario_variants) == []

    def test_defaults_to_permit_expectations(self):
        """Test the permit workflow expected times."""
        policy = ExpectedTimeBottleneckPolicy()
        assert policy.expected_times == get_permit_template().expected_times
        assert policy.expected_times[("submitted", "intake_validation")] == 48

    def test_invalid_tolerance(self):
        """Test that a non-positive tolerance is rejected."""
        with pytest.raises(ValueError):
            ExpectedTimeBottleneckPolicy(tolerance=0)


class TestBottleneckIdentification:
    """Tests for policy selection and combined bottleneck lists."""

    def test_get_policy_by_name(self):
        """Test building policies by name."""
        assert isinstance(get_bottleneck_policy("percentile"), PercentileBottleneckPolicy)
        policy = get_bottleneck_policy("expected_time", tolerance=1.5)
        assert isinstance(policy, ExpectedTimeBottleneckPolicy)
        assert policy.tolerance == 1.5

    def test_unknown_policy(self):
        """Test that an unknown policy name is rejected."""
        with pytest.raises(ValueError, match="Unknown bottleneck policy"):
            get_bottleneck_policy("median")

    def test_performer_bottlenecks(self, scenario_variants):
        """Test flagging the slowest performer with enough workload."""
        assert find_performer_bottlenecks(scenario_variants, min_transitions=5) == []

        bottlenecks = find_performer_bottlenecks(scenario_variants, min_transitions=2)
        assert len(bottlenecks) == 1
        assert bottlenecks[0].type == BottleneckType.PERFORMER
        assert bottlenecks[0].identifier == "carol"
        assert bottlenecks[0].reason == "Consistently slow performance (4.0h avg) across 2 activities"

    def test_sorted_by_score(self, scenario_variants):
        """Test that transition and performer bottlenecks are ranked together."""
        bottlenecks = identify_bottlenecks(
            scenario_variants,
            policy=PercentileBottleneckPolicy(min_case_count=1),
            min_performer_transitions=2,
        )

        assert [b.identifier for b in bottlenecks] == ["A → E", "carol"]
        assert [b.score for b in bottlenecks] == [5.0, 4.0]

    def test_to_dict(self, scenario_variants):
        """Test dictionary conversion of a bottleneck."""
        bottleneck = PercentileBottleneckPolicy(min_case_count=1).find(scenario_variants)[0]
        assert bottleneck.to_dict()["type"] == "transition"


class TestWorkerPerformance:
    """Tests for analyze_worker_performance."""

    def test_compares_with_expected(self):
        """Test over-expected flags and percentages."""
        breakdown = {
            "w1": PerformerStats(count=2, median_time_hours=10.0, mean_time_hours=12.0),
            "w2": PerformerStats(count=1, median_time_hours=5.0, mean_time_hours=6.0),
        }
        results = {r.worker_id: r for r in analyze_worker_performance(breakdown, 10.0)}

        assert results["w1"].is_over_expected
        assert results["w1"].percentage_over == pytest.approx(20.0)
        assert not results["w2"].is_over_expected
        assert results["w2"].percentage_over == 0.0

    def test_no_expected_time(self):
        """Test that nothing is compared without an expected time."""
        breakdown = {"w1": PerformerStats(1, 1.0, 1.0)}
        assert analyze_worker_performance(breakdown, None) == []


def make_counted_variant(variant_id, case_count):
    """Variant with only an id and a case count."""
    return Variant(
        variant_id=variant_id,
        sequence=(),
        case_count=case_count,
        cases=tuple(f"{variant_id}-{i}" for i in range(case_count)),
        transitions=(),
        state_occupancy=(),
    )


class TestVariantDistribution:
    """Tests for verify_variant_distribution."""

    def test_matching_distribution(self):
        """Test shares equal to the permit probabilities."""
        variants = [
            make_counted_variant("direct_approval", 12),
            make_counted_variant("info_loop", 5),
            make_counted_variant("rejected", 2),
            make_counted_variant("withdrawn", 1),
        ]
        verification = verify_variant_distribution(variants, get_permit_template())

        assert isinstance(verification, DistributionVerification)
        assert verification.total_cases == 20
        assert verification.all_within_tolerance
        assert [e.expected_count for e in verification.entries] == [12, 5, 2, 1]
        assert verification.entries[0].actual_percentage == pytest.approx(60.0)

    def test_permit_log_deviations(self, permit_raw_events):
        """Test flags for a small log that drifts from the expected shares."""
        variants = extract_variants(extract_cases(parse_events(permit_raw_events)))
        verification = verify_variant_distribution(variants)
        entries = {e.variant_id: e for e in verification.entries}

        assert list(entries) == ["direct_approval", "info_loop", "rejected", "withdrawn"]
        assert entries["direct_approval"].actual_count == 2
        assert entries["direct_approval"].expected_count == 2
        assert not entries["direct_approval"].within_tolerance
        assert entries["info_loop"].within_tolerance
        assert entries["rejected"].actual_count == 0
        assert not entries["rejected"].within_tolerance
        assert entries["withdrawn"].deviation == pytest.approx(20.0)
        assert [e.variant_id for e in verification.get_failed()] == ["direct_approval", "rejected", "withdrawn"]

    def test_tolerance_parameter(self, permit_raw_events):
        """Test that a wider tolerance accepts larger deviations."""
        variants = extract_variants(extract_cases(parse_events(permit_raw_events)))
        assert verify_variant_distribution(variants, tolerance=25.0).all_within_tolerance

    def test_unknown_variants(self, scenario_variants, scenario_template):
        """Test a template without known variants."""
        verification = verify_variant_distribution(scenario_variants, scenario_template)

        assert verification.entries == []
        assert verification.unknown_variant_cases == 4
        assert verification.all_within_tolerance

    def test_empty(self):
        """Test that an empty dataset has no entries."""
        verification = verify_variant_distribution([])

        assert verification.entries == []
        assert verification.to_dict()["total_cases"] == 0
