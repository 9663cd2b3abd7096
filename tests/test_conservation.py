"""
Tests for flow conservation checking.

Tests cover:
- Balance rules for start, end, intermediate and start/end states
- Variant and DFG conservation checks
- Conservation report summary and recommendations
- Performer split conservation
"""

import logging

import pytest

from approval_mining.conservation import (
    DFG_MARKER,
    ConservationStatus,
    check_dfg_conservation,
    check_variant_conservation,
    generate_conservation_report,
    validate_worker_split_conservation,
)
from approval_mining.ingest import parse_events
from approval_mining.mining import (
    PerformerStats,
    Transition,
    Variant,
    build_directly_follows_graph,
    extract_cases,
    extract_variants,
)


def make_variant(variant_id, sequence, transitions):
    """Build a variant from (from, to, count) tuples."""
    return Variant(
        variant_id=variant_id,
        sequence=tuple(sequence),
        case_count=1,
        cases=("x",),
        transitions=tuple(Transition(f, t, count) for f, t, count in transitions),
        state_occupancy=(),
    )


@pytest.fixture
def scenario_dfg(scenario_cases):
    """DFG of the A/B/C/D/E scenario."""
    return build_directly_follows_graph(scenario_cases)


@pytest.fixture
def unbalanced_variant():
    """Variant whose intermediate state loses flow."""
    return make_variant("broken", ["A", "B", "C"], [("A", "B", 2), ("B", "C", 1)])


class TestVariantConservation:
    """Tests for check_variant_conservation."""

    def test_scenario_variants_balanced(self, scenario_variants):
        """Test that every state of every scenario variant balances."""
        for variant in scenario_variants:
            checks = check_variant_conservation(variant)
            assert all(c.is_balanced for c in checks)

    def test_start_state_check(self, scenario_variants):
        """Test the start state check of the most common variant."""
        check = check_variant_conservation(scenario_variants[0])[0]

        assert check.node == "A"
        assert check.variant == "unknown_1"
        assert check.incoming_count == 0
        assert check.outgoing_counts == {"B": 2}
        assert check.total_outgoing == 2
        assert check.error_message is None

    def test_intermediate_imbalance(self, unbalanced_variant):
        """Test the message for an intermediate state that loses flow."""
        checks = {c.node: c for c in check_variant_conservation(unbalanced_variant)}

        assert not checks["B"].is_balanced
        assert checks["B"].error_message == (
            "Intermediate state should have incoming=outgoing, but found incoming=2, outgoing=1"
        )
        assert checks["A"].is_balanced
        assert checks["C"].is_balanced

    def test_start_state_with_incoming(self):
        """Test that flow into the start state is a violation."""
        variant = make_variant("bad_start", ["A", "B", "C"], [("A", "B", 1), ("B", "C", 1), ("B", "A", 1)])
        checks = {c.node: c for c in check_variant_conservation(variant)}

        assert checks["A"].error_message == "Start state should have incoming=0, but found incoming=1"

    def test_end_state_with_outgoing(self):
        """Test that flow out of the end state is a violation."""
        variant = make_variant("bad_end", ["A", "B", "C"], [("A", "B", 1), ("B", "C", 1), ("C", "B", 1)])
        checks = {c.node: c for c in check_variant_conservation(variant)}

        assert checks["C"].error_message == "End state should have outgoing=0, but found outgoing=1"

    def test_start_and_end_state_exempt(self):
        """Test that a state both starting and ending the variant is exempt."""
        variant = make_variant("cycle", ["A", "B", "A"], [("A", "B", 1), ("B", "A", 1)])
        checks = {c.node: c for c in check_variant_conservation(variant)}

        assert checks["A"].is_balanced
        assert checks["B"].is_balanced

    def test_single_state_variant(self):
        """Test a variant with one state and no transitions."""
        checks = check_variant_conservation(make_variant("single", ["E"], []))

        assert len(checks) == 1
        assert checks[0].is_balanced
        assert checks[0].incoming_count == 0

    def test_loop_variant_balanced(self, info_loop_raw_events):
        """Test that a revisited state still balances with occurrence counts."""
        variant = extract_variants(extract_cases(parse_events(info_loop_raw_events)))[0]
        checks = {c.node: c for c in check_variant_conservation(variant)}

        review = checks["review_in_progress"]
        assert review.is_balanced
        assert review.incoming_count == 2
        assert review.total_outgoing == 2


class TestDFGConservation:
    """Tests for check_dfg_conservation."""

    def test_scenario_node_a(self, scenario_dfg):
        """Test the start activity of the scenario graph."""
        checks = {c.node: c for c in check_dfg_conservation(scenario_dfg)}
        check_a = checks["A"]

        assert check_a.variant == DFG_MARKER
        assert check_a.is_balanced
        assert check_a.incoming_count == 0
        assert check_a.outgoing_counts == {"B": 3, "E": 1}
        assert check_a.total_outgoing == 4

    def test_all_nodes_balanced(self, scenario_dfg):
        """Test that every node of a complete dataset balances."""
        checks = check_dfg_conservation(scenario_dfg)
        assert len(checks) == 5
        assert all(c.is_balanced for c in checks)


class TestConservationReport:
    """Tests for generate_conservation_report."""

    def test_passing_report(self, scenario_variants, scenario_dfg):
        """Test the report for consistent data."""
        report = generate_conservation_report(scenario_variants, scenario_dfg)

        assert report.overall_status == ConservationStatus.PASS
        assert report.passed
        assert report.total_checks == 13
        assert report.passed_checks == 13
        assert report.failed_checks == 0
        assert report.summary.critical_errors == []
        assert report.summary.recommendations == [
            "All conservation checks passed - data integrity confirmed"
        ]

    def test_variant_results(self, scenario_variants, scenario_dfg):
        """Test per-variant status and checks."""
        report = generate_conservation_report(scenario_variants, scenario_dfg)

        assert set(report.variant_results) == {"unknown_1", "unknown_2", "unknown_3"}
        assert report.variant_results["unknown_3"].status == ConservationStatus.PASS
        assert len(report.variant_results["unknown_3"].checks) == 2

    def test_failing_report(self, unbalanced_variant, scenario_dfg):
        """Test critical errors and recommendations for a violation."""
        report = generate_conservation_report([unbalanced_variant], scenario_dfg)

        assert report.overall_status == ConservationStatus.FAIL
        assert report.failed_checks == 1
        assert report.summary.critical_errors == [
            "1 conservation law violations detected",
            "Affected variants: broken",
        ]
        assert len(report.summary.recommendations) == 3
        assert [c.node for c in report.get_failed_checks()] == ["B"]

    def test_violations_logged(self, unbalanced_variant, scenario_dfg, caplog):
        """Test that each violation is logged as a warning."""
        with caplog.at_level(logging.WARNING):
            generate_conservation_report([unbalanced_variant], scenario_dfg)

        assert "Conservation violation at B (broken)" in caplog.text

    def test_high_frequency_warning(self, scenario_dfg):
        """Test the warning for unbalanced nodes with heavy traffic."""
        variant = make_variant("busy", ["A", "B", "C"], [("A", "B", 150), ("B", "C", 120)])
        report = generate_conservation_report([variant], scenario_dfg, high_frequency_threshold=100)

        assert report.summary.warnings == ["1 high-frequency nodes with conservation issues"]
        assert "Prioritize fixing high-frequency conservation issues first" in report.summary.recommendations

    def test_empty_dataset(self):
        """Test a report over no variants and an empty graph."""
        report = generate_conservation_report([], build_directly_follows_graph([]))

        assert report.passed
        assert report.total_checks == 0

    def test_to_dict(self, scenario_variants, scenario_dfg):
        """Test dictionary conversion of the report."""
        data = generate_conservation_report(scenario_variants, scenario_dfg).to_dict()

        assert data["overall_status"] == "PASS"
        assert data["node_results"][0]["node"] == "A"
        assert data["variant_results"]["unknown_1"]["status"] == "PASS"


class TestWorkerSplitConservation:
    """Tests for validate_worker_split_conservation."""

    def test_complete_split(self, scenario_variants):
        """Test a transition fully attributed to performers."""
        result = validate_worker_split_conservation(scenario_variants[0].get_transition("A", "B"))

        assert result["is_valid"]
        assert result["expected_total"] == 2
        assert result["breakdown"] == {"alice": 2}

    def test_incomplete_split(self):
        """Test a transition with unattributed occurrences."""
        transition = Transition("A", "B", 3, performer_breakdown={"x": PerformerStats(2, 1.0, 1.0)})
        result = validate_worker_split_conservation(transition)

        assert not result["is_valid"]
        assert result["expected_total"] == 3
        assert result["actual_total"] == 2
