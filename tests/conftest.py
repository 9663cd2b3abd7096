"""
Pytest configuration and fixtures for approval workflow mining tests.
"""

import json
import pytest
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add src directory to path for imports without an installed package
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / 'src'))

from approval_mining.ingest import parse_events
from approval_mining.mining import extract_cases, extract_variants
from approval_mining.templates import WorkflowTemplate


BASE_TIME = datetime(2024, 3, 4, 9, 0, 0, tzinfo=timezone.utc)

DIRECT_APPROVAL = [
    "submitted", "intake_validation", "assigned_to_reviewer",
    "review_in_progress", "health_inspection", "approved",
]

INFO_LOOP = [
    "submitted", "intake_validation", "assigned_to_reviewer",
    "review_in_progress", "request_additional_info",
    "applicant_provided_info", "review_in_progress",
    "health_inspection", "approved",
]

WITHDRAWN = [
    "submitted", "intake_validation", "assigned_to_reviewer",
    "review_in_progress", "request_additional_info", "withdrawn",
]


def make_raw_events(case_id, states, start=BASE_TIME, step_hours=1.0, performers=None):
    """
    Build raw event dictionaries for one case.

    Args:
        case_id: Case identifier
        states: Ordered states of the case
        start: Timestamp of the first event
        step_hours: Hours between consecutive events (number or list)
        performers: Performer per event (list), or None for all automatic
    """
    if isinstance(step_hours, (int, float)):
        step_hours = [step_hours] * (len(states) - 1)

    events = []
    timestamp = start
    for i, state in enumerate(states):
        if i > 0:
            timestamp = timestamp + timedelta(hours=step_hours[i - 1])
        events.append({
            'case_id': case_id,
            'state': state,
            'timestamp': timestamp.isoformat().replace('+00:00', 'Z'),
            'performer': performers[i] if performers else None,
        })
    return events


@pytest.fixture
def scenario_template():
    """Template for the A/B/C/D/E scenario with no known variants."""
    return WorkflowTemplate(
        name="scenario",
        display_name="Scenario",
        states=("A", "B", "C", "D", "E"),
        terminal_states=frozenset(["C", "D", "E"]),
    )


@pytest.fixture
def scenario_raw_events():
    """Four cases: A,B,C twice, A,B,D once, A,E once."""
    events = []
    events += make_raw_events("case-1", ["A", "B", "C"], BASE_TIME, 1.0, [None, "alice", "bob"])
    events += make_raw_events("case-2", ["A", "B", "C"], BASE_TIME + timedelta(days=1), 3.0,
                              [None, "alice", "carol"])
    events += make_raw_events("case-3", ["A", "B", "D"], BASE_TIME + timedelta(days=2), 2.0,
                              [None, "bob", "bob"])
    events += make_raw_events("case-4", ["A", "E"], BASE_TIME + timedelta(days=3), 5.0,
                              [None, "carol"])
    return events


@pytest.fixture
def scenario_events(scenario_raw_events):
    """Parsed events of the A/B/C/D/E scenario."""
    return parse_events(scenario_raw_events)


@pytest.fixture
def scenario_cases(scenario_events):
    """Reconstructed cases of the A/B/C/D/E scenario."""
    return extract_cases(scenario_events)


@pytest.fixture
def scenario_variants(scenario_cases, scenario_template):
    """Variants of the A/B/C/D/E scenario."""
    return extract_variants(scenario_cases, scenario_template)


@pytest.fixture
def scenario_event_log(scenario_raw_events):
    """Raw event log of the A/B/C/D/E scenario."""
    return {
        'events': scenario_raw_events,
        'metadata': {'generated_at': '2024-03-08T00:00:00Z', 'total_cases': 4, 'seed': 1},
    }


@pytest.fixture
def info_loop_raw_events():
    """One permit case that revisits review_in_progress after an info request."""
    return make_raw_events(
        "permit-loop",
        INFO_LOOP,
        BASE_TIME,
        [24, 0.25, 72, 48, 60, 96, 100, 48],
        [None, "clerk_1", None, "reviewer_1", None, None, "reviewer_1", "inspector_1", "inspector_1"],
    )


@pytest.fixture
def permit_raw_events(info_loop_raw_events):
    """Permit cases covering direct approval, the info loop and withdrawal."""
    events = []
    events += make_raw_events(
        "permit-1", DIRECT_APPROVAL, BASE_TIME, [30, 0.2, 60, 100, 48],
        [None, "clerk_1", None, "reviewer_1", "inspector_1", "inspector_1"],
    )
    events += make_raw_events(
        "permit-2", DIRECT_APPROVAL, BASE_TIME + timedelta(hours=5), [20, 0.4, 90, 150, 72],
        [None, "clerk_2", None, "reviewer_2", "inspector_1", "inspector_1"],
    )
    events += info_loop_raw_events
    events += make_raw_events(
        "permit-4", WITHDRAWN, BASE_TIME + timedelta(days=1), [26, 0.3, 50, 30, 40],
        [None, "clerk_2", None, "reviewer_2", None, None],
    )
    return events


@pytest.fixture
def permit_event_log(permit_raw_events):
    """Valid permit event log with metadata."""
    return {
        'events': permit_raw_events,
        'metadata': {'generated_at': '2024-03-20T00:00:00Z', 'total_cases': 4, 'seed': 42},
    }


@pytest.fixture
def permit_log_file(tmp_path, permit_event_log):
    """Permit event log written to a JSON file."""
    path = tmp_path / 'event_log.json'
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(permit_event_log, f)
    return path


@pytest.fixture
def case_events_factory():
    """Factory building raw events for one case (see make_raw_events)."""
    return make_raw_events
