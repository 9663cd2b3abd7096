"""
Directly-Follows Graph construction over the whole dataset.

Activities are nodes; an edge ``A -> B`` exists when ``B`` was observed
immediately after ``A`` in at least one case. The graph is built once over
all cases and is the reference for "what happened in the whole dataset",
independent of which variants a user later selects.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .cases import iter_directly_follows
from .models import ProcessCase, TransitionKey

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DFGEdge:
    """
    A directly-follows relation with every observation of it.

    Attributes:
        from_state: Source activity
        to_state: Target activity
        count: Number of observations
        cases: Case id of each observation (repeats for loops)
        durations: One sample per observation, taken from the first
                   matching pair in its case
        performers: Distinct performers of those first-pair target events,
                    in discovery order
    """
    from_state: str
    to_state: str
    count: int
    cases: Tuple[str, ...]
    durations: Tuple[float, ...]
    performers: Tuple[str, ...]

    @property
    def key(self) -> TransitionKey:
        """Composite (from, to) key."""
        return (self.from_state, self.to_state)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "from": self.from_state,
            "to": self.to_state,
            "count": self.count,
            "cases": list(self.cases),
            "durations": list(self.durations),
            "performers": list(self.performers),
        }


@dataclass(frozen=True)
class DFGNode:
    """
    An activity with its linked edges.

    Attributes:
        activity: Activity name
        frequency: Number of times the activity occurs across all cases
        cases: Distinct case ids containing the activity
        incoming_edges: Edges ending at this activity
        outgoing_edges: Edges starting at this activity
    """
    activity: str
    frequency: int
    cases: Tuple[str, ...]
    incoming_edges: Tuple[DFGEdge, ...] = ()
    outgoing_edges: Tuple[DFGEdge, ...] = ()

    @property
    def incoming_count(self) -> int:
        """Sum of incoming edge counts."""
        return sum(edge.count for edge in self.incoming_edges)

    @property
    def outgoing_count(self) -> int:
        """Sum of outgoing edge counts."""
        return sum(edge.count for edge in self.outgoing_edges)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary; edges are referenced by their endpoints."""
        return {
            "activity": self.activity,
            "frequency": self.frequency,
            "cases": list(self.cases),
            "incoming_edges": [edge.from_state for edge in self.incoming_edges],
            "outgoing_edges": [edge.to_state for edge in self.outgoing_edges],
        }


@dataclass(frozen=True)
class DirectlyFollowsGraph:
    """
    Directly-follows graph of a complete event log.

    Attributes:
        nodes: activity -> DFGNode
        edges: All edges in discovery order
        total_cases: Number of cases the graph was built from
        start_activities: Activities that start at least one case
        end_activities: Activities that end at least one case
    """
    nodes: Dict[str, DFGNode]
    edges: Tuple[DFGEdge, ...]
    total_cases: int
    start_activities: Tuple[str, ...]
    end_activities: Tuple[str, ...]

    def get_edge(self, from_state: str, to_state: str) -> Optional[DFGEdge]:
        """Find the edge for a (from, to) pair."""
        for edge in self.edges:
            if edge.key == (from_state, to_state):
                return edge
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "nodes": {activity: node.to_dict() for activity, node in self.nodes.items()},
            "edges": [edge.to_dict() for edge in self.edges],
            "total_cases": self.total_cases,
            "start_activities": list(self.start_activities),
            "end_activities": list(self.end_activities),
        }


@dataclass
class DFGValidation:
    """Result of recomputing flow balance for every DFG node."""
    is_consistent: bool
    errors: List[str] = field(default_factory=list)
    node_checks: Dict[str, Dict[str, Any]] = field(default_factory=dict)


def build_directly_follows_graph(cases: Sequence[ProcessCase]) -> DirectlyFollowsGraph:
    """
    Build the directly-follows graph from all cases.

    Every adjacent pair of every case increments its edge. The duration
    sample and target performer recorded for the occurrence come from the
    first pair with the same from/to states in that case, so a repeated
    pair in a loop repeats its first timing. Per-occurrence timing is
    available from compute_total_flow.

    Args:
        cases: Every reconstructed case of the log

    Returns:
        DirectlyFollowsGraph with edges linked into their endpoint nodes
    """
    start_activities: Dict[str, None] = {}
    end_activities: Dict[str, None] = {}
    frequencies: Dict[str, int] = {}
    node_cases: Dict[str, Dict[str, None]] = {}

    edge_counts: Dict[TransitionKey, int] = {}
    edge_cases: Dict[TransitionKey, List[str]] = {}
    edge_durations: Dict[TransitionKey, List[float]] = {}
    edge_performers: Dict[TransitionKey, Dict[str, None]] = {}

    for case in cases:
        if not case.sequence:
            continue

        start_activities[case.sequence[0]] = None
        end_activities[case.sequence[-1]] = None

        for activity in case.sequence:
            frequencies[activity] = frequencies.get(activity, 0) + 1
            node_cases.setdefault(activity, {})[case.case_id] = None

        # Every occurrence is sampled from the case's first matching pair
        first_pairs: Dict[TransitionKey, Tuple[float, Optional[str]]] = {}
        for from_state, to_state, hours, performer in iter_directly_follows(case):
            first_pairs.setdefault((from_state, to_state), (hours, performer))

        for key in zip(case.sequence, case.sequence[1:]):
            hours, performer = first_pairs[key]
            edge_counts[key] = edge_counts.get(key, 0) + 1
            edge_cases.setdefault(key, []).append(case.case_id)
            edge_durations.setdefault(key, []).append(hours)
            performers = edge_performers.setdefault(key, {})
            if performer:
                performers[performer] = None

    edges = tuple(
        DFGEdge(
            from_state=key[0],
            to_state=key[1],
            count=count,
            cases=tuple(edge_cases[key]),
            durations=tuple(edge_durations[key]),
            performers=tuple(edge_performers[key]),
        )
        for key, count in edge_counts.items()
    )

    nodes = {
        activity: DFGNode(
            activity=activity,
            frequency=frequency,
            cases=tuple(node_cases[activity]),
            incoming_edges=tuple(e for e in edges if e.to_state == activity),
            outgoing_edges=tuple(e for e in edges if e.from_state == activity),
        )
        for activity, frequency in frequencies.items()
    }

    logger.debug(f"Built DFG with {len(nodes)} nodes and {len(edges)} edges from {len(cases)} cases")

    return DirectlyFollowsGraph(
        nodes=nodes,
        edges=edges,
        total_cases=len(cases),
        start_activities=tuple(start_activities),
        end_activities=tuple(end_activities),
    )


def validate_dfg_consistency(dfg: DirectlyFollowsGraph) -> DFGValidation:
    """
    Recompute incoming and outgoing sums for every node.

    Start-only activities must have no incoming flow, end-only activities
    no outgoing flow, and intermediate activities must balance. Activities
    that both start and end cases are exempt.

    Args:
        dfg: Graph to validate

    Returns:
        DFGValidation with per-node detail
    """
    errors = []
    node_checks = {}

    for activity, node in dfg.nodes.items():
        incoming = node.incoming_count
        outgoing = node.outgoing_count
        is_start = activity in dfg.start_activities
        is_end = activity in dfg.end_activities

        if is_start and is_end:
            is_balanced = True
            expected = "start/end activity"
        elif is_start:
            is_balanced = incoming == 0
            expected = "start activity (incoming = 0)"
        elif is_end:
            is_balanced = outgoing == 0
            expected = "end activity (outgoing = 0)"
        else:
            is_balanced = incoming == outgoing
            expected = "intermediate activity (incoming = outgoing)"

        node_checks[activity] = {
            "incoming": incoming,
            "outgoing": outgoing,
            "is_balanced": is_balanced,
        }

        if not is_balanced:
            errors.append(
                f'Activity "{activity}" is unbalanced ({expected}): '
                f"incoming={incoming}, outgoing={outgoing}"
            )

    return DFGValidation(
        is_consistent=not errors,
        errors=errors,
        node_checks=node_checks,
    )


def get_dfg_statistics(dfg: DirectlyFollowsGraph) -> Dict[str, Any]:
    """
    Summarize a directly-follows graph.

    Returns:
        Dictionary with activity and transition totals, average path length,
        and the most frequent edge and activity
    """
    transition_instances = sum(edge.count for edge in dfg.edges)
    average_path_length = transition_instances / dfg.total_cases if dfg.total_cases else 0.0

    most_frequent_edge = max(dfg.edges, key=lambda e: e.count, default=None)
    most_frequent_node = max(dfg.nodes.values(), key=lambda n: n.frequency, default=None)

    return {
        "total_activities": len(dfg.nodes),
        "total_transitions": len(dfg.edges),
        "total_transition_instances": transition_instances,
        "average_path_length": average_path_length,
        "most_frequent_edge": (
            f"{most_frequent_edge.from_state} -> {most_frequent_edge.to_state}"
            if most_frequent_edge else None
        ),
        "most_frequent_activity": most_frequent_node.activity if most_frequent_node else None,
        "start_activities": list(dfg.start_activities),
        "end_activities": list(dfg.end_activities),
    }
