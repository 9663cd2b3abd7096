"""
Data Model for Approval Workflow Mining.

Events are the raw input; everything else is derived from them and never
mutated after creation:

- Event: one state change of one case
- ProcessCase: the time-ordered events of one case
- Transition: statistics for one directly-follows pair inside a variant
- StateOccupancy: distinct cases that visited a state
- Variant: all cases sharing one exact ordered state sequence

Transitions are keyed by the ``(from_state, to_state)`` tuple throughout.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from ..stats import TimingSummary

TransitionKey = Tuple[str, str]


@dataclass(frozen=True)
class Event:
    """
    A single timestamped state change.

    Attributes:
        case_id: Identifier of the case the event belongs to
        state: The state entered
        timestamp: When the state was entered (timezone-aware)
        performer: Who performed the step, or None for automatic steps
    """
    case_id: str
    state: str
    timestamp: datetime
    performer: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the event log wire format."""
        return {
            "case_id": self.case_id,
            "state": self.state,
            "timestamp": self.timestamp.isoformat(),
            "performer": self.performer,
        }


@dataclass(frozen=True)
class ProcessCase:
    """
    One workflow instance reconstructed from its events.

    Attributes:
        case_id: Case identifier
        events: Events sorted by timestamp
        sequence: States in event order
        start_time: Timestamp of the first event
        end_time: Timestamp of the last event
        duration_hours: Hours between first and last event
    """
    case_id: str
    events: Tuple[Event, ...]
    sequence: Tuple[str, ...]
    start_time: datetime
    end_time: datetime
    duration_hours: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "case_id": self.case_id,
            "events": [e.to_dict() for e in self.events],
            "sequence": list(self.sequence),
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration_hours": self.duration_hours,
        }


@dataclass(frozen=True)
class PerformerStats:
    """Share of a transition handled by one performer."""
    count: int
    median_time_hours: float
    mean_time_hours: float

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "count": self.count,
            "median_time_hours": self.median_time_hours,
            "mean_time_hours": self.mean_time_hours,
        }


@dataclass(frozen=True)
class Transition:
    """
    Statistics for a directly-follows pair.

    ``count`` is the number of actual occurrences of the pair in the raw
    event streams, so a loop that repeats the pair counts every repetition.
    """
    from_state: str
    to_state: str
    count: int
    median_time_hours: float = 0.0
    mean_time_hours: float = 0.0
    percentile_95_hours: float = 0.0
    performer_breakdown: Dict[str, PerformerStats] = field(default_factory=dict)

    @property
    def key(self) -> TransitionKey:
        """Composite (from, to) key."""
        return (self.from_state, self.to_state)

    @classmethod
    def from_samples(
        cls,
        from_state: str,
        to_state: str,
        count: int,
        timing: TimingSummary,
        performer_breakdown: Dict[str, PerformerStats],
    ) -> "Transition":
        """Build a transition from a count and summarized duration samples."""
        return cls(
            from_state=from_state,
            to_state=to_state,
            count=count,
            median_time_hours=timing.median_hours,
            mean_time_hours=timing.mean_hours,
            percentile_95_hours=timing.p95_hours,
            performer_breakdown=performer_breakdown,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "from": self.from_state,
            "to": self.to_state,
            "count": self.count,
            "median_time_hours": self.median_time_hours,
            "mean_time_hours": self.mean_time_hours,
            "percentile_95_hours": self.percentile_95_hours,
            "performer_breakdown": {
                performer: stats.to_dict()
                for performer, stats in self.performer_breakdown.items()
            },
        }


@dataclass(frozen=True)
class StateOccupancy:
    """Distinct cases that visited a state; revisits do not add to the count."""
    state: str
    unique_case_count: int
    unique_cases: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "state": self.state,
            "unique_case_count": self.unique_case_count,
            "unique_cases": list(self.unique_cases),
        }


@dataclass(frozen=True)
class Variant:
    """
    All cases that share one exact ordered sequence of states.

    Attributes:
        variant_id: Known variant key or a synthetic ``unknown_<n>`` id
        sequence: The shared state sequence
        case_count: Number of cases in the variant
        cases: Case ids in discovery order
        transitions: One entry per distinct adjacent pair of the sequence
        state_occupancy: One entry per distinct state of the sequence
        total_median_hours: Median case duration
        total_mean_hours: Mean case duration
        total_percentile_95_hours: 95th percentile case duration
    """
    variant_id: str
    sequence: Tuple[str, ...]
    case_count: int
    cases: Tuple[str, ...]
    transitions: Tuple[Transition, ...]
    state_occupancy: Tuple[StateOccupancy, ...]
    total_median_hours: float = 0.0
    total_mean_hours: float = 0.0
    total_percentile_95_hours: float = 0.0

    @property
    def start_state(self) -> Optional[str]:
        """First state of the sequence."""
        return self.sequence[0] if self.sequence else None

    @property
    def end_state(self) -> Optional[str]:
        """Last state of the sequence."""
        return self.sequence[-1] if self.sequence else None

    def get_transition(self, from_state: str, to_state: str) -> Optional[Transition]:
        """Find the transition for a (from, to) pair."""
        for transition in self.transitions:
            if transition.key == (from_state, to_state):
                return transition
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "variant_id": self.variant_id,
            "sequence": list(self.sequence),
            "case_count": self.case_count,
            "cases": list(self.cases),
            "transitions": [t.to_dict() for t in self.transitions],
            "state_occupancy": [s.to_dict() for s in self.state_occupancy],
            "total_median_hours": self.total_median_hours,
            "total_mean_hours": self.total_mean_hours,
            "total_percentile_95_hours": self.total_percentile_95_hours,
        }
