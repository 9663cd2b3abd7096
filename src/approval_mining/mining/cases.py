"""
Case reconstruction from a flat event log.
"""

import logging
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from ..stats import hours_between
from .models import Event, ProcessCase

logger = logging.getLogger(__name__)


def extract_cases(events: Iterable[Event]) -> List[ProcessCase]:
    """
    Group events into cases and order each case by timestamp.

    Cases are returned in the order their first event appears. Events of a
    case with equal timestamps keep their original relative order.

    Args:
        events: Events in any order

    Returns:
        One ProcessCase per distinct case_id
    """
    groups: Dict[str, List[Event]] = {}
    for event in events:
        groups.setdefault(event.case_id, []).append(event)

    cases = []
    for case_id, case_events in groups.items():
        ordered = tuple(sorted(case_events, key=lambda e: e.timestamp))
        start_time = ordered[0].timestamp
        end_time = ordered[-1].timestamp

        cases.append(ProcessCase(
            case_id=case_id,
            events=ordered,
            sequence=tuple(e.state for e in ordered),
            start_time=start_time,
            end_time=end_time,
            duration_hours=hours_between(start_time, end_time),
        ))

    logger.debug(f"Reconstructed {len(cases)} cases")
    return cases


def iter_directly_follows(case: ProcessCase) -> Iterator[Tuple[str, str, float, Optional[str]]]:
    """
    Yield every adjacent event pair of a case.

    Yields:
        (from_state, to_state, duration_hours, performer of the target event)
    """
    for current, following in zip(case.events, case.events[1:]):
        yield (
            current.state,
            following.state,
            hours_between(current.timestamp, following.timestamp),
            following.performer,
        )
