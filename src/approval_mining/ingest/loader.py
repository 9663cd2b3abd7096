"""
Event log loader for approval workflow data.

Loads a JSON event log of the form:

    {
        "events": [
            {"case_id": "...", "state": "...", "timestamp": "<ISO 8601>", "performer": "..." | null},
            ...
        ],
        "metadata": {"generated_at": "<ISO 8601>", "total_cases": 100, "seed": 42}
    }

Validates the schema and case completeness before anything is analyzed.
Validation problems are collected into a list of readable messages; an
invalid log is never passed on to the analysis.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from ..mining.models import Event
from ..templates import FINAL_STATES

logger = logging.getLogger(__name__)

REQUIRED_EVENT_FIELDS = ("case_id", "state", "timestamp")


class EventLogValidationError(ValueError):
    """Raised when an event log fails validation."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        preview = "; ".join(self.errors[:5])
        more = f" (+{len(self.errors) - 5} more)" if len(self.errors) > 5 else ""
        super().__init__(f"Event log validation failed: {preview}{more}")


@dataclass
class ValidationResult:
    """Result of event log validation."""
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "valid": self.valid,
            "errors": self.errors,
            "warnings": self.warnings,
        }


@dataclass
class LoadResult:
    """Result of loading an event log."""
    events: List[Event]
    metadata: Dict[str, Any]
    validation: ValidationResult


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO 8601 timestamp into a timezone-aware datetime.

    A trailing ``Z`` is accepted; naive timestamps are taken as UTC.

    Returns:
        The parsed datetime, or None if the value is not a valid timestamp
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        text = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _describe(event: Any) -> str:
    """Compact representation of a raw event for error messages."""
    try:
        return json.dumps(event, default=str, sort_keys=True)
    except (TypeError, ValueError):
        return repr(event)


def validate_event_log(
    raw: Any,
    terminal_states: Optional[Iterable[str]] = None,
) -> ValidationResult:
    """
    Validate a raw event log.

    Checks that ``events`` is a list, that metadata carries an integer
    ``total_cases``, that every event has non-empty string ``case_id``,
    ``state`` and ``timestamp`` (parseable as ISO 8601) and a string or null
    ``performer``, and that every case's last state by timestamp is terminal.

    Args:
        raw: Parsed JSON event log
        terminal_states: States a complete case must end in
                         (defaults to the permit workflow final states)

    Returns:
        ValidationResult listing every problem found
    """
    terminal = frozenset(terminal_states) if terminal_states is not None else FINAL_STATES
    errors: List[str] = []
    warnings: List[str] = []

    if not isinstance(raw, dict):
        return ValidationResult(valid=False, errors=["Event log must be a JSON object"])

    events = raw.get("events")
    if not isinstance(events, list):
        return ValidationResult(valid=False, errors=["Events must be an array"])

    metadata = raw.get("metadata")
    total_cases = metadata.get("total_cases") if isinstance(metadata, dict) else None
    if not isinstance(total_cases, int) or isinstance(total_cases, bool):
        errors.append("Metadata must include total_cases")

    # Last (timestamp, position, state) per case, for the completeness check
    last_states: Dict[str, Any] = {}

    for position, event in enumerate(events):
        if not isinstance(event, dict):
            errors.append(f"Event is not an object: {_describe(event)}")
            continue

        event_ok = True
        for field_name in REQUIRED_EVENT_FIELDS:
            value = event.get(field_name)
            if not value or not isinstance(value, str):
                errors.append(f"Event missing {field_name}: {_describe(event)}")
                event_ok = False

        timestamp = None
        if isinstance(event.get("timestamp"), str) and event.get("timestamp"):
            timestamp = parse_timestamp(event["timestamp"])
            if timestamp is None:
                errors.append(f"Event has invalid timestamp: {_describe(event)}")
                event_ok = False

        performer = event.get("performer")
        if performer is not None and not isinstance(performer, str):
            errors.append(f"Event has invalid performer: {_describe(event)}")
            event_ok = False

        if not event_ok:
            continue

        case_id = event["case_id"]
        current = last_states.get(case_id)
        # Later position wins ties, matching the stable sort used for cases
        if current is None or timestamp >= current[0]:
            last_states[case_id] = (timestamp, position, event["state"])

    for case_id, (_, _, last_state) in last_states.items():
        if last_state not in terminal:
            errors.append(f"Case {case_id} does not end in final state: {last_state}")

    if isinstance(total_cases, int) and not isinstance(total_cases, bool) and not errors:
        if total_cases != len(last_states):
            warnings.append(
                f"Metadata total_cases={total_cases} does not match "
                f"{len(last_states)} distinct cases in events"
            )

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings)


def parse_events(raw_events: Iterable[Dict[str, Any]]) -> List[Event]:
    """
    Convert validated raw events into Event objects.

    Args:
        raw_events: Event dictionaries that passed validation

    Returns:
        List of Event in input order
    """
    return [
        Event(
            case_id=e["case_id"],
            state=e["state"],
            timestamp=parse_timestamp(e["timestamp"]),
            performer=e.get("performer"),
        )
        for e in raw_events
    ]


class EventLogLoader:
    """Loads and validates approval workflow event logs."""

    def __init__(self, terminal_states: Optional[Iterable[str]] = None):
        """
        Initialize the loader.

        Args:
            terminal_states: States a complete case must end in
        """
        self.terminal_states = (
            frozenset(terminal_states) if terminal_states is not None else FINAL_STATES
        )
        self.validation_result: Optional[ValidationResult] = None

    def load(self, source: Union[str, Path, Dict[str, Any]]) -> LoadResult:
        """
        Load an event log from a JSON file or an already parsed dictionary.

        Args:
            source: Path to a JSON file, or the parsed event log

        Returns:
            LoadResult with parsed events

        Raises:
            FileNotFoundError: If the file does not exist
            json.JSONDecodeError: If the file is not valid JSON
            EventLogValidationError: If the log fails validation
        """
        if isinstance(source, dict):
            raw = source
        else:
            path = Path(source)
            if not path.exists():
                raise FileNotFoundError(f"Event log not found: {path}")
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            logger.info(f"Loaded event log from {path}")

        validation = validate_event_log(raw, self.terminal_states)
        self.validation_result = validation

        for warning in validation.warnings:
            logger.warning(warning)

        if not validation.valid:
            logger.warning(f"Event log validation failed with {len(validation.errors)} errors")
            raise EventLogValidationError(validation.errors)

        events = parse_events(raw["events"])
        logger.debug(f"Parsed {len(events)} events")

        return LoadResult(
            events=events,
            metadata=dict(raw.get("metadata") or {}),
            validation=validation,
        )
