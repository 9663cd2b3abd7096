"""Event log ingestion and validation."""

from .loader import (
    EventLogLoader,
    EventLogValidationError,
    LoadResult,
    ValidationResult,
    parse_events,
    parse_timestamp,
    validate_event_log,
)

__all__ = [
    "EventLogLoader",
    "EventLogValidationError",
    "LoadResult",
    "ValidationResult",
    "parse_events",
    "parse_timestamp",
    "validate_event_log",
]
