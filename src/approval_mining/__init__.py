"""
Approval Workflow Mining Engine

This engine ingests timestamped state-change events for cases moving through
a multi-step approval workflow, extracts variants and a directly-follows graph,
checks flow conservation, and flags bottleneck transitions and performers.
"""

__version__ = "0.1.0"
__author__ = "Approval Workflow Mining Team"


# Default configuration
DEFAULT_CONFIG = {
    "bottleneck_policy": "percentile",  # "percentile" or "expected_time"
    "bottleneck_percentile": 0.9,
    "min_bottleneck_cases": 10,
    "expected_time_tolerance": 1.2,
    "min_expected_time_cases": 5,
    "performer_share": 0.2,
    "min_performer_transitions": 5,
    "high_frequency_threshold": 100,
    "distribution_tolerance": 5.0,  # percentage points
}
