"""
Prometheus discovery over Warp 10.

Translates `match[]` expressions into Warp 10 selectors, runs them and
reshapes the results for the series, labels and label values endpoints.
"""

from .errors import (
    AuthMissingError,
    BackendError,
    DiscoveryError,
    MatcherSyntaxError,
    StatusCategory,
    ValidationError,
)
from .orchestrator import DiscoveryConfig, DiscoveryOrchestrator
from .timewindow import clamp_start, parse_duration, parse_timestamp

__all__ = [
    "AuthMissingError",
    "BackendError",
    "DiscoveryConfig",
    "DiscoveryError",
    "DiscoveryOrchestrator",
    "MatcherSyntaxError",
    "StatusCategory",
    "ValidationError",
    "clamp_start",
    "parse_duration",
    "parse_timestamp",
]
