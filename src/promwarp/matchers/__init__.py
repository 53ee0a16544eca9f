"""
Prometheus label matchers.

Models and a parser for the `match[]` selector expressions accepted by the
series and label discovery endpoints.
"""

from .models import METRIC_NAME_LABEL, Matcher, MatchType
from .parser import MatcherParseError, parse_metric_selector

__all__ = [
    "METRIC_NAME_LABEL",
    "Matcher",
    "MatchType",
    "MatcherParseError",
    "parse_metric_selector",
]
