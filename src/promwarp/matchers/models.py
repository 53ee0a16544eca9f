"""
Label matcher models.

A matcher is one `name op "value"` term of a Prometheus vector selector.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

METRIC_NAME_LABEL = "__name__"


class MatchType(str, Enum):
    """Prometheus label matching operators."""

    EQUAL = "="
    NOT_EQUAL = "!="
    REGEX_MATCH = "=~"
    REGEX_NOT_MATCH = "!~"

    @property
    def is_regex(self) -> bool:
        return self in (MatchType.REGEX_MATCH, MatchType.REGEX_NOT_MATCH)

    @property
    def is_negative(self) -> bool:
        return self in (MatchType.NOT_EQUAL, MatchType.REGEX_NOT_MATCH)


@dataclass(frozen=True)
class Matcher:
    """A single label constraint."""

    name: str
    value: str
    type: MatchType = MatchType.EQUAL

    @property
    def is_metric_name(self) -> bool:
        return self.name == METRIC_NAME_LABEL

    def matches(self, value: str) -> bool:
        """Evaluate the matcher against a label value (regexes are fully anchored)."""
        if self.type is MatchType.EQUAL:
            return value == self.value
        if self.type is MatchType.NOT_EQUAL:
            return value != self.value

        matched = re.fullmatch(self.value, value) is not None
        if self.type is MatchType.REGEX_MATCH:
            return matched
        return not matched

    def __str__(self) -> str:
        escaped = self.value.replace("\\", "\\\\").replace('"', '\\"')
        return f'{self.name}{self.type.value}"{escaped}"'
