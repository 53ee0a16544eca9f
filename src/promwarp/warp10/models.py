"""
Data models for Warp 10 directory lookups.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

# Label Warp 10 attaches to every series to record the owning application
APP_LABEL = ".app"


@dataclass(frozen=True)
class GeoTimeSeries:
    """A series as returned by the Warp 10 find endpoint (no datapoints)."""

    class_name: str
    labels: dict[str, str] = field(default_factory=dict)
    attributes: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_json(cls, payload: dict[str, Any]) -> GeoTimeSeries:
        """Build from the `{"c": ..., "l": {...}, "a": {...}}` find format."""
        return cls(
            class_name=str(payload.get("c", "")),
            labels={str(k): str(v) for k, v in (payload.get("l") or {}).items()},
            attributes={str(k): str(v) for k, v in (payload.get("a") or {}).items()},
        )

    def public_labels(self) -> dict[str, str]:
        """Labels without the Warp 10 housekeeping `.app` label."""
        return {k: v for k, v in self.labels.items() if k != APP_LABEL}


@dataclass(frozen=True)
class FindParameters:
    """Optional knobs for a find call."""

    active_after: datetime | None = None
    gcount: int | None = None

    def to_query_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        if self.active_after is not None:
            params["activeafter"] = str(int(self.active_after.timestamp() * 1000))
        if self.gcount is not None:
            params["gcount"] = str(self.gcount)
        return params
