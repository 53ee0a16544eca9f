"""
Lookback window handling for the `start` discovery parameter.

A caller-supplied start time is clamped into ``[now - max, now - min]`` so a
discovery query never scans further back than the configured maximum nor
narrows to less than the configured minimum.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import structlog

logger = structlog.get_logger()

DEFAULT_MIN_LOOKBACK = timedelta(hours=24)
DEFAULT_MAX_LOOKBACK = timedelta(days=7)

# Microseconds per unit
_UNITS = {
    "ns": Decimal("0.001"),
    "us": Decimal(1),
    "µs": Decimal(1),
    "ms": Decimal(1_000),
    "s": Decimal(1_000_000),
    "m": Decimal(60_000_000),
    "h": Decimal(3_600_000_000),
    "d": Decimal(86_400_000_000),
    "w": Decimal(604_800_000_000),
    "y": Decimal(31_536_000_000_000),
}

_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h|d|w|y)")


def parse_duration(raw: str) -> timedelta:
    """
    Parse a Go/Prometheus style duration such as ``24h``, ``1h30m`` or ``7d``.

    Raises:
        ValueError: If the string is not a valid duration
    """
    text = raw.strip()
    if text in ("0", "+0", "-0"):
        return timedelta(0)

    sign = 1
    if text[:1] in ("+", "-"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if not text:
        raise ValueError(f"invalid duration {raw!r}")

    micros = Decimal(0)
    pos = 0
    while pos < len(text):
        match = _DURATION_PART_RE.match(text, pos)
        if not match:
            raise ValueError(f"invalid duration {raw!r}")
        micros += Decimal(match.group(1)) * _UNITS[match.group(2)]
        pos = match.end()

    try:
        return timedelta(microseconds=int(micros.to_integral_value())) * sign
    except OverflowError as exc:
        raise ValueError(f"duration {raw!r} out of range") from exc


def resolve_lookback(raw: str | None, default: timedelta, *, name: str) -> timedelta:
    """
    Parse a configured lookback, falling back to ``default`` when malformed.

    A lookback reaching outside the representable datetime range counts as
    malformed.
    """
    try:
        if raw is None:
            raise ValueError("not set")
        lookback = parse_duration(raw)
        try:
            datetime.now(timezone.utc) - lookback
        except OverflowError as exc:
            raise ValueError(f"duration {raw!r} out of range") from exc
        return lookback
    except ValueError as exc:
        logger.warning(
            "lookback_parse_failed",
            setting=name,
            value=raw,
            error=str(exc),
            default=str(default),
        )
        return default


def clamp_start(
    requested: datetime,
    now: datetime,
    min_lookback: timedelta,
    max_lookback: timedelta,
) -> datetime:
    """Clamp ``requested`` into ``[now - max_lookback, now - min_lookback]``."""
    lower = now - max_lookback
    upper = now - min_lookback

    if requested < lower:
        return lower
    if requested > upper:
        return upper
    return requested


def parse_timestamp(raw: str) -> datetime:
    """
    Parse a Prometheus API timestamp: unix seconds (float) or RFC 3339.

    Raises:
        ValueError: If the value is neither
    """
    text = raw.strip()
    try:
        return datetime.fromtimestamp(float(text), tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        pass

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValueError(f"cannot parse {raw!r} to a valid timestamp") from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
