"""
Discovery orchestration.

Implements the Prometheus discovery endpoints on top of a Warp 10 finder.
Every operation follows the same pipeline::

    validate -> parse -> translate -> build selector -> find -> accumulate

and differs only in its validation policy and how results are shaped.
Any parse or backend failure aborts the whole operation; partial results
are never returned.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Sequence

import structlog

from promwarp.config import Settings
from promwarp.discovery.errors import (
    AuthMissingError,
    BackendError,
    MatcherSyntaxError,
    StatusCategory,
    ValidationError,
)
from promwarp.discovery.timewindow import (
    DEFAULT_MAX_LOOKBACK,
    DEFAULT_MIN_LOOKBACK,
    clamp_start,
    resolve_lookback,
)
from promwarp.matchers import METRIC_NAME_LABEL, Matcher, MatcherParseError, parse_metric_selector
from promwarp.warp10 import (
    FindParameters,
    GeoTimeSeries,
    SeriesFinder,
    Warp10Error,
    build_selector,
    translate_matchers,
)

logger = structlog.get_logger()

DEFAULT_METRIC_SELECTOR = "(http|prometheus).*"
DEFAULT_METRIC_SELECTOR_GCOUNT = 100

# Grafana wraps metric name searches as `.*term.*`, so 7 characters here
# is a 3 character search term.
MIN_METRIC_NAME_SEARCH_LENGTH = 7

BACKEND_ERROR_MESSAGE = "internal server error while searching for series"


@dataclass(frozen=True)
class DiscoveryConfig:
    """Policy knobs for the discovery endpoints."""

    default_metric_selector: str = DEFAULT_METRIC_SELECTOR
    default_metric_selector_gcount: int = DEFAULT_METRIC_SELECTOR_GCOUNT
    min_lookback: timedelta = DEFAULT_MIN_LOOKBACK
    max_lookback: timedelta = DEFAULT_MAX_LOOKBACK
    concurrent: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> DiscoveryConfig:
        return cls(
            default_metric_selector=settings.default_metric_selector,
            default_metric_selector_gcount=settings.default_metric_selector_gcount,
            min_lookback=resolve_lookback(
                settings.find_activeafter_min, DEFAULT_MIN_LOOKBACK, name="find_activeafter_min"
            ),
            max_lookback=resolve_lookback(
                settings.find_activeafter_max, DEFAULT_MAX_LOOKBACK, name="find_activeafter_max"
            ),
            concurrent=settings.find_concurrent,
        )

    @property
    def default_match(self) -> str:
        return "{" + f"{METRIC_NAME_LABEL}=~'{self.default_metric_selector}'" + "}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _unique(values: Iterable[str]) -> list[str]:
    """Deduplicate, keeping first-seen order."""
    return list(dict.fromkeys(values))


class DiscoveryOrchestrator:
    """Runs Prometheus discovery requests against a Warp 10 finder."""

    def __init__(
        self,
        finder: SeriesFinder,
        config: DiscoveryConfig | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._finder = finder
        self._config = config or DiscoveryConfig()
        self._clock = clock

    @property
    def config(self) -> DiscoveryConfig:
        return self._config

    async def find_series(self, token: str | None, matches: Sequence[str]) -> list[dict[str, str]]:
        """
        Return every series matching any of the expressions.

        Each series is flattened to a label set: ``__name__`` from the class,
        then the labels (without ``.app``) and the attributes. Results of
        different expressions are concatenated as-is.
        """
        token = self._require_token(token)
        if not matches:
            raise ValidationError("no match[] parameter provided", StatusCategory.UNPROCESSABLE)

        selectors = [
            build_selector(translate_matchers(self._parse(raw, StatusCategory.UNPROCESSABLE)))
            for raw in matches
        ]
        results = await self._find_all(token, selectors, FindParameters())

        series: list[dict[str, str]] = []
        for gtss in results:
            for gts in gtss:
                series.append({METRIC_NAME_LABEL: gts.class_name, **gts.public_labels(), **gts.attributes})
        return series

    async def find_label_values(
        self,
        token: str | None,
        label: str,
        matches: Sequence[str],
    ) -> list[str]:
        """
        Return the distinct values of ``label`` on series matching the first expression.

        Only ``matches[0]`` is used; further expressions are ignored.
        """
        token = self._require_token(token)
        if not label:
            raise ValidationError("unprocessable Entity: label")
        if not matches:
            raise ValidationError("no match[] parameter provided")

        selector = build_selector(translate_matchers(self._parse(matches[0])))
        gtss = await self._find(token, selector, FindParameters())

        if label == METRIC_NAME_LABEL:
            return _unique(gts.class_name for gts in gtss)
        return _unique(gts.labels[label] for gts in gtss if label in gts.labels)

    async def find_label_names(self, token: str | None, matches: Sequence[str]) -> list[str]:
        """
        Return the label names present on series matching any expression.

        Without expressions nothing is queried and the result is empty:
        an unscoped label listing would walk the whole directory.
        """
        token = self._require_token(token)
        if not matches:
            return []

        selectors = [build_selector(translate_matchers(self._parse(raw))) for raw in matches]
        results = await self._find_all(token, selectors, FindParameters())

        names = {METRIC_NAME_LABEL}
        for gtss in results:
            for gts in gtss:
                names.update(gts.public_labels())
                names.update(gts.attributes)
        return sorted(names)

    async def find_metric_names(
        self,
        token: str | None,
        matches: Sequence[str],
        *,
        start: datetime | None = None,
        label: str | None = None,
    ) -> list[str]:
        """Return the distinct class names matching the expressions."""
        gtss = await self._find_classes(self._require_token(token), matches, start=start, label=label)
        return _unique(gts.class_name for gts in gtss)

    async def search_series(
        self,
        token: str | None,
        matches: Sequence[str],
        *,
        start: datetime | None = None,
    ) -> list[dict[str, str]]:
        """
        Series lookup with the metric name search policy (POST /series).

        Unlike :meth:`find_series`, expressions must name a metric and the
        start time is honoured.
        """
        token = self._require_token(token)
        if not matches:
            raise ValidationError("no match[] parameter provided")

        gtss = await self._find_classes(token, matches, start=start)
        return [{METRIC_NAME_LABEL: gts.class_name, **gts.public_labels()} for gts in gtss]

    async def _find_classes(
        self,
        token: str,
        matches: Sequence[str],
        *,
        start: datetime | None = None,
        label: str | None = None,
    ) -> list[GeoTimeSeries]:
        params = FindParameters()
        if not matches:
            # Unscoped requests only get a small sample of well-known metrics
            matches = [self._config.default_match]
            params = FindParameters(gcount=self._config.default_metric_selector_gcount)

        parsed = [self._parse(raw) for raw in matches]
        for matchers in parsed:
            self._validate_metric_search(matchers)

        if start is not None:
            params = FindParameters(active_after=self._clamp(start), gcount=params.gcount)

        selectors = []
        for matchers in parsed:
            translated = translate_matchers(matchers)
            if label and label != METRIC_NAME_LABEL:
                translated = translated.with_label(label, "~.*")
            selectors.append(build_selector(translated, force_class_regex=True))

        results = await self._find_all(token, selectors, params)
        return [gts for gtss in results for gts in gtss]

    def _validate_metric_search(self, matchers: list[Matcher]) -> None:
        has_name_matcher = False
        for matcher in matchers:
            if not matcher.is_metric_name:
                continue
            has_name_matcher = True
            if matcher.value == self._config.default_metric_selector:
                continue
            if len(matcher.value.strip()) < MIN_METRIC_NAME_SEARCH_LENGTH:
                raise ValidationError("search must contain at least 3 characters")

        if not has_name_matcher:
            raise ValidationError(f"query must include a matcher for {METRIC_NAME_LABEL}")

    def _clamp(self, start: datetime) -> datetime:
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        adjusted = clamp_start(start, self._clock(), self._config.min_lookback, self._config.max_lookback)
        if adjusted != start:
            logger.info(
                "start_time_adjusted",
                requested=start.isoformat(),
                adjusted=adjusted.isoformat(),
            )
        return adjusted

    @staticmethod
    def _require_token(token: str | None) -> str:
        if not token:
            raise AuthMissingError("please provide a READ token")
        return token

    @staticmethod
    def _parse(raw: str, category: StatusCategory = StatusCategory.BAD_REQUEST) -> list[Matcher]:
        try:
            return parse_metric_selector(raw)
        except MatcherParseError as exc:
            raise MatcherSyntaxError(f"invalid matcher format: {exc}", category) from exc

    async def _find(self, token: str, selector: str, params: FindParameters) -> list[GeoTimeSeries]:
        try:
            return await self._finder.find(token, selector, params)
        except Warp10Error as exc:
            logger.error("warp10_find_failed", query=selector, error=str(exc))
            raise BackendError(BACKEND_ERROR_MESSAGE) from exc

    async def _find_all(
        self,
        token: str,
        selectors: Sequence[str],
        params: FindParameters,
    ) -> list[list[GeoTimeSeries]]:
        if not self._config.concurrent or len(selectors) < 2:
            return [await self._find(token, selector, params) for selector in selectors]

        tasks = [asyncio.ensure_future(self._find(token, selector, params)) for selector in selectors]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
