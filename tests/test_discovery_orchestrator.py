"""Tests for the discovery orchestrator.

Runs every discovery operation against a recording fake finder and checks
the selectors sent to Warp 10, the validation policy and result shaping.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from promwarp.config import Settings
from promwarp.discovery import (
    AuthMissingError,
    BackendError,
    DiscoveryConfig,
    DiscoveryOrchestrator,
    MatcherSyntaxError,
    StatusCategory,
    ValidationError,
)
from promwarp.discovery.orchestrator import BACKEND_ERROR_MESSAGE
from promwarp.warp10 import FindParameters, GeoTimeSeries, Warp10Error

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
TOKEN = "read-token"


class FakeFinder:
    """Records find calls; answers per selector or with a default list."""

    def __init__(
        self,
        default: list[GeoTimeSeries] | None = None,
        by_selector: dict[str, Any] | None = None,
    ) -> None:
        self.default = default or []
        self.by_selector = by_selector or {}
        self.calls: list[tuple[str, str, FindParameters | None]] = []

    async def find(self, token, selector, params=None):
        self.calls.append((token, selector, params))
        result = self.by_selector.get(selector, self.default)
        if isinstance(result, Exception):
            raise result
        return list(result)

    @property
    def selectors(self) -> list[str]:
        return [selector for _, selector, _ in self.calls]


def gts(class_name: str, labels: dict[str, str] | None = None, attributes: dict[str, str] | None = None):
    return GeoTimeSeries(class_name, labels or {}, attributes or {})


def orchestrator_for(finder: FakeFinder, **config: Any) -> DiscoveryOrchestrator:
    return DiscoveryOrchestrator(finder, DiscoveryConfig(**config), clock=lambda: NOW)


class TestFindSeries:
    """Tests for series discovery (GET /series)."""

    @pytest.mark.asyncio
    async def test_flattens_records(self):
        finder = FakeFinder(
            [gts("http_requests_total", {".app": "demo", "env": "prod"}, {"unit": "req"})]
        )

        series = await orchestrator_for(finder).find_series(TOKEN, ['http_requests_total{env="prod"}'])

        assert series == [{"__name__": "http_requests_total", "env": "prod", "unit": "req"}]
        assert finder.calls == [(TOKEN, "http_requests_total{env=prod}", FindParameters())]

    @pytest.mark.asyncio
    async def test_without_metric_name_uses_class_wildcard(self):
        finder = FakeFinder()

        await orchestrator_for(finder).find_series(TOKEN, ['{job="api", env!="prod"}'])

        assert finder.selectors == ["~.*{env~(?!prod).*,job=api}"]

    @pytest.mark.asyncio
    async def test_results_of_expressions_are_concatenated(self):
        finder = FakeFinder([gts("up", {"job": "api"})])

        series = await orchestrator_for(finder).find_series(TOKEN, ["up", '{job="api"}'])

        assert len(finder.calls) == 2
        assert series == [{"__name__": "up", "job": "api"}, {"__name__": "up", "job": "api"}]

    @pytest.mark.asyncio
    async def test_requires_match(self):
        with pytest.raises(ValidationError) as exc_info:
            await orchestrator_for(FakeFinder()).find_series(TOKEN, [])

        assert exc_info.value.category is StatusCategory.UNPROCESSABLE

    @pytest.mark.asyncio
    async def test_parse_error_is_unprocessable_and_aborts(self):
        finder = FakeFinder()

        with pytest.raises(MatcherSyntaxError) as exc_info:
            await orchestrator_for(finder).find_series(TOKEN, ["up", "up{job}"])

        assert exc_info.value.category is StatusCategory.UNPROCESSABLE
        assert exc_info.value.message.startswith("invalid matcher format:")
        assert finder.calls == []

    @pytest.mark.asyncio
    async def test_backend_error_aborts_remaining_expressions(self):
        finder = FakeFinder(by_selector={"up{}": Warp10Error("connection refused")})

        with pytest.raises(BackendError) as exc_info:
            await orchestrator_for(finder).find_series(TOKEN, ["up", "down"])

        assert exc_info.value.message == BACKEND_ERROR_MESSAGE
        assert exc_info.value.category is StatusCategory.INTERNAL
        assert "connection refused" not in exc_info.value.message
        assert finder.selectors == ["up{}"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("token", [None, ""])
    async def test_requires_token(self, token):
        finder = FakeFinder()

        with pytest.raises(AuthMissingError) as exc_info:
            await orchestrator_for(finder).find_series(token, ["up"])

        assert exc_info.value.category is StatusCategory.UNAUTHORIZED
        assert finder.calls == []


class TestFindLabelValues:
    """Tests for label value discovery."""

    @pytest.mark.asyncio
    async def test_only_first_expression_is_queried(self):
        finder = FakeFinder([gts("up", {"job": "api"})])

        values = await orchestrator_for(finder).find_label_values(
            TOKEN, "job", ['up{env="prod"}', 'down{env="dev"}']
        )

        assert values == ["api"]
        assert finder.selectors == ["up{env=prod}"]

    @pytest.mark.asyncio
    async def test_values_are_deduplicated(self):
        finder = FakeFinder(
            [
                gts("up", {"job": "api", "instance": "a"}),
                gts("up", {"job": "api", "instance": "b"}),
                gts("up", {"job": "db"}),
            ]
        )

        values = await orchestrator_for(finder).find_label_values(TOKEN, "job", ["up"])

        assert values == ["api", "db"]

    @pytest.mark.asyncio
    async def test_series_without_label_are_skipped(self):
        finder = FakeFinder([gts("up", {"job": "api"}), gts("up", {"env": "prod"})])

        values = await orchestrator_for(finder).find_label_values(TOKEN, "job", ["up"])

        assert values == ["api"]

    @pytest.mark.asyncio
    async def test_metric_name_label_collects_classes(self):
        finder = FakeFinder([gts("up"), gts("down"), gts("up")])

        values = await orchestrator_for(finder).find_label_values(TOKEN, "__name__", ['{job="api"}'])

        assert values == ["up", "down"]

    @pytest.mark.asyncio
    async def test_requires_match(self):
        finder = FakeFinder()

        with pytest.raises(ValidationError) as exc_info:
            await orchestrator_for(finder).find_label_values(TOKEN, "job", [])

        assert exc_info.value.category is StatusCategory.BAD_REQUEST
        assert finder.calls == []

    @pytest.mark.asyncio
    async def test_requires_label(self):
        with pytest.raises(ValidationError):
            await orchestrator_for(FakeFinder()).find_label_values(TOKEN, "", ["up"])

    @pytest.mark.asyncio
    async def test_parse_error_is_bad_request(self):
        with pytest.raises(MatcherSyntaxError) as exc_info:
            await orchestrator_for(FakeFinder()).find_label_values(TOKEN, "job", ["{"])

        assert exc_info.value.category is StatusCategory.BAD_REQUEST


class TestFindLabelNames:
    """Tests for label name discovery."""

    @pytest.mark.asyncio
    async def test_no_matchers_returns_empty_without_query(self):
        finder = FakeFinder([gts("up", {"job": "api"})])

        names = await orchestrator_for(finder).find_label_names(TOKEN, [])

        assert names == []
        assert finder.calls == []

    @pytest.mark.asyncio
    async def test_union_of_labels_and_attributes(self):
        finder = FakeFinder(
            by_selector={
                "up{}": [gts("up", {".app": "demo", "job": "api"}, {"owner": "sre"})],
                "down{}": [gts("down", {"instance": "a", "job": "db"})],
            }
        )

        names = await orchestrator_for(finder).find_label_names(TOKEN, ["up", "down"])

        assert names == ["__name__", "instance", "job", "owner"]

    @pytest.mark.asyncio
    async def test_name_label_always_present(self):
        names = await orchestrator_for(FakeFinder()).find_label_names(TOKEN, ["up"])

        assert names == ["__name__"]

    @pytest.mark.asyncio
    async def test_backend_error(self):
        finder = FakeFinder(by_selector={"up{}": Warp10Error("boom")})

        with pytest.raises(BackendError):
            await orchestrator_for(finder).find_label_names(TOKEN, ["up"])


class TestFindMetricNames:
    """Tests for metric name discovery."""

    @pytest.mark.asyncio
    async def test_short_search_rejected(self):
        finder = FakeFinder()

        with pytest.raises(ValidationError, match="at least 3 characters"):
            await orchestrator_for(finder).find_metric_names(TOKEN, ['{__name__="abc"}'])

        assert finder.calls == []

    @pytest.mark.asyncio
    async def test_whitespace_is_trimmed_before_length_check(self):
        with pytest.raises(ValidationError):
            await orchestrator_for(FakeFinder()).find_metric_names(TOKEN, ['{__name__="  abc   "}'])

    @pytest.mark.asyncio
    async def test_seven_characters_accepted(self):
        finder = FakeFinder([gts("abcdefg")])

        names = await orchestrator_for(finder).find_metric_names(TOKEN, ['{__name__="abcdefg"}'])

        assert names == ["abcdefg"]
        assert finder.calls == [(TOKEN, "~abcdefg{}", FindParameters())]

    @pytest.mark.asyncio
    async def test_out_of_range_lookback_setting_uses_default(self):
        finder = FakeFinder([gts("abcdefg")])
        config = DiscoveryConfig.from_settings(Settings(find_activeafter_max="3000y"))
        orchestrator = DiscoveryOrchestrator(finder, config, clock=lambda: NOW)

        await orchestrator.find_metric_names(
            TOKEN, ['{__name__="abcdefg"}'], start=datetime(2024, 1, 1, tzinfo=timezone.utc)
        )

        assert finder.calls[0][2].active_after == NOW - timedelta(days=7)

    @pytest.mark.asyncio
    async def test_grafana_wrapped_search(self):
        finder = FakeFinder()

        await orchestrator_for(finder).find_metric_names(TOKEN, ['{__name__=~".*cpu.*", job="node"}'])

        assert finder.selectors == ["~.*cpu.*{job=node}"]

    @pytest.mark.asyncio
    async def test_requires_name_matcher(self):
        with pytest.raises(ValidationError, match="__name__"):
            await orchestrator_for(FakeFinder()).find_metric_names(TOKEN, ['{job="node"}'])

    @pytest.mark.asyncio
    async def test_all_expressions_validated_before_any_query(self):
        finder = FakeFinder()

        with pytest.raises(ValidationError):
            await orchestrator_for(finder).find_metric_names(
                TOKEN, ['{__name__="abcdefg"}', '{__name__="ab"}']
            )

        assert finder.calls == []

    @pytest.mark.asyncio
    async def test_default_selector_with_cap(self):
        finder = FakeFinder([gts("http_requests_total"), gts("prometheus_build_info")])

        names = await orchestrator_for(finder).find_metric_names(TOKEN, [])

        assert names == ["http_requests_total", "prometheus_build_info"]
        assert finder.calls == [(TOKEN, "~(http|prometheus).*{}", FindParameters(gcount=100))]

    @pytest.mark.asyncio
    async def test_default_selector_from_config(self):
        finder = FakeFinder()

        await orchestrator_for(
            finder, default_metric_selector="node", default_metric_selector_gcount=5
        ).find_metric_names(TOKEN, [])

        assert finder.calls == [(TOKEN, "~node{}", FindParameters(gcount=5))]

    @pytest.mark.asyncio
    async def test_explicit_default_pattern_skips_length_check(self):
        finder = FakeFinder()

        await orchestrator_for(finder, default_metric_selector="up").find_metric_names(
            TOKEN, ['{__name__="up"}']
        )

        assert finder.selectors == ["~up{}"]

    @pytest.mark.asyncio
    async def test_class_names_deduplicated(self):
        finder = FakeFinder(
            [gts("http_requests_total", {"code": "200"}), gts("http_requests_total", {"code": "500"})]
        )

        names = await orchestrator_for(finder).find_metric_names(TOKEN, ['{__name__=~"http_.*"}'])

        assert names == ["http_requests_total"]

    @pytest.mark.asyncio
    async def test_start_is_clamped(self):
        finder = FakeFinder()

        await orchestrator_for(finder).find_metric_names(
            TOKEN, ['{__name__="abcdefg"}'], start=NOW - timedelta(days=30)
        )

        params = finder.calls[0][2]
        assert params.active_after == NOW - timedelta(days=7)
        assert params.gcount is None

    @pytest.mark.asyncio
    async def test_start_inside_window_forwarded(self):
        finder = FakeFinder()
        start = NOW - timedelta(days=3)

        await orchestrator_for(finder).find_metric_names(TOKEN, [], start=start)

        assert finder.calls[0][2] == FindParameters(active_after=start, gcount=100)

    @pytest.mark.asyncio
    async def test_naive_start_treated_as_utc(self):
        finder = FakeFinder()

        await orchestrator_for(finder).find_metric_names(
            TOKEN, ['{__name__="abcdefg"}'], start=datetime(2024, 5, 29, 12, 0)
        )

        assert finder.calls[0][2].active_after == datetime(2024, 5, 29, 12, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_label_restricts_to_series_carrying_it(self):
        finder = FakeFinder()

        await orchestrator_for(finder).find_metric_names(TOKEN, ['{__name__="abcdefg"}'], label="job")

        assert finder.selectors == ["~abcdefg{job~.*}"]

    @pytest.mark.asyncio
    async def test_name_label_adds_no_constraint(self):
        finder = FakeFinder()

        await orchestrator_for(finder).find_metric_names(
            TOKEN, ['{__name__="abcdefg"}'], label="__name__"
        )

        assert finder.selectors == ["~abcdefg{}"]


class TestSearchSeries:
    """Tests for POST /series style lookups."""

    @pytest.mark.asyncio
    async def test_returns_labels_without_attributes(self):
        finder = FakeFinder([gts("abcdefg", {".app": "demo", "env": "prod"}, {"unit": "s"})])

        series = await orchestrator_for(finder).search_series(TOKEN, ['{__name__="abcdefg"}'])

        assert series == [{"__name__": "abcdefg", "env": "prod"}]

    @pytest.mark.asyncio
    async def test_requires_match(self):
        with pytest.raises(ValidationError, match="no match"):
            await orchestrator_for(FakeFinder()).search_series(TOKEN, [])

    @pytest.mark.asyncio
    async def test_applies_metric_name_policy(self):
        with pytest.raises(ValidationError):
            await orchestrator_for(FakeFinder()).search_series(TOKEN, ['{__name__="ab"}'])


class TestConcurrentDispatch:
    """Tests for concurrent backend queries."""

    @pytest.mark.asyncio
    async def test_results_in_expression_order(self):
        finder = FakeFinder(
            by_selector={
                "up{}": [gts("up", {"a": "1"})],
                "down{}": [gts("down", {"b": "2"})],
            }
        )

        series = await orchestrator_for(finder, concurrent=True).find_series(TOKEN, ["up", "down"])

        assert [s["__name__"] for s in series] == ["up", "down"]

    @pytest.mark.asyncio
    async def test_failure_cancels_sibling_queries(self):
        cancelled = asyncio.Event()

        class SlowFinder(FakeFinder):
            async def find(self, token, selector, params=None):
                if selector == "slow{}":
                    try:
                        await asyncio.sleep(10)
                    except asyncio.CancelledError:
                        cancelled.set()
                        raise
                    return []
                raise Warp10Error("boom")

        orchestrator = orchestrator_for(SlowFinder(), concurrent=True)

        with pytest.raises(BackendError):
            await asyncio.wait_for(orchestrator.find_label_names(TOKEN, ["slow", "fast"]), timeout=5)

        assert cancelled.is_set()
