"""Tests for matcher to Warp 10 selector translation."""

import pytest
from promwarp.matchers import METRIC_NAME_LABEL, Matcher, MatchType
from promwarp.warp10.selector import (
    TranslatedSelector,
    build_selector,
    encode_constraint,
    escape_selector_part,
    translate_matchers,
)


class TestTranslateMatchers:
    """Tests for translate_matchers."""

    @pytest.mark.parametrize(
        "matchers,want_class,want_labels",
        [
            ([], "", {}),
            ([Matcher(METRIC_NAME_LABEL, "test_metric")], "test_metric", {}),
            (
                [Matcher("env", "prod"), Matcher("region", "us-west")],
                "",
                {"env": "prod", "region": "us-west"},
            ),
            (
                [Matcher(METRIC_NAME_LABEL, "test_metric"), Matcher("env", "prod")],
                "test_metric",
                {"env": "prod"},
            ),
            ([Matcher("env", "prod|dev", MatchType.REGEX_MATCH)], "", {"env": "~prod|dev"}),
            ([Matcher("env", "prod", MatchType.NOT_EQUAL)], "", {"env": "~(?!prod).*"}),
            ([Matcher("env", "prod|dev", MatchType.REGEX_NOT_MATCH)], "", {"env": "~(?!prod|dev).*"}),
            (
                [
                    Matcher(METRIC_NAME_LABEL, "test_metric"),
                    Matcher("env", "prod"),
                    Matcher("region", "us.*", MatchType.REGEX_MATCH),
                    Matcher("cluster", "test", MatchType.NOT_EQUAL),
                ],
                "test_metric",
                {"env": "prod", "region": "~us.*", "cluster": "~(?!test).*"},
            ),
        ],
        ids=[
            "empty matchers",
            "class name only",
            "labels only",
            "class name and labels",
            "regex matcher",
            "not equal matcher",
            "not regex matcher",
            "mixed matchers",
        ],
    )
    def test_translation(self, matchers, want_class, want_labels):
        selector = translate_matchers(matchers)

        assert selector.class_name == want_class
        assert selector.labels == want_labels

    def test_metric_name_never_in_labels(self):
        selector = translate_matchers([Matcher(METRIC_NAME_LABEL, "up", MatchType.REGEX_MATCH)])

        assert METRIC_NAME_LABEL not in selector.labels
        assert selector.class_name == "up"

    def test_last_metric_name_wins(self):
        selector = translate_matchers(
            [Matcher(METRIC_NAME_LABEL, "first"), Matcher(METRIC_NAME_LABEL, "second")]
        )

        assert selector.class_name == "second"

    def test_last_label_matcher_wins(self):
        selector = translate_matchers(
            [Matcher("env", "prod"), Matcher("env", "dev", MatchType.NOT_EQUAL)]
        )

        assert selector.labels == {"env": "~(?!dev).*"}

    def test_malformed_regex_passed_through(self):
        selector = translate_matchers([Matcher("env", "(", MatchType.REGEX_MATCH)])

        assert selector.labels == {"env": "~("}

    def test_translation_is_pure(self):
        matchers = [
            Matcher(METRIC_NAME_LABEL, "test_metric"),
            Matcher("env", "prod", MatchType.NOT_EQUAL),
        ]

        first = translate_matchers(matchers)
        second = translate_matchers(matchers)

        assert first == second
        assert first.labels is not second.labels

    def test_encode_constraint_equal(self):
        assert encode_constraint(Matcher("env", "prod")) == "prod"


class TestBuildSelector:
    """Tests for build_selector."""

    def test_class_and_labels(self):
        selector = TranslatedSelector("test_metric", {"env": "prod"})

        assert build_selector(selector) == "test_metric{env=prod}"

    def test_empty_class_is_wildcard(self):
        assert build_selector(TranslatedSelector()) == "~.*{}"

    def test_regex_constraints_use_tilde_operator(self):
        selector = TranslatedSelector("", {"env": "~prod|dev", "cluster": "~(?!test).*"})

        assert build_selector(selector) == "~.*{cluster~(?!test).*,env~prod|dev}"

    def test_labels_sorted(self):
        selector = TranslatedSelector("m", {"zone": "a", "app": "b", "env": "c"})

        assert build_selector(selector) == "m{app=b,env=c,zone=a}"

    def test_force_class_regex(self):
        selector = TranslatedSelector("(http|prometheus).*", {})

        assert build_selector(selector, force_class_regex=True) == "~(http|prometheus).*{}"

    def test_force_class_regex_with_empty_class(self):
        assert build_selector(TranslatedSelector(), force_class_regex=True) == "~.*{}"

    def test_structural_characters_escaped(self):
        selector = TranslatedSelector("a,b", {"path": "/x{1},y=z", "re": "~.+ b"})

        assert build_selector(selector) == "a%2Cb{path=/x%7B1%7D%2Cy%3Dz,re~.%2B%20b}"

    def test_with_label_returns_new_selector(self):
        selector = TranslatedSelector("m", {"env": "prod"})

        extended = selector.with_label("job", "~.*")

        assert extended.labels == {"env": "prod", "job": "~.*"}
        assert selector.labels == {"env": "prod"}

    def test_escape_percent(self):
        assert escape_selector_part("100%") == "100%25"
