"""
Translation of Prometheus label matchers into Warp 10 selectors.

Warp 10 selectors have the form ``class{label=value,other~regex}``. The
class part is either an exact class name or ``~`` followed by a regex.
There is no negative operator, so ``!=`` and ``!~`` are expressed with a
negative lookahead regex that matches anything the original pattern would
not.

    {__name__="http_requests", env!="prod"}
        -> class_name="http_requests", labels={"env": "~(?!prod).*"}
        -> http_requests{env~(?!prod).*}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from promwarp.matchers.models import Matcher, MatchType

REGEX_PREFIX = "~"
CLASS_WILDCARD = "~.*"

# Characters that are structural in the selector grammar or altered by the
# URL decoding Warp 10 applies to every class, label name and label value.
_ESCAPED_CHARS = frozenset("%+,{}=~ \t\n\r")


@dataclass(frozen=True)
class TranslatedSelector:
    """Class name pattern plus per-label constraints in Warp 10 vocabulary."""

    class_name: str = ""
    labels: dict[str, str] = field(default_factory=dict)

    def with_label(self, name: str, constraint: str) -> TranslatedSelector:
        return TranslatedSelector(class_name=self.class_name, labels={**self.labels, name: constraint})


def encode_constraint(matcher: Matcher) -> str:
    """Encode one matcher's value as a Warp 10 label constraint."""
    if matcher.type is MatchType.REGEX_MATCH:
        return REGEX_PREFIX + matcher.value
    if matcher.type.is_negative:
        return f"{REGEX_PREFIX}(?!{matcher.value}).*"
    return matcher.value


def translate_matchers(matchers: Iterable[Matcher]) -> TranslatedSelector:
    """
    Split matchers into a class name pattern and label constraints.

    The last ``__name__`` matcher provides the class name; its operator is
    not inspected. Later matchers on the same label overwrite earlier ones.
    """
    class_name = ""
    labels: dict[str, str] = {}

    for matcher in matchers:
        if matcher.is_metric_name:
            class_name = matcher.value
            continue
        labels[matcher.name] = encode_constraint(matcher)

    return TranslatedSelector(class_name=class_name, labels=labels)


def escape_selector_part(text: str) -> str:
    """Percent-encode characters the selector grammar would misread."""
    return "".join(f"%{ord(c):02X}" if c in _ESCAPED_CHARS else c for c in text)


def _render_class(class_name: str, force_regex: bool) -> str:
    if not class_name:
        return CLASS_WILDCARD
    if force_regex:
        return REGEX_PREFIX + escape_selector_part(class_name)
    return escape_selector_part(class_name)


def _render_label(name: str, constraint: str) -> str:
    if constraint.startswith(REGEX_PREFIX):
        return f"{escape_selector_part(name)}{REGEX_PREFIX}{escape_selector_part(constraint[1:])}"
    return f"{escape_selector_part(name)}={escape_selector_part(constraint)}"


def build_selector(selector: TranslatedSelector, *, force_class_regex: bool = False) -> str:
    """
    Render a translated selector as Warp 10 selector text.

    Labels are emitted in lexical order of their names. With
    ``force_class_regex`` the class name is always matched as a regex,
    even when it came from an equality matcher.
    """
    labels = ",".join(_render_label(name, selector.labels[name]) for name in sorted(selector.labels))
    return f"{_render_class(selector.class_name, force_class_regex)}{{{labels}}}"
