"""
Prometheus vector selector parser.

Turns a raw `match[]` expression such as::

    http_requests_total{job="api", code=~"5.."}
    {__name__=~"node_.*", instance!="localhost:9100"}
    {"my.dotted.metric", env="prod"}

into a list of :class:`Matcher`. Only the selector subset of PromQL is
supported; functions, offsets and range vectors are rejected.
"""

from __future__ import annotations

import re

from promwarp.matchers.models import METRIC_NAME_LABEL, Matcher, MatchType

_METRIC_NAME_RE = re.compile(r"[a-zA-Z_:][a-zA-Z0-9_:]*")
_LABEL_NAME_RE = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")

# Longest operators first so "=~" is not read as "="
_OPERATORS = ("=~", "!~", "!=", "=")

_SIMPLE_ESCAPES = {
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
    "\\": "\\",
    "'": "'",
    '"': '"',
}


class MatcherParseError(ValueError):
    """Raised when a selector expression cannot be parsed."""

    def __init__(self, message: str, position: int | None = None) -> None:
        self.message = message
        self.position = position
        if position is not None:
            message = f"{message} at position {position}"
        super().__init__(message)


class _SelectorReader:
    """Cursor over the raw expression."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def skip_whitespace(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def peek(self) -> str:
        self.skip_whitespace()
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def at_end(self) -> bool:
        return self.peek() == ""

    def expect(self, char: str) -> None:
        if self.peek() != char:
            found = self.peek() or "end of input"
            raise MatcherParseError(f"unexpected {found!r}, expected {char!r}", self.pos)
        self.pos += 1

    def read_pattern(self, pattern: re.Pattern[str]) -> str | None:
        self.skip_whitespace()
        match = pattern.match(self.text, self.pos)
        if not match:
            return None
        self.pos = match.end()
        return match.group(0)

    def read_operator(self) -> MatchType | None:
        self.skip_whitespace()
        for op in _OPERATORS:
            if self.text.startswith(op, self.pos):
                self.pos += len(op)
                return MatchType(op)
        return None

    def read_string(self) -> str:
        quote = self.peek()
        if quote not in ('"', "'", "`"):
            found = quote or "end of input"
            raise MatcherParseError(f"unexpected {found!r}, expected string literal", self.pos)

        start = self.pos
        self.pos += 1
        chars: list[str] = []
        while self.pos < len(self.text):
            char = self.text[self.pos]
            if char == quote:
                self.pos += 1
                return "".join(chars)
            if char == "\\" and quote != "`":
                chars.append(self._read_escape())
                continue
            if char == "\n" and quote != "`":
                break
            chars.append(char)
            self.pos += 1

        raise MatcherParseError("unterminated quoted string", start)

    def _read_escape(self) -> str:
        """Decode a Go-style escape sequence starting at the backslash."""
        start = self.pos
        self.pos += 1
        if self.pos >= len(self.text):
            raise MatcherParseError("unterminated escape sequence", start)

        char = self.text[self.pos]
        if char in _SIMPLE_ESCAPES:
            self.pos += 1
            return _SIMPLE_ESCAPES[char]

        widths = {"x": 2, "u": 4, "U": 8}
        if char in widths:
            digits = self.text[self.pos + 1 : self.pos + 1 + widths[char]]
            if len(digits) != widths[char] or not all(c in "0123456789abcdefABCDEF" for c in digits):
                raise MatcherParseError(f"invalid escape sequence \\{char}{digits}", start)
            self.pos += 1 + widths[char]
            try:
                return chr(int(digits, 16))
            except ValueError as exc:
                raise MatcherParseError(f"invalid unicode code point \\{char}{digits}", start) from exc

        if char in "01234567":
            digits = self.text[self.pos : self.pos + 3]
            if len(digits) != 3 or not all(c in "01234567" for c in digits) or int(digits, 8) > 255:
                raise MatcherParseError(f"invalid octal escape \\{digits}", start)
            self.pos += 3
            return chr(int(digits, 8))

        raise MatcherParseError(f"unknown escape sequence \\{char}", start)


def _validate_regex(matcher: Matcher, position: int) -> None:
    try:
        re.compile(matcher.value)
    except re.error as exc:
        raise MatcherParseError(
            f"invalid regular expression in matcher {matcher}: {exc.msg}", position
        ) from exc


def _parse_label_matchers(reader: _SelectorReader) -> tuple[list[Matcher], str | None]:
    """Parse the brace block; returns matchers and an optional quoted metric name."""
    matchers: list[Matcher] = []
    quoted_name: str | None = None

    reader.expect("{")
    while reader.peek() != "}":
        if reader.at_end():
            raise MatcherParseError("unexpected end of input inside braces", reader.pos)

        item_pos = reader.pos
        if reader.peek() in ('"', "'", "`"):
            name = reader.read_string()
            if reader.peek() in (",", "}"):
                # {"metric.name", ...} form
                if quoted_name is not None:
                    raise MatcherParseError("metric name must not be set twice", item_pos)
                quoted_name = name
                if reader.peek() == ",":
                    reader.expect(",")
                continue
        else:
            name = reader.read_pattern(_LABEL_NAME_RE)
            if name is None:
                found = reader.peek()
                raise MatcherParseError(f"unexpected {found!r}, expected label name", reader.pos)

        op = reader.read_operator()
        if op is None:
            found = reader.peek() or "end of input"
            raise MatcherParseError(
                f"unexpected {found!r} in label matching, expected one of "
                "\"=\", \"!=\", \"=~\" or \"!~\"",
                reader.pos,
            )

        matcher = Matcher(name=name, value=reader.read_string(), type=op)
        if op.is_regex:
            _validate_regex(matcher, item_pos)
        matchers.append(matcher)

        if reader.peek() == ",":
            reader.expect(",")
        elif reader.peek() != "}":
            found = reader.peek() or "end of input"
            raise MatcherParseError(f"unexpected {found!r} in label matching, expected \",\" or \"}}\"", reader.pos)

    reader.expect("}")
    return matchers, quoted_name


def parse_metric_selector(raw: str) -> list[Matcher]:
    """
    Parse a Prometheus vector selector into matchers.

    A bare metric name (inside or outside the braces) is returned as an
    equality matcher on ``__name__`` placed first in the list.

    Regex values are compiled with Python's ``re`` module, which is close to
    but not the same as the RE2 dialect Prometheus uses. RE2-only syntax such
    as ``\\pL`` Unicode classes is rejected as an invalid regular expression.

    Raises:
        MatcherParseError: If the expression is not a valid selector
    """
    reader = _SelectorReader(raw)
    if reader.at_end():
        raise MatcherParseError("unexpected end of input, expected vector selector")

    metric_name = reader.read_pattern(_METRIC_NAME_RE)
    matchers: list[Matcher] = []

    if reader.peek() == "{":
        matchers, quoted_name = _parse_label_matchers(reader)
        if quoted_name is not None:
            if metric_name is not None:
                raise MatcherParseError("metric name must not be set twice")
            metric_name = quoted_name
    elif metric_name is None:
        raise MatcherParseError(f"unexpected {reader.peek()!r}, expected vector selector", reader.pos)

    if not reader.at_end():
        raise MatcherParseError(f"unexpected {reader.peek()!r} after vector selector", reader.pos)

    if metric_name is not None:
        if any(m.is_metric_name for m in matchers):
            raise MatcherParseError("metric name must not be set twice")
        matchers.insert(0, Matcher(name=METRIC_NAME_LABEL, value=metric_name, type=MatchType.EQUAL))

    if not any(not m.matches("") for m in matchers):
        raise MatcherParseError("vector selector must contain at least one non-empty matcher")

    return matchers
