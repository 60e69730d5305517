"""URL rewrite rules for the static server.

Rules map a source path pattern onto a destination pattern, using
path-to-regexp style tokens:

    /blog/:slug          named parameter, one path segment
    /docs/:path*         zero or more segments
    /docs/:path+         one or more segments
    /:lang?/about        optional segment
    /:id(\\d+)           named parameter with a custom pattern
    /files/(.*)          unnamed parameter, referenced as 0, 1, ...

A :class:`Rewriter` applies the first rule whose source matches. The
sitemap needs the opposite direction, recovering public URLs from file
paths, which :func:`invert_rules` provides.
"""

from __future__ import annotations

import posixpath
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

DEFAULT_PATTERN = r"[^/#?]+?"

_TOKEN_RE = re.compile(
    r"(?P<prefix>/)?"
    r"(?:"
    r":(?P<name>\w+)(?:\((?P<pattern>(?:\\.|[^\\()])+)\))?"
    r"|\((?P<group>(?:\\.|[^\\()])+)\)"
    r")"
    r"(?P<modifier>[?*+])?"
)


@dataclass(frozen=True)
class RewriteRule:
    """A source -> destination rewrite; ``order`` is its configured position."""

    source: str
    destination: str
    order: int = 0

    def reverse(self) -> RewriteRule:
        return RewriteRule(self.destination, self.source, self.order)


def rules_from_mapping(rewrites: Mapping[str, str] | Iterable[tuple[str, str]]) -> list[RewriteRule]:
    """Build rules from configured ``{source: destination}`` pairs, in order."""
    items = rewrites.items() if isinstance(rewrites, Mapping) else rewrites
    return [RewriteRule(source, dest, order) for order, (source, dest) in enumerate(items)]


def invert_rules(rules: Sequence[RewriteRule]) -> list[RewriteRule]:
    """Reverse each rule and the list itself.

    Rules configured later come first once inverted, so they win when
    several destinations match the same path. Inverting twice gives
    back the original rules in their original order.
    """
    return [rule.reverse() for rule in reversed(rules)]


def normalize_path(path: str) -> str:
    """Resolve a path to an absolute, normalized POSIX path."""
    # normpath keeps a leading '//' as POSIX allows it
    return "/" + posixpath.normpath("/" + path).lstrip("/")


@dataclass(frozen=True)
class _Param:
    name: str
    prefix: str
    pattern: str
    modifier: str

    @property
    def optional(self) -> bool:
        return self.modifier in ("?", "*")

    @property
    def repeated(self) -> bool:
        return self.modifier in ("+", "*")


class PathPattern:
    """A compiled path pattern that can both match paths and build them."""

    def __init__(self, pattern: str) -> None:
        self.pattern = pattern
        self._tokens = _tokenize(pattern)
        self._params = [t for t in self._tokens if isinstance(t, _Param)]
        self._regex = re.compile(_to_regex(self._tokens))

    def __repr__(self) -> str:
        return f"PathPattern({self.pattern!r})"

    def match(self, path: str) -> dict[str, str] | None:
        """Return the captured parameters, or None if ``path`` does not match."""
        m = self._regex.match(path)
        if m is None:
            return None
        return {
            param.name: value
            for param, value in zip(self._params, m.groups())
            if value is not None
        }

    def build(self, params: Mapping[str, str]) -> str:
        """Fill the pattern's parameters from ``params``.

        Raises:
            ValueError: If a required parameter has no value.
        """
        parts: list[str] = []
        for token in self._tokens:
            if isinstance(token, str):
                parts.append(token)
                continue
            value = params.get(token.name)
            if not value:
                if token.optional:
                    continue
                raise ValueError(f'Missing parameter "{token.name}" for pattern {self.pattern!r}')
            parts.append(token.prefix + value)
        return "".join(parts)


def _tokenize(pattern: str) -> list[str | _Param]:
    tokens: list[str | _Param] = []
    pos = 0
    unnamed = 0
    for m in _TOKEN_RE.finditer(pattern):
        if m.start() > pos:
            tokens.append(pattern[pos:m.start()])

        name = m.group("name")
        if name is None:
            name = str(unnamed)
            unnamed += 1

        regex = m.group("pattern") or m.group("group") or DEFAULT_PATTERN
        try:
            re.compile(regex)
        except re.error as e:
            raise ValueError(f"Invalid pattern for {name!r} in {pattern!r}: {e}") from e

        tokens.append(_Param(name, m.group("prefix") or "", regex, m.group("modifier") or ""))
        pos = m.end()

    if pos < len(pattern):
        tokens.append(pattern[pos:])
    return tokens


def _to_regex(tokens: list[str | _Param]) -> str:
    parts = ["^"]
    for token in tokens:
        if isinstance(token, str):
            parts.append(re.escape(token))
            continue
        prefix = re.escape(token.prefix)
        if token.repeated:
            body = f"{prefix}((?:{token.pattern})(?:{prefix}(?:{token.pattern}))*)"
        else:
            body = f"{prefix}({token.pattern})"
        parts.append(f"(?:{body})?" if token.optional else body)
    parts.append("/?$")
    return "".join(parts)


class Rewriter:
    """Rewrites paths with the first matching rule.

    Paths no rule matches are returned normalized but otherwise
    unchanged.
    """

    def __init__(self, rules: Iterable[RewriteRule]) -> None:
        self.rules = list(rules)
        self._compiled = [
            (PathPattern(normalize_path(rule.source)), PathPattern(normalize_path(rule.destination)))
            for rule in self.rules
        ]

    def __call__(self, path: str) -> str:
        pathname = normalize_path(path)
        for source, destination in self._compiled:
            params = source.match(pathname)
            if params is not None:
                return normalize_path(destination.build(params))
        return pathname
