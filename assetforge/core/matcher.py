"""Glob matching for match groups and stage-wide skip patterns.

Grammar
-------
- ``*``       any run of characters except ``/``
- ``**``      any run of characters including ``/``; ``**/`` also matches
              zero directories
- ``?``       one character except ``/``
- ``{a,b}``   alternation, nestable
- ``[abc]``   character class; ``[a-z]`` ranges; ``[!abc]`` / ``[^abc]``
              negation
- ``\\x``      the literal character ``x``

Patterns are matched against the whole POSIX relative path.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache

from assetforge.errors import MatchConfigError

_GLOB_CHARS = frozenset("*?[{")


def is_glob(pattern: str) -> bool:
    """True if *pattern* contains any glob metacharacter."""
    return any(ch in _GLOB_CHARS for ch in pattern)


@lru_cache(maxsize=512)
def compile_glob(pattern: str) -> re.Pattern[str]:
    """Translate a glob into an anchored regular expression.

    Raises ``MatchConfigError`` for empty or malformed patterns.
    """
    if not pattern:
        raise MatchConfigError("Empty glob pattern")

    out: list[str] = []
    depth = 0
    i = 0
    n = len(pattern)
    while i < n:
        ch = pattern[i]
        if ch == "\\":
            if i + 1 >= n:
                raise MatchConfigError(f"Dangling escape in pattern {pattern!r}")
            out.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if ch == "*":
            if pattern.startswith("**", i):
                i += 2
                if i < n and pattern[i] == "/":
                    out.append("(?:.*/)?")
                    i += 1
                else:
                    out.append(".*")
            else:
                out.append("[^/]*")
                i += 1
            continue
        if ch == "?":
            out.append("[^/]")
        elif ch == "[":
            i = _translate_class(pattern, i, out)
            continue
        elif ch == "{":
            depth += 1
            out.append("(?:")
        elif ch == "}":
            if depth == 0:
                raise MatchConfigError(f"Unbalanced '}}' in pattern {pattern!r}")
            depth -= 1
            out.append(")")
        elif ch == "," and depth > 0:
            out.append("|")
        else:
            out.append(re.escape(ch))
        i += 1

    if depth:
        raise MatchConfigError(f"Unbalanced '{{' in pattern {pattern!r}")
    return re.compile("".join(out) + r"\Z")


def _translate_class(pattern: str, start: int, out: list[str]) -> int:
    """Translate ``[...]`` starting at *start*; return the index after it."""
    i = start + 1
    negate = i < len(pattern) and pattern[i] in "!^"
    if negate:
        i += 1
    body: list[str] = []
    # A leading ']' is a literal member of the class.
    if i < len(pattern) and pattern[i] == "]":
        body.append(r"\]")
        i += 1
    while i < len(pattern) and pattern[i] != "]":
        ch = pattern[i]
        if ch == "-" and body and i + 1 < len(pattern) and pattern[i + 1] != "]":
            body.append("-")
        elif ch == "\\" and i + 1 < len(pattern):
            i += 1
            body.append(re.escape(pattern[i]))
        else:
            body.append(re.escape(ch) if ch != "-" else r"\-")
        i += 1
    if i >= len(pattern) or not body:
        raise MatchConfigError(f"Unterminated character class in pattern {pattern!r}")
    if negate:
        out.append("[^/" + "".join(body) + "]")
    else:
        out.append("[" + "".join(body) + "]")
    return i + 1


class Matcher:
    """A compiled glob that selects relative paths.

    Examples
    --------
    >>> Matcher("**/*.{js,ts}").matches("app/models/user.ts")
    True
    >>> Matcher("vendor/*").select(["vendor/a.js", "vendor/x/b.js", "app.js"])
    ['vendor/a.js']
    """

    def __init__(self, pattern: str) -> None:
        self.pattern = pattern
        self._regex = compile_glob(pattern)

    def matches(self, path: str) -> bool:
        return self._regex.match(path) is not None

    def select(self, paths: Iterable[str]) -> list[str]:
        """Return the matching paths, each at most once, sorted."""
        return sorted({p for p in paths if self.matches(p)})

    def __repr__(self) -> str:
        return f"Matcher({self.pattern!r})"


def apply_skips(paths: Iterable[str], skip_patterns: Iterable[str]) -> list[str]:
    """Drop every path matched by any skip pattern; return the rest sorted."""
    matchers = [Matcher(p) for p in skip_patterns]
    return sorted(p for p in set(paths) if not any(m.matches(p) for m in matchers))
