"""Regex matching with a shared compile cache and code-context exclusion.

Matches that sit entirely inside a comment or string literal can be dropped
("ignored ranges"). A match that only partially overlaps such a range is kept:
it has live-code characters outside the delimiters.
"""

from __future__ import annotations

import bisect
import logging
import re
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, NamedTuple, Optional, Tuple, Union

logger = logging.getLogger(__name__)

MAX_CACHE_SIZE = 1000
MAX_CONTENT_LENGTH = 1_000_000
DEFAULT_FLAGS = re.MULTILINE

PatternLike = Union[str, "re.Pattern[str]"]

COMMENT_PATTERNS = [
    re.compile(r"//[^\n]*"),  # line comments
    re.compile(r"/\*.*?\*/", re.DOTALL),  # block comments
    re.compile(r"#[^\n]*"),  # shell / python
    re.compile(r"<!--.*?-->", re.DOTALL),  # html
    re.compile(r"\{\s*#.*?#\s*\}", re.DOTALL),  # template
]

STRING_PATTERNS = [
    re.compile(r'"(?:[^"\\]|\\.)*"', re.DOTALL),
    re.compile(r"'(?:[^'\\]|\\.)*'", re.DOTALL),
    re.compile(r"`(?:[^`\\]|\\.)*`", re.DOTALL),
]

# Single-line variants, used to tell a real comment from "//" inside a URL string.
_LINE_STRING_PATTERNS = [
    re.compile(r'"(?:[^"\\\n]|\\.)*"'),
    re.compile(r"'(?:[^'\\\n]|\\.)*'"),
    re.compile(r"`(?:[^`\\\n]|\\.)*`"),
]

_LITERAL_RE = re.compile(r"""(["'`])((?:(?!\1)[^\\\n]|\\.)*)\1""")


class PatternError(ValueError):
    """Raised when a regex cannot be compiled."""

    def __init__(self, regex: str, message: str, position: Optional[int] = None) -> None:
        self.regex = regex
        self.position = position
        where = f" at position {position}" if position is not None else ""
        super().__init__(f"Invalid regex pattern{where}: {message}")


class IgnoredRange(NamedTuple):
    """Half-open [start, end) span of a comment or string literal."""

    start: int
    end: int

    def contains(self, start: int, end: int) -> bool:
        return self.start <= start and end <= self.end


@dataclass(frozen=True)
class Match:
    """One regex hit with its location resolved to line and column."""

    text: str
    start: int
    end: int
    line_no: int  # 1-based
    column: int  # 1-based
    line: str
    pattern: str
    flags: int = 0
    groups: Dict[str, str] = field(default_factory=dict)  # group1, group2, ...
    named: Dict[str, str] = field(default_factory=dict)
    named_spans: Dict[str, Tuple[int, int]] = field(default_factory=dict)

    @property
    def length(self) -> int:
        return self.end - self.start


def merge_ranges(spans: List[Tuple[int, int]]) -> List[IgnoredRange]:
    """Sort spans and merge the ones that overlap or touch."""
    if not spans:
        return []
    ordered = sorted(spans)
    merged: List[IgnoredRange] = []
    cur_start, cur_end = ordered[0]
    for start, end in ordered[1:]:
        if start <= cur_end:
            cur_end = max(cur_end, end)
        else:
            merged.append(IgnoredRange(cur_start, cur_end))
            cur_start, cur_end = start, end
    merged.append(IgnoredRange(cur_start, cur_end))
    return merged


def in_ignored_range(start: int, end: int, ranges: List[IgnoredRange]) -> bool:
    """True if [start, end) lies entirely inside one of the sorted, merged *ranges*."""
    idx = bisect.bisect_right(ranges, (start, float("inf"))) - 1
    return idx >= 0 and ranges[idx].contains(start, end)


def is_targeted(pattern: "re.Pattern[str]") -> bool:
    """True when the regex uses word boundaries or case-insensitive matching."""
    return (
        "\\b" in pattern.pattern
        or "(?i" in pattern.pattern
        or bool(pattern.flags & re.IGNORECASE)
    )


def string_literals(line: str) -> Iterator[Tuple[str, int, int]]:
    """Yield (contents, start, end) for each quoted literal on a single line.

    Offsets delimit the contents, without the quote characters.
    """
    for m in _LITERAL_RE.finditer(line):
        yield m.group(2), m.start(2), m.end(2)


class LineIndex:
    """Maps character offsets to 1-based (line, column) pairs."""

    def __init__(self, content: str) -> None:
        self.content = content
        self._starts = [0]
        pos = content.find("\n")
        while pos != -1:
            self._starts.append(pos + 1)
            pos = content.find("\n", pos + 1)

    def __len__(self) -> int:
        return len(self._starts)

    def line_start(self, line_no: int) -> int:
        return self._starts[line_no - 1]

    def locate(self, offset: int) -> Tuple[int, int]:
        idx = bisect.bisect_right(self._starts, offset) - 1
        return idx + 1, offset - self._starts[idx] + 1

    def line_text(self, line_no: int) -> str:
        start = self._starts[line_no - 1]
        end = self.content.find("\n", start)
        return self.content[start:] if end == -1 else self.content[start:end]


class PatternMatcher:
    """Compiles, caches and runs regexes against source text.

    One instance can be shared between worker threads: the cache is guarded by
    a lock and compiled patterns are immutable.
    """

    def __init__(self, max_cache_size: int = MAX_CACHE_SIZE) -> None:
        self.max_cache_size = max_cache_size
        self._cache: Dict[Tuple[str, int], "re.Pattern[str]"] = {}
        self._lock = threading.Lock()

    # ---- compile cache ----

    def compile(self, regex: str, flags: int = DEFAULT_FLAGS) -> "re.Pattern[str]":
        key = (regex, flags)
        with self._lock:
            cached = self._cache.get(key)
        if cached is not None:
            return cached
        try:
            compiled = re.compile(regex, flags)
        except re.error as exc:
            raise PatternError(regex, exc.msg, exc.pos) from exc
        with self._lock:
            if len(self._cache) >= self.max_cache_size:
                self._cache.clear()
            self._cache[key] = compiled
        return compiled

    @property
    def cache_size(self) -> int:
        with self._lock:
            return len(self._cache)

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    @staticmethod
    def validate_pattern(regex: str) -> Tuple[bool, Optional[str]]:
        try:
            re.compile(regex)
        except re.error as exc:
            return False, f"Invalid regex at position {exc.pos}: {exc.msg}"
        return True, None

    # ---- context ranges ----

    @staticmethod
    def truncate(content: str) -> Tuple[str, bool]:
        """Cap *content* at MAX_CONTENT_LENGTH; the flag reports whether it was cut."""
        if len(content) > MAX_CONTENT_LENGTH:
            return content[:MAX_CONTENT_LENGTH], True
        return content, False

    @staticmethod
    def ignored_ranges(content: str, include_strings: bool = True) -> List[IgnoredRange]:
        """Comment (and optionally string literal) spans of *content*, merged."""
        spans: List[Tuple[int, int]] = []
        if include_strings:
            for pat in COMMENT_PATTERNS + STRING_PATTERNS:
                spans.extend(m.span() for m in pat.finditer(content))
            return merge_ranges(spans)

        literals = merge_ranges(
            [m.span() for pat in _LINE_STRING_PATTERNS for m in pat.finditer(content)]
        )
        for pat in COMMENT_PATTERNS:
            for m in pat.finditer(content):
                # "//" in "https://..." is not a comment
                if literals and in_ignored_range(m.start(), m.start() + 1, literals):
                    continue
                spans.append(m.span())
        return merge_ranges(spans)

    # ---- matching ----

    def _as_pattern(self, pattern: PatternLike) -> "re.Pattern[str]":
        if isinstance(pattern, str):
            return self.compile(pattern)
        return pattern

    def find_matches(
        self,
        content: str,
        pattern: PatternLike,
        ignore_context: bool = True,
        max_matches: int = 0,
        *,
        ignore_strings: bool = True,
        ranges: Optional[List[IgnoredRange]] = None,
        index: Optional[LineIndex] = None,
    ) -> List[Match]:
        """Return every match of *pattern* in *content*.

        With *ignore_context*, matches entirely inside a comment (and, unless
        *ignore_strings* is False, a string literal) are dropped. *ranges* and
        *index* let a caller running many patterns over the same text compute
        them once. *max_matches* of 0 means unlimited.
        """
        if not content:
            return []
        compiled = self._as_pattern(pattern)
        text, truncated = self.truncate(content)
        if truncated:
            logger.warning(
                "Content truncated from %d to %d characters before matching",
                len(content),
                MAX_CONTENT_LENGTH,
            )
        if ignore_context and ranges is None:
            ranges = self.ignored_ranges(text, include_strings=ignore_strings)
        if index is None or index.content is not text:
            index = LineIndex(text)

        matches: List[Match] = []
        for m in compiled.finditer(text):
            if max_matches and len(matches) >= max_matches:
                break
            start, end = m.span()
            if start == end:
                continue
            if ignore_context and ranges and in_ignored_range(start, end, ranges):
                continue
            line_no, column = index.locate(start)
            matches.append(
                Match(
                    text=m.group(0),
                    start=start,
                    end=end,
                    line_no=line_no,
                    column=column,
                    line=index.line_text(line_no),
                    pattern=compiled.pattern,
                    flags=compiled.flags,
                    groups={
                        f"group{i}": g
                        for i, g in enumerate(m.groups(), 1)
                        if g is not None
                    },
                    named={k: v for k, v in m.groupdict().items() if v is not None},
                    named_spans={
                        k: m.span(k) for k, v in m.groupdict().items() if v is not None
                    },
                )
            )
        return matches

    def has_match(self, content: str, pattern: PatternLike, ignore_context: bool = True) -> bool:
        return bool(self.find_matches(content, pattern, ignore_context, max_matches=1))
