"""Finding allowlist: inline ignore markers plus the [allowlist] config section.

Inline conventions (same as ESLint/pylint/semgrep):
  - ``secretscan-ignore`` in a comment on line N suppresses every rule on line N.
  - The same marker alone on a comment line suppresses line N+1 instead.
  - ``secretscan-ignore[RULE_A,RULE_B]`` suppresses only those rules.
  - ``nosec`` is accepted as a shorthand for ``secretscan-ignore``.

The ``[allowlist]`` section adds regexes searched in the matched value
(``values``), regexes searched in the source line (``lines``) and fnmatch
globs on the file path (``paths``).
"""

from __future__ import annotations

import logging
import re
from fnmatch import fnmatch
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple

from secretscan.config.schema import AllowlistConfig
from secretscan.findings.models import Candidate, Suppression

logger = logging.getLogger(__name__)

# Match inline ignore markers after a #, //, /*, -- or ; comment opener
_IGNORE_RE = re.compile(
    r"(?:#|//|/\*|--|;)\s*(?:secretscan-ignore|nosec)"
    r"(?:\[([A-Za-z0-9_,\s]+)\])?"  # optional [RULE_A, RULE_B]
    r"\s*(?:\*/)?\s*$"
)

_COMMENT_OPENERS = ("#", "//", "/*", "--", ";")

# line_no -> None (all rules) or the rule ids named in the marker
InlineMarkers = Dict[int, Optional[FrozenSet[str]]]


def parse_inline_ignore(line: str) -> Tuple[bool, Optional[FrozenSet[str]]]:
    """Parse a line for ``secretscan-ignore`` / ``nosec`` markers.

    Returns:
        (is_ignored, rule_ids), where *rule_ids* is None to suppress all
        rules, or a frozenset of specific ids.
    """
    m = _IGNORE_RE.search(line)
    if m is None:
        return False, None
    scope = m.group(1)
    if scope:
        ids = frozenset(r.strip() for r in scope.split(",") if r.strip())
        return True, ids
    return True, None


def is_pure_comment(line: str) -> bool:
    """Return True if the line holds nothing but a comment."""
    return line.strip().startswith(_COMMENT_OPENERS)


def inline_markers(lines: Iterable[Tuple[int, str]]) -> Tuple[InlineMarkers, InlineMarkers]:
    """Pre-scan (line_no, text) pairs, in order, for ignore markers.

    Returns the same-line markers and the markers carried to the next line
    by a standalone comment.
    """
    same_line: InlineMarkers = {}
    next_line: InlineMarkers = {}
    carry = False
    carry_ids: Optional[FrozenSet[str]] = None

    for line_no, text in lines:
        if carry:
            next_line[line_no] = carry_ids
        is_ignored, rule_ids = parse_inline_ignore(text)
        if is_ignored:
            same_line[line_no] = rule_ids
        # only a standalone comment carries over to the next line
        carry = is_ignored and is_pure_comment(text)
        carry_ids = rule_ids
    return same_line, next_line


def _covers(rule_ids: Optional[FrozenSet[str]], rule_id: str) -> bool:
    return rule_ids is None or rule_id in rule_ids


class Allowlist:
    """Decides whether a scored candidate is suppressed.

    Built once from the config; holds only compiled patterns, so one
    instance can serve several worker threads.
    """

    def __init__(self, config: Optional[AllowlistConfig] = None) -> None:
        self.config = config or AllowlistConfig()
        self._values = [re.compile(p) for p in self.config.values]
        self._lines = [re.compile(p) for p in self.config.lines]

    def path_rule(self, file_path: str) -> Optional[int]:
        """Index of the first ``paths`` glob matching *file_path*, if any."""
        normalized = file_path.replace("\\", "/")
        for i, pattern in enumerate(self.config.paths):
            if fnmatch(normalized, pattern):
                return i
        return None

    def markers(self, lines: Iterable[Tuple[int, str]]) -> Tuple[InlineMarkers, InlineMarkers]:
        if not self.config.inline:
            return {}, {}
        return inline_markers(lines)

    def check(
        self,
        candidate: Candidate,
        line: str,
        markers: Tuple[InlineMarkers, InlineMarkers],
    ) -> Optional[Suppression]:
        """Return a Suppression record if *candidate* is allowlisted, else None."""

        def record(reason: str, source: str) -> Suppression:
            return Suppression(candidate.rule_id, candidate.file_path, candidate.line_no, reason, source)

        same_line, next_line = markers
        line_no, rule_id = candidate.line_no, candidate.rule_id
        for reason, mapping in (("inline", same_line), ("next-line", next_line)):
            if line_no in mapping and _covers(mapping[line_no], rule_id):
                scope = mapping[line_no]
                marker = f"secretscan-ignore[{rule_id}]" if scope is not None else "secretscan-ignore"
                return record(reason, marker)

        for i, pattern in enumerate(self._values):
            if pattern.search(candidate.matched_value):
                return record("value", f"allowlist.values[{i}]")
        for i, pattern in enumerate(self._lines):
            if pattern.search(line):
                return record("line", f"allowlist.lines[{i}]")
        index = self.path_rule(candidate.file_path)
        if index is not None:
            return record("path", f"allowlist.paths[{index}]")
        return None

    def filter(
        self,
        candidates: List[Candidate],
        line_text: Callable[[int], str],
        lines: Iterable[Tuple[int, str]],
    ) -> Tuple[List[Candidate], List[Suppression]]:
        """Split *candidates* into kept and suppressed.

        *line_text* maps a line number to its text; *lines* yields the
        (line_no, text) pairs scanned for inline markers.
        """
        if not candidates:
            return [], []
        markers = self.markers(lines)
        kept: List[Candidate] = []
        suppressed: List[Suppression] = []
        for cand in candidates:
            hit = self.check(cand, line_text(cand.line_no), markers)
            if hit is None:
                kept.append(cand)
                continue
            logger.debug(
                "Suppressed %s at %s:%d (%s: %s)",
                hit.rule_id,
                hit.file_path,
                hit.line_no,
                hit.reason,
                hit.source,
            )
            suppressed.append(hit)
        return kept, suppressed
