"""Context-aware detector: one file in, scored candidates out.

Each call to ``detect`` walks a fixed sequence of states::

    INIT -> SKIP_CHECK -> PATTERN_PASS -> ENTROPY_PASS -> SCORE_AND_CLASSIFY -> DONE

The pattern and entropy passes are detector families looked up by name in
``DETECTOR_FAMILIES``; ``[detectors]`` in the config switches them on or off.
The "context" family is the set of adjustments ``confidence`` makes on top of
the base score. Scored candidates then pass through the allowlist;
those it matches are returned as ``suppressed`` records instead.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Type

from secretscan.config.schema import SecretScanConfig, min_severity
from secretscan.findings.models import Candidate, ScanWarning, Suppression
from secretscan.rules.models import Rule, SecretType
from secretscan.rules.registry import RuleRegistry, build_registry
from secretscan.scanner.allowlist import Allowlist
from secretscan.scanner.context import ScanContext
from secretscan.scanner.entropy import EntropyAnalyzer
from secretscan.scanner.patterns import (
    IgnoredRange,
    LineIndex,
    PatternError,
    PatternMatcher,
    in_ignored_range,
    is_targeted,
    string_literals,
)

logger = logging.getLogger(__name__)

CONTEXT_KEYWORDS = (
    "password",
    "secret",
    "token",
    "key",
    "auth",
    "api",
    "credential",
    "private",
    "cert",
    "signature",
    "hash",
    "salt",
)
CONTEXT_WINDOW = 100

BASE_CONFIDENCE = 0.5
KEYWORD_BONUS = 0.1
TARGETED_BONUS = 0.1
PLACEHOLDER_FACTOR = 0.3

BINARY_SAMPLE_SIZE = 8192
MIN_PRINTABLE_RATIO = 0.70

ENTROPY_RULE_ID = "HIGH_ENTROPY_STRING"
ENTROPY_RULE_NAME = "High-Entropy String"

# Values that read as documentation or templating rather than a live secret
_PLACEHOLDER_RES = (
    re.compile(
        r"(?i)\b(?:example|sample|dummy|fake|placeholder|changeme|change[_-]me"
        r"|your[_-]?(?:api[_-]?)?(?:key|token|secret|password)(?:[_-]?here)?)\b"
    ),
    re.compile(r"\$\{[^}]+\}"),  # ${ENV_VAR}
    re.compile(r"<[^<>\s]+>"),  # <your-token>
    re.compile(r"(?i)\b(?:localhost|127\.0\.0\.1|example\.(?:com|org|net))\b"),
    re.compile(r"(?i)x{6,}|\*{6,}"),
)

# Whole-line fallback: split like an assignment tokenizer
_TOKEN_RE = re.compile(r"""[^\s=:;,'"`<>(){}\[\]]+""")

StopCheck = Callable[[], bool]


class DetectorState(str, Enum):
    INIT = "init"
    SKIP_CHECK = "skip_check"
    PATTERN_PASS = "pattern_pass"
    ENTROPY_PASS = "entropy_pass"
    SCORE_AND_CLASSIFY = "score_and_classify"
    DONE = "done"


@dataclass
class DetectionResult:
    candidates: List[Candidate] = field(default_factory=list)
    warnings: List[ScanWarning] = field(default_factory=list)
    skipped: bool = False
    skip_reason: Optional[str] = None
    suppressed: List[Suppression] = field(default_factory=list)
    timed_out: bool = False
    states: List[DetectorState] = field(default_factory=list)


@dataclass
class Hit:
    """Unscored detection; offsets index the (possibly truncated) content."""

    detector: str
    start: int
    end: int
    value: str
    line_no: int
    column: int
    line: str
    rule: Optional[Rule] = None
    targeted: bool = False
    entropy_value: Optional[float] = None
    entropy_note: str = ""


@dataclass
class PreparedText:
    """Per-file working data shared by the passes."""

    context: ScanContext
    text: str
    index: LineIndex
    comment_ranges: List[IgnoredRange]
    warnings: List[ScanWarning]


# ---- helpers ----


def is_binary(content: str) -> bool:
    """NUL in the first 8 KB, or fewer than 70% printable characters there."""
    sample = content[:BINARY_SAMPLE_SIZE]
    if not sample:
        return False
    if "\x00" in sample:
        return True
    printable = sum(
        1 for c in sample if (c.isprintable() or c in "\t\n\r") and c != "\ufffd"
    )
    return printable / len(sample) < MIN_PRINTABLE_RATIO


def length_adjustment(length: int) -> float:
    if 20 <= length <= 60:
        return 0.2
    if 8 <= length < 20 or 60 < length <= 100:
        return 0.1
    return -0.1


def keywords_near(text: str, start: int, end: int, window: int = CONTEXT_WINDOW) -> List[str]:
    """Distinct context keywords within *window* characters either side of [start, end)."""
    around = (text[max(0, start - window) : start] + "\n" + text[end : end + window]).lower()
    return [kw for kw in CONTEXT_KEYWORDS if kw in around]


def is_placeholder(value: str) -> bool:
    return any(p.search(value) for p in _PLACEHOLDER_RES)


def clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, value))


# ---- detector families ----


class PatternPass:
    """Runs every enabled rule's regexes through the shared matcher."""

    name = "pattern"

    def __init__(
        self,
        config: SecretScanConfig,
        registry: RuleRegistry,
        matcher: PatternMatcher,
        analyzer: EntropyAnalyzer,
    ) -> None:
        self.config = config
        self.registry = registry
        self.matcher = matcher

    def _excludes_comments(self, rule: Rule) -> bool:
        ctx = self.config.context
        return ctx.exclude_comments and rule.category not in ctx.scan_comments_categories

    def run(self, prepared: PreparedText) -> List[Hit]:
        hits: List[Hit] = []
        file_path = prepared.context.file_path
        for rule in self.registry.enabled_rules():
            exclude = self._excludes_comments(rule)
            for regex in rule.patterns:
                try:
                    compiled = self.matcher.compile(regex)
                except PatternError as exc:
                    logger.warning("Rule %s skipped in %s: %s", rule.id, file_path, exc)
                    prepared.warnings.append(
                        ScanWarning(file_path, "pattern", f"{rule.id}: {exc}")
                    )
                    continue
                targeted = is_targeted(compiled)
                # string literals are kept: secret values live in them
                matches = self.matcher.find_matches(
                    prepared.text,
                    compiled,
                    ignore_context=exclude,
                    ignore_strings=False,
                    ranges=prepared.comment_ranges if exclude else None,
                    index=prepared.index,
                )
                for m in matches:
                    start, end = m.named_spans.get("secret", (m.start, m.end))
                    line_no, column = prepared.index.locate(start)
                    hits.append(
                        Hit(
                            detector=self.name,
                            start=start,
                            end=end,
                            value=prepared.text[start:end],
                            line_no=line_no,
                            column=column,
                            line=prepared.index.line_text(line_no),
                            rule=rule,
                            targeted=targeted,
                        )
                    )
        return hits


class EntropyPass:
    """Flags random-looking string literals (or line tokens) with no rule behind them."""

    name = "entropy"

    def __init__(
        self,
        config: SecretScanConfig,
        registry: RuleRegistry,
        matcher: PatternMatcher,
        analyzer: EntropyAnalyzer,
    ) -> None:
        self.config = config
        self.analyzer = analyzer

    def _segments(self, line: str):
        literals = list(string_literals(line))
        if literals:
            return literals
        return [(m.group(0), m.start(), m.end()) for m in _TOKEN_RE.finditer(line)]

    def run(self, prepared: PreparedText) -> List[Hit]:
        ent = self.config.entropy
        skip_comments = self.config.context.exclude_comments
        min_window = min(ent.window_sizes)
        hits: List[Hit] = []

        for line_no in range(1, len(prepared.index) + 1):
            line = prepared.index.line_text(line_no)
            if len(line) < ent.min_length:
                continue
            line_start = prepared.index.line_start(line_no)
            for value, lo, hi in self._segments(line):
                if not ent.min_length <= len(value) <= ent.max_length:
                    continue
                abs_lo, abs_hi = line_start + lo, line_start + hi
                if (
                    skip_comments
                    and prepared.comment_ranges
                    and in_ignored_range(abs_lo, abs_hi, prepared.comment_ranges)
                ):
                    continue
                analysis = self.analyzer.analyze(value)
                if analysis.is_high_entropy:
                    hits.append(
                        self._hit(line_no, line, abs_lo, lo, value, analysis.entropy,
                                  f"{analysis.charset.value}, threshold {analysis.threshold:.1f}")
                    )
                    continue
                if len(value) < min_window:
                    continue
                for sub in self.analyzer.find_high_entropy_substrings(
                    value, ent.window_sizes, ent.threshold
                ):
                    hits.append(
                        self._hit(line_no, line, abs_lo + sub.start, lo + sub.start, sub.text,
                                  sub.entropy, f"{sub.charset.value} window")
                    )
        return hits

    def _hit(
        self, line_no: int, line: str, start: int, col0: int, value: str, h: float, note: str
    ) -> Hit:
        return Hit(
            detector=self.name,
            start=start,
            end=start + len(value),
            value=value,
            line_no=line_no,
            column=col0 + 1,
            line=line,
            entropy_value=h,
            entropy_note=note,
        )


DETECTOR_FAMILIES: Dict[str, Type] = {
    PatternPass.name: PatternPass,
    EntropyPass.name: EntropyPass,
}


# ---- detector ----


class ContextAwareDetector:
    """Runs the detector families over one ScanContext and scores the results.

    Holds only read-only state after construction; one instance can serve
    several worker threads.
    """

    def __init__(
        self,
        config: Optional[SecretScanConfig] = None,
        registry: Optional[RuleRegistry] = None,
        matcher: Optional[PatternMatcher] = None,
        analyzer: Optional[EntropyAnalyzer] = None,
        allowlist: Optional[Allowlist] = None,
    ) -> None:
        self.config = config or SecretScanConfig()
        self.registry = registry or build_registry(self.config)
        self.matcher = matcher or PatternMatcher()
        self.analyzer = analyzer or EntropyAnalyzer(
            self.config.entropy.min_length, self.config.entropy.max_length
        )
        self.allowlist = allowlist or Allowlist(self.config.allowlist)
        flags = self.config.detectors
        self.families = {
            name: cls(self.config, self.registry, self.matcher, self.analyzer)
            for name, cls in DETECTOR_FAMILIES.items()
            if getattr(flags, name)
        }
        self.context_aware = flags.context and self.config.context.enabled

    def _enter(self, result: DetectionResult, state: DetectorState, path: str) -> None:
        result.states.append(state)
        logger.debug("%s: %s", path, state.name)

    def detect(self, context: ScanContext, should_stop: Optional[StopCheck] = None) -> DetectionResult:
        """Detect candidates in *context*.

        *should_stop* is polled between states; when it returns True the run
        ends early with ``timed_out`` set and no candidates. Scoring uses
        ``self.config``; ``context.config`` is not consulted.
        """
        result = DetectionResult()
        path = context.file_path
        self._enter(result, DetectorState.INIT, path)

        self._enter(result, DetectorState.SKIP_CHECK, path)
        reason = self._skip_reason(context)
        if reason:
            logger.warning("Skipping %s: %s", path, reason)
            result.skipped = True
            result.skip_reason = reason
            result.warnings.append(ScanWarning(path, "skipped", reason))
            self._enter(result, DetectorState.DONE, path)
            return result

        text, truncated = self.matcher.truncate(context.content)
        if truncated:
            message = f"content truncated to {len(text)} of {len(context.content)} characters"
            logger.warning("%s: %s", path, message)
            result.warnings.append(ScanWarning(path, "truncated", message))
        prepared = PreparedText(
            context=context,
            text=text,
            index=LineIndex(text),
            comment_ranges=(
                self.matcher.ignored_ranges(text, include_strings=False)
                if self.config.context.exclude_comments
                else []
            ),
            warnings=result.warnings,
        )

        hits: List[Hit] = []
        for state, family in (
            (DetectorState.PATTERN_PASS, "pattern"),
            (DetectorState.ENTROPY_PASS, "entropy"),
        ):
            if should_stop and should_stop():
                return self._stopped(result, path)
            self._enter(result, state, path)
            runner = self.families.get(family)
            if runner is not None:
                found = runner.run(prepared)
                logger.debug("%s: %s pass found %d hit(s)", path, family, len(found))
                hits.extend(found)

        if should_stop and should_stop():
            return self._stopped(result, path)
        self._enter(result, DetectorState.SCORE_AND_CLASSIFY, path)
        min_conf = self.config.scan.min_confidence
        scored: List[Candidate] = []
        for hit in hits:
            cand = self._score(context, prepared.text, hit)
            if cand.confidence >= min_conf:
                scored.append(cand)
        index = prepared.index
        result.candidates, result.suppressed = self.allowlist.filter(
            scored,
            index.line_text,
            ((n, index.line_text(n)) for n in range(1, len(index) + 1)),
        )

        self._enter(result, DetectorState.DONE, path)
        return result

    def _stopped(self, result: DetectionResult, path: str) -> DetectionResult:
        result.timed_out = True
        result.candidates.clear()
        self._enter(result, DetectorState.DONE, path)
        return result

    def _skip_reason(self, context: ScanContext) -> Optional[str]:
        limit = self.config.scan.max_file_size
        if context.size > limit:
            return f"file too large ({context.size} bytes > {limit})"
        if is_binary(context.content):
            return "binary content"
        return None

    # ---- scoring ----

    def confidence(self, context: ScanContext, text: str, hit: Hit) -> float:
        score = BASE_CONFIDENCE
        if self.context_aware:
            score += KEYWORD_BONUS * len(keywords_near(text, hit.start, hit.end))
        score += length_adjustment(len(hit.value))
        if hit.targeted:
            score += TARGETED_BONUS
        score = clamp(score)
        if self.context_aware and is_placeholder(hit.value):
            score *= PLACEHOLDER_FACTOR
        if self._lenient(context):
            score *= self.config.test_files.factor
        return round(score, 4)

    def _lenient(self, context: ScanContext) -> bool:
        return self.context_aware and context.is_test_file and self.config.test_files.lenient

    def _score(self, context: ScanContext, text: str, hit: Hit) -> Candidate:
        conf = self.confidence(context, text, hit)
        if hit.rule is not None:
            rule = hit.rule
            severity = rule.severity
            cand = Candidate(
                rule_id=rule.id,
                rule_name=rule.name,
                category=rule.category,
                secret_type=rule.secret_type,
                severity=severity,
                confidence=conf,
                file_path=context.file_path,
                line_no=hit.line_no,
                column_start=hit.column,
                column_end=hit.column + len(hit.value.split("\n", 1)[0]),
                matched_value=hit.value,
                description=rule.description,
                detector="pattern",
                snippet=hit.line.strip(),
            )
        else:
            severity = "medium" if conf >= 0.5 else "low"
            cand = Candidate(
                rule_id=ENTROPY_RULE_ID,
                rule_name=ENTROPY_RULE_NAME,
                category="entropy",
                secret_type=SecretType.HIGH_ENTROPY,
                severity=severity,
                confidence=conf,
                file_path=context.file_path,
                line_no=hit.line_no,
                column_start=hit.column,
                column_end=hit.column + len(hit.value),
                matched_value=hit.value,
                description=f"Shannon entropy {hit.entropy_value:.2f} bits ({hit.entropy_note})",
                detector="entropy",
                snippet=hit.line.strip(),
                entropy_value=hit.entropy_value,
            )
        if self._lenient(context):
            cand.severity = min_severity(cand.severity, "medium")  # type: ignore[assignment]
        return cand
