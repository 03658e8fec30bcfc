"""Shannon entropy analysis with charset-aware thresholds.

Random keys and tokens have a flatter character distribution than prose or
identifiers. The threshold used to call a string "high entropy" depends on its
alphabet: a hex string can never exceed log2(16) = 4.0 bits per character, so
it gets a lower bar than Base64 or mixed text.
"""

from __future__ import annotations

import math
import string
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from secretscan.config.loader import ConfigError

BASE64_THRESHOLD = 4.5
HEX_THRESHOLD = 3.5
GENERAL_THRESHOLD = 4.5

DEFAULT_MIN_LENGTH = 8
DEFAULT_MAX_LENGTH = 512
DEFAULT_WINDOW_SIZES = (16, 24, 32, 40)

_BASE64_CHARS = frozenset(string.ascii_letters + string.digits + "+/=")
_HEX_CHARS = frozenset(string.hexdigits)
_ALNUM_CHARS = frozenset(string.ascii_letters + string.digits)
_DIGITS = frozenset(string.digits)
_HEX_LETTERS = frozenset("abcdefABCDEF")


class CharsetType(str, Enum):
    BASE64 = "base64"
    HEXADECIMAL = "hexadecimal"
    ALPHANUMERIC = "alphanumeric"
    MIXED = "mixed"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class EntropyAnalysis:
    """Result of analysing one string."""

    entropy: float
    normalized_entropy: float
    charset: CharsetType
    is_high_entropy: bool
    threshold: float
    length: int
    unique_chars: int

    @property
    def level(self) -> str:
        if self.entropy < 2.0:
            return "very low"
        if self.entropy < 3.0:
            return "low"
        if self.entropy < 4.0:
            return "medium"
        if self.entropy < 5.0:
            return "high"
        return "very high"


@dataclass(frozen=True)
class EntropySubstring:
    """A high-entropy window inside a larger string; *end* is exclusive."""

    text: str
    start: int
    end: int
    entropy: float
    charset: CharsetType

    def overlaps(self, other: "EntropySubstring") -> bool:
        return self.start < other.end and other.start < self.end


def shannon_entropy(s: str) -> float:
    """Compute Shannon entropy (bits per character) of string *s*.

    H = -Σ p(c) · log₂(p(c))  over unique characters c.
    """
    if not s:
        return 0.0
    counts = Counter(s)
    total = len(s)
    # summing in sorted order makes the result independent of character order
    h = -sum((c / total) * math.log2(c / total) for c in sorted(counts.values()))
    return h if h > 0 else 0.0


def normalized_entropy(s: str) -> float:
    """Entropy divided by the maximum possible for the string's own alphabet."""
    unique = len(set(s))
    if unique <= 1:
        return 0.0
    return shannon_entropy(s) / math.log2(unique)


def classify_charset(s: str) -> CharsetType:
    """Bucket the alphabet of *s*; checks run in priority order."""
    chars = set(s)
    if not chars:
        return CharsetType.UNKNOWN
    if chars <= _BASE64_CHARS and len(chars) >= 10:
        return CharsetType.BASE64
    if chars <= _HEX_CHARS and chars & _DIGITS and chars & _HEX_LETTERS:
        return CharsetType.HEXADECIMAL
    if chars <= _ALNUM_CHARS:
        return CharsetType.ALPHANUMERIC
    if any(not c.isalnum() and c not in "+/=" for c in chars):
        return CharsetType.MIXED
    return CharsetType.UNKNOWN


def threshold_for(charset: CharsetType) -> float:
    if charset is CharsetType.BASE64:
        return BASE64_THRESHOLD
    if charset is CharsetType.HEXADECIMAL:
        return HEX_THRESHOLD
    return GENERAL_THRESHOLD


class EntropyAnalyzer:
    """Stateless entropy scorer; safe to share between threads."""

    def __init__(
        self,
        min_length: int = DEFAULT_MIN_LENGTH,
        max_length: int = DEFAULT_MAX_LENGTH,
        threshold: Optional[float] = None,
    ) -> None:
        if min_length <= 0:
            raise ConfigError(f"must be positive, got {min_length}", "entropy.min_length")
        if max_length < min_length:
            raise ConfigError(
                f"must be >= min_length ({min_length}), got {max_length}", "entropy.max_length"
            )
        if threshold is not None and not 0.0 <= threshold <= 8.0:
            raise ConfigError(f"must be within [0, 8], got {threshold}", "entropy.threshold")
        self.min_length = min_length
        self.max_length = max_length
        self.threshold = threshold

    def _in_window(self, text: str) -> bool:
        return self.min_length <= len(text) <= self.max_length

    def _pick_threshold(self, charset: CharsetType, override: Optional[float]) -> float:
        if override is not None:
            return override
        if self.threshold is not None:
            return self.threshold
        return threshold_for(charset)

    def analyze(self, text: str, threshold: Optional[float] = None) -> EntropyAnalysis:
        if not text:
            return EntropyAnalysis(
                entropy=0.0,
                normalized_entropy=0.0,
                charset=CharsetType.UNKNOWN,
                is_high_entropy=False,
                threshold=self._pick_threshold(CharsetType.UNKNOWN, threshold),
                length=0,
                unique_chars=0,
            )
        h = shannon_entropy(text)
        charset = classify_charset(text)
        limit = self._pick_threshold(charset, threshold)
        return EntropyAnalysis(
            entropy=h,
            normalized_entropy=normalized_entropy(text),
            charset=charset,
            is_high_entropy=self._in_window(text) and h >= limit,
            threshold=limit,
            length=len(text),
            unique_chars=len(set(text)),
        )

    def is_high_entropy(self, text: str, threshold: Optional[float] = None) -> bool:
        if not self._in_window(text):
            return False
        return self.analyze(text, threshold).is_high_entropy

    def find_high_entropy_substrings(
        self,
        text: str,
        window_sizes: Iterable[int] = DEFAULT_WINDOW_SIZES,
        min_entropy: float = GENERAL_THRESHOLD,
    ) -> List[EntropySubstring]:
        """Slide each window size over *text* and return non-overlapping hits.

        Candidates are taken greedily by descending entropy, so where windows
        overlap the most random one wins. The result is ordered by start offset.
        """
        candidates: List[EntropySubstring] = []
        for size in window_sizes:
            if size <= 0 or len(text) < size:
                continue
            for i in range(len(text) - size + 1):
                window = text[i : i + size]
                h = shannon_entropy(window)
                if h >= min_entropy:
                    candidates.append(
                        EntropySubstring(
                            text=window,
                            start=i,
                            end=i + size,
                            entropy=h,
                            charset=classify_charset(window),
                        )
                    )
        return _dedupe_overlapping(candidates)


def _dedupe_overlapping(candidates: List[EntropySubstring]) -> List[EntropySubstring]:
    kept: List[EntropySubstring] = []
    # stable sort: equal entropy keeps the smaller window / earlier offset first
    for cand in sorted(candidates, key=lambda c: -c.entropy):
        if not any(cand.overlaps(k) for k in kept):
            kept.append(cand)
    return sorted(kept, key=lambda c: c.start)
