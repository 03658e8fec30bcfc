"""Finding data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Literal, Optional

from secretscan.config.schema import Severity, severity_at_or_above
from secretscan.findings.redactor import mask
from secretscan.rules.models import SecretType

DetectorName = Literal["pattern", "entropy"]
WarningKind = Literal["skipped", "error", "truncated", "timeout", "pattern"]


class ConfidenceLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"

    @classmethod
    def from_score(cls, score: float) -> "ConfidenceLevel":
        if score < 0.5:
            return cls.LOW
        if score < 0.7:
            return cls.MEDIUM
        if score < 0.9:
            return cls.HIGH
        return cls.VERY_HIGH


@dataclass
class Candidate:
    """A single detection produced by the detector (before dedup).

    Columns are 1-based; ``column_end`` is exclusive.
    """

    rule_id: str
    rule_name: str
    category: str
    secret_type: SecretType
    severity: Severity
    confidence: float
    file_path: str
    line_no: int
    column_start: int
    column_end: int
    matched_value: str
    description: str
    detector: DetectorName = "pattern"
    snippet: str = ""
    entropy_value: Optional[float] = None

    @property
    def span(self) -> tuple[str, int, int, int]:
        return (self.file_path, self.line_no, self.column_start, self.column_end)

    def overlaps(self, other: "Candidate") -> bool:
        return (
            self.file_path == other.file_path
            and self.line_no == other.line_no
            and self.column_start < other.column_end
            and other.column_start < self.column_end
        )


@dataclass(frozen=True)
class Finding:
    """Deduplicated, ranked finding for output. Never mutated by reporters."""

    id: str  # e.g. FINDING-001
    title: str
    description: str
    secret_type: SecretType
    severity: Severity
    confidence: float
    file_path: str
    line_no: int
    column_start: int
    column_end: int
    matched_value: str
    rule_id: str
    category: str
    detector: DetectorName = "pattern"
    snippet: str = ""
    entropy_value: Optional[float] = None

    @property
    def confidence_level(self) -> ConfidenceLevel:
        return ConfidenceLevel.from_score(self.confidence)

    def masked_value(self) -> str:
        return mask(self.matched_value)

    def is_blocking(self, fail_on: str) -> bool:
        return severity_at_or_above(self.severity, fail_on)


@dataclass(frozen=True)
class ScanWarning:
    """Per-file condition that did not abort the batch."""

    file_path: str
    kind: WarningKind
    message: str


@dataclass(frozen=True)
class Suppression:
    """Audit record of an allowlisted candidate. Carries no secret value."""

    rule_id: str
    file_path: str
    line_no: int
    reason: str  # 'inline', 'next-line', 'value', 'line', 'path'
    source: str  # e.g. 'secretscan-ignore[AWS_ACCESS_KEY]' or 'allowlist.paths[0]'


@dataclass
class FileScanResult:
    """Outcome of scanning one file."""

    file_path: str
    findings: List[Finding] = field(default_factory=list)
    warnings: List[ScanWarning] = field(default_factory=list)
    suppressed: List[Suppression] = field(default_factory=list)
    skipped: bool = False
    skip_reason: Optional[str] = None
    duration_ms: float = 0.0


@dataclass
class ScanResult:
    """Complete result of a batch scan: one FileScanResult per input."""

    files: List[FileScanResult] = field(default_factory=list)
    cancelled: bool = False
    duration_ms: float = 0.0

    @property
    def findings(self) -> List[Finding]:
        return [f for r in self.files for f in r.findings]

    @property
    def warnings(self) -> List[ScanWarning]:
        return [w for r in self.files for w in r.warnings]

    @property
    def suppressed(self) -> List[Suppression]:
        return [s for r in self.files for s in r.suppressed]

    @property
    def scanned_files(self) -> int:
        return sum(1 for r in self.files if not r.skipped)

    @property
    def skipped_files(self) -> List[str]:
        return [r.file_path for r in self.files if r.skipped]

    @property
    def total_findings(self) -> int:
        return len(self.findings)

    def blocking_findings(self, fail_on: str) -> List[Finding]:
        return [f for f in self.findings if f.is_blocking(fail_on)]
