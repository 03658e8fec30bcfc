"""Configuration schema: dataclasses for every config section."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal

Severity = Literal["info", "low", "medium", "high", "critical"]

SEVERITY_ORDER: dict[str, int] = {
    "info": 0,
    "low": 1,
    "medium": 2,
    "high": 3,
    "critical": 4,
}

SEVERITIES: tuple[str, ...] = tuple(SEVERITY_ORDER)


def severity_at_or_above(finding_sev: str, threshold: str) -> bool:
    """Return True if *finding_sev* is at or above *threshold*."""
    return SEVERITY_ORDER.get(finding_sev, 0) >= SEVERITY_ORDER.get(threshold, 0)


def max_severity(a: str, b: str) -> str:
    return a if SEVERITY_ORDER.get(a, 0) >= SEVERITY_ORDER.get(b, 0) else b


def min_severity(a: str, b: str) -> str:
    return a if SEVERITY_ORDER.get(a, 0) <= SEVERITY_ORDER.get(b, 0) else b


@dataclass
class ScanConfig:
    max_file_size: int = 10 * 1024 * 1024  # bytes; larger files are skipped
    fail_on: Severity = "high"  # CLI exit code 1 at or above this level
    min_confidence: float = 0.0  # drop candidates scoring below this
    redact: bool = True


@dataclass
class DetectorsConfig:
    pattern: bool = True
    entropy: bool = True
    context: bool = True  # keyword scoring + test-file leniency


@dataclass
class EntropyConfig:
    threshold: float = 4.5
    min_length: int = 8
    max_length: int = 512
    window_sizes: List[int] = field(default_factory=lambda: [16, 24, 32, 40])


@dataclass
class PatternsConfig:
    custom: List[str] = field(default_factory=list)  # raw regex strings
    files: List[str] = field(default_factory=list)  # YAML custom rule files
    enable: List[str] = field(default_factory=list)  # empty = all enabled
    disable: List[str] = field(default_factory=list)
    disabled_categories: List[str] = field(default_factory=list)


@dataclass
class ContextConfig:
    enabled: bool = True
    exclude_comments: bool = True
    scan_comments_categories: List[str] = field(default_factory=list)


@dataclass
class TestFilesConfig:
    __test__ = False  # not a pytest class

    lenient: bool = True
    factor: float = 0.7


@dataclass
class AllowlistConfig:
    inline: bool = True  # honour secretscan-ignore / nosec markers
    values: List[str] = field(default_factory=list)  # regexes searched in the matched value
    lines: List[str] = field(default_factory=list)  # regexes searched in the source line
    paths: List[str] = field(default_factory=list)  # fnmatch globs on the file path


@dataclass
class PerformanceConfig:
    max_workers: int = 4
    file_timeout_seconds: float = 30.0  # 0 disables the per-file budget


@dataclass
class SecretScanConfig:
    version: str = "1.0"
    scan: ScanConfig = field(default_factory=ScanConfig)
    detectors: DetectorsConfig = field(default_factory=DetectorsConfig)
    entropy: EntropyConfig = field(default_factory=EntropyConfig)
    patterns: PatternsConfig = field(default_factory=PatternsConfig)
    context: ContextConfig = field(default_factory=ContextConfig)
    test_files: TestFilesConfig = field(default_factory=TestFilesConfig)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)
    allowlist: AllowlistConfig = field(default_factory=AllowlistConfig)
