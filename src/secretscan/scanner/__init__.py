"""Scanner: entropy analysis, pattern matching, detection and the batch engine."""

from secretscan.scanner.allowlist import Allowlist
from secretscan.scanner.context import ScanContext
from secretscan.scanner.detector import ContextAwareDetector, DetectionResult, DetectorState
from secretscan.scanner.engine import ScanEngine, ScanError
from secretscan.scanner.entropy import EntropyAnalyzer, shannon_entropy
from secretscan.scanner.patterns import PatternError, PatternMatcher

__all__ = [
    "Allowlist",
    "ContextAwareDetector",
    "DetectionResult",
    "DetectorState",
    "EntropyAnalyzer",
    "PatternError",
    "PatternMatcher",
    "ScanContext",
    "ScanEngine",
    "ScanError",
    "shannon_entropy",
]
