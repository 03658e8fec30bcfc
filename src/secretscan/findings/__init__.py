"""Finding models, aggregation, and redaction."""

from secretscan.findings.aggregator import aggregate, deduplicate, rank
from secretscan.findings.models import (
    Candidate,
    ConfidenceLevel,
    FileScanResult,
    Finding,
    ScanResult,
    ScanWarning,
    Suppression,
)
from secretscan.findings.redactor import mask, redact

__all__ = [
    "Candidate",
    "ConfidenceLevel",
    "FileScanResult",
    "Finding",
    "ScanResult",
    "ScanWarning",
    "Suppression",
    "aggregate",
    "deduplicate",
    "mask",
    "rank",
    "redact",
]
