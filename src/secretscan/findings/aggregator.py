"""Candidate deduplication, ranking, and aggregation into Findings."""

from __future__ import annotations

import dataclasses
from typing import Dict, List, Tuple

from secretscan.config.schema import SEVERITY_ORDER
from secretscan.findings.models import Candidate, Finding


def _preference(c: Candidate) -> Tuple[float, int, int]:
    # higher wins: confidence, then rule-backed over "looks random", then severity
    return (
        round(c.confidence, 6),
        1 if c.detector == "pattern" else 0,
        SEVERITY_ORDER.get(c.severity, 0),
    )


def _to_finding(c: Candidate, number: int) -> Finding:
    return Finding(
        id=f"FINDING-{number:03d}",
        title=c.rule_name,
        description=c.description,
        secret_type=c.secret_type,
        severity=c.severity,
        confidence=c.confidence,
        file_path=c.file_path,
        line_no=c.line_no,
        column_start=c.column_start,
        column_end=c.column_end,
        matched_value=c.matched_value,
        rule_id=c.rule_id,
        category=c.category,
        detector=c.detector,
        snippet=c.snippet,
        entropy_value=c.entropy_value,
    )


def deduplicate(candidates: List[Candidate]) -> List[Finding]:
    """Collapse candidates so no two findings share or overlap a span.

    Candidates at an identical (file, line, column_start, column_end) are
    grouped first; the survivors are then compared with every overlapping
    span on the same line. In both steps the candidate with the higher
    confidence wins, ties going to a pattern match over an entropy match and
    then to the higher severity. Ids are assigned in input order.
    """
    best: Dict[Tuple[str, int, int, int], Candidate] = {}
    for cand in candidates:
        current = best.get(cand.span)
        if current is None or _preference(cand) > _preference(current):
            best[cand.span] = cand

    by_line: Dict[Tuple[str, int], List[Candidate]] = {}
    for cand in best.values():
        by_line.setdefault((cand.file_path, cand.line_no), []).append(cand)

    kept: List[Candidate] = []
    for group in by_line.values():
        chosen: List[Candidate] = []
        # stable sort keeps first-seen order among equal preferences
        for cand in sorted(group, key=_preference, reverse=True):
            if not any(cand.overlaps(c) for c in chosen):
                chosen.append(cand)
        kept.extend(chosen)

    kept.sort(key=lambda c: (c.file_path, c.line_no, c.column_start, c.column_end))
    return [_to_finding(c, i) for i, c in enumerate(kept, 1)]


def rank(findings: List[Finding]) -> List[Finding]:
    """Order by severity desc, confidence desc, line asc (column asc breaks ties)."""
    return sorted(
        findings,
        key=lambda f: (
            -SEVERITY_ORDER.get(f.severity, 0),
            -f.confidence,
            f.line_no,
            f.column_start,
            f.rule_id,
        ),
    )


def aggregate(candidates: List[Candidate]) -> List[Finding]:
    """Deduplicate and rank; ids FINDING-001... follow the final order."""
    ranked = rank(deduplicate(candidates))
    return [
        dataclasses.replace(f, id=f"FINDING-{i:03d}") for i, f in enumerate(ranked, 1)
    ]
