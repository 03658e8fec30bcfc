"""Rich terminal reporter: colour, icons, severity pills."""

from __future__ import annotations

from collections import Counter
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from secretscan.config.schema import SEVERITIES
from secretscan.findings.models import Finding, ScanResult
from secretscan.findings.redactor import redact

_SEVERITY_STYLE = {
    "critical": "bold white on red",
    "high": "bold white on dark_orange",
    "medium": "bold black on yellow",
    "low": "bold black on bright_cyan",
    "info": "bold black on white",
}

_SEVERITY_ICON = {
    "critical": "🔴",
    "high": "🟠",
    "medium": "🟡",
    "low": "🔵",
    "info": "⚪",
}


def _severity_pill(severity: str) -> Text:
    style = _SEVERITY_STYLE.get(severity, "")
    icon = _SEVERITY_ICON.get(severity, "")
    return Text(f" {icon} {severity.upper()} ", style=style)


def _match_cell(finding: Finding, redact_values: bool) -> str:
    return escape(redact(finding.matched_value, enabled=redact_values))


def render(
    result: ScanResult,
    *,
    fail_on: str = "high",
    redact_values: bool = True,
    show_summary: bool = True,
    console: Optional[Console] = None,
) -> None:
    """Print scan results to the terminal using Rich."""
    console = console or Console(stderr=True)
    findings = result.findings

    if not findings:
        console.print()
        console.print("[bold green]✅ No secrets detected.[/bold green]")
        if show_summary:
            _print_summary(console, result, fail_on)
        return

    console.print()
    table = Table(
        title="SecretScan Findings",
        show_lines=True,
        title_style="bold",
        border_style="dim",
    )
    table.add_column("Severity", justify="center", width=12)
    table.add_column("Rule", style="cyan", min_width=20)
    table.add_column("File", style="magenta")
    table.add_column("Line:Col", justify="right", style="green")
    table.add_column("Confidence", justify="right")
    table.add_column("Match", min_width=15)

    for finding in findings:
        table.add_row(
            _severity_pill(finding.severity),
            escape(finding.title),
            escape(finding.file_path),
            f"{finding.line_no}:{finding.column_start}",
            f"{finding.confidence:.2f} ({finding.confidence_level.value})",
            _match_cell(finding, redact_values),
        )

    console.print(table)

    if show_summary:
        _print_summary(console, result, fail_on)

    console.print()
    if result.blocking_findings(fail_on):
        console.print(
            f"[bold red]❌ Secrets detected at or above '{fail_on}'.[/bold red]"
        )
    else:
        console.print(
            f"[bold yellow]⚠️  Findings detected but below '{fail_on}'.[/bold yellow]"
        )


def _severity_breakdown(findings: List[Finding]) -> str:
    counts = Counter(f.severity for f in findings)
    parts = [f"{sev} {counts[sev]}" for sev in reversed(SEVERITIES) if counts[sev]]
    return ", ".join(parts) or "none"


def _print_summary(console: Console, result: ScanResult, fail_on: str) -> None:
    console.print()
    console.print(f"[dim]Files scanned:[/dim]  {result.scanned_files}")
    breakdown = _severity_breakdown(result.findings)
    console.print(f"[dim]Findings:[/dim]       {result.total_findings} ({breakdown})")
    console.print(f"[dim]Blocking:[/dim]      {len(result.blocking_findings(fail_on))}")
    console.print(f"[dim]Skipped:[/dim]       {len(result.skipped_files)}")
    if result.suppressed:
        console.print(f"[dim]Suppressed:[/dim]    {len(result.suppressed)}")
    console.print(f"[dim]Duration:[/dim]      {result.duration_ms:.0f}ms")
    if result.cancelled:
        console.print("[yellow]Scan cancelled before every file was scanned.[/yellow]")
    for warning in result.warnings:
        detail = escape(f"{warning.file_path}: [{warning.kind}] {warning.message}")
        console.print(f"[yellow]⚠[/yellow]  {detail}")
