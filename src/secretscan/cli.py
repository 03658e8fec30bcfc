"""SecretScan CLI: Typer application with scan, rules, and init commands."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from secretscan import __version__

app = typer.Typer(
    name="secretscan",
    help="Detect hard-coded secrets in source files.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console(stderr=True)


def _setup_logging(verbose: bool, debug: bool) -> None:
    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=debug, markup=False)],
        force=True,
    )


def _load(config: Optional[str]):
    from secretscan.config.loader import ConfigError, load_config

    try:
        return load_config(Path.cwd(), config)
    except ConfigError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc


# ── scan ──────────────────────────────────────────────────────────────────────


@app.command()
def scan(
    files: List[Path] = typer.Argument(..., help="Files to scan (no directory walking)"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to .secretscan.toml"),
    fail_on: Optional[str] = typer.Option(
        None, "--fail-on", help="Severity threshold: info | low | medium | high | critical"
    ),
    no_entropy: bool = typer.Option(False, "--no-entropy", help="Disable the entropy detector"),
    no_redact: bool = typer.Option(False, "--no-redact", help="Show matched values in full"),
    include_comments: bool = typer.Option(
        False, "--include-comments", help="Also report matches inside code comments"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    debug: bool = typer.Option(False, "--debug", help="Debug output"),
) -> None:
    """Scan the given files for secrets."""
    from secretscan.config.loader import ConfigError
    from secretscan.config.schema import SEVERITIES
    from secretscan.output import terminal
    from secretscan.scanner.engine import ScanEngine

    _setup_logging(verbose, debug)
    cfg = _load(config)

    # --- CLI overrides ---
    if fail_on:
        if fail_on not in SEVERITIES:
            console.print(f"[bold red]Invalid fail-on level:[/bold red] {fail_on}")
            raise typer.Exit(code=2)
        cfg.scan.fail_on = fail_on  # type: ignore[assignment]
    if no_entropy:
        cfg.detectors.entropy = False
    if no_redact:
        cfg.scan.redact = False
    if include_comments:
        cfg.context.exclude_comments = False

    try:
        engine = ScanEngine(cfg, root=Path.cwd())
    except ConfigError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc

    if verbose or debug:
        console.print(f"[dim]Rules enabled: {len(engine.registry.enabled_rules())}[/dim]")

    result = engine.scan_paths(files)
    terminal.render(result, fail_on=cfg.scan.fail_on, redact_values=cfg.scan.redact)

    if result.blocking_findings(cfg.scan.fail_on):
        raise typer.Exit(code=1)


# ── rules ─────────────────────────────────────────────────────────────────────


@app.command()
def rules(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to .secretscan.toml"),
    validate: bool = typer.Option(
        False, "--validate", help="Check every rule against its examples and false positives"
    ),
) -> None:
    """List enabled detection rules."""
    from rich.table import Table

    from secretscan.config.loader import ConfigError
    from secretscan.rules.models import validate_rule
    from secretscan.rules.registry import build_registry

    cfg = _load(config)
    try:
        registry = build_registry(cfg, Path.cwd())
    except ConfigError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc

    if validate:
        problems = [p for rule in registry.all_rules for p in validate_rule(rule)]
        for problem in problems:
            console.print(f"[red]✗[/red] {problem}")
        if problems:
            raise typer.Exit(code=1)
        console.print(f"[green]✓[/green] {len(registry)} rules validated")
        return

    table = Table(title="Enabled Rules", border_style="dim")
    table.add_column("ID", style="cyan")
    table.add_column("Category")
    table.add_column("Severity")
    table.add_column("Type")
    table.add_column("Name")
    for rule in registry.enabled_rules():
        table.add_row(
            rule.id, rule.category, rule.severity, rule.secret_type.display_name, rule.name
        )
    console.print(table)


# ── init ──────────────────────────────────────────────────────────────────────


@app.command()
def init() -> None:
    """Generate a starter .secretscan.toml in the current directory."""
    from secretscan.config.defaults import DEFAULT_TOML
    from secretscan.config.loader import CONFIG_FILENAME

    config_path = Path.cwd() / CONFIG_FILENAME

    if config_path.exists():
        console.print(f"[yellow]⚠[/yellow]  {CONFIG_FILENAME} already exists at {config_path}")
        raise typer.Exit(code=1)

    config_path.write_text(DEFAULT_TOML, encoding="utf-8")
    console.print(f"[green]✓[/green] Created {config_path}")


# ── version ───────────────────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        print(f"secretscan {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V", callback=_version_callback,
        is_eager=True, help="Show version and exit",
    ),
) -> None:
    """SecretScan: detect hard-coded secrets in source files."""
