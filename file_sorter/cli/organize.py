"""
CLI commands for scanning source directories and organizing files.
"""

import sys
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Set, Tuple

import click
from rich.console import Console
from rich.table import Table

from ..analysis import Scanner
from ..config import settings
from ..core import (
    DateFormat,
    ExtensionCase,
    OrganizeConfig,
    OrganizeRule,
    ProcessSummary,
    QueueLogSink,
    ScanResult,
    UserPreferences,
)
from ..core.types import normalize_extension
from ..organization import Dispatcher, OrganizeError
from ..shared import setup_logging

console = Console()


def _write_log(block: str) -> None:
    console.print(block, end="", markup=False, highlight=False)


def _parse_extensions(values: Iterable[str]) -> Set[str]:
    """Accept repeated or comma-separated extensions, with or without dots."""
    extensions = set()
    for value in values:
        for part in value.split(","):
            extension = normalize_extension(part)
            if extension:
                extensions.add(extension)
    return extensions


def _display_scan(result: ScanResult) -> None:
    """Display extensions found by a scan."""
    table = Table(title="Extensions")
    table.add_column("Extension", style="cyan")
    table.add_column("Files", style="green", justify="right")

    for extension, count in sorted(result.extension_counts().items()):
        table.add_row(extension or "(none)", str(count))

    console.print(table)
    console.print(f"Total files: {len(result.files)}")

    if result.warnings:
        console.print("\n[yellow]Warnings:[/yellow]")
        for warning in result.warnings[:10]:
            console.print(f"  [yellow]• {warning}[/yellow]")
        if len(result.warnings) > 10:
            console.print(f"  [dim]... and {len(result.warnings) - 10} more[/dim]")


def _display_result(summary: ProcessSummary) -> None:
    """Display organize result."""
    if summary.cancelled:
        console.print("\n[yellow]⚠ Organization cancelled[/yellow]\n")
    else:
        console.print("\n[green]✓ Organization complete![/green]\n")

    table = Table(title="Results")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="green", justify="right")

    table.add_row("Checked", str(summary.checked))
    table.add_row("Moved", str(summary.moved))
    table.add_row("Skipped", str(summary.skipped))
    table.add_row("Failed", str(summary.failed))
    table.add_row("Warnings", str(len(summary.warnings)))

    console.print(table)

    if summary.errors:
        console.print("\n[red]Errors:[/red]")
        for error in summary.errors[:10]:  # Show first 10
            console.print(f"  [red]• {error}[/red]")
        if len(summary.errors) > 10:
            console.print(f"  [dim]... and {len(summary.errors) - 10} more[/dim]")


def _choose_extensions(
    result: ScanResult, requested: Tuple[str, ...], all_extensions: bool
) -> Set[str]:
    if all_extensions:
        return set(result.extensions)
    if requested:
        return _parse_extensions(requested)

    _display_scan(result)
    answer = click.prompt(
        "Extensions to move (comma-separated)",
        default=",".join(sorted(result.extensions)),
        show_default=True,
    )
    return _parse_extensions([answer])


@click.command()
@click.argument(
    "sources",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, file_okay=False),
)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Verbose output")
def scan(sources: Tuple[str, ...], verbose: bool) -> None:
    """
    Scan SOURCES and list the file extensions found.

    \b
    Examples:
        file-sorter scan ~/Downloads
        file-sorter scan ~/Downloads ~/Desktop
    """
    setup_logging(verbose=verbose, quiet=not verbose)

    with QueueLogSink(writer=_write_log if verbose else None) as sink:
        result = Scanner(log_sink=sink).scan([Path(s) for s in sources])

    _display_scan(result)


@click.command()
@click.argument(
    "sources",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, file_okay=False),
)
@click.option(
    "-t",
    "--target",
    type=click.Path(file_okay=False),
    default=None,
    help="Target directory (default: first source)",
)
@click.option(
    "--rule",
    type=click.Choice([r.value for r in OrganizeRule], case_sensitive=False),
    default=None,
    help="Group by modification date or by extension",
)
@click.option(
    "--date-format",
    type=click.Choice([f.value for f in DateFormat], case_sensitive=False),
    default=None,
    help="Folder naming pattern for the date rule",
)
@click.option(
    "--extension-case",
    type=click.Choice([c.value for c in ExtensionCase], case_sensitive=False),
    default=None,
    help="Folder name case for the extension rule",
)
@click.option(
    "-e",
    "--ext",
    "extensions",
    multiple=True,
    help="Extension to move (repeatable, comma-separated allowed)",
)
@click.option(
    "--all-extensions",
    is_flag=True,
    default=False,
    help="Move files of every discovered extension",
)
@click.option("-y", "--yes", is_flag=True, default=False, help="Do not ask for confirmation")
@click.option(
    "--save-log",
    type=click.Path(),
    default=None,
    help="Write the run log to this file (or into this directory)",
)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Verbose output")
def organize(
    sources: Tuple[str, ...],
    target: Optional[str],
    rule: Optional[str],
    date_format: Optional[str],
    extension_case: Optional[str],
    extensions: Tuple[str, ...],
    all_extensions: bool,
    yes: bool,
    save_log: Optional[str],
    verbose: bool,
) -> None:
    """
    Move files from SOURCES into date or extension folders.

    \b
    Examples:
        # Group photos by day, e.g. target/2024-03-05/
        file-sorter organize ~/Pictures/import -t ~/Pictures/by-date -e .jpg -e .png

        # Group everything by extension, e.g. target/.PDF/
        file-sorter organize ~/Downloads --rule extension \\
            --extension-case uppercase --all-extensions

    \b
    Date formats:
        YYYY-MM-DD:  2024-03-05/
        YYYYMMDD:    20240305/
        YY-MM-DD:    24-03-05/
        YYMMDD:      240305/

    \b
    Notes:
        • Files whose name already exists in the destination get a
          timestamp suffix, e.g. report_20240305_143022.txt
        • Options you leave out default to the choices of the last run
    """
    setup_logging(verbose=verbose, quiet=not verbose)

    preferences_path = settings.preferences_path.expanduser()
    preferences = UserPreferences.load(preferences_path)

    source_dirs: List[Path] = [Path(s) for s in sources]
    target_dir = Path(target) if target else source_dirs[0]

    sink = QueueLogSink(writer=_write_log).start()
    try:
        result = Scanner(log_sink=sink).scan(source_dirs)
        sink.close()

        if not result.files:
            console.print("[yellow]No files found to organize.[/yellow]")
            return

        selected = _choose_extensions(result, extensions, all_extensions)
        if not selected:
            console.print("[yellow]No extensions selected, nothing to do.[/yellow]")
            return

        config = OrganizeConfig(
            target_dir=target_dir,
            rule=OrganizeRule(rule.lower()) if rule else preferences.rule,
            extension_filter=selected,
            date_format=date_format.upper() if date_format else preferences.date_format,
            extension_case=(
                ExtensionCase(extension_case.lower())
                if extension_case
                else preferences.extension_case
            ),
        )

        console.print("\n[cyan]Organization Configuration:[/cyan]")
        for source in source_dirs:
            console.print(f"  Source: {source}")
        console.print(f"  Target: {config.target_dir}")
        console.print(f"  Rule: {config.rule.value}")
        if config.rule == OrganizeRule.BY_DATE:
            console.print(f"  Date format: {config.date_format.value}")
        else:
            console.print(f"  Extension case: {config.extension_case.value}")
        console.print(f"  Extensions: {', '.join(sorted(config.extension_filter))}")

        if not yes and not click.confirm("Move these files?"):
            console.print("[yellow]Cancelled[/yellow]")
            return

        sink.start()
        try:
            summary = Dispatcher(log_sink=sink).process(result.files, config)
        finally:
            sink.close()

        _display_result(summary)

        UserPreferences(
            rule=config.rule,
            date_format=config.date_format,
            extension_case=config.extension_case,
        ).save(preferences_path)

    except OrganizeError as e:
        console.print(f"\n[red]✗ Error: {e}[/red]")
        sys.exit(1)
    finally:
        sink.close()
        if save_log:
            log_path = Path(save_log)
            if log_path.is_dir():
                log_path = log_path / default_log_name()
            path = sink.save(log_path)
            console.print(f"[dim]Log saved to {path}[/dim]")


def default_log_name() -> str:
    """File name offered for saved logs."""
    return f"file_sorter_log_{datetime.now().strftime('%Y%m%d_%H%M%S')}.txt"
