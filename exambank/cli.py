"""
CLI Interface
=============
Command-line interface for the question-bank extractor.

Usage:
    python -m exambank build [options]
    python -m exambank inspect <file>... [--chars N]
    python -m exambank check [bank_json]
    python -m exambank download [--url URL]
    python -m exambank clean
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from . import __version__
from .bank import load_bank, verify_bank
from .download import BANK_EXPORT_URL, download_bank
from .engine import BankEngine, PipelineConfig
from .storage import ASSETS_DIR, BANK_DOWNLOAD_FILE, OUTPUT_FILE, clean_assets
from .text_acquirer import TextAcquirer

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="exambank")
def cli():
    """Exam question bank extractor: PDF/DOCX/TXT/XLSX → questions.json."""
    pass


@cli.command()
@click.option(
    "--assets", "-a",
    default=str(ASSETS_DIR),
    help="Directory of source exam files",
)
@click.option(
    "--output", "-o",
    default=str(OUTPUT_FILE),
    help="Question bank JSON to (re)generate",
)
@click.option(
    "--strict-answers",
    is_flag=True,
    default=False,
    help="Reject questions whose answer key was never found",
)
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level",
)
@click.option(
    "--log-file",
    default=None,
    help="Path to log file",
)
def build(
    assets: str,
    output: str,
    strict_answers: bool,
    log_level: str,
    log_file: str,
):
    """Run the extraction once over the assets directory."""

    config = PipelineConfig(
        assets_dir=assets,
        output_file=output,
        reject_inferred_answers=strict_answers,
        log_level=log_level,
        log_file=log_file,
    )

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Question Bank Extractor v{__version__}[/]\n"
            f"[dim]Assets: {assets}[/]",
            border_style="cyan",
        )
    )
    console.print()

    try:
        engine = BankEngine(config)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("Processing files...", total=None)

            def on_file(name: str, done: int, total: int):
                progress.update(
                    task,
                    description=f"Processed: {name}",
                    completed=done,
                    total=total,
                )

            report = engine.run(progress_callback=on_file)

        _display_report(report)

    except FileNotFoundError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)
    except OSError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Unexpected error:[/] {e}")
        if log_level == "DEBUG":
            console.print_exception()
        sys.exit(1)


@cli.command()
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True))
@click.option(
    "--chars", "-c",
    default=2000,
    type=int,
    help="Number of characters to print per file",
)
def inspect(files: tuple[str, ...], chars: int):
    """Print the start of the text extracted from FILES."""
    acquirer = TextAcquirer()

    for filename in files:
        console.print(
            Panel.fit(f"[bold cyan]{Path(filename).name}[/]", border_style="cyan")
        )
        text = acquirer.acquire(filename)
        if acquirer.last_error:
            console.print(f"[red]Error:[/] {acquirer.last_error}")
            continue
        console.print(text[:chars], markup=False, highlight=False)
        console.print()


@cli.command()
@click.argument(
    "bank_path",
    required=False,
    default=str(OUTPUT_FILE),
    type=click.Path(exists=True),
)
def check(bank_path: str):
    """Verify the invariants of a generated question bank."""
    try:
        records = load_bank(bank_path)
    except json.JSONDecodeError as e:
        console.print(f"[red]Error:[/] {bank_path} is not valid JSON: {e}")
        sys.exit(1)

    problems = verify_bank(records)

    table = Table(title="Question Bank Check", border_style="green")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("File", bank_path)
    table.add_row("Records", str(len(records) if isinstance(records, list) else 0))
    table.add_row("Problems", str(len(problems)))
    console.print(table)

    for problem in problems:
        console.print(f"[red]✗[/] {problem}")

    if problems:
        sys.exit(1)
    console.print("[green]✓[/] Bank is consistent")


@cli.command()
@click.option("--url", default=BANK_EXPORT_URL, help="Spreadsheet export URL")
@click.option(
    "--dest",
    default=str(BANK_DOWNLOAD_FILE),
    help="Where to save the spreadsheet",
)
def download(url: str, dest: str):
    """Download the shared question-bank spreadsheet into assets."""
    try:
        saved = download_bank(url=url, dest=dest)
    except RuntimeError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)
    console.print(f"[green]✓[/] Saved to {saved}")


@cli.command()
@click.option("--assets", "-a", default=str(ASSETS_DIR), help="Assets directory")
@click.confirmation_option(prompt="Delete every file in the assets directory?")
def clean(assets: str):
    """Delete every source file in the assets directory."""
    deleted, failed = clean_assets(assets)
    console.print(f"Deleted {deleted} files, {failed} failures")
    if failed:
        sys.exit(1)


# ─── Display Helpers ──────────────────────────────────────────────────────────


def _display_report(report):
    """Display a run report as rich tables."""
    console.print()

    sources = Table(title="Sources", border_style="cyan")
    sources.add_column("File", style="bold")
    sources.add_column("Kind")
    sources.add_column("Candidates", justify="right")
    sources.add_column("Status", justify="center")

    for source in report.sources:
        if source.error:
            status = "[red]✗ FAILED[/]"
        elif source.kind.value == "ignored":
            status = "[dim]skipped[/]"
        elif source.candidates:
            status = "[green]✓[/]"
        else:
            status = "[yellow]⚠[/]"
        sources.add_row(
            source.filename,
            source.kind.value,
            str(source.candidates),
            status,
        )
    console.print(sources)
    console.print()

    validation = report.validation
    table = Table(title="Validation Report", border_style="green")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Candidates", str(validation.total_candidates))
    table.add_row(
        "Accepted",
        f"{validation.accepted} ({validation.acceptance_rate}%)",
    )
    table.add_row("Inferred Answers (review)", str(validation.inferred_answers))
    table.add_row("Skipped Rows / Records", str(len(report.rejections)))
    console.print(table)
    console.print()

    breakdown = dict(validation.rejection_breakdown)
    for rejection in report.rejections:
        key = rejection.reason.value
        breakdown[key] = breakdown.get(key, 0) + 1

    if breakdown:
        rejection_table = Table(title="Rejections", border_style="yellow")
        rejection_table.add_column("Reason", style="bold")
        rejection_table.add_column("Count", justify="right")
        for reason, count in sorted(breakdown.items()):
            rejection_table.add_row(reason, str(count))
        console.print(rejection_table)
        console.print()

    console.print(
        f"[bold]Total:[/] {report.total_questions} questions written to "
        f"{report.output_file}"
    )
    console.print()


# ─── Entry point (for python -m exambank.cli) ─────────────────────────────────


if __name__ == "__main__":
    cli()
