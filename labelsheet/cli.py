"""
CLI Interface
=============
Command-line interface for the label sheet composer.

Usage:
    python -m labelsheet pairs <pdf>... [options]
    python -m labelsheet singles <pdf>... [options]
    python -m labelsheet info <pdf_path>
"""

from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from . import __version__
from .archive import ArchiveBuilder, ArchiveDelivery
from .callbacks import ProcessingCallbacks
from .compositor import LayoutConfig
from .engine import ProcessorConfig, create_processor, setup_logging
from .errors import LabelSheetError
from .models import BatchMode, BatchReport, ResultKind, Severity, SourceDocument, sort_results
from .renderer import PageRenderer
from .selection import FileSelection, validate_source
from .session import DirectorySink, DownloadSession

console = Console()

SEVERITY_STYLES = {
    Severity.INFO: "cyan",
    Severity.PROCESSING: "dim",
    Severity.SUCCESS: "green",
    Severity.ERROR: "red",
}


def _print_status(message: str, severity: Severity):
    style = SEVERITY_STYLES.get(severity, "")
    console.print(f"[{style}]{message}[/]" if style else message)


@click.group()
@click.version_option(version=__version__, prog_name="labelsheet")
def cli():
    """Label Sheet Composer: combine two-page label PDFs into A4 sheets."""
    pass


def _batch_options(func):
    """Options shared by the `pairs` and `singles` commands."""
    options = [
        click.argument(
            "files",
            nargs=-1,
            required=True,
            type=click.Path(exists=True, dir_okay=False),
        ),
        click.option(
            "--output", "-o",
            default="output",
            help="Directory for the generated PDFs",
        ),
        click.option(
            "--zip", "make_zip",
            is_flag=True,
            default=False,
            help="Bundle the outputs into one ZIP archive when there is more than one",
        ),
        click.option(
            "--dpi",
            default=300,
            type=int,
            help="Rendering resolution (canvas size follows it)",
        ),
        click.option(
            "--log-level",
            default="WARNING",
            type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
            help="Logging level",
        ),
        click.option(
            "--log-file",
            default=None,
            help="Path to log file",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@cli.command()
@_batch_options
def pairs(files, output, make_zip, dpi, log_level, log_file):
    """Combine files two by two into one A4 sheet per pair."""
    _run_batch(BatchMode.PAIRS, files, output, make_zip, dpi, log_level, log_file)


@cli.command()
@_batch_options
def singles(files, output, make_zip, dpi, log_level, log_file):
    """Lay out every file on its own A4 sheet."""
    _run_batch(BatchMode.SINGLES, files, output, make_zip, dpi, log_level, log_file)


def _run_batch(
    mode: BatchMode,
    files: tuple[str, ...],
    output: str,
    make_zip: bool,
    dpi: int,
    log_level: str,
    log_file: str,
):
    config = ProcessorConfig(
        layout=LayoutConfig(dpi=dpi),
        log_level=log_level,
        log_file=log_file,
    )
    setup_logging(log_level, log_file)

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Label Sheet Composer v{__version__}[/]\n"
            f"[dim]Mode: {mode.value} | {len(files)} file(s)[/]",
            border_style="cyan",
        )
    )
    console.print()

    status_only = ProcessingCallbacks(on_status=_print_status)

    with DownloadSession() as session:
        selection = FileSelection(
            renderer=PageRenderer(dpi=dpi),
            callbacks=status_only,
            session=session,
        )
        selection.add([SourceDocument.from_path(p) for p in files])

        if not selection.documents:
            console.print("[red]Error:[/] No valid PDF files to process")
            sys.exit(1)

        console.print(
            f"[dim]{selection.expected_outputs(mode)} output(s) expected[/]"
        )

        try:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                TimeElapsedColumn(),
                console=console,
            ) as progress:
                task = progress.add_task("Processing PDFs...", total=100)
                callbacks = ProcessingCallbacks(
                    on_status=_print_status,
                    on_progress=lambda percent: progress.update(task, completed=percent),
                )
                processor = create_processor(config, callbacks)
                report = asyncio.run(
                    processor.process_files(selection.documents, mode)
                )
        except LabelSheetError as e:
            console.print(f"[red]Error:[/] {e}")
            sys.exit(1)
        except Exception as e:
            console.print(f"[red]Unexpected error:[/] {e}")
            if log_level == "DEBUG":
                console.print_exception()
            sys.exit(1)

        _display_results(report)

        if not report.results:
            sys.exit(1)

        sink = DirectorySink(output)
        delivery = ArchiveDelivery(
            session,
            sink,
            builder=ArchiveBuilder(prefix=config.archive_prefix),
            callbacks=status_only,
            download_spacing=config.download_spacing,
        )

        results = sort_results(report.results)
        # A single output is never bundled
        if make_zip and len(results) > 1:
            asyncio.run(delivery.deliver(results))
        else:
            for result in results:
                delivery.download(result)

        console.print(
            f"[bold]Saved to:[/] {Path(output).absolute()}"
        )
        console.print()


@cli.command()
@click.argument("pdf_path", type=click.Path(exists=True, dir_okay=False))
def info(pdf_path: str):
    """Display PDF file information and whether it can be processed."""

    import fitz

    document = SourceDocument.from_path(pdf_path)
    basic = validate_source(document)

    console.print()
    table = Table(title="PDF Information", border_style="cyan")
    table.add_column("Property", style="bold")
    table.add_column("Value")

    table.add_row("File", os.path.basename(pdf_path))
    table.add_row("File Size", f"{document.size / 1024:.1f} KB")

    try:
        doc = fitz.open(pdf_path)
    except Exception as e:
        table.add_row("Status", f"[red]✗ Invalid or corrupt PDF ({e})[/]")
        console.print(table)
        sys.exit(1)

    with doc:
        table.add_row("Pages", str(doc.page_count))
        for page in doc:
            rect = page.rect
            px_w = round(rect.width * 300 / 72)
            px_h = round(rect.height * 300 / 72)
            table.add_row(
                f"Page {page.number + 1}",
                f"{rect.width:.0f} x {rect.height:.0f} pt ({px_w} x {px_h} px @ 300 DPI)",
            )
        page_count = doc.page_count

    renderer = PageRenderer()
    if not basic.valid:
        status = f"[red]✗ {basic.reason}[/]"
    elif page_count != renderer.expected_pages:
        status = (
            f"[red]✗ Expected {renderer.expected_pages} pages, "
            f"found {page_count}[/]"
        )
    else:
        status = "[green]✓ Ready to process[/]"
    table.add_row("Status", status)

    console.print(table)
    console.print()


# ─── Display Helpers ──────────────────────────────────────────────────────────


def _display_results(report: BatchReport):
    """Display generated outputs and failures in a table."""
    console.print()

    table = Table(title="Generated PDFs", border_style="cyan")
    table.add_column("File", style="bold")
    table.add_column("Type")
    table.add_column("Sources")
    table.add_column("Size", justify="right")

    for result in sort_results(report.results):
        if result.kind == ResultKind.PAIR:
            label = f"Pair {result.ordinal}"
        elif result.is_leftover:
            label = "Leftover file"
        else:
            label = f"Single {result.ordinal}"

        table.add_row(
            result.filename,
            label,
            ", ".join(result.source_files),
            f"{round(result.size / 1024)} KB",
        )

    for failure in report.failures:
        table.add_row(
            "-",
            f"[red]✗ {failure.label}[/]",
            ", ".join(failure.source_files),
            "-",
        )

    console.print(table)
    console.print()
    console.print(
        f"[bold]Total:[/] {len(report.results)} PDF(s), "
        f"{report.total_size_mb:.2f} MB, {len(report.failures)} failure(s)"
    )
    console.print()


# ─── Entry point (for python -m labelsheet.cli) ──────────────────────────────


if __name__ == "__main__":
    cli()
