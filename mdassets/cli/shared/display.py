"""Rich rendering of pipeline plans and results."""

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TypeVar

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from mdassets.core.references import ImageReference, PipelineResult
from mdassets.utils.fs import format_size

T = TypeVar("T")


@contextmanager
def _console_logging_suppressed() -> Iterator[None]:
    """Silence console handlers while a spinner is shown; file logging still works."""
    root_logger = logging.getLogger()
    handlers = [
        h
        for h in root_logger.handlers
        if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
    ]
    original_levels = [(h, h.level) for h in handlers]
    for handler in handlers:
        handler.setLevel(logging.CRITICAL + 1)
    try:
        yield
    finally:
        for handler, level in original_levels:
            handler.setLevel(level)


def run_with_spinner(console: Console, description: str, func: Callable[[], T], verbose: bool) -> T:
    """Run ``func``, showing a spinner unless verbose logging is on."""
    if verbose:
        return func()

    with _console_logging_suppressed():
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task(description, total=None)
            return func()


def show_plan(console: Console, references: list[ImageReference], link_for: Callable) -> None:
    """Display extracted references and their planned local paths."""
    console.print("\n[bold blue]Localization Plan (Dry Run)[/bold blue]\n")

    if not references:
        console.print("[yellow]No remote images found.[/yellow]\n")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Category", style="cyan")
    table.add_column("URL")
    table.add_column("Local Link", style="green")

    for index, reference in enumerate(references, 1):
        table.add_row(
            str(index),
            reference.category.value,
            reference.original_url,
            link_for(reference) or "-",
        )

    console.print(table)
    console.print()


def show_result(console: Console, result: PipelineResult) -> None:
    """Display per-reference outcomes of a run."""
    if not result.outcomes:
        console.print("[yellow]No remote images found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Status")
    table.add_column("Category", style="cyan")
    table.add_column("URL")
    table.add_column("Local Link / Error")
    table.add_column("Size", justify="right")

    for outcome in result.outcomes:
        if outcome.succeeded:
            status = "[dim]cached[/dim]" if outcome.skipped_download else "[green]ok[/green]"
            size = ""
            transcode = outcome.transcode
            if transcode is not None and transcode.error is None:
                size = format_size(transcode.final_size)
                if transcode.action != "kept":
                    size += f" (-{transcode.savings_percent:.0f}%)"
            table.add_row(status, outcome.category.value, outcome.original_url, outcome.link, size)
        else:
            table.add_row(
                "[red]failed[/red]",
                outcome.category.value,
                outcome.original_url,
                f"[red]{outcome.error}[/red]",
                "",
            )

    console.print(table)
    console.print(
        f"  Localized: [green]{len(result.succeeded)}[/green]"
        f"  Failed: [red]{len(result.failed)}[/red]"
        f"  Time: {result.elapsed:.2f}s"
    )
