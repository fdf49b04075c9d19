"""Localize command: download remote images and rewrite one document."""

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from mdassets.cli.callbacks import validate_markdown_file, validate_output_dir
from mdassets.cli.shared import LocalizeOptions, run_with_spinner, show_plan, show_result
from mdassets.config import MdAssetsSettings, get_settings
from mdassets.core.pipeline import AssetPipeline
from mdassets.services.publisher import DocumentWriter
from mdassets.utils.logging import get_logger, setup_task_logging

console = Console()
log = get_logger(__name__)


def build_pipeline(
    settings: MdAssetsSettings, options: LocalizeOptions, base_path: Path | None = None
) -> AssetPipeline:
    """Create a pipeline from settings and CLI overrides."""
    base_path = base_path or Path.cwd()
    return AssetPipeline.from_settings(
        settings,
        base_path=base_path,
        images_root=options.resolve_images_root(settings, base_path),
        link_prefix=options.link_prefix,
        compress_images=options.compress_images,
        concurrency=options.concurrency,
    )


def localize(
    input_file: Annotated[
        Path,
        typer.Argument(
            help="Markdown file whose remote images should be localized.",
            callback=validate_markdown_file,
            resolve_path=True,
        ),
    ],
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Directory for the rewritten document.",
            callback=validate_output_dir,
            file_okay=False,
            dir_okay=True,
            resolve_path=True,
        ),
    ] = None,
    in_place: Annotated[
        bool,
        typer.Option("--in-place", "-i", help="Rewrite the input file itself."),
    ] = False,
    images_dir: Annotated[
        Path | None,
        typer.Option(
            "--images-dir",
            help="Directory images are stored under (default: site.images_dir).",
            file_okay=False,
            dir_okay=True,
            resolve_path=True,
        ),
    ] = None,
    link_prefix: Annotated[
        str | None,
        typer.Option(
            "--link-prefix",
            help="Prefix for rewritten image links (default: site.link_prefix).",
        ),
    ] = None,
    no_compress: Annotated[
        bool,
        typer.Option("--no-compress", help="Keep downloaded images as they are."),
    ] = False,
    concurrency: Annotated[
        int | None,
        typer.Option("--concurrency", "-c", min=1, help="Concurrent downloads per batch."),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option(
            "--dry-run",
            help="Show the references and planned paths without downloading.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose output."),
    ] = False,
) -> None:
    """Localize the remote images of a Markdown document.

    Examples:
        mdassets localize post.md
        mdassets localize post.md --in-place
        mdassets localize post.md -o ./out --images-dir ./out/images --link-prefix images
    """
    if output is not None and in_place:
        console.print("[red]Error:[/red] --output and --in-place are mutually exclusive.")
        raise typer.Exit(1)

    settings = get_settings()
    task_id, log_path = setup_task_logging(
        log_dir=settings.log_dir,
        prefix="localize",
        verbose=verbose,
    )
    if verbose:
        log.info("Logs will be saved to", log_file=str(log_path))
    log.info("Task Configuration", task_id=task_id, config=settings.model_dump())

    options = LocalizeOptions(
        images_dir=images_dir,
        link_prefix=link_prefix,
        no_compress=no_compress,
        concurrency=concurrency,
        verbose=verbose,
    )

    try:
        document = input_file.read_text(encoding="utf-8")
        pipeline = build_pipeline(settings, options)

        if dry_run:
            show_plan(console, pipeline.plan(document), pipeline.rewriter.link_for)
            return

        log.info("Starting localization", input_file=str(input_file))
        result = run_with_spinner(
            console, "Localizing images...", lambda: pipeline.run(document), verbose
        )

        if in_place:
            target_dir, on_conflict = input_file.parent, "overwrite"
        else:
            target_dir = output or Path(settings.output.default_dir).resolve()
            on_conflict = settings.output.on_conflict
        writer = DocumentWriter(on_conflict=on_conflict)
        written = asyncio.run(writer.write(result.markdown, target_dir, input_file.name))
    except Exception as e:
        log.error("Localization failed", error=str(e), exc_info=True)
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    log.info(
        "Task Completed",
        output_path=str(written),
        localized=len(result.succeeded),
        failed=len(result.failed),
    )
    show_result(console, result)
    console.print(f"[bold green]Document written:[/bold green] {written}")
    if result.failed:
        console.print(
            f"[yellow]Warning:[/yellow] {len(result.failed)} image(s) kept their remote URL."
        )
