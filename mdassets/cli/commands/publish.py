"""Publish command: localize a post, save it into the site and ship it."""

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from mdassets.cli.callbacks import validate_markdown_file
from mdassets.cli.commands.localize import build_pipeline
from mdassets.cli.shared import LocalizeOptions, run_with_spinner, show_result
from mdassets.config import get_settings
from mdassets.exceptions import ConfigurationError, PublishError
from mdassets.services.publisher import GitPublisher, SiteDeployer, save_document
from mdassets.utils.logging import get_logger, setup_task_logging

console = Console()
log = get_logger(__name__)


def publish(
    input_file: Annotated[
        Path,
        typer.Argument(
            help="Markdown post to publish.",
            callback=validate_markdown_file,
            resolve_path=True,
        ),
    ],
    no_git: Annotated[
        bool,
        typer.Option("--no-git", help="Skip git commit and push."),
    ] = False,
    no_deploy: Annotated[
        bool,
        typer.Option("--no-deploy", help="Skip site generation and deployment."),
    ] = False,
    no_compress: Annotated[
        bool,
        typer.Option("--no-compress", help="Keep downloaded images as they are."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose output."),
    ] = False,
) -> None:
    """Localize a post's images, save it into the site and publish it.

    Git and deployment steps follow the git/deploy sections of the
    configuration and can be switched off per run.

    Examples:
        mdassets publish drafts/hello.md
        mdassets publish drafts/hello.md --no-deploy
    """
    settings = get_settings()
    task_id, log_path = setup_task_logging(
        log_dir=settings.log_dir,
        prefix="publish",
        verbose=verbose,
    )
    if verbose:
        log.info("Logs will be saved to", log_file=str(log_path))
    log.info("Task Configuration", task_id=task_id, config=settings.model_dump())

    site_root = Path(settings.site.git_repo).resolve()
    options = LocalizeOptions(no_compress=no_compress, verbose=verbose)

    try:
        if not site_root.is_dir():
            raise ConfigurationError(f"site.git_repo is not a directory: {site_root}")

        document = input_file.read_text(encoding="utf-8")
        pipeline = build_pipeline(settings, options, base_path=site_root)
        result = run_with_spinner(
            console, "Localizing images...", lambda: pipeline.run(document), verbose
        )
        show_result(console, result)

        posts_dir = Path(settings.site.posts_dir)
        if not posts_dir.is_absolute():
            posts_dir = site_root / posts_dir
        saved = asyncio.run(save_document(result.markdown, posts_dir, input_file.name))
        console.print(f"[bold green]Post saved:[/bold green] {saved}")

        if settings.git.auto_commit and not no_git:
            paths = [saved, *result.artifacts]
            if result.index_file is not None:
                paths.append(result.index_file)
            committed = GitPublisher(site_root, settings.git).commit_and_push(
                input_file.stem, paths=paths
            )
            console.print(
                "[green]Changes committed.[/green]"
                if committed
                else "[dim]Nothing to commit.[/dim]"
            )

        if settings.deploy.auto_deploy and not no_deploy:
            run_with_spinner(
                console,
                "Deploying site...",
                SiteDeployer(site_root, settings.deploy).deploy,
                verbose,
            )
            console.print("[green]Site deployed.[/green]")
    except PublishError as e:
        log.error("Publish step failed", error=str(e), stderr=e.stderr)
        console.print(f"[red]Error:[/red] {e}")
        if e.stderr:
            console.print(f"[dim]{e.stderr}[/dim]")
        raise typer.Exit(1) from e
    except Exception as e:
        log.error("Publish failed", error=str(e), exc_info=True)
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    if settings.site.base_url:
        console.print(f"  Site: {settings.site.base_url}")
    log.info("Task Completed", post=str(saved), failed_images=len(result.failed))
