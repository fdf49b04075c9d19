"""Config command for configuration management."""

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from mdassets.config import get_settings
from mdassets.config.constants import CONFIG_LOCATIONS, DEFAULT_CONFIG_FILE

# Create config sub-app
config_app = typer.Typer(help="Configuration management.")
console = Console()


@config_app.command("show")
def show() -> None:
    """Show current configuration."""
    settings = get_settings()

    console.print("\n[bold blue]Current Configuration[/bold blue]\n")

    table = Table(show_header=True, header_style="bold")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    # Global settings
    table.add_row("Log Level", settings.log_level)
    table.add_row("Log Directory", settings.log_dir)

    # Site layout
    table.add_row("Images Directory", settings.site.images_dir)
    table.add_row("Link Prefix", settings.site.link_prefix or "(none)")
    table.add_row("Posts Directory", settings.site.posts_dir)
    table.add_row("Site Repository", settings.site.git_repo)

    # Download settings
    table.add_row("Concurrency", str(settings.download.concurrency))
    table.add_row("Max Retries", str(settings.download.max_retries))
    table.add_row("Timeout (ms)", str(settings.download.timeout_ms))
    table.add_row("Min Payload (bytes)", str(settings.download.min_payload_bytes))
    deadline = settings.download.deadline_seconds
    table.add_row("Run Deadline", f"{deadline}s" if deadline else "none")
    table.add_row("Image Compression", str(settings.download.compress_images))

    # Compression settings
    compression = settings.compression
    table.add_row("Max Size", f"{compression.max_width}x{compression.max_height}")
    table.add_row(
        "Target Format",
        compression.target_format if compression.convert_to_target_format else "(keep source)",
    )
    table.add_row("Target Quality", str(compression.target_quality))
    table.add_row("Lossless Threshold (bytes)", str(compression.lossless_threshold_bytes))
    table.add_row("Min Savings", f"{compression.min_savings_ratio:.0%}")

    # Publishing
    git = settings.git
    table.add_row("Git Auto Commit", str(git.auto_commit))
    table.add_row("Git Auto Push", f"{git.auto_push} ({git.remote}/{git.branch})")
    table.add_row("Auto Deploy", f"{settings.deploy.auto_deploy} ({settings.deploy.generator})")

    console.print(table)
    console.print()


# Default configuration template
DEFAULT_CONFIG_TEMPLATE = """# mdassets Configuration

log_level: "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
log_dir: ".logs"

site:
  images_dir: "source/images"  # Localized images land in <images_dir>/YYYY/MM/DD/
  link_prefix: "/images"  # Prefix of rewritten links ("" for relative links)
  posts_dir: "source/_posts"
  git_repo: "."
  # base_url: "https://example.github.io"

download:
  concurrency: 3  # Images downloaded per batch
  max_retries: 3  # Attempts per image, redirects included
  timeout_ms: 30000
  retry_base_delay: 1.0  # Seconds, multiplied by the attempt number
  min_payload_bytes: 100  # Smaller bodies are treated as error pages
  # deadline_seconds: 300  # Give up on batches not started by then
  compress_images: true

compression:
  max_width: 2400
  max_height: 2400
  preserve_aspect_ratio: true
  convert_to_target_format: true
  target_format: "webp"  # webp, png, jpeg
  target_quality: 90  # 1-100
  allow_lossless: true
  lossless_threshold_bytes: 512000  # PNG/GIF below this size convert losslessly
  min_savings_ratio: 0.05  # Keep a new encoding only if at least 5% smaller
  reoptimize_same_format: true
  image_workers: 4

git:
  auto_commit: false
  auto_push: false
  remote: "origin"
  branch: "main"
  commit_prefix: "docs: publish"

deploy:
  auto_deploy: false
  clean_before_generate: true
  generator: "hexo"

output:
  default_dir: "output"
  on_conflict: "overwrite"  # skip, overwrite, rename
"""


@config_app.command("init")
def init(
    path: Annotated[
        Path | None,
        typer.Option(
            "--path",
            "-p",
            help="Path to create config file.",
        ),
    ] = None,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Overwrite existing config file.",
        ),
    ] = False,
) -> None:
    """Initialize a configuration file."""
    config_path = path or Path.cwd() / DEFAULT_CONFIG_FILE

    if config_path.exists() and not force:
        console.print(f"[red]Error:[/red] Config file already exists at {config_path}")
        console.print("Use --force to overwrite.")
        raise typer.Exit(1)

    config_path.write_text(DEFAULT_CONFIG_TEMPLATE, encoding="utf-8")
    console.print(f"[green]Created config file at:[/green] {config_path}")


@config_app.command("validate")
def validate() -> None:
    """Validate current configuration."""
    try:
        settings = get_settings()
    except Exception as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1) from e

    console.print("\n[bold blue]Configuration Validation[/bold blue]\n")

    repo = Path(settings.site.git_repo)
    if settings.git.auto_commit and not (repo / ".git").exists():
        console.print(
            f"[yellow]Warning:[/yellow] git.auto_commit is on but {repo} is not a git repository."
        )

    console.print("[green]Configuration is valid![/green]")


@config_app.command("locations")
def locations() -> None:
    """Show configuration file search locations."""
    console.print("\n[bold blue]Configuration File Locations[/bold blue]\n")
    console.print("mdassets searches for configuration files in the following order:\n")

    for i, loc in enumerate(CONFIG_LOCATIONS, 1):
        exists = "[green]exists[/green]" if loc.exists() else "[dim]not found[/dim]"
        console.print(f"  {i}. {loc} ({exists})")

    console.print()
    console.print("[dim]Environment variables with MDASSETS_ prefix are also supported.[/dim]")
    console.print()
