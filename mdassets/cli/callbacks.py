"""CLI callback functions."""

from pathlib import Path

import typer

from mdassets.config.constants import MARKDOWN_EXTENSIONS


def validate_output_dir(value: Path | None) -> Path | None:
    """Validate output directory (created later if missing)."""
    if value is None:
        return None

    if value.exists() and not value.is_dir():
        raise typer.BadParameter(f"Output path exists but is not a directory: {value}")

    return value


def validate_markdown_file(value: Path) -> Path:
    """Validate input file exists and looks like a Markdown document."""
    if not value.exists():
        raise typer.BadParameter(f"File not found: {value}")

    if not value.is_file():
        raise typer.BadParameter(f"Path is not a file: {value}")

    if value.suffix.lower() not in MARKDOWN_EXTENSIONS:
        raise typer.BadParameter(
            f"Not a Markdown file: {value.name}. "
            f"Expected one of: {', '.join(sorted(MARKDOWN_EXTENSIONS))}"
        )

    return value
