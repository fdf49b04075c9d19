"""Main CLI application using Typer."""

from typing import Annotated

import typer
from dotenv import load_dotenv
from rich.console import Console

from mdassets import __version__
from mdassets.cli.commands.config import config_app
from mdassets.cli.commands.localize import localize
from mdassets.cli.commands.publish import publish

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="mdassets",
    help="Localize remote images referenced by Markdown documents.",
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)

console = Console()

# Register commands
app.command(name="localize", help="Download remote images and rewrite a document.")(localize)
app.command(name="publish", help="Localize a post, save it into the site and publish it.")(publish)
app.add_typer(config_app, name="config")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold blue]mdassets[/bold blue] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """mdassets - localize the remote images of Markdown documents.

    Downloads every remote image a document references, compresses it and
    rewrites the document to point at the local copies.
    """
    pass


if __name__ == "__main__":
    app()
