"""codelens CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from codelens.cli.ask import ask_cmd
from codelens.cli.ingest import ingest_cmd
from codelens.cli.remove import remove_cmd
from codelens.cli.status import status_cmd
from codelens.cli.warmup import warmup_cmd
from codelens.log import setup_logging


def _installed_version() -> str:
    try:
        return importlib.metadata.version("codelens")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"codelens {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="codelens",
    help=(
        "codelens — ask questions about a codebase.\n\n"
        "  codelens ingest  Chunk and embed files, directories or .zip archives.\n"
        "  codelens ask     Explain code or estimate the impact of a change."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
) -> None:
    """codelens — ask questions about a codebase."""
    setup_logging(verbose=verbose)


app.command("ingest")(ingest_cmd)
app.command("ask")(ask_cmd)
app.command("status")(status_cmd)
app.command("remove")(remove_cmd)
app.command("warmup")(warmup_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed codelens version."""
    typer.echo(f"codelens {_installed_version()}")


if __name__ == "__main__":
    app()
