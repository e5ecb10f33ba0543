"""codelens remove — delete a project, or one file of it, from the database.

Deleting a file removes its chunks and their vectors with it (ON DELETE
CASCADE), so no orphaned vectors remain searchable.

Usage:
  codelens remove --project api
  codelens remove --project api --file src/auth.py --yes
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from codelens.cli.common import load_cli_config, open_db, resolve_db
from codelens.cli.errors import err_file_not_found, err_no_db, err_project_not_found
from codelens.db.repository import Repository

console = Console()


def remove_cmd(
    project: Annotated[
        str,
        typer.Option("--project", "-p", help="Project id to remove from."),
    ],
    file: Annotated[
        str | None,
        typer.Option("--file", "-f", help="Stored path of a single file to remove."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the codelens database."),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove a project (or one of its files) and all derived chunks and vectors."""
    cfg = load_cli_config(console)
    db_path = resolve_db(db, cfg)
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)

    conn = open_db(db_path)
    repo = Repository(conn)

    try:
        if file is not None:
            existing = repo.get_file_by_path(project, file)
            if existing is None:
                console.print(err_file_not_found(project, file))
                raise typer.Exit(0)

            chunk_count = len(repo.list_chunks_by_file(existing.id))
            console.print(f"\nRemove file: [bold]{file}[/] from [bold]{project}[/]")
            console.print(f"  Chunks: {chunk_count}  |  Vec entries: {chunk_count}")
            _confirm(yes)

            repo.delete_file(existing.id)
            console.print(f"\n[green]✓[/] Removed: {file}")
            return

        files = repo.list_files(project)
        if not files:
            console.print(err_project_not_found(project))
            raise typer.Exit(0)

        chunk_count = repo.count_chunks(project)
        embedded = repo.count_embeddings(project)
        console.print(f"\nRemove project: [bold]{project}[/]")
        console.print(
            f"  Files: {len(files)}  |  Chunks: {chunk_count}  |  Vec entries: {embedded}"
        )
        _confirm(yes)

        deleted = repo.delete_project(project)
        console.print(f"\n[green]✓[/] Removed project {project}: {deleted} files")
    finally:
        conn.close()


def _confirm(yes: bool) -> None:
    if not yes and not typer.confirm("Confirm removal?", default=False):
        console.print("[dim]Cancelled.[/]")
        raise typer.Exit(0)
