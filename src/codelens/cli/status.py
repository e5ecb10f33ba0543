"""codelens status — projects, files and index coverage in the database."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from codelens.cli.common import load_cli_config, open_db, resolve_db
from codelens.cli.errors import err_no_db, err_project_not_found
from codelens.db.repository import Repository

console = Console()


def status_cmd(
    project: Annotated[
        str | None,
        typer.Option("--project", "-p", help="Show the files of one project."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the codelens database."),
    ] = None,
) -> None:
    """Show ingested projects, or the files of one project."""
    cfg = load_cli_config(console)
    db_path = resolve_db(db, cfg)
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)

    conn = open_db(db_path)
    repo = Repository(conn)
    try:
        if project is None:
            _show_projects(db_path, repo)
        else:
            _show_project_files(project, repo)
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Renderers
# ---------------------------------------------------------------------------


def _show_projects(db_path: Path, repo: Repository) -> None:
    stats = repo.project_stats()
    size_mb = db_path.stat().st_size / (1024 * 1024)
    header = f"Database:  {db_path} ({size_mb:.1f} MB)"

    if not stats:
        console.print(
            Panel(
                f"{header}\n[dim]No projects ingested yet.[/]",
                title="[bold]Knowledge Base[/]",
                expand=False,
            )
        )
        return

    table = Table(box=None, padding=(0, 1))
    table.add_column("Project", style="bold")
    table.add_column("Files", justify="right")
    table.add_column("Chunks", justify="right")
    table.add_column("Embedded", justify="right")

    for project_id, files, chunks, embedded in stats:
        coverage = "[green]✓[/]" if embedded == chunks else f"[yellow]{embedded}[/]"
        table.add_row(project_id, str(files), f"{chunks:,}", coverage)

    console.print(header)
    console.print(Panel(table, title="[bold]Projects[/]", expand=False))


def _show_project_files(project: str, repo: Repository) -> None:
    files = repo.list_files(project)
    if not files:
        console.print(err_project_not_found(project))
        raise typer.Exit(0)

    table = Table(box=None, padding=(0, 1))
    table.add_column("Path")
    table.add_column("Language", style="dim")
    table.add_column("Size", justify="right")
    table.add_column("Chunks", justify="right")

    for f in files:
        table.add_row(f.path, f.language, f"{f.size:,} B", str(len(repo.list_chunks_by_file(f.id))))

    models = ", ".join(repo.embedding_models(project)) or "(none)"
    console.print(
        Panel(
            table,
            title=f"[bold]{project}[/] [dim]({len(files)} files · {repo.count_chunks(project)} chunks)[/]",
            expand=False,
        )
    )
    console.print(f"[dim]Embeddings: {models}[/]")
