"""codelens ingest — index source files into a project.

Source dispatch:
  .zip         → every indexable archive entry (entries that are not valid
                 UTF-8 are reported as errors, the rest still ingest)
  directory    → walked with the same filters as an archive
  other file   → ingested directly (invalid UTF-8 bytes replaced)

Re-ingesting a path replaces the stored file, its chunks and its vectors.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from codelens.cli.common import cli_embedder, load_cli_config, open_db, resolve_db
from codelens.cli.errors import err_invalid_archive, err_source_missing
from codelens.db.repository import Repository
from codelens.db.vectors import VectorIndex
from codelens.errors import UnsupportedInputError
from codelens.ingest.chunker import LineChunker
from codelens.ingest.pipeline import FileIngestResult, Ingestor

console = Console()


def ingest_cmd(
    project: Annotated[
        str,
        typer.Option("--project", "-p", help="Project id the files belong to."),
    ],
    source: Annotated[
        list[Path] | None,
        typer.Option("--source", "-s", help="File, directory or .zip archive (repeatable)."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the codelens database (created if missing)."),
    ] = None,
) -> None:
    """Ingest source files into a codelens project."""
    sources = source or []
    if not sources:
        console.print("[red]Error:[/] No --source specified. Use --source PATH.")
        raise typer.Exit(1)

    for src in sources:
        if not src.exists():
            console.print(err_source_missing(str(src)))
            raise typer.Exit(1)

    cfg = load_cli_config(console)
    db_path = resolve_db(db, cfg)
    conn = open_db(db_path)
    repo = Repository(conn)
    embedder = cli_embedder(cfg)
    chunker = LineChunker(
        max_tokens=cfg.chunking.max_tokens,
        min_tokens=cfg.chunking.min_tokens,
        overlap_tokens=cfg.chunking.overlap_tokens,
        avg_line_chars=cfg.chunking.avg_line_chars,
    )

    results: list[FileIngestResult] = []
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            console=console,
        ) as prog:
            task = prog.add_task("Ingesting…", total=None)

            def _on_file(result: FileIngestResult) -> None:
                prog.update(task, description=f"Ingesting… {result.path}")

            ingestor = Ingestor(
                repo,
                embedder,
                chunker=chunker,
                index=VectorIndex(repo, dimensions=embedder.dimensions),
                on_progress=_on_file,
            )
            for src in sources:
                try:
                    results.extend(asyncio.run(ingestor.ingest_path(project, src)))
                except UnsupportedInputError as exc:
                    console.print(err_invalid_archive(str(src), str(exc)))
                    raise typer.Exit(1)
    finally:
        conn.close()

    _show_results(project, results)

    if not results:
        console.print("[yellow]No supported files found to ingest.[/]")
        raise typer.Exit(0)
    if not any(r.ok for r in results):
        raise typer.Exit(1)


# ------------------------------------------------------------------
# Report
# ------------------------------------------------------------------


def _show_results(project: str, results: list[FileIngestResult]) -> None:
    if not results:
        return

    table = Table(title=f"Project [bold]{project}[/]", show_lines=False)
    table.add_column("", width=2)
    table.add_column("Path")
    table.add_column("Language", style="dim")
    table.add_column("Chunks", justify="right")
    table.add_column("Embedding", style="dim")

    for r in results:
        if r.ok:
            table.add_row("[green]✓[/]", r.path, r.language, str(r.chunks), r.strategy)
        else:
            table.add_row("[red]✗[/]", f"{r.path}\n[red]{r.error}[/]", r.language, str(r.chunks), "")

    console.print(table)

    ok = sum(1 for r in results if r.ok)
    chunks = sum(r.chunks for r in results if r.ok)
    failed = len(results) - ok
    summary = f"[green]✓[/] {ok} file(s), {chunks} chunk(s) stored"
    if failed:
        summary += f"  |  [red]{failed} failed[/]"
    console.print(summary)
