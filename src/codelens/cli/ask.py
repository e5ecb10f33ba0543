"""codelens ask — answer a question about an ingested project.

Pipeline:
  1. Embed the question and retrieve the top-k chunks of the project
  2. Merge per file and cut to the context budget
  3. Generate an explanation (default) or a change-impact report (--impact)

--context-only stops after step 2 and prints the merged context; no API key
is needed in that mode.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from codelens.cli.common import cli_embedder, load_cli_config, open_db, resolve_db
from codelens.cli.errors import (
    err_empty_query,
    err_generation_failed,
    err_index,
    err_no_api_key,
    err_no_db,
    warn_empty_project,
)
from codelens.db.repository import Repository
from codelens.db.vectors import VectorIndex
from codelens.errors import EmptyQueryError, IndexStoreError
from codelens.rag.generator import ImpactAnalysis, generate_answer, parse_impact_analysis
from codelens.rag.llm_client import LLM_ERRORS, provider_of, validate_api_key
from codelens.rag.retriever import RetrievedContext, Retriever, RetrieverConfig

console = Console()


def ask_cmd(
    query: Annotated[str, typer.Argument(help="Question about the codebase.")],
    project: Annotated[
        str,
        typer.Option("--project", "-p", help="Project id to search."),
    ],
    impact: Annotated[
        bool,
        typer.Option("--impact", help="Treat the question as a change request (impact report)."),
    ] = False,
    context_only: Annotated[
        bool,
        typer.Option("--context-only", help="Print the retrieved context; skip generation."),
    ] = False,
    top_k: Annotated[
        int | None,
        typer.Option("--top-k", "-k", min=1, help="Chunks to retrieve (default from config)."),
    ] = None,
    model: Annotated[
        str | None,
        typer.Option("--model", help="Override the generation model (provider/model)."),
    ] = None,
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the codelens database."),
    ] = None,
) -> None:
    """Ask a question about an ingested project."""
    if not query.strip():
        console.print(err_empty_query())
        raise typer.Exit(1)

    cfg = load_cli_config(console)
    db_path = resolve_db(db, cfg)
    if not db_path.exists():
        console.print(err_no_db(str(db_path)))
        raise typer.Exit(1)

    generation_model = model or cfg.generation.model

    # ---- API key validation (before any work) ----
    if not context_only:
        try:
            validate_api_key(generation_model)
        except EnvironmentError:
            console.print(err_no_api_key(provider_of(generation_model)))
            raise typer.Exit(1)

    conn = open_db(db_path)
    repo = Repository(conn)
    embedder = cli_embedder(cfg)
    retriever = Retriever(
        VectorIndex(repo, dimensions=embedder.dimensions),
        embedder,
        RetrieverConfig(top_k=cfg.retrieval.top_k, context_budget=cfg.retrieval.context_budget),
    )

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            transient=True,
            console=console,
        ) as prog:
            prog.add_task("Retrieving…", total=None)
            try:
                ctx = asyncio.run(retriever.build_context(query, project, top_k))
            except EmptyQueryError:
                console.print(err_empty_query())
                raise typer.Exit(1)
            except IndexStoreError as exc:
                console.print(err_index(str(exc)))
                raise typer.Exit(1)
    finally:
        conn.close()

    if ctx.empty:
        console.print(warn_empty_project(project))
    else:
        _show_sources(ctx)

    if context_only:
        console.print(ctx.text, markup=False, highlight=False)
        return

    # ---- Generate ----
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        transient=True,
        console=console,
    ) as prog:
        prog.add_task(f"Generating with {generation_model}…", total=None)
        try:
            answer = asyncio.run(
                generate_answer(
                    query,
                    ctx.text,
                    model=generation_model,
                    change_request=impact,
                    empty_context=ctx.empty,
                    temperature=cfg.generation.temperature,
                    max_tokens=cfg.generation.max_tokens,
                )
            )
        except LLM_ERRORS as exc:
            console.print(err_generation_failed(generation_model, str(exc)))
            raise typer.Exit(1)

    if impact:
        _show_impact(parse_impact_analysis(answer))
    else:
        console.print(Markdown(answer))


# ------------------------------------------------------------------
# Renderers
# ------------------------------------------------------------------


def _show_sources(ctx: RetrievedContext) -> None:
    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Score", style="dim", justify="right")
    table.add_column("File")
    for r in ctx.results:
        table.add_row(f"{r.score:.3f}", r.file_path)
    title = "[bold]Sources[/]"
    if ctx.truncated:
        title += " [dim](context truncated)[/]"
    console.print(Panel(table, title=title, expand=False))


def _bullets(items: list[str]) -> str:
    return "\n".join(f"• {i}" for i in items) if items else "[dim](none)[/]"


def _show_impact(report: ImpactAnalysis) -> None:
    console.print(
        Panel(
            f"{report.overview}\n\n"
            f"Effort: [bold]{report.effort_bucket}[/]  |  Time: [bold]{report.time_range}[/]",
            title="[bold]Impact Overview[/]",
            expand=False,
        )
    )
    if not report.parsed:
        console.print("[yellow]⚠[/] Model did not return structured JSON; showing raw answer.")
        console.print(Markdown(report.detailed_breakdown))
        return

    console.print(Panel(_bullets(report.affected_files), title="[bold]Affected Files[/]", expand=False))
    console.print(Panel(Markdown(report.recommended_approach), title="[bold]Recommended Approach[/]"))
    console.print(Panel(_bullets(report.edge_cases), title="[bold]Edge Cases[/]", expand=False))
    console.print(Panel(_bullets(report.challenges), title="[bold]Challenges[/]", expand=False))
    console.print(Panel(_bullets(report.risks), title="[bold]Risks[/]", expand=False))
    if report.detailed_breakdown:
        console.print(Panel(Markdown(report.detailed_breakdown), title="[bold]Breakdown[/]"))
