"""codelens warmup — load the embedding model ahead of the first request.

The first load downloads and initialises the sentence-transformers model,
which can take a while; warming up keeps that cost off the first ingest or
question. If the model cannot be loaded the hash fallback is reported.
"""

from __future__ import annotations

import asyncio

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from codelens.cli.common import cli_embedder, load_cli_config
from codelens.ingest.embedder import FALLBACK_NAME

console = Console()


def warmup_cmd() -> None:
    """Load the embedding model and report which strategy is active."""
    cfg = load_cli_config(console)
    embedder = cli_embedder(cfg)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        transient=True,
        console=console,
    ) as prog:
        prog.add_task(f"Loading {cfg.embedding.model}…", total=None)
        strategy = asyncio.run(embedder.warmup())

    if strategy == FALLBACK_NAME:
        console.print(
            f"[yellow]⚠[/] Embedding model unavailable; using {FALLBACK_NAME} "
            f"({embedder.dimensions} dims).\n"
            "  Vectors from the fallback are only comparable with other fallback vectors.\n"
            "  Run with --verbose for the load error."
        )
        return
    console.print(f"[green]✓[/] Embedding model ready: [bold]{strategy}[/] ({embedder.dimensions} dims)")
