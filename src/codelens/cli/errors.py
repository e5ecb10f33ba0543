"""codelens rich error messages with actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from codelens.cli.errors import err_no_api_key, err_no_db
    console.print(err_no_api_key("groq"))
    raise typer.Exit(1)
"""

from __future__ import annotations

from codelens.rag.llm_client import _PROVIDER_ENV


def err_no_api_key(provider: str) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'groq'. Set:  export GROQ_API_KEY=...
    """
    env_var = _PROVIDER_ENV.get(provider.lower()) or f"{provider.upper()}_API_KEY"
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=...\n"
        "  Or retrieve context without generating:  codelens ask --context-only ..."
    )


def err_no_db(db_path: str = ".codelens.db") -> str:
    """No database at *db_path*."""
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  codelens ingest --project <name> --source <path>"
    )


def err_config(message: str) -> str:
    """Invalid codelens.yaml / global config."""
    return f"[red]Error:[/] Invalid configuration.\n  {message}"


def err_source_missing(source: str) -> str:
    """--source path does not exist."""
    return (
        f"[red]Error:[/] Source not found: '{source}'\n"
        "  Pass a file, a directory or a .zip archive."
    )


def err_invalid_archive(source: str, reason: str) -> str:
    """Archive could not be opened."""
    return (
        f"[red]Error:[/] '{source}' is not a readable ZIP archive ({reason}).\n"
        "  Re-create it with:  zip -r project.zip <dir>"
    )


def err_empty_query() -> str:
    """Question was blank."""
    return (
        "[red]Error:[/] The question is empty.\n"
        '  Example:  codelens ask --project api "How is authentication handled?"'
    )


def err_generation_failed(model: str, reason: str) -> str:
    """LLM call failed after retries."""
    return (
        f"[red]Error:[/] Answer generation with '{model}' failed: {reason}\n"
        "  Check the model name and your network, or use --context-only."
    )


def err_index(reason: str) -> str:
    """Vector search failed in storage."""
    return (
        f"[red]Error:[/] Vector search failed: {reason}\n"
        "  Re-ingest the project:  codelens ingest --project <name> --source <path>"
    )


def warn_empty_project(project: str) -> str:
    """Project has no indexed chunks."""
    return (
        f"[yellow]Warning:[/] Project '{project}' has no indexed files.\n"
        "  Run:  codelens ingest --project " + project + " --source <path>"
    )


def err_project_not_found(project: str) -> str:
    """Project has no files in the database."""
    return (
        f"[yellow]Project not found:[/] '{project}' has no ingested files.\n"
        "  Run:  codelens status  to see all projects."
    )


def err_file_not_found(project: str, path: str) -> str:
    """File path not stored in *project*."""
    return (
        f"[yellow]File not found:[/] '{path}' is not in project '{project}'.\n"
        f"  Run:  codelens status --project {project}  to list stored paths."
    )
