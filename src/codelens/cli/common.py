"""Helpers shared by the codelens commands: config, database, embedder."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import typer
from rich.console import Console

from codelens.cli.errors import err_config
from codelens.config import CodelensConfig, ConfigError, load_config
from codelens.db.connection import Database
from codelens.db.schema import initialize
from codelens.ingest.embedder import Embedder, get_embedder


def load_cli_config(console: Console) -> CodelensConfig:
    """Load merged config or exit 1 with an actionable message."""
    try:
        return load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)


def resolve_db(db: Path | None, cfg: CodelensConfig) -> Path:
    """``--db`` wins over config / CODELENS_DB."""
    return db if db is not None else Path(cfg.database.path)


def open_db(db_path: Path) -> sqlite3.Connection:
    """Open (or create) the workspace database and run migrations."""
    conn = Database(db_path).connect()
    initialize(conn)
    return conn


def cli_embedder(cfg: CodelensConfig) -> Embedder:
    return get_embedder(cfg.embedding)
