"""codelens database layer."""

from codelens.db.connection import Database
from codelens.db.migrations import MIGRATIONS, run_migrations
from codelens.db.schema import initialize
from codelens.db.vectors import VectorIndex, parse_vector, serialize_vector

__all__ = [
    "Database",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
    "VectorIndex",
    "parse_vector",
    "serialize_vector",
]
