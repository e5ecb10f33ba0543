"""Domain models for the codelens database layer."""

from __future__ import annotations

from dataclasses import dataclass

EMBEDDING_DIMENSIONS = 768


@dataclass
class SourceFile:
    id: str
    project_id: str
    name: str
    path: str
    language: str
    size: int
    content: str
    created_at: str | None = None


@dataclass
class Chunk:
    """Contiguous slice of a file's lines.

    ``start_line`` and ``end_line`` are 1-based and inclusive. ``id`` is
    derived from the file path and ``chunk_index`` so that re-ingesting the
    same path produces the same ids.
    """

    id: str
    chunk_index: int
    content: str
    start_line: int
    end_line: int
    token_count: int
    file_path: str = ""
    file_id: str = ""
    project_id: str = ""
    created_at: str | None = None
    rowid: int | None = None  # set after insert; None for unsaved chunks


@dataclass
class RetrievalResult:
    """One ranked hit: chunk text, its file path and ``1 - cosine_distance``."""

    content: str
    file_path: str
    score: float
