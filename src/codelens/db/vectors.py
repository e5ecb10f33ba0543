"""Project-scoped vector index over sqlite-vec distance functions.

Vectors are stored as bracketed decimal lists (``[0.1, 0.2, ...]``) in
``chunk_embeddings.embedding`` and ranked with ``vec_distance_cosine()``:
an exact scan restricted to one project, which keeps tenant filtering and
upsert semantics in plain SQL.

    score = 1 - cosine_distance      (1.0 = identical direction)
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Sequence

from codelens.db.models import EMBEDDING_DIMENSIONS, RetrievalResult
from codelens.db.repository import Repository
from codelens.errors import IndexStoreError

logger = logging.getLogger(__name__)


def serialize_vector(vector: Sequence[float]) -> str:
    """Return *vector* as a bracketed comma-separated decimal list."""
    return json.dumps([float(v) for v in vector])


def parse_vector(text: str) -> list[float]:
    """Inverse of serialize_vector()."""
    values = json.loads(text)
    if not isinstance(values, list):
        raise ValueError(f"Not a serialized vector: {text[:40]!r}")
    return [float(v) for v in values]


class VectorIndex:
    """Upsert and nearest-neighbour query of chunk vectors, scoped by project.

    Storage failures are raised as IndexStoreError: losing a vector silently
    would degrade retrieval without anyone noticing.

    Args:
        repo: Open Repository (schema initialised).
        dimensions: Required width of every vector.
    """

    def __init__(self, repo: Repository, dimensions: int = EMBEDDING_DIMENSIONS) -> None:
        self._repo = repo
        self.dimensions = dimensions

    async def upsert(
        self,
        chunk_id: str,
        project_id: str,
        vector: Sequence[float],
        *,
        model: str = "",
    ) -> None:
        """Write the vector of *chunk_id*, replacing any previous one.

        Raises:
            ValueError: If *vector* does not have ``self.dimensions`` values.
            IndexStoreError: If the chunk is unknown or the write fails.
        """
        self._check_dimensions(vector)
        try:
            chunk = self._repo.get_chunk(project_id, chunk_id)
            if chunk is None or chunk.rowid is None:
                raise IndexStoreError(
                    f"Cannot index unknown chunk '{chunk_id}' in project '{project_id}'"
                )
            self._repo.upsert_embedding(
                chunk.rowid, project_id, serialize_vector(vector), model
            )
        except sqlite3.Error as exc:
            raise IndexStoreError(f"Vector upsert failed for '{chunk_id}': {exc}") from exc

    async def query(
        self, vector: Sequence[float], project_id: str, k: int
    ) -> list[RetrievalResult]:
        """Return up to *k* chunks of *project_id*, most similar first.

        An empty project yields ``[]``.

        Raises:
            ValueError: If *vector* has the wrong width or *k* < 1.
            IndexStoreError: If the scan fails.
        """
        if k < 1:
            raise ValueError(f"k must be >= 1, got {k}")
        self._check_dimensions(vector)
        try:
            rows = self._repo.search_embeddings(serialize_vector(vector), project_id, k)
        except sqlite3.Error as exc:
            raise IndexStoreError(f"Vector query failed for project '{project_id}': {exc}") from exc

        logger.debug("Vector query on project %s returned %d rows", project_id, len(rows))
        return [
            RetrievalResult(content=content, file_path=path, score=1.0 - distance)
            for content, path, distance in rows
        ]

    def _check_dimensions(self, vector: Sequence[float]) -> None:
        if len(vector) != self.dimensions:
            raise ValueError(
                f"Vector has {len(vector)} dimensions, index expects {self.dimensions}"
            )
