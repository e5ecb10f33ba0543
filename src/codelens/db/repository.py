"""Repository pattern for all codelens database operations.

Single interface for: source files, chunks, chunk embeddings, project stats.
Vector serialization and ranking semantics live in codelens.db.vectors; this
module only speaks SQL.
"""

from __future__ import annotations

import sqlite3

from codelens.db.models import Chunk, SourceFile

_FILE_COLUMNS = "id, project_id, name, path, language, size, content, created_at"
_CHUNK_COLUMNS = (
    "c.pk, c.id, c.file_id, c.project_id, c.chunk_index, c.content, "
    "c.start_line, c.end_line, c.token_count, c.created_at, f.path AS file_path"
)


class Repository:
    """Data access layer for all codelens database entities.

    Wraps an open sqlite3.Connection and provides typed methods for files,
    chunks and embeddings. The connection is owned by the caller and must be
    closed after use.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialise with an open database connection.

        Args:
            conn: An open sqlite3.Connection with sqlite-vec loaded and schema
                initialised (see codelens.db.schema.initialize).
        """
        self._conn = conn

    @property
    def conn(self) -> sqlite3.Connection:
        return self._conn

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def add_file(self, source: SourceFile) -> None:
        """Insert a new source file record."""
        self._conn.execute(
            """
            INSERT INTO files (id, project_id, name, path, language, size, content)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                source.id,
                source.project_id,
                source.name,
                source.path,
                source.language,
                source.size,
                source.content,
            ),
        )
        self._conn.commit()

    def get_file(self, file_id: str) -> SourceFile | None:
        row = self._conn.execute(
            f"SELECT {_FILE_COLUMNS} FROM files WHERE id = ?", (file_id,)
        ).fetchone()
        return _row_to_file(row) if row else None

    def get_file_by_path(self, project_id: str, path: str) -> SourceFile | None:
        """Return the file stored at *path* within *project_id*, or None."""
        row = self._conn.execute(
            f"SELECT {_FILE_COLUMNS} FROM files WHERE project_id = ? AND path = ?",
            (project_id, path),
        ).fetchone()
        return _row_to_file(row) if row else None

    def list_files(self, project_id: str) -> list[SourceFile]:
        """Return all files of *project_id*, newest first."""
        rows = self._conn.execute(
            f"SELECT {_FILE_COLUMNS} FROM files WHERE project_id = ? "
            "ORDER BY created_at DESC, path",
            (project_id,),
        ).fetchall()
        return [_row_to_file(r) for r in rows]

    def delete_file(self, file_id: str) -> None:
        """Delete a file; chunks and embeddings go with it (ON DELETE CASCADE)."""
        self._conn.execute("DELETE FROM files WHERE id = ?", (file_id,))
        self._conn.commit()

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def delete_project(self, project_id: str) -> int:
        """Delete every file of *project_id* (cascades). Returns files deleted."""
        cur = self._conn.execute("DELETE FROM files WHERE project_id = ?", (project_id,))
        self._conn.commit()
        return cur.rowcount

    def project_stats(self) -> list[tuple[str, int, int, int]]:
        """Return ``[(project_id, files, chunks, embeddings), ...]`` sorted by id."""
        rows = self._conn.execute(
            """
            SELECT f.project_id,
                   COUNT(DISTINCT f.id) AS files,
                   COUNT(c.pk) AS chunks,
                   COUNT(e.chunk_rowid) AS embeddings
            FROM files f
            LEFT JOIN chunks c ON c.file_id = f.id
            LEFT JOIN chunk_embeddings e ON e.chunk_rowid = c.pk
            GROUP BY f.project_id
            ORDER BY f.project_id
            """
        ).fetchall()
        return [(r["project_id"], r["files"], r["chunks"], r["embeddings"]) for r in rows]

    # ------------------------------------------------------------------
    # Chunks
    # ------------------------------------------------------------------

    def add_chunk(self, chunk: Chunk) -> int:
        """Insert *chunk* and return its integer rowid."""
        cur = self._conn.execute(
            """
            INSERT INTO chunks (id, file_id, project_id, chunk_index, content,
                                start_line, end_line, token_count)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                chunk.id,
                chunk.file_id,
                chunk.project_id,
                chunk.chunk_index,
                chunk.content,
                chunk.start_line,
                chunk.end_line,
                chunk.token_count,
            ),
        )
        self._conn.commit()
        chunk.rowid = cur.lastrowid
        return cur.lastrowid

    def get_chunk(self, project_id: str, chunk_id: str) -> Chunk | None:
        row = self._conn.execute(
            f"SELECT {_CHUNK_COLUMNS} FROM chunks c JOIN files f ON f.id = c.file_id "
            "WHERE c.project_id = ? AND c.id = ?",
            (project_id, chunk_id),
        ).fetchone()
        return _row_to_chunk(row) if row else None

    def list_chunks_by_file(self, file_id: str) -> list[Chunk]:
        """Return the chunks of *file_id* in sequence order."""
        rows = self._conn.execute(
            f"SELECT {_CHUNK_COLUMNS} FROM chunks c JOIN files f ON f.id = c.file_id "
            "WHERE c.file_id = ? ORDER BY c.chunk_index",
            (file_id,),
        ).fetchall()
        return [_row_to_chunk(r) for r in rows]

    def count_chunks(self, project_id: str) -> int:
        return self._conn.execute(
            "SELECT COUNT(*) FROM chunks WHERE project_id = ?", (project_id,)
        ).fetchone()[0]

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    def upsert_embedding(
        self, chunk_rowid: int, project_id: str, embedding: str, model: str = ""
    ) -> None:
        """Insert or replace the embedding row of *chunk_rowid*.

        Args:
            chunk_rowid: Integer key of the chunk row.
            project_id: Owning project, duplicated here for filtered scans.
            embedding: Serialized vector (``"[0.1,0.2,...]"``).
            model: Name of the strategy that produced the vector.
        """
        self._conn.execute(
            """
            INSERT INTO chunk_embeddings (chunk_rowid, project_id, embedding, model)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(chunk_rowid) DO UPDATE SET
                project_id = excluded.project_id,
                embedding = excluded.embedding,
                model = excluded.model,
                updated_at = datetime('now')
            """,
            (chunk_rowid, project_id, embedding, model),
        )
        self._conn.commit()

    def count_embeddings(self, project_id: str | None = None) -> int:
        if project_id is None:
            return self._conn.execute("SELECT COUNT(*) FROM chunk_embeddings").fetchone()[0]
        return self._conn.execute(
            "SELECT COUNT(*) FROM chunk_embeddings WHERE project_id = ?", (project_id,)
        ).fetchone()[0]

    def embedding_models(self, project_id: str) -> list[str]:
        """Return the distinct strategy names used for *project_id*'s vectors."""
        rows = self._conn.execute(
            "SELECT DISTINCT model FROM chunk_embeddings WHERE project_id = ? ORDER BY model",
            (project_id,),
        ).fetchall()
        return [r["model"] for r in rows]

    def search_embeddings(
        self, embedding: str, project_id: str, limit: int
    ) -> list[tuple[str, str, float]]:
        """Exact cosine scan over *project_id*'s vectors.

        Returns ``[(chunk content, file path, cosine distance), ...]`` ordered
        by ascending distance. A zero-norm vector has no defined cosine
        distance (NULL); it ranks as orthogonal (1.0).
        """
        rows = self._conn.execute(
            """
            SELECT c.content AS content,
                   f.path AS file_path,
                   COALESCE(vec_distance_cosine(e.embedding, ?), 1.0) AS distance
            FROM chunk_embeddings e
            JOIN chunks c ON c.pk = e.chunk_rowid
            JOIN files f ON f.id = c.file_id
            WHERE e.project_id = ?
            ORDER BY distance, c.pk
            LIMIT ?
            """,
            (embedding, project_id, limit),
        ).fetchall()
        return [(r["content"], r["file_path"], r["distance"]) for r in rows]


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------

def _row_to_file(row: sqlite3.Row) -> SourceFile:
    return SourceFile(
        id=row["id"],
        project_id=row["project_id"],
        name=row["name"],
        path=row["path"],
        language=row["language"],
        size=row["size"],
        content=row["content"],
        created_at=row["created_at"],
    )


def _row_to_chunk(row: sqlite3.Row) -> Chunk:
    return Chunk(
        rowid=row["pk"],
        id=row["id"],
        file_id=row["file_id"],
        project_id=row["project_id"],
        chunk_index=row["chunk_index"],
        content=row["content"],
        start_line=row["start_line"],
        end_line=row["end_line"],
        token_count=row["token_count"],
        created_at=row["created_at"],
        file_path=row["file_path"],
    )
