"""Ingestion pipeline: file → chunks → embeddings → vector index.

Single files:
  detect language → replace any previous file at the same path → store
  SourceFile → chunk → embed the whole file in one batch → store each chunk
  in sequence order and upsert its vector.

Archives (ZIP):
  every entry that is a supported, non-ignored file is decoded as UTF-8 and
  ingested on its own; failures are recorded per entry and the walk goes on.
"""

from __future__ import annotations

import io
import logging
import sqlite3
import uuid
import zipfile
import zlib
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from codelens.db.models import SourceFile
from codelens.db.repository import Repository
from codelens.db.vectors import VectorIndex
from codelens.errors import CodelensError, IngestionError, UnsupportedInputError
from codelens.ingest.chunker import LineChunker
from codelens.ingest.embedder import Embedder
from codelens.ingest.languages import detect_language, should_index

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"


@dataclass
class FileIngestResult:
    """Outcome of ingesting one file.

    Attributes:
        file: Display name.
        path: Stored path (archive entry path for archive members).
        status: ``success`` or ``error``.
        chunks: Chunks stored with their embeddings.
        language: Detected language tag.
        strategy: Embedding strategy used for this file.
        error: Failure description when status is ``error``.
    """

    file: str
    path: str
    status: str
    chunks: int = 0
    language: str = "plaintext"
    strategy: str = ""
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SUCCESS


class Ingestor:
    """Drive Chunker → Embedder → VectorIndex for uploaded files.

    Args:
        repo: Open Repository.
        embedder: Embedder shared across requests.
        chunker: Chunker; defaults to LineChunker().
        index: VectorIndex over *repo*; built from the embedder width if omitted.
        on_progress: Called with each FileIngestResult as it is produced.
    """

    def __init__(
        self,
        repo: Repository,
        embedder: Embedder,
        chunker: LineChunker | None = None,
        index: VectorIndex | None = None,
        on_progress: Callable[[FileIngestResult], None] | None = None,
    ) -> None:
        self._repo = repo
        self._embedder = embedder
        self._chunker = chunker or LineChunker()
        self._index = index or VectorIndex(repo, dimensions=embedder.dimensions)
        self._on_progress = on_progress

    # ------------------------------------------------------------------
    # Single file
    # ------------------------------------------------------------------

    async def ingest(
        self, project_id: str, filename: str, content: str, file_path: str
    ) -> FileIngestResult:
        """Ingest one decoded text file.

        Raises:
            IngestionError: If storing a chunk or its vector fails. Chunks
                stored before the failure are kept; ``chunks_stored`` says how
                many.
        """
        language = detect_language(filename)
        previous = self._repo.get_file_by_path(project_id, file_path)
        if previous is not None:
            logger.info("Replacing %s in project %s", file_path, project_id)
            self._repo.delete_file(previous.id)

        source = SourceFile(
            id=str(uuid.uuid4()),
            project_id=project_id,
            name=filename,
            path=file_path,
            language=language,
            size=len(content.encode("utf-8")),
            content=content,
        )
        self._repo.add_file(source)

        chunks = self._chunker.split(content, file_path, language)
        vectors, strategy = await self._embedder.embed_batch_with_strategy(
            [c.content for c in chunks]
        )

        stored = 0
        for chunk, vector in zip(chunks, vectors):
            chunk.file_id = source.id
            chunk.project_id = project_id
            try:
                self._repo.add_chunk(chunk)
                await self._index.upsert(chunk.id, project_id, vector, model=strategy)
            except Exception as exc:
                logger.error(
                    "Stopped ingesting %s after %d/%d chunks: %s",
                    file_path,
                    stored,
                    len(chunks),
                    exc,
                )
                raise IngestionError(
                    f"Failed to store chunk {chunk.chunk_index} of '{file_path}': {exc}",
                    path=file_path,
                    chunks_stored=stored,
                ) from exc
            stored += 1

        logger.info("Processed file: %s, chunks: %d (%s)", filename, stored, strategy)
        return FileIngestResult(
            file=filename,
            path=file_path,
            status=STATUS_SUCCESS,
            chunks=stored,
            language=language,
            strategy=strategy,
        )

    async def ingest_bytes(
        self, project_id: str, filename: str, data: bytes, file_path: str | None = None
    ) -> FileIngestResult:
        """Decode an uploaded payload as UTF-8 (invalid bytes replaced) and ingest it."""
        content = data.decode("utf-8", errors="replace")
        return await self.ingest(project_id, filename, content, file_path or filename)

    # ------------------------------------------------------------------
    # Archives
    # ------------------------------------------------------------------

    async def ingest_archive(self, project_id: str, archive_bytes: bytes) -> list[FileIngestResult]:
        """Ingest every indexable entry of a ZIP archive.

        Returns one FileIngestResult per attempted entry. Entries that are
        directories, unsupported or under ignored paths are not attempted.

        Raises:
            UnsupportedInputError: If *archive_bytes* is not a readable ZIP.
        """
        try:
            archive = zipfile.ZipFile(io.BytesIO(archive_bytes))
        except (zipfile.BadZipFile, zipfile.LargeZipFile) as exc:
            raise UnsupportedInputError(f"Not a valid ZIP archive: {exc}") from exc

        results: list[FileIngestResult] = []
        with archive:
            for info in archive.infolist():
                if info.is_dir() or not should_index(info.filename):
                    continue
                result = await self._ingest_entry(project_id, archive, info)
                results.append(result)
                self._report(result)
        return results

    async def _ingest_entry(
        self, project_id: str, archive: zipfile.ZipFile, info: zipfile.ZipInfo
    ) -> FileIngestResult:
        path = info.filename
        try:
            # zipfile raises NotImplementedError for an unknown compression
            # method, RuntimeError for an encrypted member and EOFError for a
            # truncated one.
            try:
                data = archive.read(info)
            except (NotImplementedError, RuntimeError, EOFError) as exc:
                raise UnsupportedInputError(f"Unreadable archive entry: {exc}") from exc
            return await self.ingest(project_id, path, data.decode("utf-8"), path)
        except (
            zipfile.BadZipFile,
            zlib.error,
            UnicodeDecodeError,
            OSError,
            sqlite3.Error,
            CodelensError,
        ) as exc:
            logger.error("Error processing archive entry %s: %s", path, exc)
            return FileIngestResult(
                file=path,
                path=path,
                status=STATUS_ERROR,
                chunks=getattr(exc, "chunks_stored", 0),
                language=detect_language(path),
                error=str(exc),
            )

    # ------------------------------------------------------------------
    # Local paths (CLI)
    # ------------------------------------------------------------------

    async def ingest_path(self, project_id: str, path: Path) -> list[FileIngestResult]:
        """Ingest a local ``.zip``, directory, or single file.

        Directories are walked with the archive filters; stored paths are
        relative to the directory. A single file is always accepted (unknown
        suffixes are tagged ``plaintext``).
        """
        if path.is_dir():
            results = []
            for file in sorted(p for p in path.rglob("*") if p.is_file()):
                rel = file.relative_to(path).as_posix()
                if not should_index(rel):
                    continue
                result = await self._ingest_local(project_id, file, rel)
                results.append(result)
                self._report(result)
            return results

        if path.suffix.lower() == ".zip":
            return await self.ingest_archive(project_id, path.read_bytes())

        result = await self._ingest_local(project_id, path, path.name)
        self._report(result)
        return [result]

    async def _ingest_local(self, project_id: str, file: Path, stored_path: str) -> FileIngestResult:
        try:
            return await self.ingest_bytes(project_id, file.name, file.read_bytes(), stored_path)
        except (OSError, sqlite3.Error, CodelensError) as exc:
            logger.error("Error processing file %s: %s", file, exc)
            return FileIngestResult(
                file=file.name,
                path=stored_path,
                status=STATUS_ERROR,
                chunks=getattr(exc, "chunks_stored", 0),
                language=detect_language(file.name),
                error=str(exc),
            )

    def _report(self, result: FileIngestResult) -> None:
        if self._on_progress is not None:
            self._on_progress(result)
