"""Exception hierarchy for the codelens core.

Chunking and embedding never raise in their degraded paths; storage and
input-boundary failures are raised as the types below so callers can map
them to user-facing messages.
"""

from __future__ import annotations


class CodelensError(Exception):
    """Base class for all codelens errors."""


class UnsupportedInputError(CodelensError):
    """Input rejected at the boundary (bad archive, unsupported entry)."""


class EmptyQueryError(UnsupportedInputError):
    """A retrieval query was empty or whitespace-only."""


class ModelUnavailableError(CodelensError):
    """The primary embedding model failed to load or to run inference.

    Raised by the primary strategy only; the Embedder converts it into a
    fallback embedding and never lets it reach the caller.
    """


class IndexStoreError(CodelensError):
    """A vector upsert or query failed in the storage layer."""


class IngestionError(CodelensError):
    """A single file could not be fully ingested.

    Attributes:
        path: Stored path of the file being ingested.
        chunks_stored: Number of chunks (with embeddings) written before the
            failure. Those rows are kept, not rolled back.
    """

    def __init__(self, message: str, *, path: str, chunks_stored: int = 0) -> None:
        super().__init__(message)
        self.path = path
        self.chunks_stored = chunks_stored
