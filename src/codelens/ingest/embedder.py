"""Text embeddings: sentence-transformers primary, deterministic hash fallback.

Two strategies share one interface:

- ``SentenceTransformerStrategy`` wraps a pretrained model. The model is
  loaded at most once per process; concurrent first callers await the same
  in-flight load. Inference runs in a worker thread.
- ``HashEmbeddingStrategy`` derives a pseudo-embedding from character code
  points and word hashes. No dependencies, same text → same vector.

``Embedder`` probes the primary before each batch and degrades the whole
batch to the fallback on ModelUnavailableError, so one project index never
mixes vectors from both spaces within a batch. Every returned vector is
padded or truncated to exactly ``dimensions`` values.
"""

from __future__ import annotations

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import Any

from codelens.config import EmbeddingCfg
from codelens.db.models import EMBEDDING_DIMENSIONS
from codelens.errors import ModelUnavailableError

logger = logging.getLogger(__name__)

FALLBACK_NAME = "hash-fallback"


def fit_dimensions(vector: Sequence[float], dimensions: int = EMBEDDING_DIMENSIONS) -> list[float]:
    """Pad with trailing zeros or truncate *vector* to *dimensions* values."""
    values = [float(v) for v in vector[:dimensions]]
    if len(values) < dimensions:
        values.extend([0.0] * (dimensions - len(values)))
    return values


class EmbeddingStrategy(ABC):
    """One way of turning texts into vectors."""

    name: str = ""

    async def is_available(self) -> bool:
        """Capability probe, checked before every batch."""
        return True

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per text, in input order."""


# ------------------------------------------------------------------
# Fallback
# ------------------------------------------------------------------


def _word_hash(word: str) -> int:
    """31-multiplier string hash with 32-bit signed wraparound, absolute value."""
    h = 0
    for ch in word:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


class HashEmbeddingStrategy(EmbeddingStrategy):
    """Deterministic, dependency-free pseudo-embedding.

    Per character (up to ``dimensions`` characters): ``sin(code * 0.01) * 0.5``
    at its position and ``cos(code * 0.02) * 0.3`` at ``position + 100``.
    Per lowercased whitespace-separated word: ``+0.1`` at ``hash % dims`` and
    ``+0.05`` at ``hash * 7 % dims``. The result is L2-normalised; an all-zero
    vector (empty text) is returned as is.
    """

    name = FALLBACK_NAME

    def __init__(self, dimensions: int = EMBEDDING_DIMENSIONS) -> None:
        self.dimensions = dimensions

    def embed_text(self, text: str) -> list[float]:
        dims = self.dimensions
        vector = [0.0] * dims

        for i, ch in enumerate(text[:dims]):
            code = ord(ch)
            vector[i] += math.sin(code * 0.01) * 0.5
            vector[(i + 100) % dims] += math.cos(code * 0.02) * 0.3

        for word in text.lower().split():
            h = _word_hash(word)
            vector[h % dims] += 0.1
            vector[(h * 7) % dims] += 0.05

        magnitude = math.sqrt(sum(v * v for v in vector))
        if magnitude == 0:
            return vector
        return [v / magnitude for v in vector]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        return [self.embed_text(t) for t in texts]


# ------------------------------------------------------------------
# Primary
# ------------------------------------------------------------------


def load_sentence_transformer(model_name: str) -> Any:
    """Load a sentence-transformers model (blocking; runs in a worker thread)."""
    from sentence_transformers import SentenceTransformer

    return SentenceTransformer(model_name)


class SentenceTransformerStrategy(EmbeddingStrategy):
    """Pretrained sentence-embedding model with single-flight lazy loading.

    A failed load is remembered for the life of the instance: the strategy
    then reports itself unavailable instead of retrying on every request.

    Args:
        model_name: Hugging Face model id (e.g. ``BAAI/bge-base-en-v1.5``).
        loader: Callable building the model from its name. Injected in tests.
    """

    def __init__(
        self,
        model_name: str = "BAAI/bge-base-en-v1.5",
        loader: Callable[[str], Any] = load_sentence_transformer,
    ) -> None:
        self.model_name = model_name
        self.name = model_name
        self._loader = loader
        self._model: Any = None
        self._load_error: BaseException | None = None
        self._loading: asyncio.Task[Any] | None = None

    @property
    def loaded(self) -> bool:
        return self._model is not None

    async def load(self) -> Any:
        """Return the model, loading it on first use.

        Raises:
            ModelUnavailableError: If loading failed (now or earlier).
        """
        if self._model is not None:
            return self._model
        if self._load_error is not None:
            raise ModelUnavailableError(
                f"Embedding model '{self.model_name}' is unavailable"
            ) from self._load_error

        if self._loading is None or self._loading.get_loop().is_closed():
            self._loading = asyncio.get_running_loop().create_task(self._load())
        return await asyncio.shield(self._loading)

    async def _load(self) -> Any:
        logger.info("Loading embedding model %s", self.model_name)
        try:
            model = await asyncio.to_thread(self._loader, self.model_name)
        except Exception as exc:
            self._load_error = exc
            logger.warning(
                "Embedding model %s failed to load (%s); using %s",
                self.model_name,
                exc,
                FALLBACK_NAME,
            )
            raise ModelUnavailableError(
                f"Embedding model '{self.model_name}' failed to load: {exc}"
            ) from exc
        self._model = model
        logger.info("Embedding model %s loaded", self.model_name)
        return model

    async def is_available(self) -> bool:
        try:
            await self.load()
        except ModelUnavailableError:
            return False
        return True

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        model = await self.load()
        try:
            output = await asyncio.to_thread(
                model.encode,
                texts,
                normalize_embeddings=True,
                convert_to_numpy=True,
                show_progress_bar=False,
            )
            vectors = [list(map(float, row)) for row in output]
        except Exception as exc:
            raise ModelUnavailableError(
                f"Inference failed on '{self.model_name}': {exc}"
            ) from exc
        if len(vectors) != len(texts):
            raise ModelUnavailableError(
                f"'{self.model_name}' returned {len(vectors)} vectors for {len(texts)} texts"
            )
        return vectors


# ------------------------------------------------------------------
# Embedder
# ------------------------------------------------------------------


class Embedder:
    """Select a strategy per call and normalise output width.

    Args:
        primary: Preferred strategy; ``None`` forces the fallback.
        fallback: Strategy used when the primary is unavailable or fails.
        dimensions: Width of every returned vector.
    """

    def __init__(
        self,
        primary: EmbeddingStrategy | None = None,
        fallback: EmbeddingStrategy | None = None,
        dimensions: int = EMBEDDING_DIMENSIONS,
    ) -> None:
        self.primary = primary
        self.fallback = fallback or HashEmbeddingStrategy(dimensions)
        self.dimensions = dimensions

    async def active_strategy(self) -> EmbeddingStrategy:
        """The strategy the next batch will start with."""
        if self.primary is not None and await self.primary.is_available():
            return self.primary
        return self.fallback

    async def warmup(self) -> str:
        """Trigger the primary model load. Returns the active strategy name."""
        return (await self.active_strategy()).name

    async def embed(self, text: str) -> list[float]:
        """Embed a single text. Never raises for model problems."""
        return (await self.embed_batch([text]))[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts* in order, all with the same strategy."""
        vectors, _ = await self.embed_batch_with_strategy(texts)
        return vectors

    async def embed_batch_with_strategy(
        self, texts: list[str]
    ) -> tuple[list[list[float]], str]:
        """Like embed_batch() but also return the name of the strategy used."""
        if not texts:
            return [], (await self.active_strategy()).name

        strategy = await self.active_strategy()
        if strategy is not self.fallback:
            try:
                raw = await strategy.embed_batch(texts)
            except ModelUnavailableError as exc:
                logger.warning("Embedding %d text(s) with %s: %s", len(texts), FALLBACK_NAME, exc)
                strategy = self.fallback
                raw = await strategy.embed_batch(texts)
        else:
            raw = await strategy.embed_batch(texts)

        return [fit_dimensions(v, self.dimensions) for v in raw], strategy.name


# ------------------------------------------------------------------
# Process-wide instance
# ------------------------------------------------------------------

_embedder: Embedder | None = None


def build_embedder(cfg: EmbeddingCfg | None = None) -> Embedder:
    """Build an Embedder from configuration."""
    cfg = cfg or EmbeddingCfg()
    primary = None if cfg.fallback_only else SentenceTransformerStrategy(cfg.model)
    return Embedder(primary=primary, dimensions=cfg.dimensions)


def get_embedder(cfg: EmbeddingCfg | None = None) -> Embedder:
    """Get or create the process-wide Embedder (model handle shared by all requests)."""
    global _embedder

    if _embedder is None:
        _embedder = build_embedder(cfg)

    return _embedder


def reset_embedder() -> None:
    """Drop the process-wide Embedder so the next get_embedder() rebuilds it."""
    global _embedder
    _embedder = None
