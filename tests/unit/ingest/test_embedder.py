"""Tests for the embedding strategies and the Embedder."""

from __future__ import annotations

import asyncio
import math
import threading
from unittest.mock import MagicMock

import pytest

from codelens.config import EmbeddingCfg
from codelens.errors import ModelUnavailableError
from codelens.ingest.embedder import (
    FALLBACK_NAME,
    Embedder,
    EmbeddingStrategy,
    HashEmbeddingStrategy,
    SentenceTransformerStrategy,
    build_embedder,
    fit_dimensions,
    get_embedder,
    reset_embedder,
)


# ------------------------------------------------------------------
# Fakes
# ------------------------------------------------------------------


class _FakeModel:
    """Stands in for a SentenceTransformer: one fixed-width row per text."""

    def __init__(self, width: int = 768, fail: bool = False) -> None:
        self.width = width
        self.fail = fail
        self.calls = 0

    def encode(self, texts, **kwargs):
        self.calls += 1
        if self.fail:
            raise RuntimeError("CUDA out of memory")
        return [[1.0] + [0.0] * (self.width - 1) for _ in texts]


class _CountingLoader:
    def __init__(self, model=None, error: Exception | None = None) -> None:
        self.model = model or _FakeModel()
        self.error = error
        self.calls = 0
        self._lock = threading.Lock()

    def __call__(self, name: str):
        with self._lock:
            self.calls += 1
        if self.error is not None:
            raise self.error
        return self.model


class _FailingStrategy(EmbeddingStrategy):
    name = "broken"

    async def embed_batch(self, texts):
        raise ModelUnavailableError("boom")


# ------------------------------------------------------------------
# fit_dimensions
# ------------------------------------------------------------------

def test_fit_dimensions_pads_and_truncates():
    assert fit_dimensions([1.0, 2.0], 4) == [1.0, 2.0, 0.0, 0.0]
    assert fit_dimensions([1, 2, 3, 4, 5], 3) == [1.0, 2.0, 3.0]


# ------------------------------------------------------------------
# Hash fallback
# ------------------------------------------------------------------

def test_hash_embedding_is_deterministic():
    strategy = HashEmbeddingStrategy()
    a = strategy.embed_text("def handler(request): return 200")
    b = strategy.embed_text("def handler(request): return 200")
    assert a == b
    assert len(a) == 768


def test_hash_embedding_is_unit_length():
    vector = HashEmbeddingStrategy().embed_text("select * from users")
    assert math.isclose(math.sqrt(sum(v * v for v in vector)), 1.0, rel_tol=1e-9)


def test_hash_embedding_empty_text_is_zero_vector():
    assert HashEmbeddingStrategy(16).embed_text("") == [0.0] * 16


def test_hash_embedding_differs_per_text():
    strategy = HashEmbeddingStrategy()
    assert strategy.embed_text("login form") != strategy.embed_text("payment gateway")


def test_hash_embedding_long_text_stays_in_bounds():
    vector = HashEmbeddingStrategy(32).embed_text("x" * 1000 + " words here")
    assert len(vector) == 32


# ------------------------------------------------------------------
# SentenceTransformerStrategy
# ------------------------------------------------------------------

def test_concurrent_first_calls_load_once():
    loader = _CountingLoader()
    strategy = SentenceTransformerStrategy("fake-model", loader=loader)

    async def _run():
        return await asyncio.gather(*(strategy.load() for _ in range(8)))

    models = asyncio.run(_run())

    assert loader.calls == 1
    assert all(m is loader.model for m in models)
    assert strategy.loaded


def test_load_failure_is_remembered():
    loader = _CountingLoader(error=OSError("no network"))
    strategy = SentenceTransformerStrategy("fake-model", loader=loader)

    assert asyncio.run(strategy.is_available()) is False
    assert asyncio.run(strategy.is_available()) is False
    assert loader.calls == 1
    with pytest.raises(ModelUnavailableError):
        asyncio.run(strategy.load())


def test_embed_batch_uses_normalized_encode():
    model = MagicMock()
    model.encode.return_value = [[0.6, 0.8], [1.0, 0.0]]
    strategy = SentenceTransformerStrategy("fake-model", loader=lambda name: model)

    vectors = asyncio.run(strategy.embed_batch(["a", "b"]))

    assert vectors == [[0.6, 0.8], [1.0, 0.0]]
    kwargs = model.encode.call_args.kwargs
    assert kwargs["normalize_embeddings"] is True
    assert kwargs["show_progress_bar"] is False


def test_embed_batch_inference_error_is_typed():
    strategy = SentenceTransformerStrategy("fake-model", loader=lambda name: _FakeModel(fail=True))
    with pytest.raises(ModelUnavailableError, match="Inference failed"):
        asyncio.run(strategy.embed_batch(["a"]))


def test_embed_batch_count_mismatch_is_typed():
    model = MagicMock()
    model.encode.return_value = [[1.0]]
    strategy = SentenceTransformerStrategy("fake-model", loader=lambda name: model)
    with pytest.raises(ModelUnavailableError, match="returned 1 vectors for 2 texts"):
        asyncio.run(strategy.embed_batch(["a", "b"]))


def test_loaded_model_survives_new_event_loop():
    loader = _CountingLoader()
    strategy = SentenceTransformerStrategy("fake-model", loader=loader)
    asyncio.run(strategy.load())
    asyncio.run(strategy.load())
    assert loader.calls == 1


# ------------------------------------------------------------------
# Embedder
# ------------------------------------------------------------------

def test_embedder_uses_primary_when_available():
    primary = SentenceTransformerStrategy("fake-model", loader=_CountingLoader())
    embedder = Embedder(primary=primary)

    vectors, name = asyncio.run(embedder.embed_batch_with_strategy(["a", "b"]))

    assert name == "fake-model"
    assert len(vectors) == 2
    assert all(len(v) == 768 for v in vectors)


def test_embedder_falls_back_when_load_fails():
    primary = SentenceTransformerStrategy("fake-model", loader=_CountingLoader(error=OSError("gone")))
    embedder = Embedder(primary=primary)

    vectors, name = asyncio.run(embedder.embed_batch_with_strategy(["hello world"]))

    assert name == FALLBACK_NAME
    assert vectors[0] == HashEmbeddingStrategy().embed_text("hello world")


def test_embedder_inference_failure_degrades_whole_batch():
    embedder = Embedder(primary=_FailingStrategy())

    vectors, name = asyncio.run(embedder.embed_batch_with_strategy(["a", "b", "c"]))

    assert name == FALLBACK_NAME
    fallback = HashEmbeddingStrategy()
    assert vectors == [fallback.embed_text(t) for t in ("a", "b", "c")]


def test_embedder_without_primary_uses_fallback():
    embedder = Embedder(primary=None)
    assert asyncio.run(embedder.warmup()) == FALLBACK_NAME
    assert len(asyncio.run(embedder.embed("query"))) == 768


def test_embedder_pads_narrow_model_output():
    primary = SentenceTransformerStrategy(
        "small-model", loader=_CountingLoader(model=_FakeModel(width=384))
    )
    vector = asyncio.run(Embedder(primary=primary).embed("x"))
    assert len(vector) == 768
    assert vector[384:] == [0.0] * 384


def test_embedder_truncates_wide_model_output():
    primary = SentenceTransformerStrategy(
        "large-model", loader=_CountingLoader(model=_FakeModel(width=1024))
    )
    assert len(asyncio.run(Embedder(primary=primary).embed("x"))) == 768


def test_embedder_empty_batch():
    assert asyncio.run(Embedder().embed_batch([])) == []


# ------------------------------------------------------------------
# Process-wide instance
# ------------------------------------------------------------------

def test_build_embedder_fallback_only():
    embedder = build_embedder(EmbeddingCfg(fallback_only=True))
    assert embedder.primary is None


def test_get_embedder_is_shared():
    reset_embedder()
    try:
        first = get_embedder(EmbeddingCfg(fallback_only=True))
        assert get_embedder() is first
    finally:
        reset_embedder()
