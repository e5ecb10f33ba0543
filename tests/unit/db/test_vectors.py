"""Tests for the project-scoped VectorIndex."""

from __future__ import annotations

import asyncio
import math

import pytest

from codelens.db.models import Chunk, SourceFile
from codelens.db.repository import Repository
from codelens.db.vectors import VectorIndex, parse_vector, serialize_vector
from codelens.errors import IndexStoreError

_DIMS = 4


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)


@pytest.fixture
def index(repo):
    return VectorIndex(repo, dimensions=_DIMS)


def _store_chunk(repo: Repository, project_id: str, path: str, index: int = 0, text: str = "") -> str:
    file_id = f"{project_id}:{path}"
    if repo.get_file(file_id) is None:
        repo.add_file(
            SourceFile(
                id=file_id,
                project_id=project_id,
                name=path,
                path=path,
                language="python",
                size=0,
                content="",
            )
        )
    chunk = Chunk(
        id=f"{path}-chunk-{index}",
        chunk_index=index,
        content=text or f"{path} #{index}",
        start_line=1,
        end_line=1,
        token_count=1,
        file_id=file_id,
        project_id=project_id,
    )
    repo.add_chunk(chunk)
    return chunk.id


# --- serialization ---

def test_serialize_vector_is_bracketed_list():
    text = serialize_vector([0.5, -1, 2.25])
    assert text == "[0.5, -1.0, 2.25]"
    assert parse_vector(text) == [0.5, -1.0, 2.25]


def test_parse_vector_rejects_non_list():
    with pytest.raises(ValueError):
        parse_vector('{"a": 1}')


# --- upsert ---

def test_upsert_twice_keeps_one_row(repo, index):
    cid = _store_chunk(repo, "p1", "a.py")
    asyncio.run(index.upsert(cid, "p1", [1.0, 0.0, 0.0, 0.0]))
    asyncio.run(index.upsert(cid, "p1", [0.0, 1.0, 0.0, 0.0]))

    assert repo.count_embeddings("p1") == 1
    results = asyncio.run(index.query([0.0, 1.0, 0.0, 0.0], "p1", 5))
    assert math.isclose(results[0].score, 1.0, abs_tol=1e-6)


def test_upsert_wrong_dimensions(repo, index):
    cid = _store_chunk(repo, "p1", "a.py")
    with pytest.raises(ValueError, match="dimensions"):
        asyncio.run(index.upsert(cid, "p1", [1.0, 0.0]))


def test_upsert_unknown_chunk(index):
    with pytest.raises(IndexStoreError, match="unknown chunk"):
        asyncio.run(index.upsert("missing-chunk-0", "p1", [1.0, 0.0, 0.0, 0.0]))


def test_upsert_storage_failure_is_wrapped(repo, index, tmp_db):
    cid = _store_chunk(repo, "p1", "a.py")
    tmp_db.execute("DROP TABLE chunk_embeddings")
    with pytest.raises(IndexStoreError, match="upsert failed"):
        asyncio.run(index.upsert(cid, "p1", [1.0, 0.0, 0.0, 0.0]))


# --- query ---

def test_query_empty_project_returns_empty(index):
    assert asyncio.run(index.query([1.0, 0.0, 0.0, 0.0], "nothing-here", 5)) == []


def test_query_is_project_scoped(repo, index):
    a = _store_chunk(repo, "p1", "a.py", text="project one")
    b = _store_chunk(repo, "p2", "a.py", text="project two")
    asyncio.run(index.upsert(a, "p1", [1.0, 0.0, 0.0, 0.0]))
    asyncio.run(index.upsert(b, "p2", [1.0, 0.0, 0.0, 0.0]))

    results = asyncio.run(index.query([1.0, 0.0, 0.0, 0.0], "p1", 10))

    assert [r.content for r in results] == ["project one"]


def test_query_limits_and_orders(repo, index):
    vectors = {
        0: [1.0, 0.0, 0.0, 0.0],
        1: [0.9, 0.1, 0.0, 0.0],
        2: [0.0, 1.0, 0.0, 0.0],
        3: [-1.0, 0.0, 0.0, 0.0],
    }
    for i, vec in vectors.items():
        cid = _store_chunk(repo, "p1", "a.py", index=i, text=f"c{i}")
        asyncio.run(index.upsert(cid, "p1", vec))

    results = asyncio.run(index.query([1.0, 0.0, 0.0, 0.0], "p1", 3))

    assert [r.content for r in results] == ["c0", "c1", "c2"]
    scores = [r.score for r in results]
    assert scores == sorted(scores, reverse=True)
    assert all(r.file_path == "a.py" for r in results)


def test_query_rejects_bad_k(index):
    with pytest.raises(ValueError, match="k must be"):
        asyncio.run(index.query([1.0, 0.0, 0.0, 0.0], "p1", 0))


def test_query_storage_failure_is_wrapped(index, tmp_db):
    tmp_db.execute("DROP TABLE chunk_embeddings")
    with pytest.raises(IndexStoreError):
        asyncio.run(index.query([1.0, 0.0, 0.0, 0.0], "p1", 5))


def test_query_ranks_zero_vector_as_orthogonal(repo, index):
    blank = _store_chunk(repo, "p1", "bundle.min.js", text="blank")
    real = _store_chunk(repo, "p1", "a.py", text="login")
    asyncio.run(index.upsert(blank, "p1", [0.0, 0.0, 0.0, 0.0]))
    asyncio.run(index.upsert(real, "p1", [1.0, 0.0, 0.0, 0.0]))

    results = asyncio.run(index.query([1.0, 0.0, 0.0, 0.0], "p1", 5))

    assert [r.content for r in results] == ["login", "blank"]
    assert math.isclose(results[1].score, 0.0, abs_tol=1e-6)
    assert all(-1.0 <= r.score <= 1.0 for r in results)
