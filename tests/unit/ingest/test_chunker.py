"""Tests for LineChunker and merge_for_context."""

from __future__ import annotations

import pytest

from codelens.db.models import Chunk, RetrievalResult
from codelens.ingest.chunker import (
    LineChunker,
    chunk_id,
    count_tokens,
    merge_for_context,
)


def _lines(n: int, width: int = 40) -> list[str]:
    """*n* distinct lines of exactly *width* characters (width / 4 tokens each)."""
    return [f"line_{i:04d} = {i}".ljust(width, "#") for i in range(1, n + 1)]


# ------------------------------------------------------------------
# Token estimate
# ------------------------------------------------------------------

@pytest.mark.parametrize("text,expected", [("", 0), ("abc", 1), ("abcd", 1), ("abcde", 2)])
def test_count_tokens_rounds_up(text, expected):
    assert count_tokens(text) == expected


def test_chunk_id_format():
    assert chunk_id("src/app.py", 3) == "src/app.py-chunk-3"


# ------------------------------------------------------------------
# Defaults + validation
# ------------------------------------------------------------------

def test_default_settings():
    chunker = LineChunker()
    assert chunker.max_tokens == 400
    assert chunker.min_tokens == 200
    assert chunker.overlap_tokens == 50
    assert chunker.overlap_lines == 4


@pytest.mark.parametrize("kwargs", [
    {"max_tokens": 0},
    {"min_tokens": 500},
    {"overlap_tokens": 400},
    {"avg_line_chars": 0},
])
def test_invalid_settings_rejected(kwargs):
    with pytest.raises(ValueError):
        LineChunker(**kwargs)


# ------------------------------------------------------------------
# Splitting
# ------------------------------------------------------------------

def test_empty_content_yields_no_chunks():
    assert LineChunker().split("", "empty.py") == []


def test_small_file_single_chunk():
    content = "\n".join(f"x{i} = {i}" for i in range(1, 11))
    chunks = LineChunker().split(content, "src/small.py", "python")

    assert len(chunks) == 1
    chunk = chunks[0]
    assert isinstance(chunk, Chunk)
    assert (chunk.start_line, chunk.end_line) == (1, 10)
    assert chunk.content == content
    assert chunk.id == "src/small.py-chunk-0"
    assert chunk.file_path == "src/small.py"


def test_three_chunks_with_shared_overlap():
    lines = _lines(100)  # 10 tokens per line → 40 lines per full chunk
    chunks = LineChunker().split("\n".join(lines), "big.py")

    assert len(chunks) == 3
    assert [(c.start_line, c.end_line) for c in chunks] == [(1, 40), (37, 76), (73, 100)]

    first, second, third = (c.content.split("\n") for c in chunks)
    assert second[:4] == first[-4:]
    assert third[:4] == second[-4:]


def test_chunks_respect_max_tokens():
    chunks = LineChunker().split("\n".join(_lines(250, width=57)), "f.py")
    assert len(chunks) > 1
    for chunk in chunks:
        assert sum(count_tokens(line) for line in chunk.content.split("\n")) <= 400


def test_chunk_indices_and_ids_sequential():
    chunks = LineChunker().split("\n".join(_lines(200)), "pkg/mod.py")
    assert [c.chunk_index for c in chunks] == list(range(len(chunks)))
    assert [c.id for c in chunks] == [f"pkg/mod.py-chunk-{i}" for i in range(len(chunks))]


def test_every_line_is_covered_in_order():
    lines = _lines(150)
    chunks = LineChunker().split("\n".join(lines), "f.py")
    covered = set()
    for chunk in chunks:
        assert chunk.content.split("\n") == lines[chunk.start_line - 1 : chunk.end_line]
        covered.update(range(chunk.start_line, chunk.end_line + 1))
    assert covered == set(range(1, 151))


def test_oversized_line_is_kept_whole():
    long_line = "y" * 2_400  # 600 tokens, above max
    content = "\n".join(["a = 1", long_line, "b = 2"])
    chunks = LineChunker().split(content, "long.py")

    assert [c.content for c in chunks] == ["a = 1", long_line, "b = 2"]
    assert chunks[1].token_count == 600


def test_trailing_newline_after_oversized_line_adds_no_chunk():
    chunks = LineChunker().split("x" * 2_000 + "\n", "bundle.min.js")

    assert len(chunks) == 1
    assert chunks[0].content == "x" * 2_000


def test_blank_only_file_still_yields_a_chunk():
    assert len(LineChunker().split("\n\n", "empty.py")) == 1


def test_split_is_deterministic():
    content = "\n".join(_lines(120))
    a = LineChunker().split(content, "f.py")
    b = LineChunker().split(content, "f.py")
    assert [(c.id, c.content) for c in a] == [(c.id, c.content) for c in b]


def test_zero_overlap():
    chunks = LineChunker(overlap_tokens=0).split("\n".join(_lines(80)), "f.py")
    assert [(c.start_line, c.end_line) for c in chunks] == [(1, 40), (41, 80)]


# ------------------------------------------------------------------
# merge_for_context
# ------------------------------------------------------------------

def test_merge_groups_by_file_in_first_seen_order():
    merged = merge_for_context([
        ("alpha()", "src/a.py"),
        ("beta()", "src/b.py"),
        ("gamma()", "src/a.py"),
    ])
    assert merged == (
        "\n\n--- File: src/a.py ---\n\nalpha()\n...\ngamma()"
        "\n\n--- File: src/b.py ---\n\nbeta()"
    )


def test_merge_accepts_retrieval_results():
    merged = merge_for_context([RetrievalResult(content="x = 1", file_path="m.py", score=0.9)])
    assert "--- File: m.py ---" in merged
    assert merged.endswith("x = 1")


def test_merge_empty():
    assert merge_for_context([]) == ""
