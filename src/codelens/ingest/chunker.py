"""Line-based source chunker with trailing overlap, plus context merging.

Token counting uses a 4-chars-per-token approximation; no external
tokenizer dependency is required.

Splitting rules:
  - lines are never split; the size check runs before a line is added
  - a chunk closes when the next line would push it past ``max_tokens``
  - the next chunk is seeded with the last lines of the closed one
    (``ceil(overlap_tokens * 4 / avg_line_chars)`` lines, an approximation)
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from typing import Any

from codelens.db.models import Chunk

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4
FILE_HEADER = "--- File: {path} ---"
CHUNK_SEPARATOR = "\n...\n"


def count_tokens(text: str) -> int:
    """Approximate token count: ``ceil(len(text) / 4)``."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def chunk_id(file_path: str, index: int) -> str:
    """Stable chunk identifier derived from the file path and sequence index."""
    return f"{file_path}-chunk-{index}"


class LineChunker:
    """Split file text into overlapping, bounded windows of whole lines.

    Files under ``min_tokens`` always come out as a single chunk; the bound is
    kept so callers can reason about it, the line walk guarantees it.

    Args:
        max_tokens: Upper bound checked before each line is added.
        min_tokens: Lower bound below which a file is never split.
        overlap_tokens: Target size of the overlap between consecutive chunks.
        avg_line_chars: Assumed average line length used to turn
            ``overlap_tokens`` into a line count.
    """

    def __init__(
        self,
        max_tokens: int = 400,
        min_tokens: int = 200,
        overlap_tokens: int = 50,
        avg_line_chars: int = 50,
    ) -> None:
        if max_tokens < 1:
            raise ValueError("max_tokens must be >= 1")
        if not 0 <= min_tokens <= max_tokens:
            raise ValueError("min_tokens must be in [0, max_tokens]")
        if not 0 <= overlap_tokens < max_tokens:
            raise ValueError("overlap_tokens must be in [0, max_tokens)")
        if avg_line_chars < 1:
            raise ValueError("avg_line_chars must be >= 1")
        self.max_tokens = max_tokens
        self.min_tokens = min_tokens
        self.overlap_tokens = overlap_tokens
        self.avg_line_chars = avg_line_chars

    @property
    def overlap_lines(self) -> int:
        return math.ceil(self.overlap_tokens * CHARS_PER_TOKEN / self.avg_line_chars)

    def split(self, content: str, file_path: str, language: str | None = None) -> list[Chunk]:
        """Split *content* into Chunk objects in source line order.

        Args:
            content: Full decoded text of the file.
            file_path: Stored path; used to derive chunk ids.
            language: Detected language tag (informational).

        Returns:
            Ordered list of Chunks with sequential ``chunk_index`` and 1-based
            inclusive line ranges. Empty content yields ``[]``.
        """
        if not content:
            return []

        lines = content.split("\n")
        chunks: list[Chunk] = []
        buffer: list[str] = []
        tokens = 0
        fresh = 0  # lines in buffer that are not overlap from the previous chunk
        start_line = 1

        for line_no, line in enumerate(lines, start=1):
            line_tokens = count_tokens(line)

            if fresh and tokens + line_tokens > self.max_tokens:
                chunks.append(self._make_chunk(file_path, len(chunks), buffer, start_line))
                buffer = self._overlap(buffer)
                start_line = line_no - len(buffer)
                tokens = sum(count_tokens(b) for b in buffer)
                fresh = 0

            # Overlap alone must leave room for the incoming line.
            while not fresh and buffer and tokens + line_tokens > self.max_tokens:
                tokens -= count_tokens(buffer.pop(0))
                start_line += 1

            buffer.append(line)
            tokens += line_tokens
            fresh += 1

        # A trailing run of blank lines (e.g. the final newline after an
        # oversized line) is not worth a chunk of its own.
        if buffer and (not chunks or any(b.strip() for b in buffer[-fresh:])):
            chunks.append(self._make_chunk(file_path, len(chunks), buffer, start_line))

        logger.debug(
            "Split %s (%s) into %d chunk(s)", file_path, language or "plaintext", len(chunks)
        )
        return chunks

    def _overlap(self, buffer: list[str]) -> list[str]:
        """Trailing lines of *buffer* to seed the next chunk (never all of it)."""
        n = min(self.overlap_lines, len(buffer) - 1)
        return buffer[-n:] if n > 0 else []

    @staticmethod
    def _make_chunk(file_path: str, index: int, lines: list[str], start_line: int) -> Chunk:
        text = "\n".join(lines)
        return Chunk(
            id=chunk_id(file_path, index),
            chunk_index=index,
            content=text,
            start_line=start_line,
            end_line=start_line + len(lines) - 1,
            token_count=count_tokens(text),
            file_path=file_path,
        )


def merge_for_context(items: Iterable[Any]) -> str:
    """Concatenate retrieved chunks into one text blob grouped by file.

    Each item is either a ``(content, file_path)`` pair or an object with
    ``content`` and ``file_path`` attributes (Chunk, RetrievalResult). Groups
    keep first-seen order; chunks of the same file are joined with an
    explicit ``...`` line so the reader knows they are separate excerpts.
    """
    groups: dict[str, list[str]] = {}
    for item in items:
        if isinstance(item, tuple):
            content, file_path = item
        else:
            content, file_path = item.content, item.file_path
        groups.setdefault(file_path, []).append(content)

    merged = ""
    for file_path, contents in groups.items():
        merged += "\n\n" + FILE_HEADER.format(path=file_path) + "\n\n"
        merged += CHUNK_SEPARATOR.join(contents)
    return merged
