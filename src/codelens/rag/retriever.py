"""Retriever: query → embedding → nearest chunks → bounded context text.

Context assembly:
  1. Embed the query with the shared Embedder.
  2. Fetch the top-k chunks of the project from the VectorIndex.
  3. Merge them per file (``--- File: <path> ---`` headers).
  4. Cut at ``context_budget`` characters and append TRUNCATION_MARKER.
     The cut never lands inside a file header, so paths reach the generator
     intact.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from codelens.db.models import RetrievalResult
from codelens.db.vectors import VectorIndex
from codelens.errors import EmptyQueryError
from codelens.ingest.chunker import merge_for_context
from codelens.ingest.embedder import Embedder

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "\n... [truncated]"
_HEADER_PREFIX = "--- File: "


@dataclass
class RetrieverConfig:
    """Configuration for the retriever.

    Attributes:
        top_k: Chunks fetched per query.
        context_budget: Maximum characters of merged context before the marker.
    """

    top_k: int = 5
    context_budget: int = 8_000


@dataclass
class RetrievedContext:
    """Merged context plus the hits it was built from."""

    text: str = ""
    results: list[RetrievalResult] = field(default_factory=list)
    truncated: bool = False

    @property
    def empty(self) -> bool:
        return not self.results


class Retriever:
    """Build LLM context for a query, scoped to one project.

    Args:
        index: VectorIndex to search.
        embedder: Embedder used for the query (same one used at ingest).
        config: Retrieval configuration.
    """

    def __init__(
        self,
        index: VectorIndex,
        embedder: Embedder,
        config: RetrieverConfig | None = None,
    ) -> None:
        self._index = index
        self._embedder = embedder
        self.config = config or RetrieverConfig()

    async def retrieve(
        self, query: str, project_id: str, k: int | None = None
    ) -> list[RetrievalResult]:
        """Return the *k* most similar chunks of *project_id*, best first.

        Raises:
            EmptyQueryError: If *query* is blank.
            ValueError: If *k* < 1.
            IndexStoreError: If the vector scan fails.
        """
        if not query or not query.strip():
            raise EmptyQueryError("Query must not be empty")
        vector = await self._embedder.embed(query)
        results = await self._index.query(
            vector, project_id, self.config.top_k if k is None else k
        )
        logger.info("Retrieved %d chunk(s) for project %s", len(results), project_id)
        return results

    async def build_context(
        self, query: str, project_id: str, k: int | None = None
    ) -> RetrievedContext:
        """Retrieve, merge and budget. An empty project yields an empty context."""
        results = await self.retrieve(query, project_id, k)
        if not results:
            return RetrievedContext()
        merged = merge_for_context(results)
        text = truncate_context(merged, self.config.context_budget)
        return RetrievedContext(text=text, results=results, truncated=text != merged)

    async def answer_context(self, query: str, project_id: str, k: int | None = None) -> str:
        """Context text for the generator, at most ``context_budget`` + marker long."""
        return (await self.build_context(query, project_id, k)).text


def truncate_context(context: str, budget: int) -> str:
    """Cut *context* to *budget* characters and append TRUNCATION_MARKER.

    If the cut would split a ``--- File: <path> ---`` header line, the whole
    header is dropped instead. Context within budget is returned unchanged.
    """
    if len(context) <= budget:
        return context

    cut = budget
    header = context.rfind(_HEADER_PREFIX, 0, cut + len(_HEADER_PREFIX))
    if header != -1 and header < cut:
        line_end = context.find("\n", header)
        if line_end == -1 or line_end > cut:
            cut = header

    logger.debug("Context truncated from %d to %d characters", len(context), cut)
    return context[:cut] + TRUNCATION_MARKER
