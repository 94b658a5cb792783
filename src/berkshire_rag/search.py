"""Text search facade over an embedder and a record store."""
from dataclasses import replace
from typing import List, Optional
import logging

from .config import SearchConfig
from .embedders import BaseEmbedder
from .models import SearchFilter, SearchResult, StoreStats
from .store import VectorStore

logger = logging.getLogger(__name__)

NO_RESULTS_MESSAGE = "No relevant passages were found."


class DocumentSearch:
    """Answers free-text queries against the stored chunks."""

    def __init__(
        self,
        embedder: BaseEmbedder,
        store: VectorStore,
        config: Optional[SearchConfig] = None,
    ):
        """Initialize the search facade.

        Args:
            embedder: Embedder producing vectors of the store's dimension
            store: Initialized record store
            config: Search defaults

        Raises:
            ValueError: If embedder and store disagree on the embedding dimension
        """
        if embedder.dimension != store.dimension:
            raise ValueError(
                f"Embedder dimension {embedder.dimension} does not match "
                f"store dimension {store.dimension}"
            )
        self.embedder = embedder
        self.store = store
        self.config = config or SearchConfig()

    def _effective_filters(self, filters: Optional[SearchFilter]) -> SearchFilter:
        filters = filters or SearchFilter()
        if filters.min_similarity is None and self.config.min_similarity is not None:
            filters = replace(filters, min_similarity=self.config.min_similarity)
        return filters

    async def search_by_text(
        self,
        query: str,
        limit: Optional[int] = None,
        filters: Optional[SearchFilter] = None,
    ) -> List[SearchResult]:
        """Embed a query once and return the closest stored chunks.

        Args:
            query: Free-text query; embedded as is, never chunked
            limit: Maximum number of results (default from config)
            filters: Optional year / filename / min_similarity predicates

        Returns:
            List of SearchResult, most similar first

        Raises:
            ValueError: If limit is not positive
            EmbeddingFailed: If the query could not be embedded
            StoreUnavailable: If the search query fails
        """
        if limit is None:
            limit = self.config.default_limit
        if limit <= 0:
            raise ValueError(f"limit must be positive, got {limit}")
        filters = self._effective_filters(filters)

        query_embedding = await self.embedder.embed(query)
        results = await self.store.search(query_embedding, filters, limit)
        logger.info(f"Query '{query[:50]}' returned {len(results)} results")
        return results

    async def stats(self) -> StoreStats:
        """Record counts from the store."""
        return await self.store.stats()

    @staticmethod
    def format_context(results: List[SearchResult], max_total_chars: int = 4000) -> str:
        """Render ranked results as a numbered context block.

        Args:
            results: Output of :meth:`search_by_text`
            max_total_chars: Upper bound on the rendered length

        Returns:
            Formatted context string
        """
        if not results:
            return NO_RESULTS_MESSAGE

        parts: List[str] = []
        total_chars = 0

        for i, result in enumerate(results, 1):
            header = (
                f"[{i}] {result.filename} ({result.year}), chunk {result.chunk_index}\n"
                f"Similarity: {result.similarity:.2f} ({result.relevance})"
            )
            section = f"{header}\n\n{result.content}"

            if total_chars + len(section) > max_total_chars:
                # Fit a shortened excerpt into the remaining space.
                remaining = max_total_chars - total_chars - len(header) - 10
                if remaining > 100:
                    parts.append(f"{header}\n\n{result.content[:remaining]}...")
                break

            parts.append(section)
            total_chars += len(section)

        return "\n\n---\n\n".join(parts)
