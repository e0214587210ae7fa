"""Retrieval coordinator for ranking stored content against a query."""

import asyncio
import heapq
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from seedbed.core.exception import ProviderError
from seedbed.core.retry import RetryPolicy, call_with_retry
from seedbed.core.types import RetrievedContent, Scalar, ScoredRecord
from seedbed.embeddings.protocol import EmbeddingProvider
from seedbed.stores.protocol import VectorStore

logger = logging.getLogger(__name__)


def merge_ranked(result_lists: list[list[ScoredRecord]], k: int) -> list[ScoredRecord]:
    """Merge per-store result lists by descending score and keep the top k.

    The merge is stable: among equal scores, earlier stores come first and
    each store's own order is preserved.
    """
    merged = heapq.merge(*result_lists, key=lambda hit: -hit.score)
    return [hit for _, hit in zip(range(k), merged)]


@dataclass
class RetrievalCoordinator:
    """Turns a free-text query into ranked content for prompt augmentation.

    Coordinates:
    - Embedding the query once with the ingestion provider
    - Querying every attached store with the same k
    - Merging results into a global top-k

    Example:
        coordinator = RetrievalCoordinator(provider, [store])
        results = await coordinator.retrieve("budget variance analysis", k=3)
        context = coordinator.format_context(results)
    """

    provider: EmbeddingProvider
    stores: list[VectorStore]
    timeout: float | None = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    async def embed_query(self, query_text: str) -> list[float]:
        """Embed the query text with timeout and retry."""
        return await call_with_retry(
            lambda: self.provider.embed(query_text),
            self.retry,
            timeout=self.timeout,
            description="embed query",
        )

    async def retrieve(
        self,
        query_text: str,
        k: int = 4,
        metadata_filter: Mapping[str, Scalar] | None = None,
    ) -> list[RetrievedContent]:
        """Get the k most similar stored items for a query.

        Args:
            query_text: The user's query.
            k: Number of results to return.
            metadata_filter: Optional equality filter on record metadata.

        Returns:
            Results ordered by descending score; empty when nothing is stored.

        Raises:
            ProviderError: If the query cannot be embedded.
            DimensionMismatchError: If the query vector does not fit a store.
        """
        if k <= 0 or not self.stores:
            return []

        vector = await self.embed_query(query_text)
        hits = await self.query_vector(vector, k, metadata_filter)
        return [RetrievedContent.from_scored(hit) for hit in hits]

    async def query_vector(
        self,
        vector: list[float],
        k: int,
        metadata_filter: Mapping[str, Scalar] | None = None,
    ) -> list[ScoredRecord]:
        """Query every store with a ready vector and merge the results."""
        results = await asyncio.gather(
            *(store.query(vector, k, metadata_filter) for store in self.stores),
            return_exceptions=True,
        )

        result_lists: list[list[ScoredRecord]] = []
        for store, result in zip(self.stores, results):
            if isinstance(result, ProviderError):
                logger.warning("Store '%s' unavailable for retrieval: %s", store.name, result)
                continue
            if isinstance(result, BaseException):
                raise result
            result_lists.append(result)

        return merge_ranked(result_lists, k)

    def format_context(self, results: list[RetrievedContent]) -> str:
        """Format results into a context string.

        Args:
            results: Retrieved content to format.

        Returns:
            Formatted context string.
        """
        if not results:
            return ""

        sections = []
        for result in results:
            source = result.metadata.get("filename") or result.metadata.get("title") or result.id
            sections.append(f"### From {source}\n{result.payload}")

        return "\n\n".join(sections)

    async def get_context(
        self,
        query_text: str,
        k: int = 4,
        metadata_filter: Mapping[str, Scalar] | None = None,
    ) -> str:
        """Get formatted context for a query."""
        results = await self.retrieve(query_text, k=k, metadata_filter=metadata_filter)
        return self.format_context(results)

    async def document_count(self) -> int:
        """Total records across attached stores."""
        counts = await asyncio.gather(*(store.count() for store in self.stores))
        return sum(counts)
