"""Vector store protocol definition."""

from collections.abc import Mapping
from typing import Protocol, runtime_checkable

from seedbed.core.types import EmbeddingRecord, Scalar, ScoredRecord


@runtime_checkable
class VectorStore(Protocol):
    """Protocol for vector stores.

    Stores hold at most one record per id and share one dimensionality
    across all records. Implementations may be local (in-memory) or thin
    clients over a hosted index.
    """

    @property
    def name(self) -> str:
        """Store name as declared in the pipeline config."""
        ...

    @property
    def dimension(self) -> int | None:
        """Established vector dimensionality, None until the first upsert."""
        ...

    async def upsert(self, record: EmbeddingRecord) -> None:
        """Insert or atomically replace the record with the same id.

        Raises:
            DimensionMismatchError: If the vector length differs from the
                store's dimensionality.
        """
        ...

    async def delete(self, record_id: str) -> None:
        """Remove a record. Missing ids are a no-op."""
        ...

    async def get_by_id(self, record_id: str) -> EmbeddingRecord | None:
        """Fetch a record by id, or None if absent."""
        ...

    async def query(
        self,
        vector: list[float] | tuple[float, ...],
        k: int,
        metadata_filter: Mapping[str, Scalar] | None = None,
    ) -> list[ScoredRecord]:
        """Return up to k records ordered by descending cosine similarity.

        Raises:
            DimensionMismatchError: If the query vector's length differs
                from the store's dimensionality.
        """
        ...

    async def count(self) -> int:
        """Number of records in the store."""
        ...
