"""In-memory vector store with per-id locking."""

import asyncio
import heapq
import itertools
import json
import logging
import math
import os
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

from seedbed.core.exception import DimensionMismatchError
from seedbed.core.types import EmbeddingRecord, Scalar, ScoredRecord

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


def normalize(vector: tuple[float, ...]) -> tuple[float, ...]:
    """L2-normalise a vector. A zero vector is returned unchanged."""
    norm = math.sqrt(sum(v * v for v in vector))
    if norm == 0.0:
        return vector
    return tuple(v / norm for v in vector)


def matches_filter(
    record: EmbeddingRecord, metadata_filter: Mapping[str, Scalar] | None
) -> bool:
    """Equality match of every filter key against record metadata.

    ``source_tag`` may be filtered on directly.
    """
    if not metadata_filter:
        return True
    for key, expected in metadata_filter.items():
        if key in record.metadata:
            actual = record.metadata[key]
        elif key == "source_tag":
            actual = record.source_tag
        else:
            return False
        if actual != expected:
            return False
    return True


@dataclass(frozen=True)
class _Entry:
    record: EmbeddingRecord
    unit: tuple[float, ...]
    sequence: int


class InMemoryVectorStore:
    """Process-lifetime vector index held in a dict.

    Writes to the same id are serialised by a per-id lock while unrelated
    ids proceed concurrently. Each upsert swaps a complete entry into the
    map in one step, so readers never observe a partially replaced record.
    Query ties are broken by insertion recency.

    Example:
        store = InMemoryVectorStore(name="docs")
        await store.upsert(record)
        hits = await store.query([0.1, 0.9], k=3)
    """

    def __init__(
        self,
        name: str = "memory",
        dimension: int | None = None,
        snapshot_path: str | Path | None = None,
    ):
        self._name = name
        self._dimension = dimension
        self.snapshot_path = Path(snapshot_path) if snapshot_path else None
        self._entries: dict[str, _Entry] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._dimension_lock = asyncio.Lock()
        self._sequence = itertools.count(1)

    @property
    def name(self) -> str:
        return self._name

    @property
    def dimension(self) -> int | None:
        return self._dimension

    @asynccontextmanager
    async def _locked(self, record_id: str) -> AsyncIterator[None]:
        """Hold the lock for one id, discarding it once nobody waits on it."""
        lock = self._locks.get(record_id)
        if lock is None:
            lock = self._locks[record_id] = asyncio.Lock()
        self._lock_users[record_id] = self._lock_users.get(record_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[record_id] -= 1
            if self._lock_users[record_id] == 0:
                del self._lock_users[record_id]
                del self._locks[record_id]

    async def _establish_dimension(self, size: int) -> None:
        if self._dimension is None:
            async with self._dimension_lock:
                if self._dimension is None:
                    self._dimension = size
                    logger.debug("Store '%s' established dimension %d", self._name, size)
                    return
        if size != self._dimension:
            raise DimensionMismatchError(self._dimension, size, store=self._name)

    async def upsert(self, record: EmbeddingRecord) -> None:
        if record.dimension == 0:
            raise ValueError(f"Record '{record.id}' has an empty vector")
        await self._establish_dimension(record.dimension)

        unit = normalize(record.vector)
        async with self._locked(record.id):
            replaced = record.id in self._entries
            self._entries[record.id] = _Entry(record, unit, next(self._sequence))

        logger.debug(
            "%s record '%s' in store '%s'",
            "Updated" if replaced else "Inserted",
            record.id,
            self._name,
        )

    async def delete(self, record_id: str) -> None:
        async with self._locked(record_id):
            removed = self._entries.pop(record_id, None)
        if removed is not None:
            logger.debug("Removed record '%s' from store '%s'", record_id, self._name)

    async def get_by_id(self, record_id: str) -> EmbeddingRecord | None:
        entry = self._entries.get(record_id)
        return entry.record if entry else None

    async def query(
        self,
        vector: list[float] | tuple[float, ...],
        k: int,
        metadata_filter: Mapping[str, Scalar] | None = None,
    ) -> list[ScoredRecord]:
        if self._dimension is not None and len(vector) != self._dimension:
            raise DimensionMismatchError(self._dimension, len(vector), store=self._name)
        if k <= 0 or not self._entries:
            return []

        query_unit = normalize(tuple(float(v) for v in vector))
        entries = list(self._entries.values())

        scored = (
            (sum(q * v for q, v in zip(query_unit, entry.unit)), entry.sequence, entry.record)
            for entry in entries
            if matches_filter(entry.record, metadata_filter)
        )
        top = heapq.nlargest(k, scored, key=lambda hit: (hit[0], hit[1]))
        return [ScoredRecord(record, score) for score, _, record in top]

    async def count(self) -> int:
        return len(self._entries)

    def records(self) -> list[EmbeddingRecord]:
        """All records in insertion-recency order, oldest first."""
        entries = sorted(self._entries.values(), key=lambda e: e.sequence)
        return [entry.record for entry in entries]

    def save(self, path: str | Path | None = None) -> Path:
        """Write a JSON snapshot of the store.

        Args:
            path: Target file, defaults to ``snapshot_path``.

        Returns:
            The path written.
        """
        target = Path(path) if path else self.snapshot_path
        if target is None:
            raise ValueError(f"Store '{self._name}' has no snapshot path")

        data = {
            "version": SNAPSHOT_VERSION,
            "name": self._name,
            "dimension": self._dimension,
            "records": [record.to_dict() for record in self.records()],
        }
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_suffix(target.suffix + ".tmp")
        tmp.write_text(json.dumps(data), encoding="utf-8")
        os.replace(tmp, target)

        logger.info("Saved %d records from store '%s' to %s", len(data["records"]), self._name, target)
        return target

    def load(self, path: str | Path | None = None) -> int:
        """Replace the store contents with a JSON snapshot.

        Missing snapshot files are ignored.

        Returns:
            Number of records loaded.
        """
        source = Path(path) if path else self.snapshot_path
        if source is None or not source.exists():
            return 0

        data = json.loads(source.read_text(encoding="utf-8"))
        records = [EmbeddingRecord.from_dict(r) for r in data.get("records", [])]
        dimension = data.get("dimension")

        for record in records:
            if dimension is None:
                dimension = record.dimension
            if record.dimension != dimension:
                raise DimensionMismatchError(dimension, record.dimension, store=self._name)

        self._entries = {
            record.id: _Entry(record, normalize(record.vector), next(self._sequence))
            for record in records
        }
        self._dimension = dimension
        logger.info("Loaded %d records into store '%s' from %s", len(records), self._name, source)
        return len(records)

    def __repr__(self) -> str:
        return (
            f"InMemoryVectorStore(name={self._name!r}, dimension={self._dimension}, "
            f"records={len(self._entries)})"
        )
