"""Embedding stage - keeps vector stores in sync with loader change events."""

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from seedbed.core.exception import ConfigError, SeedbedError
from seedbed.core.retry import RetryPolicy, call_with_retry
from seedbed.core.types import (
    ChangeBatch,
    ContentItem,
    EmbeddingRecord,
    Removed,
)
from seedbed.embeddings.protocol import EmbeddingProvider
from seedbed.loaders.runtime import DEFAULT_QUEUE_SIZE, LoaderRuntime
from seedbed.stores.protocol import VectorStore

logger = logging.getLogger(__name__)

ErrorSink = Callable[[Exception], None]


class ItemFailure(SeedbedError):
    """One item could not be embedded, stored or removed.

    Reported to the error sink; the item is not retried until a later
    tick supplies a fresh event for it.
    """

    def __init__(
        self,
        operation: str,
        item_id: str,
        cause: Exception,
        loader: str | None = None,
        store: str | None = None,
    ):
        self.operation = operation
        self.item_id = item_id
        self.cause = cause
        self.loader = loader
        self.store = store
        where = f" in store '{store}'" if store else ""
        super().__init__(f"Failed to {operation} '{item_id}'{where}: {cause}")


@dataclass
class StageStats:
    """Counters for one embedding stage."""

    embedded: int = 0
    skipped: int = 0
    removed: int = 0
    failed: int = 0
    batches: int = 0


class EmbeddingStage:
    """Consumes change batches and maintains embedding records in its stores.

    The stage:
    1. Applies every removal of a batch before any addition or update
    2. Skips items whose fingerprint is already stored
    3. Embeds the rest concurrently, bounded by ``max_in_flight``
    4. Upserts each record into every attached store

    Batches from one loader are applied strictly in order; batches from
    different loaders interleave.

    Example:
        stage = EmbeddingStage("docs", provider, [store], max_in_flight=4)
        stage.attach(runtime)
        stage.start()
        runtime.start()
    """

    def __init__(
        self,
        name: str,
        provider: EmbeddingProvider,
        stores: Sequence[VectorStore],
        max_in_flight: int = 4,
        retry: RetryPolicy | None = None,
        timeout: float | None = 30.0,
        store_retry: RetryPolicy | None = None,
        error_sink: ErrorSink | None = None,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ):
        if not stores:
            raise ConfigError(f"Embedding stage '{name}' requires at least one store")
        if max_in_flight < 1:
            raise ConfigError(f"max_in_flight must be at least 1, got {max_in_flight}")

        self.name = name
        self.provider = provider
        self.stores = list(stores)
        self.max_in_flight = max_in_flight
        self.retry = retry or RetryPolicy()
        self.store_retry = store_retry or self.retry
        self.timeout = timeout
        self.error_sink = error_sink or self._log_error
        self.queue_size = queue_size
        self.stats = StageStats()

        self._semaphore = asyncio.Semaphore(max_in_flight)
        self._inflight: dict[str, asyncio.Task[list[float]]] = {}
        self._sources: list[tuple[str, asyncio.Queue[ChangeBatch | None]]] = []
        self._consumers: list[asyncio.Task] = []

    @property
    def loader_names(self) -> list[str]:
        return [name for name, _ in self._sources]

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._consumers)

    def attach(self, runtime: LoaderRuntime) -> None:
        """Subscribe to a loader. Must be called before the loader starts."""
        queue = runtime.subscribe(self.queue_size)
        self._sources.append((runtime.name, queue))

    def start(self) -> None:
        """Spawn one consumer task per attached loader."""
        if self._consumers:
            raise RuntimeError(f"Embedding stage '{self.name}' already started")
        for loader, queue in self._sources:
            task = asyncio.create_task(
                self._consume(loader, queue), name=f"embedder:{self.name}:{loader}"
            )
            self._consumers.append(task)
        logger.info(
            "Started embedding stage '%s' (%s/%s) for loaders %s",
            self.name,
            self.provider.provider_name,
            self.provider.model_name,
            self.loader_names,
        )

    async def drain(self) -> None:
        """Wait until every batch delivered so far has been applied."""
        await asyncio.gather(*(queue.join() for _, queue in self._sources))

    async def join(self) -> None:
        """Wait for consumers to finish (after their loaders finished)."""
        await asyncio.gather(*self._consumers)

    async def stop(self) -> None:
        """Cancel consumers and shared embed calls without waiting for queued batches."""
        tasks = [*self._consumers, *self._inflight.values()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _consume(self, loader: str, queue: asyncio.Queue[ChangeBatch | None]) -> None:
        while True:
            batch = await queue.get()
            try:
                if batch is None:
                    logger.debug("Embedding stage '%s': loader '%s' finished", self.name, loader)
                    return
                await self.process_batch(batch)
            finally:
                queue.task_done()

    async def process_batch(self, batch: ChangeBatch) -> None:
        """Apply one loader batch: removals first, then embeddings."""
        removals = [event for event in batch.events if isinstance(event, Removed)]
        changes = [event for event in batch.events if not isinstance(event, Removed)]

        await asyncio.gather(*(self._remove(batch.loader, event.id) for event in removals))
        await asyncio.gather(*(self._ingest(batch.loader, event.item) for event in changes))

        self.stats.batches += 1
        logger.debug(
            "Embedding stage '%s' applied batch %d from '%s' (%d removals, %d changes)",
            self.name,
            batch.tick,
            batch.loader,
            len(removals),
            len(changes),
        )

    async def _remove(self, loader: str, item_id: str) -> None:
        failed = False
        for store in self.stores:
            try:
                await call_with_retry(
                    lambda store=store: store.delete(item_id),
                    self.store_retry,
                    description=f"delete '{item_id}' from '{store.name}'",
                )
            except Exception as e:
                failed = True
                self._fail("remove", item_id, e, loader, store.name)
        if not failed:
            self.stats.removed += 1

    async def _ingest(self, loader: str, item: ContentItem) -> None:
        stale: list[VectorStore] = []
        vector: tuple[float, ...] | None = None

        for store in self.stores:
            try:
                existing = await store.get_by_id(item.id)
            except Exception as e:
                logger.debug("Lookup of '%s' in '%s' failed: %s", item.id, store.name, e)
                existing = None
            if existing is not None and existing.fingerprint == item.fingerprint:
                vector = existing.vector
            else:
                stale.append(store)

        if not stale:
            self.stats.skipped += 1
            logger.debug("Skipping unchanged item '%s'", item.id)
            return

        if vector is None:
            try:
                vector = tuple(await self._embed_shared(item))
            except Exception as e:
                self._fail("embed", item.id, e, loader)
                return
            self.stats.embedded += 1

        record = EmbeddingRecord.from_item(item, vector)
        for store in stale:
            try:
                await call_with_retry(
                    lambda store=store: store.upsert(record),
                    self.store_retry,
                    description=f"upsert '{item.id}' into '{store.name}'",
                )
            except Exception as e:
                self._fail("upsert", item.id, e, loader, store.name)

    async def _embed_shared(self, item: ContentItem) -> list[float]:
        """Embed an item, sharing one provider call among identical payloads."""
        task = self._inflight.get(item.fingerprint)
        if task is None:
            task = asyncio.create_task(self._embed(item.payload, item.id))
            self._inflight[item.fingerprint] = task
            task.add_done_callback(lambda _: self._inflight.pop(item.fingerprint, None))
        return await asyncio.shield(task)

    async def _embed(self, text: str, item_id: str) -> list[float]:
        async with self._semaphore:
            return await call_with_retry(
                lambda: self.provider.embed(text),
                self.retry,
                timeout=self.timeout,
                description=f"embed '{item_id}'",
            )

    def _fail(
        self,
        operation: str,
        item_id: str,
        error: Exception,
        loader: str | None,
        store: str | None = None,
    ) -> None:
        self.stats.failed += 1
        self.error_sink(ItemFailure(operation, item_id, error, loader=loader, store=store))

    def _log_error(self, error: Exception) -> None:
        logger.warning("Embedding stage '%s': %s", self.name, error)

    def __repr__(self) -> str:
        stores = [store.name for store in self.stores]
        return (
            f"EmbeddingStage(name={self.name!r}, loaders={self.loader_names}, "
            f"stores={stores}, stats={self.stats})"
        )
