"""Pipeline - wires loaders, embedding stages, stores and retrieval together."""

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from seedbed.config import Settings
from seedbed.core.exception import ConfigError
from seedbed.core.retry import RetryPolicy
from seedbed.core.types import RetrievedContent, Scalar
from seedbed.embeddings.protocol import EmbeddingProvider
from seedbed.embeddings.stage import EmbeddingStage
from seedbed.loaders.factory import create_loader_runtime
from seedbed.loaders.runtime import LoaderRuntime, LoaderTask
from seedbed.loaders.schedule import OnceSchedule
from seedbed.loaders.watch import ManualSignal
from seedbed.pipeline_config import PipelineConfig
from seedbed.retrieval.coordinator import RetrievalCoordinator
from seedbed.stores.factory import create_vector_store
from seedbed.stores.memory import InMemoryVectorStore
from seedbed.stores.protocol import VectorStore

logger = logging.getLogger(__name__)


def retry_policy_from_settings(settings: Settings) -> RetryPolicy:
    """Build the provider/store retry policy from settings."""
    return RetryPolicy(
        max_attempts=settings.embedding_max_retries,
        base_delay=settings.embedding_retry_base_delay,
        max_delay=settings.embedding_retry_max_delay,
    )


class Pipeline:
    """A running ingestion-to-retrieval pipeline.

    Built from a ``PipelineConfig``: one runtime per loader, one store per
    store definition, one embedding stage per embedder subscription and a
    retrieval coordinator over the retrieval stores. All stages share the
    embedding provider used for queries, so stored vectors and query
    vectors come from the same model.

    Example:
        pipeline = Pipeline(config, settings, provider)
        await pipeline.start()
        await pipeline.wait_idle()
        results = await pipeline.retrieve("quarterly revenue", k=3)
        await pipeline.stop()
    """

    def __init__(
        self,
        config: PipelineConfig,
        settings: Settings,
        provider: EmbeddingProvider,
    ):
        config.validate_references()

        self.config = config
        self.settings = settings
        self.provider = provider
        self.errors: list[Exception] = []
        self.retry = retry_policy_from_settings(settings)

        self.stores: dict[str, VectorStore] = {
            definition.name: create_vector_store(definition, settings)
            for definition in config.stores
        }
        self.loaders: dict[str, LoaderRuntime] = {
            definition.name: create_loader_runtime(definition, error_sink=self._record_error)
            for definition in config.loaders
        }
        self.stages: dict[str, EmbeddingStage] = {}
        for definition in config.embedders:
            stage = EmbeddingStage(
                name=definition.name,
                provider=provider,
                stores=[self.stores[name] for name in definition.stores],
                max_in_flight=definition.max_in_flight or settings.embedding_max_in_flight,
                retry=self.retry,
                timeout=settings.embedding_timeout,
                error_sink=self._record_error,
                queue_size=settings.loader_queue_size,
            )
            for loader in definition.loaders:
                stage.attach(self.loaders[loader])
            self.stages[definition.name] = stage

        self.coordinator = RetrievalCoordinator(
            provider=provider,
            stores=[self.stores[name] for name in config.query_store_names],
            timeout=settings.embedding_timeout,
            retry=self.retry,
        )
        self._tasks: dict[str, LoaderTask] = {}
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    def _record_error(self, error: Exception) -> None:
        self.errors.append(error)
        logger.warning("Pipeline error: %s", error)

    def _persistent_stores(self) -> list[InMemoryVectorStore]:
        persistent = {d.name for d in self.config.stores if d.persist}
        return [
            store
            for name, store in self.stores.items()
            if name in persistent and isinstance(store, InMemoryVectorStore)
        ]

    async def start(self) -> None:
        """Load persisted stores, then start stages and loaders.

        Raises:
            ConfigError: If a loader cannot start (e.g. no files to load once).
        """
        if self._started:
            raise RuntimeError("Pipeline already started")

        for store in self._persistent_stores():
            store.load()

        for stage in self.stages.values():
            stage.start()

        try:
            for name, runtime in self.loaders.items():
                self._tasks[name] = runtime.start()
        except ConfigError:
            await self._abort()
            raise

        self._started = True
        logger.info(
            "Pipeline started: %d loaders, %d stages, %d stores",
            len(self.loaders),
            len(self.stages),
            len(self.stores),
        )

    async def _abort(self) -> None:
        for task in self._tasks.values():
            task.cancel()
        await asyncio.gather(*(task.wait() for task in self._tasks.values()))
        for stage in self.stages.values():
            await stage.stop()

    async def wait_idle(self) -> None:
        """Wait until initial content is loaded and every delivered batch is applied.

        Every loader's first tick must finish; once-mode loaders must end.
        """
        await asyncio.gather(*(self.loaders[name].wait_first_tick() for name in self._tasks))
        once = [
            task
            for name, task in self._tasks.items()
            if isinstance(self.loaders[name].schedule, OnceSchedule)
        ]
        await asyncio.gather(*(task.wait() for task in once))
        await asyncio.gather(*(stage.drain() for stage in self.stages.values()))

    async def run_until_complete(self) -> None:
        """Run until every loader finished on its own (all once-mode)."""
        await asyncio.gather(*(task.wait() for task in self._tasks.values()))
        await asyncio.gather(*(stage.join() for stage in self.stages.values()))

    def refresh(self, loader: str) -> None:
        """Trigger a manual reload of an on-signal loader.

        Raises:
            KeyError: If the loader does not exist.
            ConfigError: If the loader is not manually triggered.
        """
        signal = self.loaders[loader].signal
        if not isinstance(signal, ManualSignal):
            raise ConfigError(f"Loader '{loader}' is not manually triggered")
        signal.notify()

    async def retrieve(
        self,
        query_text: str,
        k: int | None = None,
        metadata_filter: Mapping[str, Scalar] | None = None,
    ) -> list[RetrievedContent]:
        """Retrieve the most similar stored content for a query."""
        return await self.coordinator.retrieve(
            query_text,
            k=self.settings.retrieval_default_k if k is None else k,
            metadata_filter=metadata_filter,
        )

    async def stop(self) -> None:
        """Cancel loaders, let stages finish queued batches, then persist and close stores."""
        if not self._started:
            return

        logger.info("Stopping pipeline...")
        for task in self._tasks.values():
            task.cancel()
        await asyncio.gather(*(task.wait() for task in self._tasks.values()))
        await asyncio.gather(*(stage.join() for stage in self.stages.values()))

        for store in self._persistent_stores():
            store.save()

        for store in self.stores.values():
            close = getattr(store, "close", None)
            if close is not None:
                try:
                    await close()
                except Exception as e:
                    logger.warning("Error closing store '%s': %s", store.name, e)

        self._started = False
        logger.info("Pipeline stopped")

    async def status(self) -> dict[str, Any]:
        """Snapshot of loader, stage and store state."""
        counts = await asyncio.gather(*(store.count() for store in self.stores.values()))
        return {
            "running": self._started,
            "loaders": [
                {
                    "name": name,
                    "producer": runtime.producer.name,
                    "schedule": type(runtime.schedule).__name__,
                    "ticks": runtime.ticks,
                    "failures": runtime.failures,
                    "items": len(runtime.snapshot),
                    "done": name in self._tasks and self._tasks[name].done,
                }
                for name, runtime in self.loaders.items()
            ],
            "stages": [
                {
                    "name": name,
                    "loaders": stage.loader_names,
                    "stores": [store.name for store in stage.stores],
                    "embedded": stage.stats.embedded,
                    "skipped": stage.stats.skipped,
                    "removed": stage.stats.removed,
                    "failed": stage.stats.failed,
                    "batches": stage.stats.batches,
                }
                for name, stage in self.stages.items()
            ],
            "stores": [
                {"name": name, "dimension": store.dimension, "count": count}
                for (name, store), count in zip(self.stores.items(), counts)
            ],
            "errors": len(self.errors),
        }

    def __repr__(self) -> str:
        return (
            f"Pipeline(loaders={list(self.loaders)}, stages={list(self.stages)}, "
            f"stores={list(self.stores)}, running={self._started})"
        )
