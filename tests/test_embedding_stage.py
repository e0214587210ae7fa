"""Tests for the embedding stage."""

import asyncio

import pytest

from seedbed.core import (
    Added,
    ChangeBatch,
    ConfigError,
    ContentItem,
    ProviderError,
    Removed,
    RetryPolicy,
    Updated,
)
from seedbed.embeddings import EmbeddingStage, ItemFailure
from seedbed.loaders import IntervalSchedule, LoaderRuntime, OnceSchedule, StaticProducer
from seedbed.stores import InMemoryVectorStore

FAST_RETRY = RetryPolicy(max_attempts=2, base_delay=0.0, jitter=False)


def item(item_id: str, text: str) -> ContentItem:
    return ContentItem.from_payload(item_id, text, "test")


def make_stage(provider, stores, errors=None, **kwargs) -> EmbeddingStage:
    return EmbeddingStage(
        "stage",
        provider,
        stores,
        retry=FAST_RETRY,
        timeout=2.0,
        error_sink=errors.append if errors is not None else None,
        **kwargs,
    )


class TestStageConfig:
    def test_requires_store(self, fake_provider):
        with pytest.raises(ConfigError):
            EmbeddingStage("stage", fake_provider, [])

    def test_requires_positive_in_flight(self, fake_provider, memory_store):
        with pytest.raises(ConfigError):
            EmbeddingStage("stage", fake_provider, [memory_store], max_in_flight=0)


class TestProcessBatch:
    @pytest.mark.asyncio
    async def test_added_items_are_embedded_and_stored(self, fake_provider, memory_store):
        stage = make_stage(fake_provider, [memory_store])
        batch = ChangeBatch("docs", (Added(item("a", "one")), Added(item("b", "two"))))

        await stage.process_batch(batch)

        record = await memory_store.get_by_id("a")
        assert record.payload == "one"
        assert record.fingerprint == item("a", "one").fingerprint
        assert await memory_store.count() == 2
        assert stage.stats.embedded == 2
        assert stage.stats.batches == 1

    @pytest.mark.asyncio
    async def test_unchanged_fingerprint_is_skipped(self, fake_provider, memory_store):
        stage = make_stage(fake_provider, [memory_store])
        await stage.process_batch(ChangeBatch("docs", (Added(item("a", "one")),)))

        await stage.process_batch(ChangeBatch("docs", (Updated(item("a", "one")),)))

        assert fake_provider.calls == ["one"]
        assert stage.stats.skipped == 1

    @pytest.mark.asyncio
    async def test_update_replaces_record(self, fake_provider, memory_store):
        stage = make_stage(fake_provider, [memory_store])
        await stage.process_batch(ChangeBatch("docs", (Added(item("a", "one")),)))
        await stage.process_batch(ChangeBatch("docs", (Updated(item("a", "uno")),)))

        record = await memory_store.get_by_id("a")
        assert record.payload == "uno"
        assert await memory_store.count() == 1

    @pytest.mark.asyncio
    async def test_removed_items_are_deleted(self, fake_provider, memory_store):
        stage = make_stage(fake_provider, [memory_store])
        await stage.process_batch(ChangeBatch("docs", (Added(item("a", "one")),)))

        await stage.process_batch(ChangeBatch("docs", (Removed("a"), Removed("never-stored"))))

        assert await memory_store.count() == 0
        assert stage.stats.removed == 2
        assert stage.stats.failed == 0

    @pytest.mark.asyncio
    async def test_removals_applied_before_additions(self, fake_provider):
        order = []

        class RecordingStore(InMemoryVectorStore):
            async def delete(self, record_id):
                await asyncio.sleep(0.01)
                order.append(("delete", record_id))
                await super().delete(record_id)

            async def upsert(self, record):
                order.append(("upsert", record.id))
                await super().upsert(record)

        store = RecordingStore(name="recording")
        stage = make_stage(fake_provider, [store])
        batch = ChangeBatch(
            "docs",
            (Removed("old-1"), Removed("old-2"), Added(item("new", "fresh"))),
        )

        await stage.process_batch(batch)

        kinds = [kind for kind, _ in order]
        assert kinds == ["delete", "delete", "upsert"]

    @pytest.mark.asyncio
    async def test_failure_is_isolated_per_item(self, make_provider, memory_store):
        provider = make_provider(fail_texts={"broken"})
        errors = []
        stage = make_stage(provider, [memory_store], errors)
        batch = ChangeBatch(
            "docs",
            (Added(item("a", "fine")), Added(item("b", "broken")), Added(item("c", "also fine"))),
        )

        await stage.process_batch(batch)

        assert await memory_store.count() == 2
        assert await memory_store.get_by_id("b") is None
        assert stage.stats.failed == 1
        assert len(errors) == 1
        failure = errors[0]
        assert isinstance(failure, ItemFailure)
        assert failure.item_id == "b"
        assert failure.operation == "embed"
        assert failure.loader == "docs"
        assert isinstance(failure.cause, ProviderError)
        # Retried up to the policy's attempt count.
        assert provider.calls.count("broken") == 2

    @pytest.mark.asyncio
    async def test_dimension_mismatch_reported_not_raised(self, make_provider):
        provider = make_provider(dimension=3)
        store = InMemoryVectorStore(name="fixed", dimension=8)
        errors = []
        stage = make_stage(provider, [store], errors)

        await stage.process_batch(ChangeBatch("docs", (Added(item("a", "one")),)))

        assert await store.count() == 0
        assert errors[0].operation == "upsert"
        assert errors[0].store == "fixed"

    @pytest.mark.asyncio
    async def test_writes_to_every_store(self, fake_provider):
        first = InMemoryVectorStore(name="first")
        second = InMemoryVectorStore(name="second")
        stage = make_stage(fake_provider, [first, second])

        await stage.process_batch(ChangeBatch("docs", (Added(item("a", "one")),)))

        assert await first.get_by_id("a") == await second.get_by_id("a")
        assert fake_provider.calls == ["one"]

    @pytest.mark.asyncio
    async def test_fills_only_stale_store_without_reembedding(self, fake_provider):
        first = InMemoryVectorStore(name="first")
        second = InMemoryVectorStore(name="second")
        await make_stage(fake_provider, [first]).process_batch(
            ChangeBatch("docs", (Added(item("a", "one")),))
        )

        stage = make_stage(fake_provider, [first, second])
        await stage.process_batch(ChangeBatch("docs", (Added(item("a", "one")),)))

        assert await second.get_by_id("a") == await first.get_by_id("a")
        assert fake_provider.calls == ["one"]

    @pytest.mark.asyncio
    async def test_max_in_flight_bounds_provider_calls(self, make_provider, memory_store):
        provider = make_provider(delay=0.02)
        stage = make_stage(provider, [memory_store], max_in_flight=2)
        batch = ChangeBatch("docs", tuple(Added(item(f"i{n}", f"text {n}")) for n in range(8)))

        await stage.process_batch(batch)

        assert provider.max_in_flight == 2
        assert await memory_store.count() == 8

    @pytest.mark.asyncio
    async def test_identical_payloads_share_one_call(self, make_provider, memory_store):
        provider = make_provider(delay=0.02)
        stage = make_stage(provider, [memory_store])
        batch = ChangeBatch(
            "docs", (Added(item("a", "same text")), Added(item("b", "same text")))
        )

        await stage.process_batch(batch)

        assert provider.calls == ["same text"]
        assert await memory_store.count() == 2


class TestStageWithRuntime:
    @pytest.mark.asyncio
    async def test_consumes_until_loader_finishes(self, fake_provider, memory_store, once_runtime):
        stage = make_stage(fake_provider, [memory_store])
        stage.attach(once_runtime)
        stage.start()
        once_runtime.start()

        await asyncio.wait_for(stage.join(), timeout=2.0)

        assert await memory_store.count() == 3
        assert not stage.running

    @pytest.mark.asyncio
    async def test_reingesting_unchanged_content_is_idempotent(self, fake_provider, memory_store):
        producer = StaticProducer.from_texts({"a": "one", "b": "two"})

        for _ in range(2):
            runtime = LoaderRuntime("docs", producer, OnceSchedule())
            stage = make_stage(fake_provider, [memory_store])
            stage.attach(runtime)
            stage.start()
            runtime.start()
            await asyncio.wait_for(stage.join(), timeout=2.0)

        assert sorted(fake_provider.calls) == ["one", "two"]
        assert stage.stats.skipped == 2
        assert await memory_store.count() == 2

    @pytest.mark.asyncio
    async def test_store_tracks_changing_source(self, fake_provider, memory_store):
        producer = StaticProducer.from_texts({"a": "one", "b": "two"})
        runtime = LoaderRuntime("docs", producer, IntervalSchedule(0.01))
        stage = make_stage(fake_provider, [memory_store])
        stage.attach(runtime)
        stage.start()
        task = runtime.start()

        async def wait_for_ids(expected):
            for _ in range(200):
                records = {r.id: r.payload for r in memory_store.records()}
                if records == expected:
                    return
                await asyncio.sleep(0.01)
            raise AssertionError(f"store never reached {expected}, has {records}")

        await wait_for_ids({"a": "one", "b": "two"})
        producer.set_texts({"b": "deux", "c": "trois"})
        await wait_for_ids({"b": "deux", "c": "trois"})

        await task.stop()
        await asyncio.wait_for(stage.join(), timeout=2.0)

    @pytest.mark.asyncio
    async def test_two_loaders_feed_one_stage(self, fake_provider, memory_store):
        first = LoaderRuntime("first", StaticProducer.from_texts({"a": "one"}), OnceSchedule())
        second = LoaderRuntime("second", StaticProducer.from_texts({"b": "two"}), OnceSchedule())
        stage = make_stage(fake_provider, [memory_store])
        stage.attach(first)
        stage.attach(second)
        stage.start()
        first.start()
        second.start()

        await asyncio.wait_for(stage.join(), timeout=2.0)

        assert stage.loader_names == ["first", "second"]
        assert await memory_store.count() == 2

    @pytest.mark.asyncio
    async def test_start_twice_rejected(self, fake_provider, memory_store, once_runtime):
        stage = make_stage(fake_provider, [memory_store])
        stage.attach(once_runtime)
        stage.start()
        with pytest.raises(RuntimeError):
            stage.start()
        await stage.stop()

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_embeddings(self, make_provider, memory_store):
        provider = make_provider(delay=5.0)
        runtime = LoaderRuntime("docs", StaticProducer.from_texts({"a": "one"}), OnceSchedule())
        stage = make_stage(provider, [memory_store])
        stage.attach(runtime)
        stage.start()
        runtime.start()

        for _ in range(200):
            if provider.in_flight:
                break
            await asyncio.sleep(0.01)
        assert provider.in_flight == 1

        await asyncio.wait_for(stage.stop(), timeout=2.0)

        assert provider.in_flight == 0
        assert await memory_store.count() == 0
