"""Shared test fixtures."""

import asyncio
import hashlib

import pytest

from seedbed.config import Settings
from seedbed.core import ContentItem, EmbeddingRecord, ProviderError
from seedbed.loaders import LoaderRuntime, OnceSchedule, StaticProducer
from seedbed.stores import InMemoryVectorStore


# Settings Fixtures

@pytest.fixture
def test_settings() -> Settings:
    """Test settings using deterministic embeddings and fast retries."""
    return Settings(
        env="development",
        debug=True,
        embedding_provider="fake",
        fake_embedding_dimension=8,
        embedding_timeout=5.0,
        embedding_max_retries=2,
        embedding_retry_base_delay=0.0,
        embedding_retry_max_delay=0.0,
    )


# Provider Fixtures

def hashed_vector(text: str, dimension: int = 8) -> list[float]:
    """Deterministic non-zero vector derived from the text."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return [(digest[i] + 1) / 256.0 for i in range(dimension)]


class FakeEmbeddingProvider:
    """Embedding provider that records its calls.

    Vectors come from ``vectors`` when the text is listed there, otherwise
    from a hash of the text. Texts in ``fail_texts`` raise ``ProviderError``.
    """

    def __init__(
        self,
        vectors: dict[str, list[float]] | None = None,
        dimension: int = 8,
        delay: float = 0.0,
        fail_texts: set[str] | None = None,
    ):
        self.vectors = vectors or {}
        self.dimension = dimension
        self.delay = delay
        self.fail_texts = fail_texts or set()
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if text in self.fail_texts:
                raise ProviderError(f"cannot embed {text!r}", provider="fake")
            if text in self.vectors:
                return list(self.vectors[text])
            return hashed_vector(text, self.dimension)
        finally:
            self.in_flight -= 1

    @property
    def model_name(self) -> str:
        return "fake-model"

    @property
    def provider_name(self) -> str:
        return "fake"


@pytest.fixture
def fake_provider() -> FakeEmbeddingProvider:
    """Fresh recording embedding provider."""
    return FakeEmbeddingProvider()


# Loader Fixtures

@pytest.fixture
def static_producer() -> StaticProducer:
    """Static producer with three documents."""
    return StaticProducer.from_texts(
        {
            "alpha": "Alpha document about revenue",
            "beta": "Beta document about costs",
            "gamma": "Gamma document about headcount",
        }
    )


@pytest.fixture
def once_runtime(static_producer: StaticProducer) -> LoaderRuntime:
    """Runtime that runs the static producer once."""
    return LoaderRuntime("static", static_producer, OnceSchedule())


# Store Fixtures

@pytest.fixture
def memory_store() -> InMemoryVectorStore:
    """Empty in-memory vector store."""
    return InMemoryVectorStore(name="memory")


def make_record(
    record_id: str,
    vector: list[float],
    payload: str = "",
    source_tag: str = "test",
    metadata: dict | None = None,
) -> EmbeddingRecord:
    """Build a record whose fingerprint tracks its payload."""
    item = ContentItem.from_payload(record_id, payload or record_id, source_tag, metadata)
    return EmbeddingRecord.from_item(item, vector)


@pytest.fixture
def make_provider():
    """Factory for configured recording providers."""
    return FakeEmbeddingProvider


@pytest.fixture
def record_factory():
    """Factory for embedding records."""
    return make_record
