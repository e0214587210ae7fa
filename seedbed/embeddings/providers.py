"""Embedding providers backed by LangChain embeddings."""

from dataclasses import dataclass
from typing import Literal

from langchain_core.embeddings import DeterministicFakeEmbedding, Embeddings

from seedbed.config import Settings
from seedbed.core.exception import ProviderError

EmbeddingsType = Literal["ollama", "openai", "fake"]


class EmbeddingsFactoryError(Exception):
    """Raised when embeddings cannot be created."""


@dataclass
class LangChainEmbeddingProvider:
    """Adapts a LangChain ``Embeddings`` model to the provider protocol.

    Any failure raised by the underlying client is surfaced as a
    ``ProviderError`` so the embedding stage can retry it.
    """

    embeddings: Embeddings
    provider: str
    model: str

    async def embed(self, text: str) -> list[float]:
        try:
            vector = await self.embeddings.aembed_query(text)
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError(
                f"{self.provider} embedding failed: {e}",
                provider=self.provider,
                status_code=getattr(e, "status_code", None),
            ) from e

        if not vector:
            raise ProviderError(
                f"{self.provider} returned an empty embedding", provider=self.provider
            )
        return [float(v) for v in vector]

    @property
    def model_name(self) -> str:
        return self.model

    @property
    def provider_name(self) -> str:
        return self.provider


def create_embedding_provider(settings: Settings) -> LangChainEmbeddingProvider:
    """Create an embedding provider based on settings.

    Args:
        settings: Application settings.

    Returns:
        Configured embedding provider.

    Raises:
        EmbeddingsFactoryError: If the provider is unknown or misconfigured.
    """
    match settings.embedding_provider:
        case "ollama":
            from langchain_ollama import OllamaEmbeddings

            return LangChainEmbeddingProvider(
                embeddings=OllamaEmbeddings(
                    base_url=settings.ollama_base_url,
                    model=settings.ollama_embedding_model,
                ),
                provider="ollama",
                model=settings.ollama_embedding_model,
            )

        case "openai":
            if not settings.openai_api_key:
                raise EmbeddingsFactoryError(
                    "OPENAI_API_KEY required for OpenAI embeddings"
                )
            from langchain_openai import OpenAIEmbeddings

            return LangChainEmbeddingProvider(
                embeddings=OpenAIEmbeddings(
                    api_key=settings.openai_api_key,
                    model=settings.openai_embedding_model,
                ),
                provider="openai",
                model=settings.openai_embedding_model,
            )

        case "fake":
            # Hash-seeded vectors: identical text always maps to the same vector.
            return LangChainEmbeddingProvider(
                embeddings=DeterministicFakeEmbedding(
                    size=settings.fake_embedding_dimension
                ),
                provider="fake",
                model=f"deterministic-{settings.fake_embedding_dimension}",
            )

        case _:
            raise EmbeddingsFactoryError(
                f"Unknown provider for embeddings: {settings.embedding_provider}"
            )
