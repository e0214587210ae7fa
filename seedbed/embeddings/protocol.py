"""Embedding provider protocol definition."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Protocol for embedding providers."""

    async def embed(self, text: str) -> list[float]:
        """Embed a text into a vector of fixed dimensionality.

        Raises:
            ProviderError: On transport, auth or rate-limit failure.
        """
        ...

    @property
    def model_name(self) -> str:
        """Return the embedding model name being used."""
        ...

    @property
    def provider_name(self) -> str:
        """Return the provider name (ollama, openai, fake)."""
        ...
