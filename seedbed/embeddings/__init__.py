"""Embedding module - providers and the embedding stage."""

from seedbed.embeddings.protocol import EmbeddingProvider
from seedbed.embeddings.providers import (
    EmbeddingsFactoryError,
    LangChainEmbeddingProvider,
    create_embedding_provider,
)
from seedbed.embeddings.stage import EmbeddingStage, ItemFailure, StageStats

__all__ = [
    "EmbeddingProvider",
    "LangChainEmbeddingProvider",
    "create_embedding_provider",
    "EmbeddingsFactoryError",
    "EmbeddingStage",
    "ItemFailure",
    "StageStats",
]
