"""Vector store module."""

from seedbed.stores.factory import create_vector_store
from seedbed.stores.memory import InMemoryVectorStore
from seedbed.stores.pinecone import PineconeVectorStore
from seedbed.stores.protocol import VectorStore

__all__ = [
    # Protocol
    "VectorStore",
    # Implementations
    "InMemoryVectorStore",
    "PineconeVectorStore",
    # Factory
    "create_vector_store",
]
