"""Vector store factory."""

from seedbed.config import Settings
from seedbed.core.exception import ConfigError
from seedbed.pipeline_config import StoreDef
from seedbed.stores.memory import InMemoryVectorStore
from seedbed.stores.pinecone import PineconeVectorStore
from seedbed.stores.protocol import VectorStore


def create_vector_store(definition: StoreDef, settings: Settings) -> VectorStore:
    """Create a vector store from its pipeline definition.

    Args:
        definition: Store definition from the pipeline config.
        settings: Application settings (credentials, timeouts).

    Returns:
        Configured vector store.

    Raises:
        ConfigError: For unknown kinds or missing required options.
    """
    match definition.kind:
        case "memory":
            if definition.persist and not definition.snapshot_path:
                raise ConfigError(
                    f"Store '{definition.name}' sets persist without snapshot_path"
                )
            return InMemoryVectorStore(
                name=definition.name,
                dimension=definition.dimension,
                snapshot_path=definition.snapshot_path,
            )

        case "pinecone":
            options = definition.options
            index_host = options.get("index_host")
            if not index_host:
                raise ConfigError(
                    f"Store '{definition.name}' requires options.index_host"
                )
            api_key = options.get("api_key") or settings.pinecone_api_key
            if not api_key:
                raise ConfigError(
                    "PINECONE_API_KEY is required for Pinecone vector stores"
                )
            return PineconeVectorStore(
                name=definition.name,
                index_host=index_host,
                api_key=api_key,
                namespace=options.get("namespace", ""),
                dimension=definition.dimension,
                timeout=float(options.get("timeout", settings.store_timeout)),
                source_tag=options.get("source_tag"),
            )

        case _:
            raise ConfigError(
                f"Unknown vector store kind '{definition.kind}' for '{definition.name}'"
            )
