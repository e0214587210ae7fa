"""FastAPI dependency injection."""

from functools import lru_cache

from seedbed.config import get_settings
from seedbed.embeddings import EmbeddingProvider, create_embedding_provider
from seedbed.pipeline import Pipeline
from seedbed.pipeline_config import PipelineConfig, load_pipeline_config


@lru_cache
def get_embedding_provider() -> EmbeddingProvider:
    """Get cached embedding provider instance."""
    settings = get_settings()
    return create_embedding_provider(settings)


@lru_cache
def get_pipeline_config() -> PipelineConfig:
    """Get cached pipeline definition from the configured YAML file."""
    settings = get_settings()
    return load_pipeline_config(settings.pipeline_config_path)


@lru_cache
def get_pipeline() -> Pipeline:
    """Get cached pipeline instance."""
    return Pipeline(get_pipeline_config(), get_settings(), get_embedding_provider())
