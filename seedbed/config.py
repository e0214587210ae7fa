"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    env: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    app_name: str = "Seedbed"
    app_version: str = "0.1.0"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Embedding provider
    embedding_provider: Literal["ollama", "openai", "fake"] = "ollama"

    # Ollama
    ollama_base_url: str = "http://localhost:11434"
    ollama_embedding_model: str = "nomic-embed-text"

    # OpenAI
    openai_api_key: str | None = None
    openai_embedding_model: str = "text-embedding-3-small"

    # Deterministic embeddings for development
    fake_embedding_dimension: int = Field(default=256, ge=1)

    # Embedding stage
    embedding_timeout: float = Field(default=30.0, gt=0)
    embedding_max_in_flight: int = Field(default=4, ge=1)
    embedding_max_retries: int = Field(default=3, ge=1)
    embedding_retry_base_delay: float = Field(default=0.5, ge=0)
    embedding_retry_max_delay: float = Field(default=10.0, ge=0)

    # Vector stores
    store_timeout: float = Field(default=30.0, gt=0)
    pinecone_api_key: str | None = None

    # Pipeline
    pipeline_config_path: str = "config/pipeline.yaml"
    loader_queue_size: int = Field(default=64, ge=1)

    # Retrieval
    retrieval_default_k: int = Field(default=4, ge=1)

    @property
    def is_development(self) -> bool:
        return self.env == "development"

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @model_validator(mode="after")
    def validate_provider_config(self) -> Self:
        """Validate that required API keys are present for the selected provider."""
        if self.embedding_provider == "openai" and not self.openai_api_key:
            raise ValueError(
                "OPENAI_API_KEY is required when EMBEDDING_PROVIDER=openai"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
