"""Pipeline definition - loaders, stores and embedder subscriptions from YAML."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from seedbed.core.exception import ConfigError


class LoaderDef(BaseModel):
    """Definition of a loader and its schedule."""

    name: str
    kind: str
    mode: str = "once"
    interval_seconds: float | None = None
    debounce_seconds: float = 0.5
    poll_seconds: float = 1.0
    options: dict[str, Any] = Field(default_factory=dict)


class StoreDef(BaseModel):
    """Definition of a vector store."""

    name: str
    kind: str = "memory"
    dimension: int | None = None
    snapshot_path: str | None = None
    persist: bool = False
    options: dict[str, Any] = Field(default_factory=dict)


class EmbedderDef(BaseModel):
    """Subscription of an embedder to loaders and stores."""

    name: str
    loaders: list[str]
    stores: list[str]
    max_in_flight: int | None = Field(default=None, ge=1)


class PipelineConfig(BaseModel):
    """Complete pipeline definition."""

    loaders: list[LoaderDef] = Field(default_factory=list)
    stores: list[StoreDef] = Field(default_factory=list)
    embedders: list[EmbedderDef] = Field(default_factory=list)
    retrieval_stores: list[str] = Field(
        default_factory=list,
        description="Stores queried at retrieval time; empty means all stores",
    )

    def validate_references(self) -> "PipelineConfig":
        """Check names are unique and subscriptions point at declared components.

        Raises:
            ConfigError: On duplicates or dangling references.
        """
        loader_names = _unique_names("loader", [d.name for d in self.loaders])
        store_names = _unique_names("store", [d.name for d in self.stores])
        _unique_names("embedder", [d.name for d in self.embedders])

        for embedder in self.embedders:
            if not embedder.loaders:
                raise ConfigError(f"Embedder '{embedder.name}' subscribes to no loaders")
            if not embedder.stores:
                raise ConfigError(f"Embedder '{embedder.name}' writes to no stores")
            for loader in embedder.loaders:
                if loader not in loader_names:
                    raise ConfigError(
                        f"Embedder '{embedder.name}' references unknown loader '{loader}'"
                    )
            for store in embedder.stores:
                if store not in store_names:
                    raise ConfigError(
                        f"Embedder '{embedder.name}' references unknown store '{store}'"
                    )

        for store in self.retrieval_stores:
            if store not in store_names:
                raise ConfigError(f"Retrieval references unknown store '{store}'")

        return self

    @property
    def query_store_names(self) -> list[str]:
        """Stores attached to the retrieval coordinator."""
        return self.retrieval_stores or [d.name for d in self.stores]


def _unique_names(label: str, names: list[str]) -> set[str]:
    seen: set[str] = set()
    for name in names:
        if name in seen:
            raise ConfigError(f"Duplicate {label} name '{name}'")
        seen.add(name)
    return seen


def parse_pipeline_config(data: dict[str, Any] | None) -> PipelineConfig:
    """Validate a pipeline definition loaded from YAML or built in code."""
    try:
        config = PipelineConfig.model_validate(data or {})
    except ValidationError as e:
        raise ConfigError(f"Invalid pipeline config: {e}") from e
    return config.validate_references()


def load_pipeline_config(config_path: Path | str) -> PipelineConfig:
    """Load and validate a pipeline definition from a YAML file.

    Raises:
        ConfigError: If the file is missing, malformed or inconsistent.
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Pipeline config not found: {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    return parse_pipeline_config(data)
