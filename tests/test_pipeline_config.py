"""Tests for pipeline definitions and the store factory."""

from pathlib import Path

import pytest

from seedbed.core import ConfigError
from seedbed.pipeline_config import (
    PipelineConfig,
    StoreDef,
    load_pipeline_config,
    parse_pipeline_config,
)
from seedbed.stores import InMemoryVectorStore, PineconeVectorStore, create_vector_store

VALID = {
    "loaders": [
        {"name": "docs", "kind": "static", "options": {"documents": {"a": "one"}}},
    ],
    "stores": [{"name": "local"}],
    "embedders": [{"name": "default", "loaders": ["docs"], "stores": ["local"]}],
}


class TestParsePipelineConfig:
    def test_valid_config(self):
        config = parse_pipeline_config(VALID)

        assert isinstance(config, PipelineConfig)
        assert config.loaders[0].mode == "once"
        assert config.loaders[0].debounce_seconds == 0.5
        assert config.stores[0].kind == "memory"
        assert config.query_store_names == ["local"]

    def test_empty_config(self):
        config = parse_pipeline_config(None)
        assert config.loaders == []
        assert config.query_store_names == []

    def test_unknown_loader_reference(self):
        data = dict(VALID, embedders=[{"name": "e", "loaders": ["nope"], "stores": ["local"]}])
        with pytest.raises(ConfigError, match="unknown loader 'nope'"):
            parse_pipeline_config(data)

    def test_unknown_store_reference(self):
        data = dict(VALID, embedders=[{"name": "e", "loaders": ["docs"], "stores": ["nope"]}])
        with pytest.raises(ConfigError, match="unknown store 'nope'"):
            parse_pipeline_config(data)

    def test_unknown_retrieval_store(self):
        with pytest.raises(ConfigError):
            parse_pipeline_config(dict(VALID, retrieval_stores=["nope"]))

    def test_duplicate_names(self):
        data = dict(VALID, stores=[{"name": "local"}, {"name": "local"}])
        with pytest.raises(ConfigError, match="Duplicate store name"):
            parse_pipeline_config(data)

    def test_embedder_without_loaders(self):
        data = dict(VALID, embedders=[{"name": "e", "loaders": [], "stores": ["local"]}])
        with pytest.raises(ConfigError):
            parse_pipeline_config(data)

    def test_invalid_shape(self):
        with pytest.raises(ConfigError, match="Invalid pipeline config"):
            parse_pipeline_config({"loaders": [{"kind": "files"}]})

    def test_explicit_retrieval_stores(self):
        data = dict(
            VALID,
            stores=[{"name": "local"}, {"name": "archive"}],
            retrieval_stores=["archive"],
        )
        assert parse_pipeline_config(data).query_store_names == ["archive"]


class TestLoadPipelineConfig:
    def test_load_yaml(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text(
            """
loaders:
  - name: docs
    kind: files
    mode: on_signal
    options:
      patterns: ["docs/**/*.md"]
stores:
  - name: local
embedders:
  - name: default
    loaders: [docs]
    stores: [local]
"""
        )

        config = load_pipeline_config(path)

        assert config.loaders[0].options["patterns"] == ["docs/**/*.md"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_pipeline_config(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("loaders: [unclosed")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_pipeline_config(path)

    def test_bundled_example_config(self):
        config = load_pipeline_config(Path(__file__).parent.parent / "config" / "pipeline.yaml")
        assert {loader.name for loader in config.loaders} == {"knowledge", "glossary"}


class TestStoreFactory:
    def test_memory_store(self, test_settings):
        store = create_vector_store(StoreDef(name="local", dimension=8), test_settings)
        assert isinstance(store, InMemoryVectorStore)
        assert store.dimension == 8

    def test_persist_requires_path(self, test_settings):
        with pytest.raises(ConfigError):
            create_vector_store(StoreDef(name="local", persist=True), test_settings)

    def test_pinecone_store(self, test_settings):
        test_settings.pinecone_api_key = "secret"
        store = create_vector_store(
            StoreDef(
                name="remote",
                kind="pinecone",
                options={"index_host": "idx.pinecone.io", "namespace": "docs"},
            ),
            test_settings,
        )
        assert isinstance(store, PineconeVectorStore)
        assert store.api_key == "secret"
        assert store.namespace == "docs"
        assert store.timeout == test_settings.store_timeout

    def test_pinecone_requires_host(self, test_settings):
        with pytest.raises(ConfigError, match="index_host"):
            create_vector_store(StoreDef(name="remote", kind="pinecone"), test_settings)

    def test_pinecone_requires_key(self, test_settings):
        with pytest.raises(ConfigError, match="PINECONE_API_KEY"):
            create_vector_store(
                StoreDef(name="remote", kind="pinecone", options={"index_host": "idx"}),
                test_settings,
            )

    def test_unknown_kind(self, test_settings):
        with pytest.raises(ConfigError, match="Unknown vector store kind"):
            create_vector_store(StoreDef(name="x", kind="faiss"), test_settings)
