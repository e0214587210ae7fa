"""Tests for API endpoints."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from main import app
from seedbed.core import Added, ChangeBatch, ContentItem
from seedbed.dependencies import get_embedding_provider, get_pipeline
from seedbed.pipeline import Pipeline
from seedbed.pipeline_config import parse_pipeline_config

# Base API path
API_V1 = "/api/v1"

DOCUMENTS = {
    "revenue": "Revenue is income from sales.",
    "costs": "Costs are money spent.",
}


@pytest.fixture
def pipeline(test_settings, fake_provider) -> Pipeline:
    """Pipeline whose store already holds the glossary documents."""
    config = parse_pipeline_config(
        {
            "loaders": [
                {"name": "glossary", "kind": "static", "options": {"documents": DOCUMENTS}},
                {"name": "manual", "kind": "static", "mode": "on_signal"},
            ],
            "stores": [{"name": "local"}],
            "embedders": [
                {"name": "default", "loaders": ["glossary", "manual"], "stores": ["local"]}
            ],
        }
    )
    pipeline = Pipeline(config, test_settings, fake_provider)
    items = [
        ContentItem.from_payload(item_id, text, "glossary", {"title": item_id})
        for item_id, text in DOCUMENTS.items()
    ]
    batch = ChangeBatch("glossary", tuple(Added(item) for item in items))
    asyncio.run(pipeline.stages["default"].process_batch(batch))
    return pipeline


@pytest.fixture
def client(pipeline, fake_provider):
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    app.dependency_overrides[get_embedding_provider] = lambda: fake_provider
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


class TestHealthEndpoint:
    def test_health_check(self, client):
        response = client.get(f"{API_V1}/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] in ["healthy", "degraded"]
        assert data["embedding_provider"] == "fake"
        assert data["stored_records"] == 2
        assert "version" in data


class TestPipelineEndpoints:
    def test_status(self, client):
        response = client.get(f"{API_V1}/pipeline/status")
        assert response.status_code == 200

        data = response.json()
        assert [loader["name"] for loader in data["loaders"]] == ["glossary", "manual"]
        assert data["stages"][0]["embedded"] == 2
        assert data["stores"] == [{"name": "local", "dimension": 8, "count": 2}]

    def test_refresh_manual_loader(self, client, pipeline):
        response = client.post(f"{API_V1}/loaders/manual/refresh")
        assert response.status_code == 200
        assert response.json() == {"status": "triggered", "loader": "manual"}
        assert pipeline.loaders["manual"].signal.pending == 1

    def test_refresh_once_loader_rejected(self, client):
        response = client.post(f"{API_V1}/loaders/glossary/refresh")
        assert response.status_code == 400

    def test_refresh_unknown_loader(self, client):
        response = client.post(f"{API_V1}/loaders/missing/refresh")
        assert response.status_code == 404


class TestRetrieveEndpoint:
    def test_retrieve(self, client):
        response = client.post(
            f"{API_V1}/retrieve",
            json={"query": "Revenue is income from sales.", "k": 1},
        )
        assert response.status_code == 200

        data = response.json()
        assert data["total"] == 1
        assert data["results"][0]["id"] == "revenue"
        assert data["results"][0]["score"] == pytest.approx(1.0)
        assert data["context"] == "### From revenue\nRevenue is income from sales."

    def test_retrieve_with_filter(self, client):
        response = client.post(
            f"{API_V1}/retrieve",
            json={"query": "anything", "k": 5, "filter": {"title": "costs"}},
        )
        assert response.status_code == 200
        assert [r["id"] for r in response.json()["results"]] == ["costs"]

    def test_retrieve_uses_default_k(self, client, test_settings):
        response = client.post(f"{API_V1}/retrieve", json={"query": "money"})
        assert response.status_code == 200
        assert response.json()["total"] == min(2, test_settings.retrieval_default_k)

    def test_empty_query_rejected(self, client):
        response = client.post(f"{API_V1}/retrieve", json={"query": ""})
        assert response.status_code == 422

    def test_provider_failure(self, client, fake_provider):
        fake_provider.fail_texts.add("unreachable")
        response = client.post(f"{API_V1}/retrieve", json={"query": "unreachable"})
        assert response.status_code == 502
