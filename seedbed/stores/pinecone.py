"""Pinecone-hosted vector store over the data-plane REST API."""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx

from seedbed.core.exception import ConfigError, DimensionMismatchError, ProviderError
from seedbed.core.types import EmbeddingRecord, Scalar, ScoredRecord

logger = logging.getLogger(__name__)

PINECONE_API_VERSION = "2025-01"

# Reserved metadata keys carrying record fields alongside user metadata.
_PAYLOAD_KEY = "_payload"
_FINGERPRINT_KEY = "_fingerprint"
_SOURCE_TAG_KEY = "_source_tag"
_RESERVED_KEYS = (_PAYLOAD_KEY, _FINGERPRINT_KEY, _SOURCE_TAG_KEY)


def _to_metadata(record: EmbeddingRecord) -> dict[str, Any]:
    # Pinecone rejects null metadata values.
    metadata = {k: v for k, v in record.metadata.items() if v is not None}
    metadata[_PAYLOAD_KEY] = record.payload
    metadata[_FINGERPRINT_KEY] = record.fingerprint
    metadata[_SOURCE_TAG_KEY] = record.source_tag
    return metadata


def _from_vector(data: Mapping[str, Any]) -> EmbeddingRecord:
    metadata = dict(data.get("metadata") or {})
    return EmbeddingRecord(
        id=data["id"],
        fingerprint=str(metadata.pop(_FINGERPRINT_KEY, "")),
        vector=tuple(data.get("values") or ()),
        source_tag=str(metadata.pop(_SOURCE_TAG_KEY, "")),
        payload=str(metadata.pop(_PAYLOAD_KEY, "")),
        metadata=metadata,
    )


def _to_filter(metadata_filter: Mapping[str, Scalar]) -> dict[str, Any]:
    translated = {}
    for key, value in metadata_filter.items():
        if key == "source_tag":
            key = _SOURCE_TAG_KEY
        translated[key] = {"$eq": value}
    return translated


@dataclass
class PineconeVectorStore:
    """Thin async client over one Pinecone index namespace.

    The record payload, fingerprint and source tag travel in vector
    metadata. Dimensionality is checked locally before any request.

    Example:
        store = PineconeVectorStore(
            name="docs",
            index_host="https://docs-abc123.svc.us-east1-gcp.pinecone.io",
            api_key="...",
            dimension=1536,
        )
        await store.connect()
        await store.upsert(record)
        hits = await store.query(vector, k=5)
        await store.close()
    """

    name: str
    index_host: str
    api_key: str
    namespace: str = ""
    dimension: int | None = None
    timeout: float = 30.0
    source_tag: str | None = None
    transport: httpx.AsyncBaseTransport | None = field(default=None, repr=False)

    _client: httpx.AsyncClient | None = field(default=None, init=False, repr=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    def __post_init__(self):
        if not self.index_host:
            raise ConfigError(f"Pinecone store '{self.name}' requires an index_host")
        if not self.api_key:
            raise ConfigError(f"Pinecone store '{self.name}' requires an API key")
        if not self.index_host.startswith(("http://", "https://")):
            self.index_host = f"https://{self.index_host}"

    @property
    def headers(self) -> dict[str, str]:
        headers = {
            "Api-Key": self.api_key,
            "X-Pinecone-API-Version": PINECONE_API_VERSION,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.source_tag:
            headers["User-Agent"] = f"source_tag={self.source_tag}"
        return headers

    async def connect(self) -> None:
        """Create the HTTP client."""
        async with self._lock:
            if self._client is not None:
                return
            self._client = httpx.AsyncClient(
                base_url=self.index_host.rstrip("/"),
                headers=self.headers,
                timeout=httpx.Timeout(self.timeout),
                transport=self.transport,
            )

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        if self._client is None:
            await self.connect()

        try:
            response = await self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f"Pinecone {path} failed: {e.response.status_code} - {e.response.text}",
                provider="pinecone",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Pinecone {path} failed: {e}", provider="pinecone") from e

        if not response.content:
            return {}
        return response.json()

    def _check_dimension(self, size: int) -> None:
        if self.dimension is not None and size != self.dimension:
            raise DimensionMismatchError(self.dimension, size, store=self.name)

    async def upsert(self, record: EmbeddingRecord) -> None:
        self._check_dimension(record.dimension)
        await self._request(
            "POST",
            "/vectors/upsert",
            json={
                "vectors": [
                    {
                        "id": record.id,
                        "values": list(record.vector),
                        "metadata": _to_metadata(record),
                    }
                ],
                "namespace": self.namespace,
            },
        )
        # Only a stored vector establishes the dimension.
        if self.dimension is None:
            self.dimension = record.dimension

    async def delete(self, record_id: str) -> None:
        await self._request(
            "POST",
            "/vectors/delete",
            json={"ids": [record_id], "namespace": self.namespace},
        )

    async def get_by_id(self, record_id: str) -> EmbeddingRecord | None:
        data = await self._request(
            "GET",
            "/vectors/fetch",
            params={"ids": record_id, "namespace": self.namespace},
        )
        vector = (data.get("vectors") or {}).get(record_id)
        return _from_vector(vector) if vector else None

    async def query(
        self,
        vector: list[float] | tuple[float, ...],
        k: int,
        metadata_filter: Mapping[str, Scalar] | None = None,
    ) -> list[ScoredRecord]:
        self._check_dimension(len(vector))
        if k <= 0:
            return []

        body: dict[str, Any] = {
            "vector": [float(v) for v in vector],
            "topK": k,
            "namespace": self.namespace,
            "includeValues": True,
            "includeMetadata": True,
        }
        if metadata_filter:
            body["filter"] = _to_filter(metadata_filter)

        data = await self._request("POST", "/query", json=body)
        return [
            ScoredRecord(_from_vector(match), float(match.get("score", 0.0)))
            for match in data.get("matches", [])[:k]
        ]

    async def count(self) -> int:
        data = await self._request("POST", "/describe_index_stats", json={})
        namespaces = data.get("namespaces") or {}
        if self.namespace in namespaces:
            return int(namespaces[self.namespace].get("vectorCount", 0))
        if not self.namespace:
            return int(data.get("totalVectorCount", 0))
        return 0
