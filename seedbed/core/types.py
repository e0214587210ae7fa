"""Data model shared by loaders, the embedding stage and vector stores."""

import hashlib
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, NamedTuple

Scalar = str | int | float | bool | None


def fingerprint_text(text: str) -> str:
    """Return the SHA-256 hex digest used to detect content changes."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class ContentItem:
    """A single document produced by a loader tick.

    Identity is the ``id``; content equality is the ``fingerprint``.
    """

    id: str
    fingerprint: str
    payload: str
    source_tag: str
    observed_at: datetime = field(default_factory=_utcnow)
    metadata: Mapping[str, Scalar] = field(default_factory=dict)

    @classmethod
    def from_payload(
        cls,
        id: str,
        payload: str,
        source_tag: str,
        metadata: Mapping[str, Scalar] | None = None,
    ) -> "ContentItem":
        """Build an item, fingerprinting the payload."""
        return cls(
            id=id,
            fingerprint=fingerprint_text(payload),
            payload=payload,
            source_tag=source_tag,
            metadata=dict(metadata or {}),
        )


class ChangeKind(StrEnum):
    """Kind of change emitted by the differ."""

    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"


@dataclass(frozen=True)
class Added:
    item: ContentItem
    kind: ChangeKind = field(default=ChangeKind.ADDED, init=False)

    @property
    def id(self) -> str:
        return self.item.id


@dataclass(frozen=True)
class Updated:
    item: ContentItem
    kind: ChangeKind = field(default=ChangeKind.UPDATED, init=False)

    @property
    def id(self) -> str:
        return self.item.id


@dataclass(frozen=True)
class Removed:
    id: str
    kind: ChangeKind = field(default=ChangeKind.REMOVED, init=False)


ChangeEvent = Added | Updated | Removed

Snapshot = dict[str, ContentItem]


def snapshot_fingerprints(snapshot: Mapping[str, ContentItem]) -> dict[str, str]:
    """Project a snapshot to its ``id -> fingerprint`` mapping."""
    return {item_id: item.fingerprint for item_id, item in snapshot.items()}


@dataclass(frozen=True)
class ChangeBatch:
    """Ordered events produced by one loader tick."""

    loader: str
    events: tuple[ChangeEvent, ...]
    tick: int = 0

    def __len__(self) -> int:
        return len(self.events)


@dataclass(frozen=True)
class EmbeddingRecord:
    """Vector stored for one content item.

    The payload is kept beside the vector so retrieval can return content
    without a second lookup.
    """

    id: str
    fingerprint: str
    vector: tuple[float, ...]
    source_tag: str
    payload: str = ""
    metadata: Mapping[str, Scalar] = field(default_factory=dict)

    def __post_init__(self):
        # Accept any sequence but store an immutable tuple of floats.
        object.__setattr__(self, "vector", tuple(float(v) for v in self.vector))
        object.__setattr__(self, "metadata", dict(self.metadata))

    @property
    def dimension(self) -> int:
        return len(self.vector)

    @classmethod
    def from_item(
        cls, item: ContentItem, vector: list[float] | tuple[float, ...]
    ) -> "EmbeddingRecord":
        """Create the record for an embedded content item."""
        return cls(
            id=item.id,
            fingerprint=item.fingerprint,
            vector=tuple(vector),
            source_tag=item.source_tag,
            payload=item.payload,
            metadata=dict(item.metadata),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "fingerprint": self.fingerprint,
            "vector": list(self.vector),
            "source_tag": self.source_tag,
            "payload": self.payload,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EmbeddingRecord":
        return cls(
            id=data["id"],
            fingerprint=data["fingerprint"],
            vector=tuple(data["vector"]),
            source_tag=data.get("source_tag", ""),
            payload=data.get("payload", ""),
            metadata=data.get("metadata", {}),
        )


class ScoredRecord(NamedTuple):
    """A query hit with its cosine similarity."""

    record: EmbeddingRecord
    score: float


@dataclass(frozen=True)
class RetrievedContent:
    """Ranked content returned for prompt augmentation."""

    id: str
    payload: str
    score: float
    source_tag: str
    metadata: Mapping[str, Scalar] = field(default_factory=dict)

    @classmethod
    def from_scored(cls, scored: ScoredRecord) -> "RetrievedContent":
        record = scored.record
        return cls(
            id=record.id,
            payload=record.payload,
            score=scored.score,
            source_tag=record.source_tag,
            metadata=dict(record.metadata),
        )
