"""Core module - data model, differ and error taxonomy."""

from seedbed.core.differ import diff_snapshots
from seedbed.core.exception import (
    ConfigError,
    DimensionMismatchError,
    ProducerError,
    ProviderError,
    SeedbedError,
)
from seedbed.core.retry import RetryExhaustedError, RetryPolicy, call_with_retry
from seedbed.core.types import (
    Added,
    ChangeBatch,
    ChangeEvent,
    ChangeKind,
    ContentItem,
    EmbeddingRecord,
    Removed,
    RetrievedContent,
    ScoredRecord,
    Snapshot,
    Updated,
    fingerprint_text,
    snapshot_fingerprints,
)

__all__ = [
    # Data model
    "ContentItem",
    "ChangeEvent",
    "ChangeKind",
    "ChangeBatch",
    "Added",
    "Updated",
    "Removed",
    "EmbeddingRecord",
    "ScoredRecord",
    "RetrievedContent",
    "Snapshot",
    "fingerprint_text",
    "snapshot_fingerprints",
    # Differ
    "diff_snapshots",
    # Errors
    "SeedbedError",
    "ConfigError",
    "ProducerError",
    "ProviderError",
    "DimensionMismatchError",
    # Retry
    "RetryPolicy",
    "RetryExhaustedError",
    "call_with_retry",
]
