"""Retrieval module - query-time ranking."""

from seedbed.retrieval.coordinator import RetrievalCoordinator, merge_ranked

__all__ = [
    "RetrievalCoordinator",
    "merge_ranked",
]
