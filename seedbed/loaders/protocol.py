"""Producer and change-signal protocols."""

from typing import Protocol, runtime_checkable

from seedbed.core.types import ContentItem


@runtime_checkable
class Producer(Protocol):
    """Protocol for content producers driven by a loader runtime.

    Producers abstract the content source, allowing:
    - Files matched by glob patterns
    - Web pages fetched over HTTP
    - Fixed documents supplied in code
    """

    @property
    def name(self) -> str:
        """Producer name (e.g., 'files', 'web', 'static')."""
        ...

    def validate(self) -> None:
        """Check the producer can ever succeed.

        Raises:
            ConfigError: If the configuration cannot succeed on retry.
        """
        ...

    async def produce(self) -> list[ContentItem]:
        """Build a complete snapshot of the source.

        Returns:
            Every content item currently present in the source.

        Raises:
            ProducerError: If the source is temporarily unavailable.
        """
        ...


@runtime_checkable
class ChangeSignal(Protocol):
    """External notification that the source may have changed."""

    async def wait(self) -> None:
        """Return once the next change notification arrives."""
        ...
