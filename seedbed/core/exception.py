"""Pipeline exceptions."""


class SeedbedError(Exception):
    """Base exception for pipeline errors."""

    pass


class ConfigError(SeedbedError):
    """Invalid loader, store or pipeline configuration.

    Detected at construction and fatal to that component's startup.
    """

    pass


class ProducerError(SeedbedError):
    """A producer failed to build a content snapshot.

    Transient: the tick is skipped and retried on the next schedule tick.
    """

    def __init__(self, message: str, producer: str | None = None):
        self.producer = producer
        super().__init__(message)


class ProviderError(SeedbedError):
    """An embedding provider or remote store call failed."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        status_code: int | None = None,
    ):
        self.provider = provider
        self.status_code = status_code
        super().__init__(message)


class DimensionMismatchError(SeedbedError):
    """A vector's length disagrees with the store's dimensionality."""

    def __init__(self, expected: int, actual: int, store: str | None = None):
        self.expected = expected
        self.actual = actual
        self.store = store
        where = f" in store '{store}'" if store else ""
        super().__init__(
            f"Vector dimension mismatch{where}: expected {expected}, got {actual}"
        )
