"""Loader factory for building producers and runtimes from config."""

from seedbed.core.exception import ConfigError
from seedbed.core.types import ContentItem
from seedbed.loaders.files import FileProducer
from seedbed.loaders.protocol import ChangeSignal, Producer
from seedbed.loaders.runtime import ErrorSink, LoaderRuntime
from seedbed.loaders.schedule import schedule_from_config
from seedbed.loaders.static import StaticProducer
from seedbed.loaders.watch import FileChangeSignal, ManualSignal
from seedbed.loaders.web import WebProducer
from seedbed.pipeline_config import LoaderDef


def create_producer(definition: LoaderDef) -> Producer:
    """Create a producer from its loader definition.

    Args:
        definition: Loader definition from the pipeline config.

    Returns:
        Configured producer.

    Raises:
        ConfigError: For unknown kinds or invalid options.
    """
    options = definition.options

    match definition.kind:
        case "files":
            patterns = options.get("patterns") or options.get("path")
            if not patterns:
                raise ConfigError(f"Loader '{definition.name}' requires options.patterns")
            return FileProducer(
                patterns=patterns if isinstance(patterns, list) else [patterns],
                # A one-shot file load with nothing to load can never succeed.
                require_matches=definition.mode == "once",
                encoding=options.get("encoding", "utf-8"),
                chunk_size=options.get("chunk_size"),
                chunk_overlap=int(options.get("chunk_overlap", 200)),
            )

        case "web":
            if not options.get("url"):
                raise ConfigError(f"Loader '{definition.name}' requires options.url")
            return WebProducer(
                url=options["url"],
                selector=options.get("selector"),
                timeout=float(options.get("timeout", 30.0)),
            )

        case "static":
            documents = options.get("documents", {})
            if not isinstance(documents, dict):
                raise ConfigError(
                    f"Loader '{definition.name}' options.documents must map ids to text"
                )
            return StaticProducer(
                [
                    ContentItem.from_payload(
                        id=str(item_id),
                        payload=str(text),
                        source_tag=options.get("source_tag", "static"),
                    )
                    for item_id, text in documents.items()
                ]
            )

        case _:
            raise ConfigError(
                f"Unknown loader kind '{definition.kind}' for '{definition.name}'"
            )


def create_signal(definition: LoaderDef, producer: Producer) -> ChangeSignal:
    """File loaders watch their own patterns; anything else is triggered manually."""
    if isinstance(producer, FileProducer):
        return FileChangeSignal(producer.patterns, poll_seconds=definition.poll_seconds)
    return ManualSignal()


def create_loader_runtime(
    definition: LoaderDef,
    error_sink: ErrorSink | None = None,
) -> LoaderRuntime:
    """Create a loader runtime (producer plus schedule) from its definition.

    Raises:
        ConfigError: If the producer or schedule is misconfigured.
    """
    producer = create_producer(definition)
    signal = create_signal(definition, producer) if definition.mode == "on_signal" else None
    schedule = schedule_from_config(
        definition.mode,
        interval_seconds=definition.interval_seconds,
        signal=signal,
        debounce_seconds=definition.debounce_seconds,
    )
    return LoaderRuntime(definition.name, producer, schedule, error_sink=error_sink)
