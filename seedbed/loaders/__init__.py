"""Loader module - producers, schedules and the loader runtime."""

from seedbed.loaders.factory import create_loader_runtime, create_producer, create_signal
from seedbed.loaders.files import FileProducer, parse_file, resolve_files
from seedbed.loaders.protocol import ChangeSignal, Producer
from seedbed.loaders.runtime import ErrorSink, LoaderRuntime, LoaderTask
from seedbed.loaders.schedule import (
    IntervalSchedule,
    OnceSchedule,
    Schedule,
    SignalSchedule,
    schedule_from_config,
)
from seedbed.loaders.static import StaticProducer
from seedbed.loaders.watch import FileChangeSignal, ManualSignal
from seedbed.loaders.web import WebProducer

__all__ = [
    # Protocols
    "Producer",
    "ChangeSignal",
    # Runtime
    "LoaderRuntime",
    "LoaderTask",
    "ErrorSink",
    # Schedules
    "Schedule",
    "IntervalSchedule",
    "OnceSchedule",
    "SignalSchedule",
    "schedule_from_config",
    # Producers
    "FileProducer",
    "WebProducer",
    "StaticProducer",
    "resolve_files",
    "parse_file",
    # Signals
    "FileChangeSignal",
    "ManualSignal",
    # Factory
    "create_producer",
    "create_signal",
    "create_loader_runtime",
]
