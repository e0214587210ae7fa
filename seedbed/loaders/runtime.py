"""Loader runtime - drives one producer on its schedule."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from types import MappingProxyType

from seedbed.core.differ import diff_snapshots
from seedbed.core.exception import ProducerError
from seedbed.core.types import ChangeBatch, ContentItem, Snapshot, snapshot_fingerprints
from seedbed.loaders.protocol import ChangeSignal, Producer
from seedbed.loaders.schedule import (
    IntervalSchedule,
    OnceSchedule,
    Schedule,
    SignalSchedule,
)

logger = logging.getLogger(__name__)

ErrorSink = Callable[[Exception], None]

DEFAULT_QUEUE_SIZE = 64


async def _until_cancelled(awaitable: Awaitable, cancel: asyncio.Event) -> bool:
    """Await ``awaitable`` unless ``cancel`` is set first.

    Returns:
        True if the awaitable finished, False if cancellation won.
    """
    work = asyncio.ensure_future(awaitable)
    stop = asyncio.ensure_future(cancel.wait())
    try:
        done, _ = await asyncio.wait({work, stop}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for fut in (work, stop):
            if not fut.done():
                fut.cancel()
        await asyncio.gather(work, stop, return_exceptions=True)

    if work in done and not work.cancelled():
        work.result()
        return True
    return False


class LoaderTask:
    """Handle to a running loader.

    Cancelling stops further ticks; a tick already in flight completes
    and its events are delivered before the task exits.
    """

    def __init__(self, runtime: "LoaderRuntime", task: asyncio.Task, cancel: asyncio.Event):
        self.runtime = runtime
        self._task = task
        self._cancel = cancel

    @property
    def name(self) -> str:
        return self.runtime.name

    @property
    def done(self) -> bool:
        return self._task.done()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def snapshot(self) -> Mapping[str, ContentItem]:
        return self.runtime.snapshot

    def cancel(self) -> None:
        """Signal the loader to stop scheduling ticks."""
        self._cancel.set()

    async def wait(self) -> None:
        """Wait for the loader to finish."""
        await asyncio.shield(self._task)

    async def stop(self) -> None:
        """Cancel and wait for the in-flight tick to finish."""
        self.cancel()
        await self.wait()

    def __repr__(self) -> str:
        state = "done" if self.done else "cancelling" if self.cancelled else "running"
        return f"LoaderTask(name={self.name!r}, state={state})"


class LoaderRuntime:
    """Runs a producer on a schedule and publishes diffs to subscribers.

    Every successful tick replaces the known-good snapshot as a whole and
    is diffed against the previous one. Producer failures skip the tick,
    keep the previous snapshot and go to the error sink; the schedule
    keeps running.

    Example:
        runtime = LoaderRuntime("docs", FileProducer(["docs/**/*.md"]), IntervalSchedule(60))
        queue = runtime.subscribe()
        task = runtime.start()
        batch = await queue.get()
        task.cancel()
    """

    def __init__(
        self,
        name: str,
        producer: Producer,
        schedule: Schedule,
        error_sink: ErrorSink | None = None,
    ):
        self.name = name
        self.producer = producer
        self.schedule = schedule
        self.error_sink = error_sink or self._log_error
        self.ticks = 0
        self.failures = 0
        self._snapshot: Snapshot = {}
        self._subscribers: list[asyncio.Queue[ChangeBatch | None]] = []
        self._task: LoaderTask | None = None
        self._first_tick = asyncio.Event()

    @property
    def snapshot(self) -> Mapping[str, ContentItem]:
        """Latest known-good snapshot (read-only view)."""
        return MappingProxyType(self._snapshot)

    @property
    def task(self) -> LoaderTask | None:
        return self._task

    @property
    def signal(self) -> ChangeSignal | None:
        if isinstance(self.schedule, SignalSchedule):
            return self.schedule.signal
        return None

    async def wait_first_tick(self) -> None:
        """Wait until the first tick finished and its batch was delivered.

        Also returns if the loader ends before ticking.
        """
        await self._first_tick.wait()

    def subscribe(self, maxsize: int = DEFAULT_QUEUE_SIZE) -> asyncio.Queue[ChangeBatch | None]:
        """Register a bounded queue receiving every change batch.

        A ``None`` sentinel is delivered when the runtime finishes.
        """
        if self._task is not None:
            raise RuntimeError(f"Loader '{self.name}' already started; subscribe before start()")
        queue: asyncio.Queue[ChangeBatch | None] = asyncio.Queue(maxsize=maxsize)
        self._subscribers.append(queue)
        return queue

    def start(self) -> LoaderTask:
        """Validate the producer and enter the schedule.

        Raises:
            ConfigError: If the producer or schedule cannot succeed.
            RuntimeError: If already started.
        """
        if self._task is not None:
            raise RuntimeError(f"Loader '{self.name}' already started")

        self.producer.validate()

        cancel = asyncio.Event()
        task = asyncio.create_task(self._run(cancel), name=f"loader:{self.name}")
        self._task = LoaderTask(self, task, cancel)
        logger.info(
            "Started loader '%s' (%s, %s)",
            self.name,
            self.producer.name,
            type(self.schedule).__name__,
        )
        return self._task

    async def _run(self, cancel: asyncio.Event) -> None:
        try:
            match self.schedule:
                case OnceSchedule():
                    await self._tick()

                case IntervalSchedule(seconds=seconds):
                    while not cancel.is_set():
                        await self._tick()
                        if not await _until_cancelled(asyncio.sleep(seconds), cancel):
                            break

                case SignalSchedule(signal=signal, debounce_seconds=debounce):
                    await self._tick()
                    while not cancel.is_set():
                        if not await _until_cancelled(self._debounced(signal, debounce), cancel):
                            break
                        await self._tick()
        finally:
            self._first_tick.set()
            for queue in self._subscribers:
                await queue.put(None)
            logger.info("Loader '%s' finished after %d ticks", self.name, self.ticks)

    async def _debounced(self, signal: ChangeSignal, window: float) -> None:
        """Wait for a signal, then until no further signal arrives within ``window``."""
        await signal.wait()
        while window > 0:
            try:
                await asyncio.wait_for(signal.wait(), timeout=window)
            except TimeoutError:
                return

    async def _tick(self) -> None:
        try:
            await self._scan()
        finally:
            self._first_tick.set()

    async def _scan(self) -> None:
        self.ticks += 1
        try:
            items = await self.producer.produce()
        except Exception as e:
            self.failures += 1
            if not isinstance(e, ProducerError):
                wrapped = ProducerError(
                    f"Loader '{self.name}' producer failed: {e}", producer=self.producer.name
                )
                wrapped.__cause__ = e
                e = wrapped
            self.error_sink(e)
            return

        current: Snapshot = {}
        for item in items:
            if item.id in current:
                logger.warning("Loader '%s' produced duplicate id '%s'", self.name, item.id)
            current[item.id] = item

        events = diff_snapshots(snapshot_fingerprints(self._snapshot), current)
        self._snapshot = current

        if not events:
            logger.debug("Loader '%s' tick %d: no changes", self.name, self.ticks)
            return

        batch = ChangeBatch(self.name, tuple(events), tick=self.ticks)
        logger.debug("Loader '%s' tick %d: %d events", self.name, self.ticks, len(batch))
        for queue in self._subscribers:
            await queue.put(batch)

    def _log_error(self, error: Exception) -> None:
        logger.warning("Loader '%s' tick %d failed: %s", self.name, self.ticks, error)

    def __repr__(self) -> str:
        return (
            f"LoaderRuntime(name={self.name!r}, producer={self.producer.name!r}, "
            f"ticks={self.ticks}, items={len(self._snapshot)})"
        )
