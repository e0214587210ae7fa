"""Change signals for signal-driven loaders."""

import asyncio
import logging

from seedbed.core.exception import ConfigError
from seedbed.loaders.files import resolve_files

logger = logging.getLogger(__name__)

FileState = dict[str, tuple[int, int]]


class ManualSignal:
    """Signal raised by calling ``notify()``, e.g. from an API endpoint."""

    def __init__(self):
        self._queue: asyncio.Queue[None] = asyncio.Queue()

    def notify(self) -> None:
        self._queue.put_nowait(None)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def wait(self) -> None:
        await self._queue.get()


def scan_files(patterns: list[str]) -> FileState:
    """Map each matching file to its (mtime_ns, size)."""
    state: FileState = {}
    for path in resolve_files(patterns):
        try:
            stat = path.stat()
        except FileNotFoundError:
            continue
        state[str(path)] = (stat.st_mtime_ns, stat.st_size)
    return state


class FileChangeSignal:
    """Polls files matching glob patterns and signals on any change.

    Creations, modifications and deletions all count as a change. The
    baseline is taken at construction.

    Example:
        signal = FileChangeSignal(["docs/**/*.md"], poll_seconds=1.0)
        await signal.wait()  # returns after a matching file changes
    """

    def __init__(self, patterns: list[str], poll_seconds: float = 1.0):
        if not patterns:
            raise ConfigError("File change signal requires at least one glob pattern")
        if poll_seconds <= 0:
            raise ConfigError(f"Poll interval must be positive, got {poll_seconds}")
        self.patterns = list(patterns)
        self.poll_seconds = poll_seconds
        self._state = scan_files(self.patterns)

    async def wait(self) -> None:
        while True:
            await asyncio.sleep(self.poll_seconds)
            current = await asyncio.to_thread(scan_files, self.patterns)
            if current != self._state:
                changed = set(current.items()) ^ set(self._state.items())
                logger.debug("Detected changes in %d files", len({p for p, _ in changed}))
                self._state = current
                return
