"""Directory creation events from the watch backend."""
import asyncio
from pathlib import Path
from typing import AsyncIterator, Optional, Protocol

from watchdog.events import DirCreatedEvent, FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from conda_ca_sync.errors import PreconditionError
from conda_ca_sync.logging import get_logger
from conda_ca_sync.types import WatchEvent

logger = get_logger(__name__)


class DirectoryWatcher(Protocol):
    """Source of creation events for direct children of a root directory."""

    root: Path

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def events(self) -> AsyncIterator[WatchEvent]: ...


def to_watch_event(root: Path, event: FileSystemEvent) -> Optional[WatchEvent]:
    """Map a backend event to a WatchEvent, or None if it is not relevant."""
    if not isinstance(event, DirCreatedEvent):
        return None

    src = event.src_path
    if isinstance(src, bytes):
        src = src.decode()
    path = Path(src)
    if path.parent != root:
        return None
    return WatchEvent(parent=root, name=path.name)


class _CreationHandler(FileSystemEventHandler):
    """Forwards creation events from the observer thread to the event loop."""

    def __init__(self, root: Path, loop: asyncio.AbstractEventLoop, queue: asyncio.Queue):
        super().__init__()
        self.root = root
        self.loop = loop
        self.queue = queue

    def on_created(self, event: FileSystemEvent) -> None:
        watch_event = to_watch_event(self.root, event)
        if watch_event is not None:
            self.loop.call_soon_threadsafe(self.queue.put_nowait, watch_event)


class WatchdogDirectoryWatcher:
    """DirectoryWatcher backed by a watchdog observer.

    ``start`` must be called from the running event loop. It is the
    precondition check for the whole monitor: any failure to establish the
    subscription raises PreconditionError and leaves no observer behind.
    """

    def __init__(self, root: Path, observer_factory=Observer):
        self.root = Path(root).resolve()
        self._observer_factory = observer_factory
        self._observer = None
        self._queue: Optional[asyncio.Queue] = None

    def start(self) -> None:
        if self._observer is not None:
            return
        if not self.root.is_dir():
            raise PreconditionError(self.root, "not a directory")

        loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        observer = self._observer_factory()
        try:
            observer.schedule(
                _CreationHandler(self.root, loop, self._queue),
                str(self.root),
                recursive=False,
            )
            observer.start()
        except Exception as e:
            observer.stop()
            raise PreconditionError(self.root, f"watch backend unavailable: {e}") from e

        self._observer = observer
        logger.info({"event": "watch_started", "root": str(self.root)})

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join()
        self._observer = None
        logger.info({"event": "watch_stopped", "root": str(self.root)})

    async def events(self) -> AsyncIterator[WatchEvent]:
        if self._queue is None:
            raise RuntimeError("Watcher not started")
        while True:
            yield await self._queue.get()
