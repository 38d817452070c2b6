"""Long-running monitor loop."""
import asyncio
import functools
from typing import Set

from conda_ca_sync.logging import get_logger
from conda_ca_sync.watcher.coordinator import ReplacementCoordinator
from conda_ca_sync.watcher.events import DirectoryWatcher

logger = get_logger(__name__)


def _task_done(tasks: Set[asyncio.Task], task: asyncio.Task) -> None:
    """Drop a finished sequence, logging anything it raised."""
    tasks.discard(task)
    if task.cancelled():
        return
    if (exc := task.exception()) is not None:
        logger.error(
            {"event": "sequence_crashed", "task": task.get_name(), "error": repr(exc)}
        )


async def run_monitor(
    watcher: DirectoryWatcher,
    coordinator: ReplacementCoordinator,
    drain: bool = True,
) -> None:
    """Dispatch every creation event to its own coordination task.

    Runs until cancelled. PreconditionError from ``watcher.start`` propagates
    before any event is consumed. On shutdown in-flight sequences are awaited
    when ``drain`` is set, cancelled otherwise.
    """
    watcher.start()
    tasks: Set[asyncio.Task] = set()

    try:
        async for event in watcher.events():
            logger.debug({"event": "env_created", "env": event.name})
            task = asyncio.create_task(
                coordinator.handle(event), name=f"replace-{event.name}"
            )
            tasks.add(task)
            task.add_done_callback(functools.partial(_task_done, tasks))
    finally:
        watcher.stop()
        if tasks:
            if not drain:
                for task in tasks:
                    task.cancel()
            logger.info({"event": "monitor_shutdown", "in_flight": len(tasks)})
            await asyncio.gather(*tasks, return_exceptions=True)
