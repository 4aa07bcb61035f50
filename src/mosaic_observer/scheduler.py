"""Shared cooperative scheduler handle.

Both chain workers and any work that reactors schedule run as tasks on one
asyncio event loop. The scheduler keeps a reference to every live task so
that none is garbage collected mid-flight, reports tasks that fail, and is
the single place that cancels everything on shutdown.
"""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

logger = logging.getLogger(__name__)


class Scheduler:
    """Spawns and tracks tasks on the running event loop."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task:
        """Schedule a coroutine as a task on the running loop.

        Args:
            coro: Coroutine to run
            name: Task name used in log messages

        Returns:
            The created task

        Raises:
            RuntimeError: If the scheduler was shut down
        """
        if self._closed:
            coro.close()
            raise RuntimeError("Scheduler is shut down")

        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        if (error := task.exception()) is not None:
            logger.error(f"Task {task.get_name()} failed: {error}", exc_info=error)

    @property
    def pending(self) -> int:
        """Number of spawned tasks that have not finished yet."""
        return len(self._tasks)

    async def shutdown(self) -> None:
        """Cancel all spawned tasks and wait for them to finish."""
        self._closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.debug(f"Scheduler shut down, cancelled {len(tasks)} tasks")
