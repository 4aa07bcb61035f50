"""
Observer runner.

Observes blocks on origin and auxiliary. Each chain gets one worker task
that drives the chain's block stream and applies the chain's block function
to every block; both workers share one scheduler and progress independently.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from typing import TYPE_CHECKING

from .errors import PipelineError
from .event_handler import auxiliary_event_handler, origin_event_handler
from .models import Block

if TYPE_CHECKING:
    from .chain_connection import ChainConnection
    from .config import ObserverConfig
    from .scheduler import Scheduler

logger = logging.getLogger(__name__)

BlockFunction = Callable[[Block, "ChainConnection"], None]


async def worker(
    chain_name: str,
    block_stream: AsyncIterator[Block | PipelineError],
    block_function: BlockFunction,
    connection: "ChainConnection",
) -> None:
    """
    Drive a block stream and apply ``block_function`` to every block.

    Error items and failures of ``block_function`` are logged and skipped, so
    one bad block never stops observation; the next block is processed as
    usual. Only the end of the stream itself ends the worker.

    Args:
        chain_name: Chain name used in log messages
        block_stream: Stream from ``ChainConnection.stream_blocks``
        block_function: Action taken for every block
        connection: Connection of the chain the blocks belong to

    Raises:
        PipelineError: If the block stream itself fails
    """
    try:
        async for item in block_stream:
            if isinstance(item, PipelineError):
                logger.error(f"[{chain_name}] Error when streaming blocks: {item}")
                continue

            try:
                block_function(item, connection)
            except Exception as e:
                logger.error(
                    f"[{chain_name}] There was an error when processing block {item.number}: {e}",
                    exc_info=True
                )
    except asyncio.CancelledError:
        logger.info(f"[{chain_name}] Worker cancelled")
        raise
    except Exception as e:
        logger.error(f"[{chain_name}] Block stream terminated: {e}")
        raise

    logger.warning(f"[{chain_name}] Block stream ended")


def origin_block_function(block: Block, origin: "ChainConnection") -> None:
    """Actions taken for each block observed on origin."""
    logger.info(f"Origin Block:     {block}")
    logger.info(f"Origin Events:    {[str(event) for event in block.events]}")
    origin.notify_reactors(block)


def auxiliary_block_function(block: Block, auxiliary: "ChainConnection") -> None:
    """Actions taken for each block observed on auxiliary."""
    logger.info(f"Auxiliary Block:  {block}")
    logger.info(f"Auxiliary Events: {[str(event) for event in block.events]}")
    auxiliary.notify_reactors(block)


class Observer:
    """
    Wires origin and auxiliary to their event handlers and keeps both workers alive.

    ``start`` schedules the workers and returns immediately. The two chains
    are observed independently: a worker whose block stream fails is logged
    and the other keeps running. ``wait`` blocks until ``stop`` is called or
    both workers have ended, then cancels what is left.
    """

    HEALTH_CHECK_INTERVAL = 1.0  # seconds

    def __init__(
        self,
        origin: "ChainConnection",
        auxiliary: "ChainConnection",
        scheduler: "Scheduler",
        config: "ObserverConfig",
    ) -> None:
        self.origin = origin
        self.auxiliary = auxiliary
        self.scheduler = scheduler
        self.config = config
        self.running = False
        self.tasks: dict[str, asyncio.Task] = {}
        self.shutdown_event = asyncio.Event()
        self.stopped_workers: set[str] = set()

    def start(self) -> None:
        """Build both block streams and schedule one worker per chain."""
        if self.running:
            logger.warning("Observer already running")
            return

        origin_events = origin_event_handler(self.config, self.origin)
        auxiliary_events = auxiliary_event_handler(self.config, self.auxiliary)

        origin_stream = self.origin.stream_blocks(origin_events)
        auxiliary_stream = self.auxiliary.stream_blocks(auxiliary_events)

        self.tasks = {
            "origin": self.scheduler.spawn(
                worker("origin", origin_stream, origin_block_function, self.origin),
                name="origin-worker"
            ),
            "auxiliary": self.scheduler.spawn(
                worker("auxiliary", auxiliary_stream, auxiliary_block_function, self.auxiliary),
                name="auxiliary-worker"
            ),
        }
        self.running = True
        logger.info("Observing origin and auxiliary")

    def _check_task_health(self) -> bool:
        """Report workers that have stopped. Healthy while at least one worker runs."""
        for name, task in self.tasks.items():
            if task.done() and name not in self.stopped_workers:
                self.stopped_workers.add(name)
                logger.error(f"{name} worker stopped")
        return len(self.stopped_workers) < len(self.tasks)

    async def _cleanup_tasks(self) -> None:
        """Cancel all workers that are still running."""
        for task in self.tasks.values():
            if not task.done():
                task.cancel()
        await asyncio.gather(*self.tasks.values(), return_exceptions=True)

    async def wait(self) -> None:
        """Block until ``stop`` is called or both workers have stopped."""
        try:
            while self.running:
                try:
                    await asyncio.wait_for(self.shutdown_event.wait(), timeout=self.HEALTH_CHECK_INTERVAL)
                    break  # Shutdown requested
                except asyncio.TimeoutError:
                    pass

                if not self._check_task_health():
                    logger.error("All workers stopped, shutting down")
                    break
        finally:
            self.running = False
            await self._cleanup_tasks()
            logger.info("Observer stopped")

    def stop(self) -> None:
        """Request shutdown and cancel both workers."""
        self.running = False
        self.shutdown_event.set()
        for task in self.tasks.values():
            if not task.done():
                task.cancel()


def run(
    origin: "ChainConnection",
    auxiliary: "ChainConnection",
    scheduler: "Scheduler",
    config: "ObserverConfig",
) -> Observer:
    """
    Start observing origin and auxiliary.

    Both workers are spawned on ``scheduler`` and the function returns
    immediately. The workers run until the returned observer is stopped or
    a block stream fails.

    Args:
        origin: Connection to origin
        auxiliary: Connection to auxiliary
        scheduler: Scheduler that runs the workers
        config: Observer configuration

    Returns:
        The started observer
    """
    observer = Observer(origin, auxiliary, scheduler, config)
    observer.start()
    return observer
