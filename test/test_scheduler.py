#!/usr/bin/env python3
"""Unit tests for the shared scheduler."""

import asyncio
import logging

import pytest

from mosaic_observer.scheduler import Scheduler


class TestScheduler:
    """Test suite for Scheduler."""

    @pytest.mark.asyncio
    async def test_spawn_runs_task(self, scheduler):
        """Test that spawned coroutines run and are forgotten once done."""
        done = asyncio.Event()

        async def work():
            done.set()
            return "result"

        task = scheduler.spawn(work(), name="work")

        assert scheduler.pending == 1
        assert await task == "result"
        assert done.is_set()
        await asyncio.sleep(0)
        assert scheduler.pending == 0

    @pytest.mark.asyncio
    async def test_failed_task_is_logged(self, scheduler, caplog):
        """Test that an exception escaping a spawned task is logged."""
        async def broken():
            raise RuntimeError("broken reactor work")

        with caplog.at_level(logging.ERROR, logger="mosaic_observer.scheduler"):
            task = scheduler.spawn(broken(), name="broken")
            with pytest.raises(RuntimeError):
                await task
            await asyncio.sleep(0)

        assert "Task broken failed: broken reactor work" in caplog.text

    @pytest.mark.asyncio
    async def test_shutdown_cancels_pending(self, scheduler):
        """Test that shutdown cancels everything still running."""
        task = scheduler.spawn(asyncio.sleep(3600), name="sleeper")

        await scheduler.shutdown()

        assert task.cancelled()
        assert scheduler.pending == 0

    @pytest.mark.asyncio
    async def test_spawn_after_shutdown(self, scheduler):
        """Test that nothing can be spawned after shutdown."""
        await scheduler.shutdown()
        coro = asyncio.sleep(0)

        with pytest.raises(RuntimeError, match="shut down"):
            scheduler.spawn(coro)

        # The rejected coroutine was closed, so no "never awaited" warning
        assert coro.cr_frame is None

    def test_spawn_needs_running_loop(self):
        """Test that spawning outside an event loop fails."""
        coro = asyncio.sleep(0)
        try:
            with pytest.raises(RuntimeError):
                Scheduler().spawn(coro)
        finally:
            coro.close()
