"""Tests for the BackgroundTaskManager."""

from __future__ import annotations

import asyncio
import logging

import pytest

from core.background import BackgroundTaskManager


@pytest.mark.asyncio
class TestBackgroundTaskManager:
    async def test_spawned_task_runs_and_is_forgotten(self) -> None:
        manager = BackgroundTaskManager()
        results: list[int] = []

        async def work() -> None:
            results.append(1)

        task = manager.spawn(work(), name="work")
        assert manager.pending == 1

        await task
        await asyncio.sleep(0)

        assert results == [1]
        assert manager.pending == 0

    async def test_failures_are_logged_not_raised(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        manager = BackgroundTaskManager()

        async def fail() -> None:
            raise RuntimeError("broadcast exploded")

        with caplog.at_level(logging.ERROR, logger="core.background"):
            manager.spawn(fail(), name="structured-data-broadcast")
            await manager.drain(timeout=1)

        assert "structured-data-broadcast failed" in caplog.text
        assert manager.pending == 0

    async def test_drain_waits_for_pending_work(self) -> None:
        manager = BackgroundTaskManager()
        finished = asyncio.Event()

        async def work() -> None:
            await asyncio.sleep(0.01)
            finished.set()

        manager.spawn(work())
        await manager.drain(timeout=1)

        assert finished.is_set()

    async def test_drain_cancels_stragglers(self) -> None:
        manager = BackgroundTaskManager()

        task = manager.spawn(asyncio.sleep(10), name="slow")
        await manager.drain(timeout=0.01)

        assert task.cancelled()
        assert manager.pending == 0

    async def test_drain_with_nothing_pending(self) -> None:
        await BackgroundTaskManager().drain(timeout=0.01)
