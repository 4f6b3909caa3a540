"""
Tests for detached (fire-and-forget) calls.
"""
import asyncio

import pytest

from textchain.core.detached import DetachedCallRunner


class TestDetachedCallRunner:

    @pytest.mark.asyncio
    async def test_spawn_returns_before_call_completes(self):
        runner = DetachedCallRunner(default_timeout=1)
        started = asyncio.Event()
        release = asyncio.Event()

        async def call():
            started.set()
            await release.wait()
            return "done"

        task = runner.spawn("slow", call())

        assert not task.done()
        assert runner.pending == 1
        await started.wait()
        release.set()
        await task
        assert runner.pending == 0

    @pytest.mark.asyncio
    async def test_timeout_abandons_call(self):
        runner = DetachedCallRunner(default_timeout=5)

        async def never():
            await asyncio.Event().wait()

        task = runner.spawn("hang", never(), timeout=0.05)
        await asyncio.wait_for(task, timeout=1)

        assert task.exception() is None
        assert runner.pending == 0

    @pytest.mark.asyncio
    async def test_failure_is_contained(self):
        runner = DetachedCallRunner()

        async def boom():
            raise RuntimeError("downstream exploded")

        task = runner.spawn("boom", boom())
        await task

        assert task.exception() is None

    @pytest.mark.asyncio
    async def test_drain_cancels_stragglers(self):
        runner = DetachedCallRunner(default_timeout=30)

        async def never():
            await asyncio.Event().wait()

        task = runner.spawn("hang", never())
        await runner.drain(timeout=0.05)

        assert task.cancelled()
        assert runner.pending == 0

    @pytest.mark.asyncio
    async def test_drain_with_nothing_pending(self):
        runner = DetachedCallRunner()
        await runner.drain(timeout=0.01)
        assert runner.pending == 0
