import asyncio

import pytest

from app.core.tasks import BestEffortRunner


@pytest.mark.asyncio
async def test_failures_reach_callback():
    failures = []
    runner = BestEffortRunner(on_error=lambda name, exc: failures.append((name, exc)))

    async def boom():
        raise RuntimeError("push service down")

    runner.spawn(boom(), name="push:1")
    await runner.drain()

    assert len(failures) == 1
    name, exc = failures[0]
    assert name == "push:1"
    assert isinstance(exc, RuntimeError)
    assert runner.pending == 0


@pytest.mark.asyncio
async def test_per_task_callback_overrides_default():
    default, specific = [], []
    runner = BestEffortRunner(on_error=lambda name, exc: default.append(name))

    async def boom():
        raise ValueError("bad")

    runner.spawn(boom(), name="a", on_error=lambda name, exc: specific.append(name))
    await runner.drain()

    assert specific == ["a"]
    assert default == []


@pytest.mark.asyncio
async def test_drain_waits_for_tasks_spawned_meanwhile():
    runner = BestEffortRunner()
    done = []

    async def child():
        await asyncio.sleep(0)
        done.append("child")

    async def parent():
        await asyncio.sleep(0)
        runner.spawn(child(), name="child")
        done.append("parent")

    runner.spawn(parent(), name="parent")
    assert runner.pending == 1
    await runner.drain()

    assert done == ["parent", "child"]
    assert runner.pending == 0


@pytest.mark.asyncio
async def test_failing_callback_is_contained():
    def bad_callback(name, exc):
        raise RuntimeError("callback broke")

    runner = BestEffortRunner(on_error=bad_callback)

    async def boom():
        raise RuntimeError("x")

    runner.spawn(boom(), name="x")
    await runner.drain()
    assert runner.pending == 0
