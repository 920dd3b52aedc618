import asyncio

import pytest

from mshelf_backend.features.ingest.pipeline import ProcessingPipeline
from mshelf_backend.features.ingest.state import ProcessingState
from mshelf_backend.features.ingest.walker import WalkStats


class _InstantMonitor:
    def __init__(self):
        self.calls = 0

    async def wait_until_stable(self, directory):
        self.calls += 1
        return 0


class _GatedWalker:
    """Blocks the first pass until released so triggers can pile up."""

    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.passes = 0

    async def process(self, folder=""):
        self.passes += 1
        if self.passes == 1:
            self.started.set()
            await self.release.wait()
        return WalkStats(copied=1)


class _ExplodingWalker:
    def __init__(self):
        self.passes = 0

    async def process(self, folder=""):
        self.passes += 1
        raise RuntimeError("disk on fire")


@pytest.mark.asyncio
async def test_triggers_during_a_pass_collapse_into_one_follow_up(tmp_path) -> None:
    walker = _GatedWalker()
    state = ProcessingState()
    pipeline = ProcessingPipeline(tmp_path, _InstantMonitor(), walker, state)

    first = pipeline.schedule()
    await walker.started.wait()
    assert state.is_running is True

    results = [await pipeline.trigger() for _ in range(5)]
    assert results == [False] * 5
    assert pipeline.queued is True

    walker.release.set()
    assert await first is True
    await pipeline.wait_idle()

    assert walker.passes == 2
    assert pipeline.passes_completed == 2
    assert pipeline.queued is False
    assert state.is_running is False
    assert state.snapshot()["processingStage"] == "idle"


@pytest.mark.asyncio
async def test_single_trigger_runs_one_pass(tmp_path) -> None:
    monitor = _InstantMonitor()
    walker = _GatedWalker()
    walker.passes = 1  # skip the gate
    pipeline = ProcessingPipeline(tmp_path, monitor, walker, ProcessingState())

    assert await pipeline.trigger() is True
    assert monitor.calls == 1
    assert pipeline.passes_completed == 1
    assert pipeline.last_stats.copied == 1


@pytest.mark.asyncio
async def test_failed_pass_returns_to_idle(tmp_path) -> None:
    walker = _ExplodingWalker()
    state = ProcessingState()
    pipeline = ProcessingPipeline(tmp_path, _InstantMonitor(), walker, state)

    assert await pipeline.trigger() is True
    assert walker.passes == 1
    assert pipeline.passes_completed == 0
    assert state.is_running is False

    assert await pipeline.trigger() is True
    assert walker.passes == 2
