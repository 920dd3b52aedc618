import pytest

from mshelf_backend.features.ingest.stability import StabilityMonitor


class _Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _monitor(clock, on_sleep=None, window=5.0, poll=1.0):
    sleeps = []

    async def _sleep(delay):
        sleeps.append(delay)
        clock.now += delay
        if on_sleep is not None:
            on_sleep(len(sleeps))

    return StabilityMonitor(window, poll, clock=clock, sleep=_sleep), sleeps


@pytest.mark.asyncio
async def test_empty_directory_is_stable_immediately(tmp_path) -> None:
    monitor, sleeps = _monitor(_Clock())
    assert await monitor.wait_until_stable(tmp_path) == 0
    assert sleeps == []


@pytest.mark.asyncio
async def test_missing_directory_is_stable(tmp_path) -> None:
    monitor, _ = _monitor(_Clock())
    assert await monitor.wait_until_stable(tmp_path / "missing") == 0


@pytest.mark.asyncio
async def test_unchanged_files_resolve_after_window(tmp_path) -> None:
    (tmp_path / "a.mp4").write_bytes(b"x" * 10)
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "b.jpg").write_bytes(b"y" * 5)
    monitor, sleeps = _monitor(_Clock())

    assert await monitor.wait_until_stable(tmp_path) == 2
    # Needs strictly more than the window since first sighting
    assert sum(sleeps) > 5.0
    assert sum(sleeps) <= 7.0


@pytest.mark.asyncio
async def test_growing_file_keeps_wait_open(tmp_path) -> None:
    target = tmp_path / "upload.mov"
    target.write_bytes(b"x")

    def _grow(count):
        if count <= 8:
            with target.open("ab") as handle:
                handle.write(b"x")

    clock = _Clock()
    monitor, sleeps = _monitor(clock, on_sleep=_grow)
    assert await monitor.wait_until_stable(tmp_path) == 1
    # Eight growth polls, then the full window again
    assert len(sleeps) >= 8 + 5
    assert target.stat().st_size == 9
