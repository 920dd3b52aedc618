import shutil
import sys
from pathlib import Path

import pytest
import pytest_asyncio
from PIL import Image

from repo_root import REPO_ROOT

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from mshelf_backend.config import ShelfConfig  # noqa: E402
from mshelf_backend.shared import ErrorCode, Result  # noqa: E402

PROBE_DATA = {"width": 640, "height": 360, "duration": 12.0, "aspectRatio": "16:9"}


def write_image(path: Path, size=(64, 32), color="red") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    mode = "RGB" if path.suffix.lower() in (".jpg", ".jpeg") else "RGBA"
    Image.new(mode, size, color=color).save(path)
    return path


class FakeProbe:
    def __init__(self, data=None):
        self.data = dict(data or PROBE_DATA)
        self.calls = []
        self.fail = False

    def is_available(self) -> bool:
        return True

    async def probe(self, path):
        self.calls.append(Path(path))
        if self.fail:
            return Result.Err(ErrorCode.FFPROBE_ERROR, "probe failed")
        return Result.Ok(dict(self.data))


class FakeFrames:
    def __init__(self, size=(640, 360)):
        self.size = size
        self.offsets = []

    def is_available(self) -> bool:
        return True

    async def extract_frame(self, video, offset_s, destination):
        self.offsets.append(offset_s)
        write_image(Path(destination), size=self.size, color="blue")
        return Result.Ok(Path(destination))


class FakeTranscoder:
    def __init__(self):
        self.calls = []
        self.fail_names = set()

    def is_available(self) -> bool:
        return True

    async def transcode(self, source, destination, on_progress=None):
        self.calls.append(Path(source).name)
        if Path(source).name in self.fail_names:
            return Result.Err(ErrorCode.TRANSCODE_FAILED, "encoder crashed")
        if on_progress is not None:
            await on_progress(50.0, "00h00m01s")
        shutil.copyfile(source, destination)
        return Result.Ok(Path(destination))


@pytest.fixture
def config(tmp_path) -> ShelfConfig:
    cfg = ShelfConfig.for_base_dir(
        tmp_path / "media",
        stability_window_s=0.0,
        stability_poll_s=0.01,
        upload_debounce_s=0.01,
        sprite_frame_count=4,
        thumbnail_max_width=160,
    )
    for root in (*cfg.roots, cfg.working_root):
        root.mkdir(parents=True, exist_ok=True)
    return cfg


@pytest.fixture
def make_image():
    return write_image


@pytest.fixture
def fake_probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def fake_frames() -> FakeFrames:
    return FakeFrames()


@pytest.fixture
def fake_transcoder() -> FakeTranscoder:
    return FakeTranscoder()


@pytest_asyncio.fixture
async def services(config, fake_probe, fake_frames, fake_transcoder):
    from mshelf_backend.deps import build_services

    built = build_services(config, ffprobe=fake_probe, frames=fake_frames, transcoder=fake_transcoder)
    assert built.ok, built.error
    svc = built.data
    try:
        yield svc
    finally:
        svc.debouncer.cancel()
        await svc.pipeline.wait_idle()
        await svc.broadcaster.drain()
