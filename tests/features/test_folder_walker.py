import dataclasses

import pytest

from mshelf_backend.deps import build_services


def _services(config, fake_probe, fake_frames, fake_transcoder, **overrides):
    if overrides:
        config = dataclasses.replace(config, **overrides)
    built = build_services(config, ffprobe=fake_probe, frames=fake_frames, transcoder=fake_transcoder)
    assert built.ok, built.error
    return built.data


def _seed_input(config, make_image) -> None:
    root = config.input_root
    (root / "clip.mov").write_bytes(b"raw video bytes")
    make_image(root / "photo.jpg", size=(640, 480))
    (root / "notes.txt").write_text("not media", encoding="utf-8")
    make_image(root / "sub" / "inner.png", size=(80, 40))


@pytest.mark.asyncio
async def test_walk_produces_outputs_and_derivatives(config, fake_probe, fake_frames, fake_transcoder, make_image) -> None:
    svc = _services(config, fake_probe, fake_frames, fake_transcoder)
    _seed_input(config, make_image)

    stats = await svc.walker.process("")

    assert stats.transcoded == 1
    assert stats.copied == 2
    assert stats.derived == 3
    assert stats.skipped == 1
    assert stats.failed == 0

    out, thumbs = config.output_root, config.thumbnail_root
    assert (out / "clip.mp4").read_bytes() == b"raw video bytes"
    assert (out / "photo.jpg").is_file()
    assert (out / "sub" / "inner.png").is_file()
    assert (thumbs / "clip.mp4.jpg").is_file()
    assert (thumbs / "clip.mp4.sheet.jpg").is_file()
    assert (thumbs / "clip.mp4.json").is_file()
    assert (thumbs / "photo.jpg.jpg").is_file()
    assert (thumbs / "sub" / "inner.png.jpg").is_file()

    # Center frame first, then evenly spaced sprite frames
    assert fake_frames.offsets == [6.0, 0.0, 3.0, 6.0, 9.0]
    # Sources are removed once handled
    assert sorted(p.name for p in config.input_root.iterdir()) == ["sub"]
    assert list((config.input_root / "sub").iterdir()) == []
    assert not list(config.working_root.glob("*.mp4"))


@pytest.mark.asyncio
async def test_repeated_walk_does_not_call_adapters_again(config, fake_probe, fake_frames, fake_transcoder, make_image) -> None:
    svc = _services(config, fake_probe, fake_frames, fake_transcoder, delete_source_after_processing=False)
    _seed_input(config, make_image)

    await svc.walker.process("")
    frames_after_first = len(fake_frames.offsets)
    second = await svc.walker.process("")

    assert fake_transcoder.calls == ["clip.mov"]
    assert len(fake_frames.offsets) == frames_after_first
    assert second.transcoded == 0
    assert second.copied == 0
    assert second.derived == 0
    assert (config.input_root / "clip.mov").is_file()


@pytest.mark.asyncio
async def test_failing_item_does_not_abort_walk(config, fake_probe, fake_frames, fake_transcoder, make_image) -> None:
    svc = _services(config, fake_probe, fake_frames, fake_transcoder)
    fake_transcoder.fail_names.add("bad.mov")
    (config.input_root / "bad.mov").write_bytes(b"broken")
    (config.input_root / "good.mov").write_bytes(b"fine")
    make_image(config.input_root / "photo.png")

    stats = await svc.walker.process("")

    assert stats.failed == 1
    assert stats.transcoded == 1
    assert stats.copied == 1
    assert (config.output_root / "good.mp4").is_file()
    assert not (config.output_root / "bad.mp4").exists()
    # Failed sources stay for the next pass
    assert (config.input_root / "bad.mov").is_file()
    assert not (config.input_root / "good.mov").exists()


@pytest.mark.asyncio
async def test_walk_invalidates_cached_listing(config, fake_probe, fake_frames, fake_transcoder, make_image) -> None:
    svc = _services(config, fake_probe, fake_frames, fake_transcoder)
    first = await svc.listing_cache.get("")
    assert first.ok and first.data["images"] == []
    assert svc.listing_cache.has("")

    make_image(config.input_root / "photo.jpg")
    await svc.walker.process("")

    assert not svc.listing_cache.has("")
    rebuilt = await svc.listing_cache.get("")
    assert [i["fullname"] for i in rebuilt.data["images"]] == ["photo.jpg"]


@pytest.mark.asyncio
async def test_walk_reports_state_and_progress(config, fake_probe, fake_frames, fake_transcoder) -> None:
    svc = _services(config, fake_probe, fake_frames, fake_transcoder)
    sent = []
    svc.broadcaster.broadcast = lambda command, content, exclude=None: sent.append((command, content)) or 1
    (config.input_root / "clip.mov").write_bytes(b"v")
    svc.state.enqueue("clip.mov")

    await svc.walker.process("")

    commands = [c for c, _ in sent]
    assert "conversion-progress" in commands
    stages = [content["processingStage"] for command, content in sent if command == "queue-update"]
    assert "transcoding" in stages
    assert "deriving" in stages
    assert svc.state.queue == []
