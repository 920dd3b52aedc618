import json

import pytest

from mshelf_backend.features.metadata.store import META_KEY
from mshelf_backend.shared import ErrorCode


async def _derive(services, name):
    made = await services.thumbnails.make_video_derivatives(services.config.output_root / name, "")
    assert made.ok, made.error


@pytest.mark.asyncio
async def test_listing_shape(services, make_image) -> None:
    out = services.config.output_root
    (out / "trips").mkdir()
    make_image(out / "Beach.jpg", size=(640, 320))
    (out / "clip.mp4").write_bytes(b"video")
    (out / "readme.txt").write_text("ignored", encoding="utf-8")
    (out / ".hidden.jpg").write_bytes(b"")
    await services.thumbnails.make_image_thumbnail(out / "Beach.jpg", "")
    await _derive(services, "clip.mp4")

    result = await services.listing_cache.get("")
    assert result.ok
    assert result.meta["cached"] is False
    listing = result.data
    assert listing["path"] == "/"
    assert listing["sortOption"] == "name-asc"

    assert [f["fullname"] for f in listing["folders"]] == ["trips"]
    assert listing["folders"][0]["thumbnail"] == {"url": "/trips/_thumbnail.jpg.thumb", "width": 0, "height": 0}

    image = listing["images"][0]
    assert image["fullname"] == "Beach.jpg"
    assert image["name"] == "Beach"
    assert image["url"] == "/Beach.jpg"
    assert image["homePath"] == ""
    assert image["thumbnail"] == {"url": "/Beach.jpg.jpg.thumb", "width": 160, "height": 80}
    assert image["metadata"]["views"] == 0

    video = listing["videos"][0]
    assert video["fullname"] == "clip.mp4"
    assert video["probe"] == {"width": 640, "height": 360, "duration": 12.0, "aspectRatio": "16:9"}
    assert video["thumbnail"]["url"] == "/clip.mp4.jpg.thumb"
    sheet = video["spriteSheet"]
    assert sheet["url"] == "/clip.mp4.sheet.jpg.thumb"
    assert (sheet["width"], sheet["height"]) == (320, 180)
    assert len(sheet["coordinates"]) == 4
    assert video["metadata"]["probe"]["duration"] == 12.0


@pytest.mark.asyncio
async def test_cached_record_is_reused_until_invalidated(services) -> None:
    out = services.config.output_root
    (out / "a.jpg").write_bytes(b"")

    first = await services.listing_cache.get("")
    (out / "b.jpg").write_bytes(b"")
    second = await services.listing_cache.get("")
    assert second.meta["cached"] is True
    assert second.data is first.data
    assert len(second.data["images"]) == 1

    assert services.listing_cache.invalidate("") is True
    third = await services.listing_cache.get("")
    assert third.meta["cached"] is False
    assert [i["fullname"] for i in third.data["images"]] == ["a.jpg", "b.jpg"]


@pytest.mark.asyncio
async def test_sort_change_rebuilds_and_is_remembered(services) -> None:
    out = services.config.output_root
    for name in ("a.jpg", "b.jpg", "c.jpg"):
        (out / name).write_bytes(b"")
    await services.metadata.reconcile("", ["a.jpg", "b.jpg", "c.jpg"])
    for name, views in (("a.jpg", 3), ("b.jpg", 0), ("c.jpg", 7)):
        await services.metadata.update_item("", name, {"views": views})

    by_views = await services.listing_cache.get("", "views-desc")
    assert [i["metadata"]["views"] for i in by_views.data["images"]] == [7, 3, 0]
    assert by_views.data["sortOption"] == "views-desc"

    same = await services.listing_cache.get("", "views-desc")
    assert same.meta["cached"] is True

    sidecar = json.loads((out / ".metadata.json").read_text(encoding="utf-8"))
    assert sidecar[META_KEY]["sortOption"] == "views-desc"

    services.listing_cache.clear_all()
    again = await services.listing_cache.get("")
    assert again.data["sortOption"] == "views-desc"


@pytest.mark.asyncio
async def test_unknown_sort_falls_back_to_default(services) -> None:
    result = await services.listing_cache.get("", "size-desc")
    assert result.data["sortOption"] == "name-asc"


@pytest.mark.asyncio
async def test_patch_updates_cached_item_and_resorts(services) -> None:
    out = services.config.output_root
    for name in ("a.jpg", "b.jpg"):
        (out / name).write_bytes(b"")
    await services.listing_cache.get("", "views-desc")

    patched = services.listing_cache.patch_item_metadata("", "b.jpg", {"views": 9})

    assert patched is True
    images = services.listing_cache.peek("")["images"]
    assert [i["fullname"] for i in images] == ["b.jpg", "a.jpg"]
    assert images[0]["metadata"]["views"] == 9
    assert services.listing_cache.patch_item_metadata("", "zzz.jpg", {"views": 1}) is False
    assert services.listing_cache.patch_item_metadata("other", "a.jpg", {"views": 1}) is False


@pytest.mark.asyncio
async def test_invalidate_tree_drops_descendants(services) -> None:
    out = services.config.output_root
    (out / "a" / "b").mkdir(parents=True)
    (out / "c").mkdir()
    for folder in ("", "a", "a/b", "c"):
        await services.listing_cache.get(folder)
    assert len(services.listing_cache) == 4

    dropped = services.listing_cache.invalidate_tree("a")

    assert dropped == 2
    assert services.listing_cache.has("")
    assert services.listing_cache.has("c")
    assert not services.listing_cache.has("a/b")


@pytest.mark.asyncio
async def test_missing_directory(services) -> None:
    result = await services.listing_cache.get("nowhere")
    assert result.code == ErrorCode.DIR_NOT_FOUND
    assert not services.listing_cache.has("nowhere")


@pytest.mark.asyncio
async def test_failed_probe_uses_stub_and_retries(services, fake_probe) -> None:
    (services.config.output_root / "clip.mp4").write_bytes(b"v")
    fake_probe.fail = True

    first = await services.listing_cache.get("")
    assert first.data["videos"][0]["probe"] == {"width": 0, "height": 0, "duration": 0, "aspectRatio": ""}
    assert first.data["videos"][0]["spriteSheet"] == {"width": 0, "height": 0, "url": "/clip.mp4.sheet.jpg.thumb", "coordinates": None}
    assert "probe" not in first.data["videos"][0]["metadata"]

    fake_probe.fail = False
    services.listing_cache.invalidate("")
    second = await services.listing_cache.get("")
    assert second.data["videos"][0]["probe"]["width"] == 640
    assert len(fake_probe.calls) == 2

    services.listing_cache.invalidate("")
    await services.listing_cache.get("")
    # Stored probe is reused
    assert len(fake_probe.calls) == 2


@pytest.mark.asyncio
async def test_items_without_derivatives_keep_full_shape(services) -> None:
    out = services.config.output_root
    (out / "fresh.jpg").write_bytes(b"")
    (out / "fresh.mp4").write_bytes(b"v")

    listing = (await services.listing_cache.get("")).data

    assert listing["images"][0]["thumbnail"] == {"url": "/fresh.jpg.jpg.thumb", "width": 0, "height": 0}
    video = listing["videos"][0]
    assert video["thumbnail"] == {"url": "/fresh.mp4.jpg.thumb", "width": 0, "height": 0}
    assert video["spriteSheet"] == {
        "width": 0,
        "height": 0,
        "url": "/fresh.mp4.sheet.jpg.thumb",
        "coordinates": None,
    }
