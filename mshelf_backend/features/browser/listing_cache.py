"""
Directory listing cache.

Listings are built from the output tree joined with the metadata sidecar and
kept per normalized directory until a mutation touches that directory. Metadata
edits that do not change a listing's shape are patched into the cached record
instead of forcing a rebuild.
"""
from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ...adapters.imaging import image_size
from ...adapters.tools import FFProbe
from ...adapters.tools.ffprobe import PROBE_STUB, is_valid_probe
from ...config import FOLDER_THUMBNAIL_STEM, ShelfConfig
from ...path_utils import cache_key, join_logical, resolve_under
from ...shared import ErrorCode, Result, classify_file, get_logger, is_hidden_name, sanitize_error_message
from ..derivatives.service import read_coordinates
from ..metadata.store import META_KEY, MetadataStore
from .sorting import normalize_sort_option, sort_items

logger = get_logger(__name__)

LISTING_GROUPS = ("folders", "images", "videos")
# derivative not generated yet
_NO_SIZE = {"width": 0, "height": 0}


@dataclass
class CacheRecord:
    listing: dict
    sort_option: str


def _scan_directory(directory: Path) -> Optional[list[tuple[str, bool]]]:
    if not directory.is_dir():
        return None
    entries: list[tuple[str, bool]] = []
    with os.scandir(directory) as it:
        for entry in it:
            if is_hidden_name(entry.name):
                continue
            entries.append((entry.name, entry.is_dir()))
    return entries


class DirectoryListingCache:
    def __init__(self, config: ShelfConfig, metadata: MetadataStore, ffprobe: FFProbe):
        self._config = config
        self._metadata = metadata
        self._ffprobe = ffprobe
        self._records: dict[str, CacheRecord] = {}
        # Bumped on invalidation so a rebuild racing a mutation is not stored
        self._epochs: dict[str, int] = {}
        self._generation = 0

    def __len__(self) -> int:
        return len(self._records)

    def has(self, folder: str) -> bool:
        return cache_key(folder) in self._records

    def peek(self, folder: str) -> Optional[dict]:
        record = self._records.get(cache_key(folder))
        return record.listing if record else None

    async def get(self, folder: str, sort_option: Optional[str] = None) -> Result[dict]:
        """
        Listing for logical directory ``folder``.

        A cached record is reused when no sort is requested or the requested sort
        matches the cached one; otherwise the listing is rebuilt.
        """
        key = cache_key(folder)
        requested = normalize_sort_option(sort_option, self._metadata.counter_fields, self._config.default_sort)
        record = self._records.get(key)
        if record is not None and (requested is None or requested == record.sort_option):
            return Result.Ok(record.listing, cached=True)

        epoch = (self._generation, self._epochs.get(key, 0))
        try:
            built = await self._build(folder, requested)
        except OSError as exc:
            logger.error("Listing failed for '%s': %s", key, exc)
            return Result.Err(ErrorCode.LIST_FAILED, sanitize_error_message(exc, "Listing failed"))
        if not built.ok:
            return built
        if epoch == (self._generation, self._epochs.get(key, 0)):
            self._records[key] = CacheRecord(listing=built.data, sort_option=built.data["sortOption"])
        return Result.Ok(built.data, cached=False)

    def invalidate(self, folder: str) -> bool:
        key = cache_key(folder)
        self._epochs[key] = self._epochs.get(key, 0) + 1
        return self._records.pop(key, None) is not None

    def invalidate_tree(self, folder: str) -> int:
        """Invalidate ``folder`` and every cached descendant."""
        if not folder:
            return self.clear_all()
        key = cache_key(folder)
        prefix = f"{key}/"
        doomed = [k for k in self._records if k == key or k.startswith(prefix)]
        for k in doomed:
            self._records.pop(k, None)
        self._epochs[key] = self._epochs.get(key, 0) + 1
        self._generation += 1
        return len(doomed)

    def clear_all(self) -> int:
        count = len(self._records)
        self._records.clear()
        self._generation += 1
        return count

    def patch_item_metadata(self, folder: str, fullname: str, updates: dict) -> bool:
        """
        Merge ``updates`` into the cached item's metadata without a rebuild.

        The group the item belongs to is re-sorted with the record's sort option,
        so ordering stays consistent. Returns False when nothing is cached for it.
        """
        record = self._records.get(cache_key(folder))
        if record is None:
            return False
        listing = record.listing
        for group in LISTING_GROUPS:
            items = listing.get(group) or []
            for item in items:
                if item.get("fullname") != fullname:
                    continue
                item["metadata"] = {**(item.get("metadata") or {}), **(updates or {})}
                listing[group] = sort_items(items, record.sort_option, self._metadata.counter_fields)
                return True
        return False

    async def _build(self, folder: str, sort_option: Optional[str]) -> Result[dict]:
        directory = resolve_under(self._config.output_root, folder)
        entries = await asyncio.to_thread(_scan_directory, directory)
        if entries is None:
            return Result.Err(ErrorCode.DIR_NOT_FOUND, "Directory not found", path=cache_key(folder))

        if sort_option is None:
            sort_option = await self._metadata.stored_sort(folder) or self._config.default_sort
        reconciled = await self._metadata.reconcile(folder, [name for name, _ in entries], sort_option)
        sort_option = reconciled.get(META_KEY, {}).get("sortOption") or sort_option

        folders: list[dict] = []
        images: list[dict] = []
        videos: list[dict] = []
        for name, is_dir in entries:
            metadata = reconciled.get(name)
            if is_dir:
                folders.append(await self._folder_item(folder, name, metadata))
                continue
            kind = classify_file(name)
            if kind == "image":
                images.append(await self._image_item(folder, name, metadata))
            elif kind == "video":
                videos.append(await self._video_item(folder, name, metadata))

        counters = self._metadata.counter_fields
        listing = {
            "path": cache_key(folder),
            "sortOption": sort_option,
            "folders": sort_items(folders, sort_option, counters),
            "images": sort_items(images, sort_option, counters),
            "videos": sort_items(videos, sort_option, counters),
        }
        return Result.Ok(listing)

    def _base_item(self, folder: str, name: str, display_name: str, metadata: Optional[dict]) -> dict:
        return {
            "fullname": name,
            "name": display_name,
            "logicalPath": join_logical(folder, name),
            "homePath": folder,
            "metadata": metadata,
        }

    def _thumb_url(self, logical_path: str) -> str:
        return f"/{logical_path}.{self._config.thumbnail_ext}.{self._config.thumbnail_route_suffix}"

    async def _folder_item(self, folder: str, name: str, metadata: Optional[dict]) -> dict:
        item = self._base_item(folder, name, name, metadata)
        logical = item["logicalPath"]
        thumb = resolve_under(self._config.thumbnail_root, logical) / f"{FOLDER_THUMBNAIL_STEM}.{self._config.thumbnail_ext}"
        size = await asyncio.to_thread(image_size, thumb)
        item["thumbnail"] = {"url": self._thumb_url(f"{logical}/{FOLDER_THUMBNAIL_STEM}"), **(size or _NO_SIZE)}
        return item

    async def _image_item(self, folder: str, name: str, metadata: Optional[dict]) -> dict:
        item = self._base_item(folder, name, Path(name).stem, metadata)
        logical = item["logicalPath"]
        item["url"] = f"/{logical}"
        thumb = resolve_under(self._config.thumbnail_root, folder) / f"{name}.{self._config.thumbnail_ext}"
        size = await asyncio.to_thread(image_size, thumb)
        item["thumbnail"] = {"url": self._thumb_url(logical), **(size or _NO_SIZE)}
        return item

    async def _video_item(self, folder: str, name: str, metadata: Optional[dict]) -> dict:
        item = self._base_item(folder, name, name, metadata)
        logical = item["logicalPath"]
        item["url"] = f"/{logical}"

        probe = (metadata or {}).get("probe")
        if not is_valid_probe(probe):
            probed = await self._ffprobe.probe(resolve_under(self._config.output_root, logical))
            if probed.ok:
                probe = probed.data
                item["metadata"] = await self._metadata.update_item(folder, name, {"probe": probe})
            else:
                logger.warning("Probe failed for %s: %s", logical, probed.error)
                probe = dict(PROBE_STUB)
        item["probe"] = probe

        thumb_dir = resolve_under(self._config.thumbnail_root, folder)
        ext = self._config.thumbnail_ext
        thumb_size = await asyncio.to_thread(image_size, thumb_dir / f"{name}.{ext}")
        item["thumbnail"] = {"url": self._thumb_url(logical), **(thumb_size or _NO_SIZE)}

        sheet_size = await asyncio.to_thread(image_size, thumb_dir / f"{name}.sheet.{ext}")
        coordinates = await asyncio.to_thread(read_coordinates, thumb_dir / f"{name}.json")
        item["spriteSheet"] = {
            **(sheet_size or _NO_SIZE),
            "url": f"/{logical}.sheet.{ext}.{self._config.thumbnail_route_suffix}",
            "coordinates": coordinates,
        }
        return item
