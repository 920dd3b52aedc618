"""
Library mutations.

Every item exists in up to three parallel trees (input, output, thumbnails) plus
the sidecar of its directory. Operations here touch all of them, then invalidate
the affected listing-cache entries. Multi-step changes are best effort: a failure
part-way leaves earlier steps applied.
"""
from __future__ import annotations

import asyncio
import os
import shutil
from pathlib import Path
from typing import Optional

from ...config import ShelfConfig
from ...path_utils import join_logical, normalize_logical_path, parent_logical, resolve_under, safe_item_name
from ...shared import ErrorCode, Result, get_logger, is_hidden_name, sanitize_error_message
from ..browser.listing_cache import DirectoryListingCache
from ..derivatives.service import ThumbnailMaker
from ..ingest.state import ProcessingState
from ..metadata.store import MetadataStore

logger = get_logger(__name__)


def _remove_path(path: Path) -> bool:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
        return True
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False


def _has_visible_entries(directory: Path) -> bool:
    if not directory.is_dir():
        return False
    with os.scandir(directory) as it:
        return any(not is_hidden_name(entry.name) for entry in it)


class LibraryService:
    def __init__(
        self,
        config: ShelfConfig,
        metadata: MetadataStore,
        listing_cache: DirectoryListingCache,
        thumbnails: ThumbnailMaker,
        state: Optional[ProcessingState] = None,
    ):
        self._config = config
        self._metadata = metadata
        self._cache = listing_cache
        self._thumbnails = thumbnails
        self._state = state

    def _artifacts(self, folder: str, name: str) -> list[Path]:
        logical = join_logical(folder, name)
        return [
            resolve_under(self._config.input_root, logical),
            resolve_under(self._config.output_root, logical),
            resolve_under(self._config.thumbnail_root, logical),
            *self._thumbnails.paths_for(folder, name).all(),
        ]

    async def delete_item(self, path: Optional[str], name: Optional[str], is_folder: bool = False) -> Result[dict]:
        """
        Delete ``name`` from logical directory ``path``.

        ``hasContent`` is False when the directory itself was removed because
        nothing visible was left in it.
        """
        if self._state is not None and self._state.is_running:
            return Result.Err(ErrorCode.BUSY, "Cannot delete media while processing is running")
        folder = normalize_logical_path(path)
        item = safe_item_name(name)
        if folder is None or item is None:
            return Result.Err(ErrorCode.INVALID_INPUT, "Invalid path or name")

        artifacts = self._artifacts(folder, item)
        if not (artifacts[0].exists() or artifacts[1].exists()):
            return Result.Err(ErrorCode.NOT_FOUND, "Item not found")
        was_dir = artifacts[1].is_dir()

        try:
            for target in artifacts:
                await asyncio.to_thread(_remove_path, target)
        except OSError as exc:
            logger.error("Delete of %s failed part-way: %s", join_logical(folder, item), exc)
            self._cache.invalidate(folder)
            return Result.Err(ErrorCode.DELETE_FAILED, sanitize_error_message(exc, "Delete failed"))

        logical = join_logical(folder, item)
        if is_folder or was_dir:
            self._metadata.forget(logical)
            self._cache.invalidate_tree(logical)

        output_dir = resolve_under(self._config.output_root, folder)
        if folder and not await asyncio.to_thread(_has_visible_entries, output_dir):
            return await self._remove_empty_folder(folder)

        await self._metadata.remove_item(folder, item)
        self._cache.invalidate(folder)
        logger.info("Deleted %s", logical)
        return Result.Ok({"hasContent": True})

    async def _remove_empty_folder(self, folder: str) -> Result[dict]:
        try:
            for root in self._config.roots:
                await asyncio.to_thread(_remove_path, resolve_under(root, folder))
        except OSError as exc:
            logger.error("Could not remove emptied folder '%s': %s", folder, exc)
            return Result.Err(ErrorCode.DELETE_FAILED, sanitize_error_message(exc, "Delete failed"))
        parent = parent_logical(folder)
        self._metadata.forget(folder)
        await self._metadata.remove_item(parent, Path(folder).name)
        self._cache.invalidate_tree(folder)
        self._cache.invalidate(parent)
        logger.info("Removed emptied folder '%s'", folder)
        return Result.Ok({"hasContent": False})

    async def move_item(
        self,
        name: Optional[str],
        destination_path: Optional[str],
        operating_path: Optional[str] = None,
        source_path: Optional[str] = None,
        is_folder: bool = False,
    ) -> Result[dict]:
        """
        Move ``name`` from ``operating_path`` (or the parent of ``source_path``)
        to ``destination_path``, keeping its name and metadata entry.
        """
        item = safe_item_name(name)
        if operating_path is None and source_path is not None:
            src_logical = normalize_logical_path(source_path)
            source = parent_logical(src_logical) if src_logical else None
        else:
            source = normalize_logical_path(operating_path)
        destination = normalize_logical_path(destination_path)
        if item is None or source is None or destination is None:
            return Result.Err(ErrorCode.INVALID_INPUT, "Invalid move request")
        if source == destination:
            return Result.Err(ErrorCode.INVALID_INPUT, "Item is already in that folder")

        moved_logical = join_logical(source, item)
        if destination == moved_logical or destination.startswith(f"{moved_logical}/"):
            return Result.Err(ErrorCode.INVALID_INPUT, "Cannot move a folder into itself")
        if not resolve_under(self._config.output_root, destination).is_dir():
            return Result.Err(ErrorCode.DIR_NOT_FOUND, "Destination folder not found")
        if not resolve_under(self._config.output_root, moved_logical).exists():
            return Result.Err(ErrorCode.NOT_FOUND, "Item not found")
        if resolve_under(self._config.output_root, join_logical(destination, item)).exists():
            return Result.Err(ErrorCode.ALREADY_EXISTS, "An item with that name already exists")
        moves_folder = is_folder or resolve_under(self._config.output_root, moved_logical).is_dir()

        pairs = zip(self._artifacts(source, item), self._artifacts(destination, item))
        try:
            for src, dst in pairs:
                if not src.exists():
                    continue
                await asyncio.to_thread(dst.parent.mkdir, parents=True, exist_ok=True)
                await asyncio.to_thread(shutil.move, str(src), str(dst))
        except OSError as exc:
            logger.error("Move of %s to '%s' failed part-way: %s", moved_logical, destination, exc)
            self._cache.invalidate(source)
            self._cache.invalidate(destination)
            return Result.Err(ErrorCode.MOVE_FAILED, sanitize_error_message(exc, "Move failed"))

        entry = await self._metadata.pop_item(source, item)
        if entry is not None:
            await self._metadata.put_item(destination, item, entry)
        if moves_folder:
            self._metadata.forget(moved_logical)
            self._cache.invalidate_tree(moved_logical)
        self._cache.invalidate(source)
        self._cache.invalidate(destination)
        logger.info("Moved %s to '/%s'", moved_logical, destination)
        return Result.Ok({"name": item, "from": source, "to": destination})

    async def create_folder(self, path: Optional[str], name: Optional[str]) -> bool:
        """Ensure ``name`` exists under ``path`` in all three trees; False if ``path`` is missing anywhere."""
        folder = normalize_logical_path(path)
        item = safe_item_name(name)
        if folder is None or item is None:
            return False
        parents = [resolve_under(root, folder) for root in self._config.roots]
        if not all(parent.is_dir() for parent in parents):
            logger.warning("Cannot create '%s': parent '/%s' missing in a library tree", item, folder)
            return False
        try:
            for parent in parents:
                await asyncio.to_thread((parent / item).mkdir, exist_ok=True)
        except OSError as exc:
            logger.error("Could not create folder '%s': %s", join_logical(folder, item), exc)
            return False
        self._cache.invalidate(folder)
        return True

    async def clear_metadata(self) -> Result[dict]:
        """Drop every sidecar and every cached listing."""
        try:
            removed = await self._metadata.clear_all()
        except OSError as exc:
            logger.error("Clearing metadata sidecars failed: %s", exc)
            self._metadata.forget("")
            self._cache.clear_all()
            return Result.Err(ErrorCode.METADATA_FAILED, sanitize_error_message(exc, "Could not clear metadata"))
        evicted = self._cache.clear_all()
        return Result.Ok({"sidecarsRemoved": removed, "listingsEvicted": evicted})
