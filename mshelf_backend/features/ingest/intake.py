"""
Upload intake.

Multipart file parts are streamed into a private staging folder under the
working root, because the destination path may arrive after the files. Staged
files are then committed into the input tree (``media``) or turned into a folder
thumbnail (``folderThumb``).
"""
from __future__ import annotations

import asyncio
import os
import shutil
import tempfile
import zipfile
from pathlib import Path
from typing import Any, Optional

from ...config import FOLDER_THUMBNAIL_STEM, ShelfConfig
from ...path_utils import is_within_root, parent_logical, resolve_under, safe_item_name
from ...shared import ErrorCode, Result, get_logger, sanitize_error_message
from ..browser.listing_cache import DirectoryListingCache
from ..derivatives.service import ThumbnailMaker
from .debounce import Debouncer
from .state import ProcessingState

logger = get_logger(__name__)

_UPLOAD_READ_CHUNK_BYTES = 256 * 1024
STAGING_DIRNAME = "uploads"


class UploadTooLarge(ValueError):
    pass


def _extract_zip(archive: Path, destination: Path) -> int:
    """Extract ``archive`` into ``destination``; members escaping it are skipped."""
    extracted = 0
    with zipfile.ZipFile(archive) as zf:
        destination.mkdir(parents=True, exist_ok=True)
        for member in zf.infolist():
            target = destination / member.filename
            if not is_within_root(target, destination):
                logger.warning("Skipping unsafe archive member %r in %s", member.filename, archive.name)
                continue
            zf.extract(member, destination)
            extracted += 1
    return extracted


class UploadIntake:
    def __init__(
        self,
        config: ShelfConfig,
        state: ProcessingState,
        debouncer: Debouncer,
        thumbnails: ThumbnailMaker,
        listing_cache: DirectoryListingCache,
    ):
        self._config = config
        self._state = state
        self._debouncer = debouncer
        self._thumbnails = thumbnails
        self._cache = listing_cache

    def new_staging_dir(self) -> Path:
        root = self._config.working_root / STAGING_DIRNAME
        root.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix="batch-", dir=root))

    @staticmethod
    def discard_staging(staging: Path) -> None:
        shutil.rmtree(staging, ignore_errors=True)

    async def stage_part(self, staging: Path, filename: Optional[str], field: Any) -> Result[Path]:
        """
        Stream one multipart part into ``staging`` under its validated filename.

        ``field`` only needs ``read_chunk(size)`` (aiohttp ``BodyPartReader``).
        """
        safe_name = safe_item_name(Path(str(filename or "")).name)
        if safe_name is None:
            return Result.Err(ErrorCode.INVALID_INPUT, "Invalid filename")

        fd, tmp_path = tempfile.mkstemp(dir=str(staging), prefix=".part_")
        try:
            with os.fdopen(fd, "wb") as handle:
                await self._write_chunks(field, handle)
            final = staging / safe_name
            Path(tmp_path).replace(final)
            return Result.Ok(final)
        except UploadTooLarge as exc:
            Path(tmp_path).unlink(missing_ok=True)
            return Result.Err(ErrorCode.INVALID_INPUT, str(exc))
        except OSError as exc:
            Path(tmp_path).unlink(missing_ok=True)
            return Result.Err(ErrorCode.UPLOAD_FAILED, sanitize_error_message(exc, "Upload failed"))

    async def _write_chunks(self, field: Any, handle) -> None:
        total = 0
        limit = self._config.max_upload_bytes
        while True:
            chunk = await field.read_chunk(size=_UPLOAD_READ_CHUNK_BYTES)
            if not chunk:
                break
            total += len(chunk)
            if total > limit:
                raise UploadTooLarge(f"File exceeds maximum size ({limit} bytes)")
            await asyncio.to_thread(handle.write, chunk)

    async def ingest_media(self, staged: list[Path], folder: str) -> Result[list[str]]:
        """
        Move staged files into ``<input>/<folder>/`` (overwriting), expand zip
        archives next to them, queue every name and re-arm the debounce.
        """
        if not staged:
            return Result.Err(ErrorCode.INVALID_INPUT, "No files uploaded")
        target_dir = resolve_under(self._config.input_root, folder)
        try:
            await asyncio.to_thread(target_dir.mkdir, parents=True, exist_ok=True)
        except OSError as exc:
            return Result.Err(ErrorCode.UPLOAD_FAILED, sanitize_error_message(exc, "Cannot create destination directory"))

        accepted: list[str] = []
        for path in staged:
            destination = target_dir / path.name
            try:
                await asyncio.to_thread(shutil.move, str(path), str(destination))
            except OSError as exc:
                logger.error("Could not commit upload %s: %s", path.name, exc)
                continue
            accepted.append(path.name)
            if destination.suffix.lower() == ".zip":
                await self._expand_archive(destination)
            self._state.enqueue(path.name)

        if not accepted:
            return Result.Err(ErrorCode.UPLOAD_FAILED, "No files could be written")
        logger.info("Accepted %s upload(s) into '/%s'", len(accepted), folder)
        self._debouncer.arm()
        return Result.Ok(accepted)

    async def _expand_archive(self, archive: Path) -> None:
        destination = archive.with_name(archive.stem)
        try:
            count = await asyncio.to_thread(_extract_zip, archive, destination)
            logger.info("Extracted %s entries from %s", count, archive.name)
        except (zipfile.BadZipFile, OSError, RuntimeError) as exc:
            logger.error("Could not extract %s, leaving archive as uploaded: %s", archive.name, exc)

    async def ingest_folder_thumbnail(self, staged: Path, folder: str) -> Result[Path]:
        """Make ``staged`` the thumbnail shown for logical folder ``folder``."""
        if not folder:
            return Result.Err(ErrorCode.INVALID_INPUT, "The library root has no folder thumbnail")
        ext = self._config.thumbnail_ext
        scratch = staged.with_name(f".thumb_{staged.stem}.{ext}")
        made = await self._thumbnails.make_thumbnail(staged, scratch)
        if not made.ok:
            return Result.Err(made.code, made.error or "Thumbnail failed")

        final = resolve_under(self._config.thumbnail_root, folder) / f"{FOLDER_THUMBNAIL_STEM}.{ext}"
        try:
            await asyncio.to_thread(final.parent.mkdir, parents=True, exist_ok=True)
            await asyncio.to_thread(shutil.move, str(scratch), str(final))
        except OSError as exc:
            return Result.Err(ErrorCode.UPLOAD_FAILED, sanitize_error_message(exc, "Could not store folder thumbnail"))
        self._cache.invalidate(parent_logical(folder))
        return Result.Ok(final)

    def note_arrival(self, name: str) -> None:
        """A file showed up in the input tree without an upload (watcher path)."""
        if name not in self._state.queue:
            self._state.enqueue(name)
        self._debouncer.arm()
