"""
Metadata sidecar store.

Each output directory carries a hidden ``.metadata.json``::

    {
      "_meta": {"sortOption": "name-asc"},
      "clip.mp4": {"createdAt": "...", "lastViewed": null, "views": 0,
                   "favorite": 0, "special": 0, "tags": [], "probe": {...}}
    }

After every reconciliation the non-``_meta`` keys equal the directory's current
visible item names. Files are rewritten atomically (temp file + rename); a failed
write is logged and the in-memory copy stays authoritative until the next write.
"""
from __future__ import annotations

import asyncio
import copy
import json
import os
from pathlib import Path
from typing import Any, Iterable, Optional

from ...config import DEFAULT_COUNTER_FIELDS, DEFAULT_SORT_OPTION, METADATA_FILENAME
from ...path_utils import resolve_under
from ...shared import get_logger, iso_timestamp

logger = get_logger(__name__)

META_KEY = "_meta"
VIEWS_FIELD = "views"


def _read_sidecar(path: Path) -> dict:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as exc:
        logger.warning("Could not read %s: %s", path, exc)
        return {}
    try:
        data = json.loads(raw)
    except ValueError as exc:
        logger.warning("Corrupt metadata sidecar %s, starting fresh: %s", path, exc)
        return {}
    return data if isinstance(data, dict) else {}


def _write_sidecar(path: Path, data: dict) -> None:
    tmp = path.with_name(f"{path.name}.{os.getpid()}.tmp")
    try:
        tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, path)
    finally:
        tmp.unlink(missing_ok=True)


def _creation_time(path: Path) -> str:
    try:
        st = path.stat()
    except OSError:
        return iso_timestamp()
    return iso_timestamp(getattr(st, "st_birthtime", None) or st.st_mtime)


class MetadataStore:
    """Owns every MetadataEntry; callers receive copies."""

    def __init__(
        self,
        output_root: Path,
        counter_fields: Iterable[str] = DEFAULT_COUNTER_FIELDS,
        filename: str = METADATA_FILENAME,
        default_sort: str = DEFAULT_SORT_OPTION,
    ):
        self._root = Path(output_root)
        self._counters = tuple(counter_fields)
        self._filename = filename
        self._default_sort = default_sort
        self._cache: dict[str, dict] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def counter_fields(self) -> tuple[str, ...]:
        return self._counters

    @property
    def numeric_fields(self) -> tuple[str, ...]:
        return (VIEWS_FIELD, *self._counters)

    def sidecar_path(self, folder: str) -> Path:
        return resolve_under(self._root, folder) / self._filename

    def default_entry(self, created_at: Optional[str] = None) -> dict:
        entry: dict[str, Any] = {
            "createdAt": created_at or iso_timestamp(),
            "lastViewed": None,
            VIEWS_FIELD: 0,
        }
        for name in self._counters:
            entry[name] = 0
        entry["tags"] = []
        return entry

    def _lock(self, folder: str) -> asyncio.Lock:
        lock = self._locks.get(folder)
        if lock is None:
            lock = self._locks[folder] = asyncio.Lock()
        return lock

    async def _load(self, folder: str) -> dict:
        data = self._cache.get(folder)
        if data is None:
            data = await asyncio.to_thread(_read_sidecar, self.sidecar_path(folder))
            self._cache[folder] = data
        return data

    async def _save(self, folder: str) -> bool:
        data = self._cache.get(folder)
        if data is None:
            return False
        path = self.sidecar_path(folder)
        try:
            await asyncio.to_thread(_write_sidecar, path, data)
        except OSError as exc:
            logger.error("Failed to persist metadata for '%s': %s", folder or "/", exc)
            return False
        return True

    async def stored_sort(self, folder: str) -> Optional[str]:
        """The sort option last recorded for ``folder``, if any."""
        async with self._lock(folder):
            data = await self._load(folder)
        meta = data.get(META_KEY)
        value = meta.get("sortOption") if isinstance(meta, dict) else None
        return value if isinstance(value, str) and value else None

    async def reconcile(self, folder: str, item_names: Iterable[str], sort_option: Optional[str] = None) -> dict:
        """
        Bring the sidecar in line with ``item_names`` and record the sort option.

        Returns a copy of the reconciled map (including ``_meta``).
        """
        names = [name for name in item_names if name != self._filename]
        wanted = set(names)
        directory = resolve_under(self._root, folder)
        async with self._lock(folder):
            data = await self._load(folder)
            changed = False

            meta = data.get(META_KEY)
            if not isinstance(meta, dict):
                meta = data[META_KEY] = {}
                changed = True
            sort_value = sort_option or meta.get("sortOption") or self._default_sort
            if meta.get("sortOption") != sort_value:
                meta["sortOption"] = sort_value
                changed = True

            for stale in [key for key in data if key != META_KEY and key not in wanted]:
                del data[stale]
                changed = True

            for name in names:
                entry = data.get(name)
                if isinstance(entry, dict):
                    changed = self._backfill(entry) or changed
                    continue
                created = await asyncio.to_thread(_creation_time, directory / name)
                data[name] = self.default_entry(created)
                changed = True

            if changed:
                await self._save(folder)
            return copy.deepcopy(data)

    def _backfill(self, entry: dict) -> bool:
        changed = False
        for key, value in self.default_entry().items():
            if key not in entry:
                entry[key] = value
                changed = True
        return changed

    def get_item(self, folder: str, name: str) -> Optional[dict]:
        """In-memory lookup; None when the directory has not been loaded or the item is unknown."""
        entry = self._cache.get(folder, {}).get(name)
        return copy.deepcopy(entry) if isinstance(entry, dict) else None

    async def load_item(self, folder: str, name: str) -> Optional[dict]:
        async with self._lock(folder):
            data = await self._load(folder)
        entry = data.get(name)
        return copy.deepcopy(entry) if isinstance(entry, dict) and name != META_KEY else None

    async def _mutate(self, folder: str, name: str, mutator) -> dict:
        if not name or name == META_KEY:
            raise ValueError("invalid item name")
        async with self._lock(folder):
            data = await self._load(folder)
            entry = data.get(name)
            if not isinstance(entry, dict):
                entry = data[name] = self.default_entry()
            mutator(entry)
            await self._save(folder)
            return copy.deepcopy(entry)

    async def update_item(self, folder: str, name: str, updates: dict) -> dict:
        """Merge ``updates`` into the entry (creating a stub if absent) and persist."""
        payload = dict(updates or {})
        return await self._mutate(folder, name, lambda entry: entry.update(payload))

    async def increment_metric(self, folder: str, name: str, field: str) -> dict:
        if field not in self.numeric_fields:
            raise ValueError(f"unknown metric: {field}")

        def _bump(entry: dict) -> None:
            try:
                entry[field] = int(entry.get(field) or 0) + 1
            except (TypeError, ValueError):
                entry[field] = 1
            if field == VIEWS_FIELD:
                entry["lastViewed"] = iso_timestamp()

        return await self._mutate(folder, name, _bump)

    async def set_tags(self, folder: str, name: str, tags: Iterable[str]) -> dict:
        cleaned = _clean_tags(tags)
        return await self._mutate(folder, name, lambda entry: entry.__setitem__("tags", cleaned))

    async def add_tag(self, folder: str, name: str, tag: str) -> dict:
        def _add(entry: dict) -> None:
            entry["tags"] = _clean_tags([*(entry.get("tags") or []), tag])

        return await self._mutate(folder, name, _add)

    async def remove_tag(self, folder: str, name: str, tag: str) -> dict:
        target = str(tag).strip()

        def _remove(entry: dict) -> None:
            entry["tags"] = [t for t in (entry.get("tags") or []) if t != target]

        return await self._mutate(folder, name, _remove)

    async def remove_item(self, folder: str, name: str) -> bool:
        return (await self.pop_item(folder, name)) is not None

    async def pop_item(self, folder: str, name: str) -> Optional[dict]:
        """Remove and return the entry for ``name`` (persisting the sidecar)."""
        async with self._lock(folder):
            data = await self._load(folder)
            entry = data.pop(name, None) if name != META_KEY else None
            if entry is not None:
                await self._save(folder)
            return entry if isinstance(entry, dict) else None

    async def put_item(self, folder: str, name: str, entry: dict) -> dict:
        """Insert ``entry`` verbatim (used when an item moves between directories)."""
        stored = copy.deepcopy(entry)
        self._backfill(stored)

        def _replace(current: dict) -> None:
            current.clear()
            current.update(stored)

        return await self._mutate(folder, name, _replace)

    def forget(self, folder: str) -> None:
        """Drop in-memory state for ``folder`` and everything below it."""
        if not folder:
            self._cache.clear()
            return
        prefix = f"{folder}/"
        for key in list(self._cache):
            if key == folder or key.startswith(prefix):
                self._cache.pop(key, None)

    async def find_items_by_tag(self, tag: str) -> list[dict]:
        """Every item in the library carrying ``tag`` as ``{homePath, fullname, metadata}``."""
        target = str(tag).strip()
        if not target:
            return []
        sidecars = await asyncio.to_thread(self._scan_sidecars)
        matches: list[dict] = []
        for folder, path in sidecars:
            data = self._cache.get(folder)
            if data is None:
                data = await asyncio.to_thread(_read_sidecar, path)
            for name, entry in data.items():
                if name == META_KEY or not isinstance(entry, dict):
                    continue
                if target in (entry.get("tags") or []):
                    matches.append({"homePath": folder, "fullname": name, "metadata": copy.deepcopy(entry)})
        return matches

    def _scan_sidecars(self) -> list[tuple[str, Path]]:
        found: list[tuple[str, Path]] = []
        if not self._root.is_dir():
            return found
        for dirpath, _dirnames, filenames in os.walk(self._root):
            if self._filename in filenames:
                rel = Path(dirpath).relative_to(self._root).as_posix()
                found.append(("" if rel == "." else rel, Path(dirpath) / self._filename))
        return sorted(found)

    async def clear_all(self) -> int:
        """Delete every sidecar under the output root. Returns how many were removed."""
        sidecars = await asyncio.to_thread(self._scan_sidecars)
        removed = 0
        for _folder, path in sidecars:
            try:
                await asyncio.to_thread(path.unlink)
                removed += 1
            except FileNotFoundError:
                continue
        self._cache.clear()
        logger.info("Cleared %s metadata sidecar(s)", removed)
        return removed


def _clean_tags(tags: Iterable[str]) -> list[str]:
    out: list[str] = []
    for tag in tags or []:
        value = str(tag).strip()
        if value and value not in out:
            out.append(value)
    return out
