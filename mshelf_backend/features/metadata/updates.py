"""
Client-driven metadata edits (view counts, counters, tags).

Edits go through the store first, are then patched into any cached listing and
finally echoed to the other observers.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Optional

from ...path_utils import normalize_logical_path, safe_item_name
from ...shared import ErrorCode, Result, get_logger
from ...utils import parse_int
from ..notify.broadcaster import NotificationBroadcaster
from .store import MetadataStore

if TYPE_CHECKING:
    from ..browser.listing_cache import DirectoryListingCache

logger = get_logger(__name__)

ACTION_INCREMENT = "increment"
ACTION_SET = "set"
SETTABLE_EXTRA_FIELDS = ("tags", "lastViewed")


class MetadataUpdateService:
    def __init__(
        self,
        store: MetadataStore,
        listing_cache: DirectoryListingCache,
        broadcaster: Optional[NotificationBroadcaster] = None,
    ):
        self._store = store
        self._cache = listing_cache
        self._broadcaster = broadcaster

    async def apply(self, payloads: Iterable[Any], *, origin: Any = None) -> Result[list[dict]]:
        """
        Apply ``metadata-update`` payloads.

        Invalid payloads are skipped; applied ones carry the resulting entry under
        ``metadata`` and are broadcast to every observer except ``origin``.
        """
        if not isinstance(payloads, (list, tuple)):
            return Result.Err(ErrorCode.INVALID_INPUT, "metadata-update content must be a list")

        applied: list[dict] = []
        skipped = 0
        for payload in payloads:
            entry = await self._apply_one(payload)
            if entry is None:
                skipped += 1
                continue
            applied.append(entry)

        if applied and self._broadcaster is not None:
            self._broadcaster.metadata_update(applied, exclude=origin)
        return Result.Ok(applied, skipped=skipped)

    async def _apply_one(self, payload: Any) -> Optional[dict]:
        if not isinstance(payload, dict):
            return None
        folder = normalize_logical_path(payload.get("homePath"))
        name = safe_item_name(payload.get("fullname"))
        action = payload.get("action")
        target = str(payload.get("target") or "")
        if folder is None or name is None:
            logger.warning("Ignoring metadata update with invalid location: %r", payload)
            return None

        if action == ACTION_INCREMENT:
            if target not in self._store.numeric_fields:
                logger.warning("Ignoring increment of unknown metric %r", target)
                return None
            entry = await self._store.increment_metric(folder, name, target)
        elif action == ACTION_SET:
            if target not in (*self._store.numeric_fields, *SETTABLE_EXTRA_FIELDS):
                logger.warning("Ignoring update of unsupported field %r", target)
                return None
            value = payload.get("value")
            if target == "tags":
                entry = await self._store.set_tags(folder, name, value if isinstance(value, list) else [])
            else:
                if target in self._store.numeric_fields:
                    value = parse_int(value)
                entry = await self._store.update_item(folder, name, {target: value})
        else:
            logger.warning("Ignoring metadata update with unknown action %r", action)
            return None

        self._cache.patch_item_metadata(folder, name, entry)
        return {
            "action": action,
            "target": target,
            "value": payload.get("value"),
            "fullname": name,
            "homePath": folder,
            "type": payload.get("type"),
            "metadata": entry,
        }
