from __future__ import annotations

import hashlib
import unicodedata
from typing import NamedTuple, Optional

from .store import KVStore


class CacheLookup(NamedTuple):
    hit: bool
    result: Optional[str] = None


def fingerprint(content: str) -> str:
    """Exact-match key for moderated text: sha256 of the NFC form, stripped."""
    normalized = unicodedata.normalize("NFC", content or "").strip()
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


class ModerationCache:
    """Stores moderation verdicts so repeated content is not re-scored.

    Safe verdicts (``None``) are cached the same way as violations.
    """

    def __init__(self, store: KVStore, ttl_seconds: int = 7 * 24 * 3600) -> None:
        self._store = store
        self._ttl = ttl_seconds

    async def get_cached(self, fp: str) -> CacheLookup:
        doc = await self._store.get(f"modcache:{fp}")
        if doc is None:
            return CacheLookup(False)
        if not doc.get("flagged"):
            return CacheLookup(True, None)
        return CacheLookup(True, doc.get("reason") or "unsafe content")

    async def put_cached(self, fp: str, result: Optional[str]) -> None:
        # no null fields: Firebase drops them and an emptied node vanishes
        doc = {"flagged": bool(result), "reason": result or ""}
        await self._store.put(f"modcache:{fp}", doc, expire_in=self._ttl)
