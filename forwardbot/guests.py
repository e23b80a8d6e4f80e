from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .store import KVStore

log = logging.getLogger("forwardbot.guests")

HISTORY_LIMIT = 10
BLOCKED_INDEX = "blocked-index"


@dataclass(frozen=True)
class BlockInfo:
    reason: str
    blocked_at: int  # epoch ms


def _block_key(guest_id: str) -> str:
    return f"guest:{guest_id}:block"


def _lang_key(guest_id: str) -> str:
    return f"guest:{guest_id}:lang"


def _appeal_key(guest_id: str) -> str:
    return f"guest:{guest_id}:appeal"


class GuestStateManager:
    """Block status, language and appeals for guests.

    Guests are never registered; every accessor returns a default for an
    unknown id. Unblocking clears the current reason and timestamp and keeps
    the block history.
    """

    def __init__(self, store: KVStore, clock: Callable[[], float] = time.time) -> None:
        self._store = store
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def _block_doc(self, guest_id: str) -> Dict[str, Any]:
        return await self._store.get(_block_key(str(guest_id))) or {}

    async def is_blocked(self, guest_id: str) -> bool:
        doc = await self._block_doc(guest_id)
        return bool(doc.get("blocked", False))

    async def set_blocked(self, guest_id: str, blocked: bool, reason: str = "") -> None:
        guest_id = str(guest_id)
        doc = await self._block_doc(guest_id)
        hist = doc.get("history", [])
        now = self._now_ms()
        if blocked:
            doc.update(blocked=True, reason=reason, blocked_at=now)
            hist.append({"action": "block", "reason": reason, "at": now})
        else:
            doc.update(blocked=False, reason=None, blocked_at=None)
            hist.append({"action": "unblock", "at": now})
        doc["history"] = hist[-HISTORY_LIMIT:]
        await self._store.put(_block_key(guest_id), doc)
        await self._update_index(guest_id, blocked, reason, now)
        if not blocked:
            await self.clear_appeal(guest_id)
        log.info("Guest %s %s%s", guest_id, "blocked" if blocked else "unblocked",
                 f" ({reason})" if blocked and reason else "")

    async def _update_index(self, guest_id: str, blocked: bool, reason: str, now: int) -> None:
        # one node per guest so concurrent blocks never overwrite each other
        key = f"{BLOCKED_INDEX}/{guest_id}"
        if blocked:
            await self._store.put(key, {"reason": reason, "blocked_at": now})
        else:
            await self._store.delete(key)

    async def get_block_info(self, guest_id: str) -> Optional[BlockInfo]:
        doc = await self._block_doc(guest_id)
        if not doc.get("blocked"):
            return None
        return BlockInfo(reason=doc.get("reason") or "", blocked_at=int(doc.get("blocked_at") or 0))

    async def get_block_history(self, guest_id: str) -> List[Dict[str, Any]]:
        doc = await self._block_doc(guest_id)
        return doc.get("history", [])

    async def list_blocked(self) -> Dict[str, BlockInfo]:
        index = await self._store.children(BLOCKED_INDEX)
        return {
            gid: BlockInfo(reason=v.get("reason") or "", blocked_at=int(v.get("blocked_at") or 0))
            for gid, v in index.items()
        }

    async def get_language(self, guest_id: str) -> Optional[str]:
        return await self._store.get(_lang_key(str(guest_id)))

    async def set_language(self, guest_id: str, code: str) -> None:
        await self._store.put(_lang_key(str(guest_id)), code)

    # Appeals

    async def submit_appeal(self, guest_id: str, text: str = "") -> bool:
        """Record a pending appeal. Returns False if one is already pending."""
        guest_id = str(guest_id)
        if await self.get_appeal(guest_id) is not None:
            return False
        await self._store.put(_appeal_key(guest_id), {"text": text, "submitted_at": self._now_ms()})
        return True

    async def get_appeal(self, guest_id: str) -> Optional[Dict[str, Any]]:
        return await self._store.get(_appeal_key(str(guest_id)))

    async def clear_appeal(self, guest_id: str) -> None:
        await self._store.delete(_appeal_key(str(guest_id)))
