"""Relay records: which guest message an admin-side forward came from.

A relay is created before the forward call and linked to the admin message id
once the forward returns. If the forward fails the record stays orphaned:
it is kept for audit but no admin reply can reach it.
"""
from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from .store import KVStore

log = logging.getLogger("forwardbot.relays")

PREVIEW_LEN = 100


@dataclass(frozen=True)
class RelayRecord:
    id: str
    guest_id: str
    guest_message_id: int
    preview: Optional[str] = None
    created_at: int = 0


def relay_key(relay_id: str) -> str:
    return f"relay:{relay_id}"


def admin_msg_key(admin_message_id: int) -> str:
    return f"admin-msg:{admin_message_id}"


def make_preview(message: Dict[str, Any]) -> str:
    text = message.get("text") or message.get("caption")
    if text:
        return text[:PREVIEW_LEN]
    for kind in ("photo", "sticker", "video", "voice", "audio", "document", "animation"):
        if message.get(kind):
            return f"[{kind}]"
    return "[media]"


class RelayRegistry:
    def __init__(self, store: KVStore, ttl_seconds: Optional[int] = None) -> None:
        self._store = store
        self._ttl = ttl_seconds

    async def create_relay(self, guest_id: str, message: Dict[str, Any]) -> RelayRecord:
        """Persist a relay for ``message`` and return it.

        The id is ``"<guest_id>:<message_id>"``. When a record with that id
        already exists it is returned unchanged.
        """
        guest_id = str(guest_id)
        message_id = int(message["message_id"])
        relay_id = f"{guest_id}:{message_id}"

        existing = await self._store.get(relay_key(relay_id))
        if existing is not None:
            log.info("Relay %s already exists, reusing", relay_id)
            return RelayRecord(**existing)

        record = RelayRecord(
            id=relay_id,
            guest_id=guest_id,
            guest_message_id=message_id,
            preview=make_preview(message),
            created_at=int(time.time()),
        )
        await self._store.put(relay_key(relay_id), asdict(record), expire_in=self._ttl)
        return record

    async def link_admin_message(self, admin_message_id: int, relay_id: str) -> None:
        await self._store.put(admin_msg_key(admin_message_id), relay_id, expire_in=self._ttl)

    async def resolve_relay(self, admin_message_id: int) -> Optional[RelayRecord]:
        relay_id = await self._store.get(admin_msg_key(admin_message_id))
        if relay_id is None:
            return None
        data = await self._store.get(relay_key(relay_id))
        if data is None:
            log.warning("Admin message %s links to missing relay %s", admin_message_id, relay_id)
            return None
        return RelayRecord(**data)
