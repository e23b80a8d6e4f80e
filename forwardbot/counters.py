from __future__ import annotations

from typing import Dict, Iterable

from .store import KVStore

AI_BLOCKS = "ai-blocks"
MANUAL_BLOCKS = "manual-blocks"
RELAYED = "relayed"
REPLIES = "replies"
APPEALS = "appeals"

ALL_COUNTERS = (RELAYED, REPLIES, AI_BLOCKS, MANUAL_BLOCKS, APPEALS)


class Counters:
    """Named statistics counters. Best effort, never reset here."""

    def __init__(self, store: KVStore) -> None:
        self._store = store

    async def increment(self, name: str) -> None:
        await self._store.increment(f"counter:{name}")

    async def get(self, name: str) -> int:
        return int(await self._store.get(f"counter:{name}") or 0)

    async def snapshot(self, names: Iterable[str] = ALL_COUNTERS) -> Dict[str, int]:
        return {name: await self.get(name) for name in names}
