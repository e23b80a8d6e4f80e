from __future__ import annotations

from .store import KVStore


def _trust_key(guest_id: str) -> str:
    return f"guest:{guest_id}:trust"


class TrustScorer:
    """Per-guest count of messages that passed moderation.

    Guests at or above ``threshold`` skip moderation. The score never decays;
    only an admin action resets it.
    """

    def __init__(self, store: KVStore, threshold: int = 5) -> None:
        self._store = store
        self.threshold = max(0, int(threshold))

    async def get_score(self, guest_id: str) -> int:
        return int(await self._store.get(_trust_key(str(guest_id))) or 0)

    async def is_trusted(self, guest_id: str) -> bool:
        return await self.get_score(guest_id) >= self.threshold

    async def increment_trust(self, guest_id: str) -> int:
        # read-then-write; concurrent increments may be lost
        score = await self.get_score(guest_id) + 1
        await self._store.put(_trust_key(str(guest_id)), score)
        return score

    async def grant_trust(self, guest_id: str) -> None:
        score = await self.get_score(guest_id)
        if score < self.threshold:
            await self._store.put(_trust_key(str(guest_id)), self.threshold)

    async def reset_trust(self, guest_id: str) -> None:
        await self._store.delete(_trust_key(str(guest_id)))
