from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .config import Settings
from .counters import Counters
from .guests import GuestStateManager
from .i18n import DEFAULT_LANGUAGE, is_supported
from .moderation import Moderator
from .moderation_cache import ModerationCache
from .ratelimit import RateLimiter
from .relays import RelayRegistry
from .store import KVStore, create_store
from .telegram import TelegramClient
from .trust import TrustScorer


@dataclass
class Services:
    """Everything a handler needs for one update."""

    settings: Settings
    store: KVStore
    telegram: TelegramClient
    relays: RelayRegistry
    guests: GuestStateManager
    trust: TrustScorer
    limiter: RateLimiter
    mod_cache: ModerationCache
    counters: Counters
    moderator: Optional[Moderator] = None

    @property
    def admin_uid(self) -> str:
        return self.settings.admin_uid

    async def lang_for(self, user_id) -> str:
        lang = await self.guests.get_language(str(user_id))
        if lang:
            return lang
        return self.settings.language if is_supported(self.settings.language) else DEFAULT_LANGUAGE


def build_services(settings: Settings, store: Optional[KVStore] = None,
                   telegram: Optional[TelegramClient] = None,
                   moderator: Optional[Moderator] = None) -> Services:
    store = store if store is not None else create_store(settings)
    if moderator is None and settings.moderation_enabled:
        moderator = Moderator(settings.gemini_api_keys, settings.gemini_model)
    return Services(
        settings=settings,
        store=store,
        telegram=telegram or TelegramClient(settings.bot_token),
        relays=RelayRegistry(store, ttl_seconds=settings.relay_ttl_seconds),
        guests=GuestStateManager(store),
        trust=TrustScorer(store, threshold=settings.trust_threshold),
        limiter=RateLimiter(store, settings.rate_limit_max, settings.rate_limit_window_ms),
        mod_cache=ModerationCache(store, ttl_seconds=settings.moderation_cache_ttl_seconds),
        counters=Counters(store),
        moderator=moderator,
    )
