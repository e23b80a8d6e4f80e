import asyncio
import itertools

import pytest

from forwardbot.config import Settings
from forwardbot.counters import Counters
from forwardbot.errors import ModerationError
from forwardbot.guests import GuestStateManager
from forwardbot.moderation_cache import ModerationCache
from forwardbot.ratelimit import RateLimiter
from forwardbot.relays import RelayRegistry
from forwardbot.services import Services
from forwardbot.store import MemoryStore
from forwardbot.trust import TrustScorer

ADMIN = "1000"


def run(coro):
    return asyncio.run(coro)


class FakeClock:
    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeTelegram:
    """Records Bot API calls; forwards get increasing admin-side message ids."""

    def __init__(self, forward_ok=True):
        self.calls = []
        self.forward_ok = forward_ok
        self._ids = itertools.count(5000)

    def _record(self, method, **kwargs):
        self.calls.append((method, kwargs))

    def sent(self, method=None):
        return [kw for m, kw in self.calls if method is None or m == method]

    def texts_to(self, chat_id):
        return [kw["text"] for m, kw in self.calls if m == "send_message" and str(kw["chat_id"]) == str(chat_id)]

    async def send_message(self, chat_id, text, reply_markup=None, reply_to=None, parse_mode=None):
        self._record("send_message", chat_id=chat_id, text=text, reply_markup=reply_markup, reply_to=reply_to)
        return {"ok": True, "result": {"message_id": next(self._ids)}}

    async def forward_message(self, chat_id, from_chat_id, message_id):
        self._record("forward_message", chat_id=chat_id, from_chat_id=from_chat_id, message_id=message_id)
        if not self.forward_ok:
            return {"ok": False, "description": "Forbidden"}
        return {"ok": True, "result": {"message_id": next(self._ids)}}

    async def copy_message(self, chat_id, from_chat_id, message_id, reply_to=None):
        self._record("copy_message", chat_id=chat_id, from_chat_id=from_chat_id,
                     message_id=message_id, reply_to=reply_to)
        return {"ok": True, "result": {"message_id": next(self._ids)}}

    async def answer_callback_query(self, callback_query_id, text=None):
        self._record("answer_callback_query", callback_query_id=callback_query_id, text=text)
        return {"ok": True, "result": True}

    async def get_file(self, file_id):
        self._record("get_file", file_id=file_id)
        return {"ok": True, "result": {"file_path": f"files/{file_id}"}}

    def file_url(self, file_path):
        return f"https://files.test/{file_path}"

    async def set_webhook(self, url, secret_token=None, allowed_updates=None):
        self._record("set_webhook", url=url, secret_token=secret_token, allowed_updates=allowed_updates)
        return {"ok": True, "result": True}

    async def set_my_commands(self, commands, scope=None):
        self._record("set_my_commands", commands=commands, scope=scope)
        return {"ok": True, "result": True}


class FakeModerator:
    """Flags any text containing a word in ``bad_words``."""

    def __init__(self, bad_words=("spam",), fail=False):
        self.bad_words = bad_words
        self.fail = fail
        self.text_calls = []
        self.image_calls = []

    async def check_text(self, text):
        self.text_calls.append(text)
        if self.fail:
            raise ModerationError("service down")
        for w in self.bad_words:
            if w in text.lower():
                return f"contains {w}"
        return None

    async def check_image(self, url, caption=None):
        self.image_calls.append((url, caption))
        if self.fail:
            raise ModerationError("service down")
        return "nsfw image" if "bad" in url else None


def make_services(clock=None, moderator=None, telegram=None, **overrides):
    clock = clock or FakeClock()
    params = dict(bot_token="123:abc", admin_uid=ADMIN, gemini_api_keys=["key"],
                  rate_limit_max=10, rate_limit_window_ms=60_000, trust_threshold=3)
    params.update(overrides)
    settings = Settings(**params)
    store = MemoryStore(clock=clock)
    return Services(
        settings=settings,
        store=store,
        telegram=telegram or FakeTelegram(),
        relays=RelayRegistry(store, ttl_seconds=settings.relay_ttl_seconds),
        guests=GuestStateManager(store, clock=clock),
        trust=TrustScorer(store, threshold=settings.trust_threshold),
        limiter=RateLimiter(store, settings.rate_limit_max, settings.rate_limit_window_ms, clock=clock),
        mod_cache=ModerationCache(store, ttl_seconds=settings.moderation_cache_ttl_seconds),
        counters=Counters(store),
        moderator=moderator if moderator is not None else FakeModerator(),
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return MemoryStore(clock=clock)
