"""Key-value storage behind every piece of bot state.

The bot keeps all of its state in a flat namespace of string keys. Values are
JSON-compatible structures wrapped in a small envelope::

    {"v": <value>, "exp": <epoch seconds or absent>}

Expiry is checked on read; an expired entry reads as missing. There are no
cross-key transactions. Read-modify-write callers accept lost updates under
concurrency, except :meth:`increment`, which maps to the backend's atomic
primitive where one exists.
"""
from __future__ import annotations

import asyncio
import copy
import logging
import time
from typing import Any, Callable, Dict, Optional

import httpx
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account

from .errors import StoreError

log = logging.getLogger("forwardbot.store")

RTDB_SCOPES = [
    "https://www.googleapis.com/auth/firebase.database",
    "https://www.googleapis.com/auth/userinfo.email",
]


def _wrap(value: Any, expire_in: Optional[int], now: float) -> Dict[str, Any]:
    env: Dict[str, Any] = {"v": value}
    if expire_in is not None:
        env["exp"] = now + max(1, int(expire_in))
    return env


def _unwrap(env: Any, now: float) -> Any:
    if not isinstance(env, dict) or "v" not in env:
        return None
    exp = env.get("exp")
    if exp is not None and float(exp) <= now:
        return None
    return env["v"]


class KVStore:
    """Interface shared by the storage backends."""

    async def get(self, key: str) -> Any:
        raise NotImplementedError

    async def put(self, key: str, value: Any, expire_in: Optional[int] = None) -> None:
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        raise NotImplementedError

    async def increment(self, key: str, by: int = 1) -> None:
        raise NotImplementedError

    async def children(self, prefix: str) -> Dict[str, Any]:
        """Live values stored under ``prefix/<name>``, keyed by ``name``."""
        raise NotImplementedError


class MemoryStore(KVStore):
    """Process-local store. Values are copied in and out like a real backend."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._data: Dict[str, Dict[str, Any]] = {}

    async def get(self, key: str) -> Any:
        env = self._data.get(key)
        if env is None:
            return None
        value = _unwrap(env, self._clock())
        if value is None:
            self._data.pop(key, None)
            return None
        return copy.deepcopy(value)

    async def put(self, key: str, value: Any, expire_in: Optional[int] = None) -> None:
        self._data[key] = _wrap(copy.deepcopy(value), expire_in, self._clock())

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def increment(self, key: str, by: int = 1) -> None:
        current = await self.get(key)
        self._data[key] = {"v": int(current or 0) + by}

    async def children(self, prefix: str) -> Dict[str, Any]:
        start = prefix + "/"
        out = {}
        for key in [k for k in self._data if k.startswith(start)]:
            value = await self.get(key)
            if value is not None:
                out[key[len(start):]] = value
        return out

    def __len__(self) -> int:
        return len(self._data)


class RTDBStore(KVStore):
    """Firebase Realtime Database over REST, one node per key under ``/kv``."""

    def __init__(
        self,
        db_url: str,
        service_account_info: Optional[Dict[str, Any]] = None,
        client: Optional[httpx.AsyncClient] = None,
        root: str = "/kv",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._url = db_url.rstrip("/")
        self._root = root
        self._clock = clock
        self._web = client or httpx.AsyncClient(timeout=20)
        self._creds = None
        if service_account_info:
            self._creds = service_account.Credentials.from_service_account_info(
                service_account_info, scopes=RTDB_SCOPES
            )

    async def _ensure_token(self) -> None:
        # Refresh token if needed (blocking -> thread)
        if self._creds is not None and (not self._creds.valid or self._creds.expired):
            await asyncio.to_thread(self._creds.refresh, GoogleAuthRequest())

    async def _request(self, method: str, path: str, data: Any = None) -> Any:
        url = f"{self._url}{self._root}/{path}.json"
        try:
            await self._ensure_token()
            headers = {}
            if self._creds is not None:
                headers["Authorization"] = f"Bearer {self._creds.token}"
            if method in ("GET", "DELETE"):
                r = await self._web.request(method, url, headers=headers)
            else:
                r = await self._web.request(method, url, headers=headers, json=data)
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise StoreError(f"RTDB {method} {path} failed: {e}") from e
        except GoogleAuthError as e:
            raise StoreError(f"RTDB auth failed: {e}") from e
        if not r.text:
            return None
        try:
            return r.json()
        except ValueError:
            return None

    async def get(self, key: str) -> Any:
        env = await self._request("GET", key)
        return _unwrap(env, self._clock())

    async def put(self, key: str, value: Any, expire_in: Optional[int] = None) -> None:
        await self._request("PUT", key, _wrap(value, expire_in, self._clock()))

    async def delete(self, key: str) -> None:
        await self._request("DELETE", key)

    async def increment(self, key: str, by: int = 1) -> None:
        await self._request("PUT", f"{key}/v", {".sv": {"increment": by}})

    async def children(self, prefix: str) -> Dict[str, Any]:
        nodes = await self._request("GET", prefix) or {}
        now = self._clock()
        out = {}
        for name, env in nodes.items():
            value = _unwrap(env, now)
            if value is not None:
                out[name] = value
        return out


def create_store(settings) -> KVStore:
    if settings.firebase_db_url:
        return RTDBStore(settings.firebase_db_url, settings.firebase_service_account)
    log.warning("FIREBASE_DB_URL not set, using in-memory store; state is lost on restart")
    return MemoryStore()
