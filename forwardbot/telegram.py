from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

log = logging.getLogger("forwardbot.telegram")

API_BASE = "https://api.telegram.org"


class TelegramClient:
    """Bot API calls used by the relay.

    Every method returns the decoded response (``{"ok": ..., "result": ...}``).
    A non-OK answer is logged and returned; transport errors propagate.
    """

    def __init__(self, token: str, client: Optional[httpx.AsyncClient] = None) -> None:
        self._token = token
        self._api = f"{API_BASE}/bot{token}"
        self._tg = client or httpx.AsyncClient(timeout=20)

    async def _call(self, method: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        log.debug("%s %s", method, json.dumps(payload, ensure_ascii=False)[:100])
        r = await self._tg.post(f"{self._api}/{method}", json=payload)
        try:
            data = r.json()
        except ValueError:
            data = {"ok": False, "description": f"HTTP {r.status_code}"}
        if not data.get("ok"):
            log.warning("%s failed: %s", method, data.get("description"))
        return data

    async def send_message(self, chat_id, text: str, reply_markup: Optional[dict] = None,
                           reply_to: Optional[int] = None, parse_mode: Optional[str] = None):
        payload: Dict[str, Any] = {"chat_id": chat_id, "text": text, "disable_web_page_preview": True}
        if reply_markup:
            payload["reply_markup"] = reply_markup
        if reply_to:
            payload["reply_to_message_id"] = reply_to
            payload["allow_sending_without_reply"] = True
        if parse_mode:
            payload["parse_mode"] = parse_mode
        return await self._call("sendMessage", payload)

    async def forward_message(self, chat_id, from_chat_id, message_id: int):
        return await self._call("forwardMessage", {
            "chat_id": chat_id, "from_chat_id": from_chat_id, "message_id": message_id,
        })

    async def copy_message(self, chat_id, from_chat_id, message_id: int, reply_to: Optional[int] = None):
        payload: Dict[str, Any] = {"chat_id": chat_id, "from_chat_id": from_chat_id, "message_id": message_id}
        if reply_to:
            payload["reply_to_message_id"] = reply_to
            payload["allow_sending_without_reply"] = True
        return await self._call("copyMessage", payload)

    async def answer_callback_query(self, callback_query_id: str, text: Optional[str] = None):
        payload: Dict[str, Any] = {"callback_query_id": callback_query_id}
        if text:
            payload["text"] = text
        return await self._call("answerCallbackQuery", payload)

    async def set_webhook(self, url: str, secret_token: Optional[str] = None,
                          allowed_updates: Optional[List[str]] = None):
        payload: Dict[str, Any] = {"url": url}
        if secret_token:
            payload["secret_token"] = secret_token
        if allowed_updates is not None:
            payload["allowed_updates"] = allowed_updates
        return await self._call("setWebhook", payload)

    async def set_my_commands(self, commands: List[Dict[str, str]], scope: Optional[dict] = None):
        payload: Dict[str, Any] = {"commands": commands}
        if scope:
            payload["scope"] = scope
        return await self._call("setMyCommands", payload)

    async def get_file(self, file_id: str):
        return await self._call("getFile", {"file_id": file_id})

    def file_url(self, file_path: str) -> str:
        return f"{API_BASE}/file/bot{self._token}/{file_path}"
