"""Gemini content moderation.

A check returns ``None`` for safe content or a short description of the
violation. Configured API keys are tried in order within one call; when all of
them fail :class:`ModerationError` is raised and the caller applies its
fail-open / fail-closed policy.
"""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

import google.generativeai as genai
import httpx

from .errors import ModerationError

log = logging.getLogger("forwardbot.moderation")

MODERATOR_PROMPT = (
    "You moderate messages sent anonymously to a private inbox. "
    "Flag spam, scams, phishing, harassment, threats, hate speech, and sexual or violent content. "
    "Ordinary rudeness, complaints and off-topic chatter are fine. "
    "Answer with exactly SAFE, or with UNSAFE: followed by a reason of at most ten words."
)


def parse_verdict(raw: str) -> Optional[str]:
    text = (raw or "").strip()
    head = text.upper()
    if head.startswith("UNSAFE"):
        reason = text[len("UNSAFE"):].lstrip(" :-").strip()
        return reason or "unsafe content"
    if head.startswith("SAFE"):
        return None
    raise ModerationError(f"unexpected moderation answer: {text[:50]!r}")


class Moderator:
    def __init__(self, api_keys: List[str], model_name: str,
                 client: Optional[httpx.AsyncClient] = None) -> None:
        if not api_keys:
            raise ValueError("at least one Gemini API key is required")
        self._keys = list(api_keys)
        self._model_name = model_name
        self._web = client or httpx.AsyncClient(timeout=20)
        # genai.configure is process-global, so key switch + call is serialized
        self._lock = asyncio.Lock()

    async def _generate(self, parts) -> str:
        last_error: Optional[Exception] = None
        async with self._lock:
            for i, key in enumerate(self._keys):
                try:
                    genai.configure(api_key=key)
                    model = genai.GenerativeModel(self._model_name)
                    resp = await asyncio.to_thread(model.generate_content, parts)
                    return getattr(resp, "text", "") or ""
                except Exception as e:  # SDK raises a wide range of google.api_core errors
                    log.warning("Gemini key #%d failed: %s", i + 1, e)
                    last_error = e
        raise ModerationError(f"all Gemini keys failed: {last_error}")

    async def check_text(self, text: str) -> Optional[str]:
        raw = await self._generate([MODERATOR_PROMPT, f"Message:\n{text}"])
        return parse_verdict(raw)

    async def check_image(self, url: str, caption: Optional[str] = None) -> Optional[str]:
        try:
            r = await self._web.get(url)
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            # the file URL embeds the bot token, keep it out of the message
            raise ModerationError(f"could not fetch image: HTTP {e.response.status_code}") from None
        except httpx.HTTPError as e:
            raise ModerationError(f"could not fetch image: {type(e).__name__}") from None
        mime = r.headers.get("content-type", "image/jpeg").split(";")[0]
        if mime == "application/octet-stream":
            mime = "image/webp" if url.endswith(".webp") else "image/jpeg"
        parts = [MODERATOR_PROMPT, {"mime_type": mime, "data": r.content}]
        if caption:
            parts.append(f"Caption:\n{caption}")
        raw = await self._generate(parts)
        return parse_verdict(raw)
