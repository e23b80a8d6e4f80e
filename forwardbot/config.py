from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import ConfigError

WEBHOOK_PATH = "/endpoint"


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "y", "on"}


def parse_api_keys(raw: str) -> List[str]:
    """Split a comma-separated key list, dropping blanks."""
    return [k.strip() for k in (raw or "").split(",") if k.strip()]


@dataclass(frozen=True)
class Settings:
    bot_token: str
    admin_uid: str
    webhook_secret: Optional[str] = None

    # AI (Gemini)
    gemini_api_keys: List[str] = field(default_factory=list)
    gemini_model: str = "gemini-flash-lite-latest"
    enable_filter: bool = True
    # Block the sender automatically when content is flagged
    auto_block: bool = True
    # Forward the message when the moderation call fails
    moderation_fail_open: bool = True

    # Firebase Realtime Database; empty url means in-memory storage
    firebase_db_url: str = ""
    firebase_service_account: Optional[Dict[str, Any]] = None

    language: str = "en"

    rate_limit_max: int = 10
    rate_limit_window_ms: int = 60_000
    trust_threshold: int = 5
    moderation_cache_ttl_seconds: int = 7 * 24 * 3600
    relay_ttl_seconds: int = 30 * 24 * 3600

    log_level: str = "INFO"

    @property
    def moderation_enabled(self) -> bool:
        return self.enable_filter and bool(self.gemini_api_keys)


def load_settings() -> Settings:
    token = os.getenv("TELEGRAM_BOT_TOKEN", "").strip()
    if not token:
        raise ConfigError("TELEGRAM_BOT_TOKEN is required")
    admin_uid = os.getenv("ADMIN_UID", "").strip()
    if not admin_uid:
        raise ConfigError("ADMIN_UID is required")

    service_account = None
    raw_sa = os.getenv("FIREBASE_SERVICE_ACCOUNT", "").strip()
    if raw_sa:
        try:
            service_account = json.loads(raw_sa)
        except ValueError as e:
            raise ConfigError(f"FIREBASE_SERVICE_ACCOUNT is not valid JSON: {e}") from e

    return Settings(
        bot_token=token,
        admin_uid=admin_uid,
        webhook_secret=os.getenv("TELEGRAM_WEBHOOK_SECRET") or None,
        gemini_api_keys=parse_api_keys(os.getenv("GEMINI_API_KEY", "")),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-flash-lite-latest"),
        enable_filter=_get_bool("ENABLE_FILTER", True),
        auto_block=_get_bool("AUTO_BLOCK", True),
        moderation_fail_open=_get_bool("MODERATION_FAIL_OPEN", True),
        firebase_db_url=os.getenv("FIREBASE_DB_URL", "").strip().rstrip("/"),
        firebase_service_account=service_account,
        language=os.getenv("LANGUAGE", "en").strip() or "en",
        rate_limit_max=_get_int("RATE_LIMIT_MAX", 10),
        rate_limit_window_ms=_get_int("RATE_LIMIT_WINDOW_MS", 60_000),
        trust_threshold=_get_int("TRUST_THRESHOLD", 5),
        moderation_cache_ttl_seconds=_get_int("MODERATION_CACHE_TTL_SECONDS", 7 * 24 * 3600),
        relay_ttl_seconds=_get_int("RELAY_TTL_SECONDS", 30 * 24 * 3600),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
