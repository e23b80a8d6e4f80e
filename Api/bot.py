# Api/bot.py: forwardbot webhook entry (FastAPI, Vercel)
import logging
from typing import Any, Dict

from fastapi import FastAPI, Header, HTTPException, Request

from forwardbot.config import WEBHOOK_PATH, load_settings
from forwardbot.handlers.admin import handle_admin_message, handle_callback_query
from forwardbot.handlers.guest import handle_guest_message
from forwardbot.services import build_services

# ========= Config =========
settings = load_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
log = logging.getLogger("forwardbot.webhook")

ADMIN_COMMANDS = [
    {"command": "start", "description": "Start the bot"},
    {"command": "list", "description": "View blocked users"},
    {"command": "stats", "description": "View statistics"},
    {"command": "block", "description": "Block user (reply to message)"},
    {"command": "unblock", "description": "Unblock user (reply to message)"},
    {"command": "trust", "description": "Whitelist user (reply to message)"},
    {"command": "trustid", "description": "Whitelist user by ID"},
    {"command": "status", "description": "Check user status (reply to message)"},
    {"command": "check", "description": "AI content check (reply to message)"},
    {"command": "checktext", "description": "AI check any text"},
    {"command": "lang", "description": "Change language"},
]

GUEST_COMMANDS = [
    {"command": "start", "description": "Start the bot"},
    {"command": "appeal", "description": "Appeal if blocked"},
    {"command": "lang", "description": "Change language"},
]

ALLOWED_UPDATES = ["message", "callback_query", "edited_message"]

# ========= Services / App =========
svc = build_services(settings)
app = FastAPI()

# ========= Health =========
@app.get("/api/health")
async def health():
    return {"ok": True, "store": type(svc.store).__name__, "moderation": svc.moderator is not None}

# ========= Setup =========
@app.get("/registerWebhook")
async def register_webhook(request: Request):
    url = request.url
    webhook_url = f"{url.scheme}://{url.hostname}{WEBHOOK_PATH}"
    return await svc.telegram.set_webhook(webhook_url, settings.webhook_secret, ALLOWED_UPDATES)

@app.get("/unRegisterWebhook")
async def unregister_webhook():
    return await svc.telegram.set_webhook("")

@app.get("/registerCommands")
async def register_commands():
    admin = await svc.telegram.set_my_commands(
        ADMIN_COMMANDS, scope={"type": "chat", "chat_id": int(settings.admin_uid)}
    )
    default = await svc.telegram.set_my_commands(GUEST_COMMANDS, scope={"type": "default"})
    return {"admin": admin, "default": default}

# ========= Webhook =========
@app.post(WEBHOOK_PATH)
async def telegram_webhook(request: Request, x_telegram_bot_api_secret_token: str = Header(None)):
    if settings.webhook_secret and x_telegram_bot_api_secret_token != settings.webhook_secret:
        log.warning("Unauthorized webhook attempt")
        raise HTTPException(status_code=403, detail="bad secret")
    update = await request.json()
    try:
        await handle_update(update)
    except Exception as e:
        # Avoid 500 to keep webhook healthy
        log.exception("Update %s failed: %s", update.get("update_id"), e)
    return {"ok": True}

# ========= Core Handler =========
async def handle_update(update: Dict[str, Any]):
    if "message" in update:
        msg = update["message"]
        chat_id = str(msg["chat"]["id"])
        log.info("Message from %s: %s", chat_id, (msg.get("text") or "[media]")[:50])
        if chat_id == settings.admin_uid:
            return await handle_admin_message(msg, svc)
        return await handle_guest_message(msg, svc)

    if "callback_query" in update:
        query = update["callback_query"]
        log.info("Callback: %s", query.get("data"))
        return await handle_callback_query(query, svc)

    if "edited_message" in update:
        # edits are not re-moderated or re-forwarded
        log.info("Message %s was edited", update["edited_message"].get("message_id"))
        return None
