"""Guest messages.

Flow: block lookup -> /lang -> /appeal -> blocked stop -> /start ->
rate limit -> moderation (unless trusted) -> relay + forward.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .. import counters as C
from ..errors import ModerationError
from ..i18n import format_ms, language_keyboard, t
from ..moderation_cache import fingerprint
from ..services import Services
from . import parse_command

log = logging.getLogger("forwardbot.guest")


def appeal_keyboard(guest_id: str, lang: str) -> dict:
    return {
        "inline_keyboard": [[
            {"text": t("appeal_accept_button", lang), "callback_data": f"appeal:accept:{guest_id}"},
            {"text": t("appeal_reject_button", lang), "callback_data": f"appeal:reject:{guest_id}"},
        ]]
    }


async def _file_url(svc: Services, file_id: str, what: str) -> Optional[str]:
    res = await svc.telegram.get_file(file_id)
    if not res.get("ok"):
        log.warning("Failed to get %s file: %s", what, res.get("description"))
        return None
    return svc.telegram.file_url(res["result"]["file_path"])


async def check_message_content(message: Dict[str, Any], svc: Services) -> Optional[str]:
    """Return a violation description, or None when nothing was flagged.

    Text goes through the verdict cache; photos and static stickers are
    checked directly. Raises ModerationError when the service is unusable.
    """
    moderator = svc.moderator
    text = message.get("text") or message.get("caption")
    if text:
        fp = fingerprint(text)
        cached = await svc.mod_cache.get_cached(fp)
        if cached.hit:
            log.debug("Moderation cache hit")
            if cached.result:
                return cached.result
        else:
            result = await moderator.check_text(text)
            await svc.mod_cache.put_cached(fp, result)
            if result:
                return result

    if message.get("photo"):
        photo = message["photo"][-1]
        url = await _file_url(svc, photo["file_id"], "photo")
        if url:
            result = await moderator.check_image(url, message.get("caption"))
            if result:
                return result

    sticker = message.get("sticker")
    if sticker:
        if sticker.get("is_animated") or sticker.get("is_video"):
            log.debug("Skipping animated/video sticker")
        else:
            url = await _file_url(svc, sticker["file_id"], "sticker")
            if url:
                result = await moderator.check_image(url)
                if result:
                    return result

    return None


async def _handle_unsafe(svc: Services, guest_id: str, verdict: str, lang: str):
    await svc.counters.increment(C.AI_BLOCKS)
    if svc.settings.auto_block:
        await svc.guests.set_blocked(guest_id, True, f"AI Filter: {verdict}")
        await svc.trust.reset_trust(guest_id)
    return await svc.telegram.send_message(guest_id, t("guest_message_blocked", lang, reason=verdict))


async def _handle_appeal(message: Dict[str, Any], svc: Services, guest_id: str, args: str, lang: str):
    if not await svc.guests.submit_appeal(guest_id, args):
        return await svc.telegram.send_message(guest_id, t("guest_appeal_pending", lang))
    await svc.counters.increment(C.APPEALS)

    sender = message.get("from") or {}
    username = sender.get("username") or sender.get("first_name") or "Unknown"
    admin_lang = await svc.lang_for(svc.admin_uid)
    info = await svc.guests.get_block_info(guest_id)

    text = t("appeal_title", admin_lang)
    text += t("appeal_from", admin_lang, username=username, guest_id=guest_id)
    text += t("appeal_blocked", admin_lang, date=format_ms(info.blocked_at) if info else "?")
    text += t("appeal_reason", admin_lang, reason=(info.reason if info else "") or "Unknown")
    text += t("appeal_separator", admin_lang)
    text += t("appeal_message", admin_lang, content=args) if args else t("appeal_no_message", admin_lang)

    await svc.telegram.send_message(svc.admin_uid, text, reply_markup=appeal_keyboard(guest_id, admin_lang))

    # the guest may attach the message that got them blocked by replying to it
    reply = message.get("reply_to_message")
    if reply:
        await svc.telegram.forward_message(svc.admin_uid, guest_id, reply["message_id"])

    return await svc.telegram.send_message(guest_id, t("guest_appeal_submitted", lang))


async def _process(message: Dict[str, Any], svc: Services):
    guest_id = str(message["chat"]["id"])
    lang = await svc.lang_for(guest_id)
    cmd, args = parse_command(message.get("text") or "")

    blocked = await svc.guests.is_blocked(guest_id)

    if cmd == "/lang":
        return await svc.telegram.send_message(guest_id, t("lang_select_prompt", lang),
                                               reply_markup=language_keyboard())

    if cmd == "/appeal":
        if not blocked:
            return await svc.telegram.send_message(guest_id, t("guest_not_blocked", lang))
        return await _handle_appeal(message, svc, guest_id, args, lang)

    if blocked:
        return await svc.telegram.send_message(guest_id, t("guest_blocked", lang))

    if cmd == "/start":
        return await svc.telegram.send_message(guest_id, t("guest_welcome", lang))

    rate = await svc.limiter.check_rate_limit(guest_id)
    if not rate.allowed:
        log.info("Rate limited: %s (%ss)", guest_id, rate.reset_in)
        return await svc.telegram.send_message(guest_id, t("guest_rate_limited", lang, seconds=rate.reset_in))

    if svc.settings.enable_filter and svc.moderator is not None:
        if await svc.trust.is_trusted(guest_id):
            log.debug("Trusted guest, skipping moderation: %s", guest_id)
        else:
            try:
                verdict = await check_message_content(message, svc)
            except ModerationError as e:
                if not svc.settings.moderation_fail_open:
                    log.warning("Moderation unavailable, rejecting message from %s: %s", guest_id, e)
                    return await svc.telegram.send_message(guest_id, t("guest_moderation_unavailable", lang))
                log.warning("Moderation unavailable, forwarding unchecked message from %s: %s", guest_id, e)
            else:
                if verdict:
                    return await _handle_unsafe(svc, guest_id, verdict, lang)
                await svc.trust.increment_trust(guest_id)

    relay = await svc.relays.create_relay(guest_id, message)
    fwd = await svc.telegram.forward_message(svc.admin_uid, message["chat"]["id"], message["message_id"])
    if fwd.get("ok"):
        await svc.relays.link_admin_message(fwd["result"]["message_id"], relay.id)
        await svc.counters.increment(C.RELAYED)
    return fwd


async def handle_guest_message(message: Dict[str, Any], svc: Services):
    try:
        return await _process(message, svc)
    except Exception as e:
        chat_id = (message.get("chat") or {}).get("id")
        log.exception("Guest handler error for %s: %s", chat_id, e)
        if chat_id is None:
            return None
        # the store may be what failed, so use the configured language
        try:
            await svc.telegram.send_message(chat_id, t("guest_error", svc.settings.language))
        except Exception as notify_error:
            log.debug("Could not notify guest %s of failure: %s", chat_id, notify_error)
        return None
