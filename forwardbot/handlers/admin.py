"""Admin messages and inline-button callbacks."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from .. import counters as C
from ..errors import ModerationError
from ..i18n import format_ms, is_supported, language_keyboard, t
from ..services import Services
from . import parse_command

log = logging.getLogger("forwardbot.admin")


async def _resolve_target(message: Dict[str, Any], svc: Services, args: str) -> Tuple[Optional[str], str]:
    """Guest id from the replied-to forward, else from a leading numeric argument."""
    reply = message.get("reply_to_message")
    if reply:
        relay = await svc.relays.resolve_relay(reply["message_id"])
        if relay:
            return relay.guest_id, args
    parts = args.split(maxsplit=1)
    if parts and parts[0].lstrip("-").isdigit():
        return parts[0], parts[1] if len(parts) > 1 else ""
    return None, args


async def relay_reply(message: Dict[str, Any], svc: Services):
    """Copy the admin's reply into the chat of the guest it answers."""
    reply = message["reply_to_message"]
    relay = await svc.relays.resolve_relay(reply["message_id"])
    if relay is None:
        log.debug("Reply to untracked message %s ignored", reply["message_id"])
        return None
    res = await svc.telegram.copy_message(
        relay.guest_id, message["chat"]["id"], message["message_id"], reply_to=relay.guest_message_id
    )
    if res.get("ok"):
        await svc.counters.increment(C.REPLIES)
    return res


async def _run_check(svc: Services, text: Optional[str], lang: str) -> str:
    if svc.moderator is None:
        return t("admin_moderation_disabled", lang)
    if not text:
        return t("admin_check_no_content", lang)
    try:
        verdict = await svc.moderator.check_text(text)
    except ModerationError as e:
        log.warning("Admin check failed: %s", e)
        return t("admin_check_failed", lang)
    return t("admin_check_unsafe", lang, reason=verdict) if verdict else t("admin_check_safe", lang)


async def _list_blocked(svc: Services, lang: str) -> str:
    blocked = await svc.guests.list_blocked()
    if not blocked:
        return t("admin_list_empty", lang)
    out = t("admin_list_header", lang, count=len(blocked))
    for gid, info in sorted(blocked.items(), key=lambda kv: kv[1].blocked_at):
        out += t("admin_list_item", lang, guest_id=gid, reason=info.reason or "-", date=format_ms(info.blocked_at))
    return out


async def _stats(svc: Services, lang: str) -> str:
    snap = await svc.counters.snapshot()
    blocked = await svc.guests.list_blocked()
    return t(
        "admin_stats", lang,
        relayed=snap[C.RELAYED], replies=snap[C.REPLIES], ai_blocks=snap[C.AI_BLOCKS],
        manual_blocks=snap[C.MANUAL_BLOCKS], appeals=snap[C.APPEALS], blocked_now=len(blocked),
    )


async def _command(cmd: str, args: str, message: Dict[str, Any], svc: Services, lang: str):
    admin = svc.admin_uid
    send = svc.telegram.send_message

    if cmd == "/start":
        return await send(admin, t("admin_welcome", lang))
    if cmd == "/lang":
        return await send(admin, t("lang_select_prompt", lang), reply_markup=language_keyboard())
    if cmd == "/list":
        return await send(admin, await _list_blocked(svc, lang))
    if cmd == "/stats":
        return await send(admin, await _stats(svc, lang))
    if cmd == "/checktext":
        if not args:
            return await send(admin, t("admin_usage_checktext", lang))
        return await send(admin, await _run_check(svc, args, lang))
    if cmd == "/check":
        reply = message.get("reply_to_message") or {}
        return await send(admin, await _run_check(svc, reply.get("text") or reply.get("caption"), lang))
    if cmd == "/trustid":
        gid = args.split()[0] if args else ""
        if not gid.lstrip("-").isdigit():
            return await send(admin, t("admin_usage_trustid", lang))
        await svc.trust.grant_trust(gid)
        return await send(admin, t("admin_trusted", lang, guest_id=gid))

    if cmd in ("/block", "/unblock", "/trust", "/status"):
        gid, rest = await _resolve_target(message, svc, args)
        if gid is None:
            return await send(admin, t("admin_need_target", lang))
        if cmd == "/block":
            await svc.guests.set_blocked(gid, True, rest or "Blocked by admin")
            await svc.trust.reset_trust(gid)
            await svc.counters.increment(C.MANUAL_BLOCKS)
            return await send(admin, t("admin_blocked", lang, guest_id=gid))
        if cmd == "/unblock":
            await svc.guests.set_blocked(gid, False)
            return await send(admin, t("admin_unblocked", lang, guest_id=gid))
        if cmd == "/trust":
            await svc.trust.grant_trust(gid)
            return await send(admin, t("admin_trusted", lang, guest_id=gid))
        info = await svc.guests.get_block_info(gid)
        return await send(admin, t(
            "admin_status", lang, guest_id=gid, blocked="yes" if info else "no",
            reason=info.reason if info else "-", trust=await svc.trust.get_score(gid),
            threshold=svc.trust.threshold,
        ))

    return await send(admin, t("admin_unknown_command", lang))


async def handle_admin_message(message: Dict[str, Any], svc: Services):
    try:
        lang = await svc.lang_for(svc.admin_uid)
        cmd, args = parse_command(message.get("text") or "")
        if cmd:
            return await _command(cmd, args, message, svc, lang)
        if message.get("reply_to_message"):
            return await relay_reply(message, svc)
        return await svc.telegram.send_message(svc.admin_uid, t("admin_reply_hint", lang))
    except Exception as e:
        log.exception("Admin handler error: %s", e)
        return None


async def _appeal_decision(svc: Services, action: str, guest_id: str, admin_lang: str) -> str:
    guest_lang = await svc.lang_for(guest_id)
    if action == "accept":
        await svc.guests.set_blocked(guest_id, False)
        await svc.telegram.send_message(guest_id, t("appeal_accepted_guest", guest_lang))
        return t("appeal_accepted_admin", admin_lang, guest_id=guest_id)
    await svc.guests.clear_appeal(guest_id)
    await svc.telegram.send_message(guest_id, t("appeal_rejected_guest", guest_lang))
    return t("appeal_rejected_admin", admin_lang, guest_id=guest_id)


async def handle_callback_query(query: Dict[str, Any], svc: Services):
    data = query.get("data") or ""
    user_id = str((query.get("from") or {}).get("id", ""))
    try:
        parts = data.split(":")
        if parts[0] == "lang" and len(parts) == 2 and is_supported(parts[1]):
            await svc.guests.set_language(user_id, parts[1])
            return await svc.telegram.answer_callback_query(query["id"], t("lang_changed", parts[1]))

        if parts[0] == "appeal" and len(parts) == 3 and parts[1] in ("accept", "reject"):
            if user_id != svc.admin_uid:
                log.warning("Appeal callback from non-admin %s ignored", user_id)
                return await svc.telegram.answer_callback_query(query["id"])
            admin_lang = await svc.lang_for(svc.admin_uid)
            note = await _appeal_decision(svc, parts[1], parts[2], admin_lang)
            await svc.telegram.send_message(svc.admin_uid, note)
            return await svc.telegram.answer_callback_query(query["id"], note)

        log.info("Unknown callback data %r", data)
        return await svc.telegram.answer_callback_query(query["id"])
    except Exception as e:
        log.exception("Callback handler error (%s): %s", data, e)
        return None
