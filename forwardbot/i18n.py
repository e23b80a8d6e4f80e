from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict

log = logging.getLogger("forwardbot.i18n")

DEFAULT_LANGUAGE = "en"

LANGUAGE_NAMES = {"en": "English", "zh": "中文"}

STRINGS: Dict[str, Dict[str, str]] = {
    "en": {
        "guest_welcome": "👋 Hi! Send me a message and it will be delivered. Replies will show up here.",
        "guest_blocked": "🚫 You are blocked. Use /appeal <message> to request a review.",
        "guest_not_blocked": "You are not blocked, no appeal needed.",
        "guest_appeal_submitted": "📨 Your appeal was sent. Please wait for a decision.",
        "guest_appeal_pending": "⏳ Your appeal is already being reviewed.",
        "guest_rate_limited": "⏱ Too many messages. Try again in {seconds}s.",
        "guest_message_blocked": "⚠️ Your message was not delivered: {reason}",
        "guest_moderation_unavailable": "⚠️ Messages can't be checked right now. Please try again later.",
        "guest_error": "❌ Something went wrong. Please try again later.",
        "lang_select_prompt": "🌐 Choose your language:",
        "lang_changed": "✅ Language set to English.",
        "appeal_title": "📩 Appeal\n",
        "appeal_from": "From: {username} ({guest_id})\n",
        "appeal_blocked": "Blocked: {date}\n",
        "appeal_reason": "Reason: {reason}\n",
        "appeal_separator": "────────\n",
        "appeal_message": "{content}",
        "appeal_no_message": "(no message)",
        "appeal_accept_button": "✅ Unblock",
        "appeal_reject_button": "❌ Reject",
        "appeal_accepted_guest": "✅ Your appeal was accepted. You can send messages again.",
        "appeal_rejected_guest": "❌ Your appeal was rejected.",
        "appeal_accepted_admin": "✅ {guest_id} unblocked.",
        "appeal_rejected_admin": "❌ Appeal from {guest_id} rejected.",
        "admin_welcome": "👋 Relay is running. Reply to a forwarded message to answer it.",
        "admin_reply_hint": "Reply to a forwarded message to answer its sender.",
        "admin_need_target": "Reply to a forwarded message or pass a numeric user id.",
        "admin_blocked": "🚫 {guest_id} blocked.",
        "admin_unblocked": "✅ {guest_id} unblocked.",
        "admin_trusted": "⭐ {guest_id} is now trusted.",
        "admin_status": "👤 {guest_id}\nBlocked: {blocked}\nReason: {reason}\nTrust: {trust}/{threshold}",
        "admin_list_empty": "No blocked users.",
        "admin_list_header": "🚫 Blocked users ({count}):\n",
        "admin_list_item": "• {guest_id}: {reason} ({date})\n",
        "admin_stats": ("📊 Stats\nRelayed: {relayed}\nReplies: {replies}\nAI blocks: {ai_blocks}\n"
                        "Manual blocks: {manual_blocks}\nAppeals: {appeals}\nBlocked now: {blocked_now}"),
        "admin_check_safe": "✅ No issues found.",
        "admin_check_unsafe": "⚠️ Flagged: {reason}",
        "admin_check_failed": "Moderation check failed.",
        "admin_check_no_content": "Nothing to check.",
        "admin_moderation_disabled": "AI moderation is not configured.",
        "admin_usage_trustid": "Usage: /trustid <user id>",
        "admin_usage_checktext": "Usage: /checktext <text>",
        "admin_unknown_command": "Unknown command.",
    },
    "zh": {
        "guest_welcome": "👋 你好！直接发送消息即可送达，回复会显示在这里。",
        "guest_blocked": "🚫 你已被封禁。使用 /appeal <内容> 申请解封。",
        "guest_not_blocked": "你没有被封禁，无需申诉。",
        "guest_appeal_submitted": "📨 申诉已提交，请等待处理。",
        "guest_appeal_pending": "⏳ 你的申诉正在处理中。",
        "guest_rate_limited": "⏱ 发送过于频繁，请 {seconds} 秒后再试。",
        "guest_message_blocked": "⚠️ 消息未送达：{reason}",
        "guest_moderation_unavailable": "⚠️ 暂时无法审核消息，请稍后再试。",
        "guest_error": "❌ 出错了，请稍后再试。",
        "lang_select_prompt": "🌐 请选择语言：",
        "lang_changed": "✅ 语言已设置为中文。",
        "appeal_title": "📩 申诉\n",
        "appeal_from": "来自：{username}（{guest_id}）\n",
        "appeal_blocked": "封禁时间：{date}\n",
        "appeal_reason": "原因：{reason}\n",
        "appeal_separator": "────────\n",
        "appeal_message": "{content}",
        "appeal_no_message": "（无内容）",
        "appeal_accept_button": "✅ 解封",
        "appeal_reject_button": "❌ 驳回",
        "appeal_accepted_guest": "✅ 申诉已通过，你可以继续发送消息。",
        "appeal_rejected_guest": "❌ 申诉被驳回。",
        "appeal_accepted_admin": "✅ 已解封 {guest_id}。",
        "appeal_rejected_admin": "❌ 已驳回 {guest_id} 的申诉。",
        "admin_welcome": "👋 转发机器人运行中。回复转发的消息即可答复。",
        "admin_reply_hint": "请回复一条转发的消息来答复发送者。",
        "admin_need_target": "请回复转发的消息或提供数字用户 ID。",
        "admin_blocked": "🚫 已封禁 {guest_id}。",
        "admin_unblocked": "✅ 已解封 {guest_id}。",
        "admin_trusted": "⭐ 已信任 {guest_id}。",
        "admin_status": "👤 {guest_id}\n封禁：{blocked}\n原因：{reason}\n信任：{trust}/{threshold}",
        "admin_list_empty": "没有被封禁的用户。",
        "admin_list_header": "🚫 封禁列表（{count}）：\n",
        "admin_list_item": "• {guest_id}：{reason}（{date}）\n",
        "admin_stats": ("📊 统计\n已转发：{relayed}\n已回复：{replies}\nAI 拦截：{ai_blocks}\n"
                        "手动封禁：{manual_blocks}\n申诉：{appeals}\n当前封禁：{blocked_now}"),
        "admin_check_safe": "✅ 未发现问题。",
        "admin_check_unsafe": "⚠️ 违规：{reason}",
        "admin_check_failed": "审核失败。",
        "admin_check_no_content": "没有可审核的内容。",
        "admin_moderation_disabled": "未配置 AI 审核。",
        "admin_usage_trustid": "用法：/trustid <用户 ID>",
        "admin_usage_checktext": "用法：/checktext <文本>",
        "admin_unknown_command": "未知命令。",
    },
}


def t(key: str, lang: str = DEFAULT_LANGUAGE, **params) -> str:
    """Look up ``key`` in ``lang``, falling back to English, then to the key."""
    table = STRINGS.get(lang) or STRINGS[DEFAULT_LANGUAGE]
    template = table.get(key) or STRINGS[DEFAULT_LANGUAGE].get(key)
    if template is None:
        log.warning("Missing translation key %r", key)
        return key
    try:
        return template.format(**params)
    except KeyError as e:
        log.warning("Missing parameter %s for %r", e, key)
        return template


def is_supported(lang: str) -> bool:
    return lang in STRINGS


def language_keyboard() -> dict:
    return {
        "inline_keyboard": [
            [{"text": name, "callback_data": f"lang:{code}"} for code, name in LANGUAGE_NAMES.items()]
        ]
    }


def format_ms(ms) -> str:
    """Render an epoch-milliseconds timestamp for admin messages."""
    if not ms:
        return "?"
    return datetime.fromtimestamp(int(ms) / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
