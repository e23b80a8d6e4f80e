"""Tests for admin commands, reply routing and callbacks."""

from conftest import ADMIN, make_services, run
from forwardbot.handlers.admin import handle_admin_message, handle_callback_query
from forwardbot.handlers.guest import handle_guest_message
from forwardbot.i18n import t

GUEST = 42


def guest_says(svc, message_id, text, chat_id=GUEST):
    """Relay a guest message and return the admin-side message id."""
    fwd = run(handle_guest_message({"message_id": message_id, "chat": {"id": chat_id}, "text": text}, svc))
    return fwd["result"]["message_id"]


def admin_msg(message_id, text, reply_to=None):
    m = {"message_id": message_id, "chat": {"id": int(ADMIN)}, "text": text}
    if reply_to is not None:
        m["reply_to_message"] = {"message_id": reply_to}
    return m


def last_admin_text(svc):
    return svc.telegram.texts_to(ADMIN)[-1]


def test_reply_is_copied_to_guest():
    svc = make_services()
    fwd_id = guest_says(svc, 7, "hi admin")
    run(handle_admin_message(admin_msg(100, "hi guest", reply_to=fwd_id), svc))

    assert svc.telegram.sent("copy_message") == [
        {"chat_id": str(GUEST), "from_chat_id": int(ADMIN), "message_id": 100, "reply_to": 7}
    ]
    assert run(svc.counters.get("replies")) == 1


def test_replies_route_to_the_right_guest():
    svc = make_services()
    first = guest_says(svc, 1, "from 42", chat_id=42)
    second = guest_says(svc, 1, "from 43", chat_id=43)
    run(handle_admin_message(admin_msg(100, "to 43", reply_to=second), svc))
    run(handle_admin_message(admin_msg(101, "to 42", reply_to=first), svc))
    assert [c["chat_id"] for c in svc.telegram.sent("copy_message")] == ["43", "42"]


def test_reply_to_untracked_message_is_ignored():
    svc = make_services()
    run(handle_admin_message(admin_msg(100, "hello?", reply_to=12345), svc))
    assert svc.telegram.calls == []


def test_plain_admin_message_gets_hint():
    svc = make_services()
    run(handle_admin_message(admin_msg(100, "hello"), svc))
    assert last_admin_text(svc) == t("admin_reply_hint")


def test_block_by_reply_resets_trust():
    svc = make_services()
    fwd_id = guest_says(svc, 1, "hello")
    assert run(svc.trust.get_score(str(GUEST))) == 1

    run(handle_admin_message(admin_msg(100, "/block rude", reply_to=fwd_id), svc))
    info = run(svc.guests.get_block_info(str(GUEST)))
    assert info.reason == "rude"
    assert run(svc.trust.get_score(str(GUEST))) == 0
    assert run(svc.counters.get("manual-blocks")) == 1
    assert last_admin_text(svc) == t("admin_blocked", guest_id=str(GUEST))


def test_block_and_unblock_by_id():
    svc = make_services()
    run(handle_admin_message(admin_msg(100, "/block 77"), svc))
    assert run(svc.guests.get_block_info("77")).reason == "Blocked by admin"
    run(handle_admin_message(admin_msg(101, "/unblock 77"), svc))
    assert not run(svc.guests.is_blocked("77"))


def test_block_without_target():
    svc = make_services()
    run(handle_admin_message(admin_msg(100, "/block"), svc))
    assert last_admin_text(svc) == t("admin_need_target")


def test_trust_commands():
    svc = make_services()
    fwd_id = guest_says(svc, 1, "hello")
    run(handle_admin_message(admin_msg(100, "/trust", reply_to=fwd_id), svc))
    assert run(svc.trust.is_trusted(str(GUEST)))

    run(handle_admin_message(admin_msg(101, "/trustid 55"), svc))
    assert run(svc.trust.is_trusted("55"))

    run(handle_admin_message(admin_msg(102, "/trustid abc"), svc))
    assert last_admin_text(svc) == t("admin_usage_trustid")


def test_status():
    svc = make_services()
    run(svc.guests.set_blocked("77", True, "spam"))
    run(handle_admin_message(admin_msg(100, "/status 77"), svc))
    text = last_admin_text(svc)
    assert "77" in text and "spam" in text and "0/3" in text


def test_list_and_stats():
    svc = make_services()
    run(handle_admin_message(admin_msg(100, "/list"), svc))
    assert last_admin_text(svc) == t("admin_list_empty")

    run(svc.guests.set_blocked("77", True, "spam"))
    run(svc.guests.set_blocked("78", True, "scam"))
    run(handle_admin_message(admin_msg(101, "/list"), svc))
    listing = last_admin_text(svc)
    assert "77: spam" in listing and "78: scam" in listing

    guest_says(svc, 1, "hello")
    run(handle_admin_message(admin_msg(102, "/stats"), svc))
    stats = last_admin_text(svc)
    assert "Relayed: 1" in stats and "Blocked now: 2" in stats


def test_checktext_and_check():
    svc = make_services()
    run(handle_admin_message(admin_msg(100, "/checktext cheap spam here"), svc))
    assert last_admin_text(svc) == t("admin_check_unsafe", reason="contains spam")

    fwd_id = guest_says(svc, 1, "all good")
    reply = admin_msg(101, "/check")
    reply["reply_to_message"] = {"message_id": fwd_id, "text": "all good"}
    run(handle_admin_message(reply, svc))
    assert last_admin_text(svc) == t("admin_check_safe")

    run(handle_admin_message(admin_msg(102, "/checktext"), svc))
    assert last_admin_text(svc) == t("admin_usage_checktext")


def test_unknown_command():
    svc = make_services()
    run(handle_admin_message(admin_msg(100, "/frobnicate"), svc))
    assert last_admin_text(svc) == t("admin_unknown_command")


def callback(data, from_id, query_id="q1"):
    return {"id": query_id, "data": data, "from": {"id": from_id}}


def test_appeal_accept():
    svc = make_services()
    run(svc.guests.set_blocked(str(GUEST), True, "spam"))
    run(svc.guests.submit_appeal(str(GUEST), "sorry"))

    run(handle_callback_query(callback(f"appeal:accept:{GUEST}", int(ADMIN)), svc))
    assert not run(svc.guests.is_blocked(str(GUEST)))
    assert run(svc.guests.get_appeal(str(GUEST))) is None
    assert svc.telegram.texts_to(GUEST) == [t("appeal_accepted_guest")]
    assert svc.telegram.sent("answer_callback_query")[0]["callback_query_id"] == "q1"


def test_appeal_reject_keeps_block():
    svc = make_services()
    run(svc.guests.set_blocked(str(GUEST), True, "spam"))
    run(svc.guests.submit_appeal(str(GUEST), "sorry"))

    run(handle_callback_query(callback(f"appeal:reject:{GUEST}", int(ADMIN)), svc))
    assert run(svc.guests.is_blocked(str(GUEST)))
    assert run(svc.guests.get_appeal(str(GUEST))) is None
    assert svc.telegram.texts_to(GUEST) == [t("appeal_rejected_guest")]


def test_appeal_callback_from_non_admin_is_ignored():
    svc = make_services()
    run(svc.guests.set_blocked(str(GUEST), True, "spam"))
    run(handle_callback_query(callback(f"appeal:accept:{GUEST}", GUEST), svc))
    assert run(svc.guests.is_blocked(str(GUEST)))


def test_language_callback():
    svc = make_services()
    run(handle_callback_query(callback("lang:zh", GUEST), svc))
    assert run(svc.guests.get_language(str(GUEST))) == "zh"
    assert svc.telegram.sent("answer_callback_query")[0]["text"] == t("lang_changed", "zh")

    run(handle_callback_query(callback("lang:xx", GUEST, "q2"), svc))
    assert run(svc.guests.get_language(str(GUEST))) == "zh"
