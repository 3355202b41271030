"""Tests for the widget state machine."""

from __future__ import annotations

from support_chat.widget import ChatWidget, MessageStatus, WidgetMessage


def test_toggle_open_and_sidebar():
    widget = ChatWidget()
    assert widget.toggle() is True
    assert widget.toggle() is False
    assert widget.toggle_sidebar() is True
    assert widget.show_sidebar is True
    assert widget.toggle_sidebar() is False


def test_begin_send_inserts_pending_message():
    widget = ChatWidget()
    pending = widget.begin_send("  Where is my order?  ")

    assert pending is not None
    assert pending.text == "Where is my order?"
    assert pending.sender == "user"
    assert pending.status is MessageStatus.PENDING
    assert widget.messages == [pending]
    assert widget.is_loading and widget.is_typing


def test_begin_send_ignores_blank_input():
    widget = ChatWidget()
    assert widget.begin_send("   ") is None
    assert widget.messages == []
    assert widget.is_loading is False


def test_begin_send_ignores_while_loading():
    widget = ChatWidget()
    widget.begin_send("first")
    assert widget.begin_send("second") is None
    assert len(widget.messages) == 1


def test_begin_send_clears_previous_error():
    widget = ChatWidget(error="old failure")
    widget.begin_send("retry")
    assert widget.error is None


def test_confirm_send_appends_reply_and_adopts_session():
    widget = ChatWidget()
    pending = widget.begin_send("hi")
    answer = widget.confirm_send(pending, "Hello!", "sess-1")

    assert pending.status is MessageStatus.CONFIRMED
    assert answer.sender == "assistant"
    assert answer.text == "Hello!"
    assert [m.text for m in widget.messages] == ["hi", "Hello!"]
    assert widget.session_id == "sess-1"
    assert not widget.is_loading and not widget.is_typing
    assert widget.pending_messages == []


def test_confirm_send_keeps_existing_session():
    widget = ChatWidget(session_id="mine")
    pending = widget.begin_send("hi")
    widget.confirm_send(pending, "Hello!", "other")
    assert widget.session_id == "mine"


def test_fail_send_rolls_back_optimistic_message():
    widget = ChatWidget()
    earlier = WidgetMessage(sender="assistant", text="Welcome back")
    widget.load_history([earlier])

    pending = widget.begin_send("hi")
    widget.fail_send(pending, "Service is experiencing high demand. Please try again in a moment.")

    assert widget.messages == [earlier]
    assert widget.error.startswith("Service is experiencing")
    assert not widget.is_loading and not widget.is_typing


def test_start_new_conversation_resets_state():
    widget = ChatWidget(session_id="old", show_sidebar=True, error="x")
    widget.load_history([WidgetMessage(sender="user", text="old message")])

    new_id = widget.start_new_conversation()

    assert new_id and new_id != "old"
    assert widget.session_id == new_id
    assert widget.messages == []
    assert widget.show_sidebar is False
    assert widget.error is None


def test_select_conversation():
    widget = ChatWidget(show_sidebar=True, error="x")
    widget.select_conversation("s2")
    assert widget.session_id == "s2"
    assert widget.show_sidebar is False
    assert widget.error is None
