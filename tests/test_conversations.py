"""Tests for services/conversations.py: orchestration, history and listing."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from conftest import FakeGateway
from support_chat.models.conversation import Conversation, Message, Sender
from support_chat.services.conversations import (
    NO_MESSAGES_PLACEHOLDER,
    ChatService,
    fallback_reply,
)
from support_chat.services.llm import GatewayError, GatewayErrorKind

FALLBACK = fallback_reply("support@spurmart.com")


@pytest.fixture
def service(db, gateway):
    return ChatService(db, gateway, fallback=FALLBACK)


def _messages(db) -> list[Message]:
    return db.query(Message).order_by(Message.id).all()


# ── resolve_conversation ─────────────────────────────────────────────────────

class TestResolveConversation:
    def test_mints_token_when_absent(self, service, db):
        conv = service.resolve_conversation(None)
        assert conv.session_id
        assert db.query(Conversation).count() == 1

    def test_minted_tokens_are_distinct(self, service):
        first = service.resolve_conversation(None)
        second = service.resolve_conversation(None)
        assert first.session_id != second.session_id

    def test_reuses_existing(self, service, db):
        conv = service.resolve_conversation("abc")
        again = service.resolve_conversation("abc")
        assert again.id == conv.id
        assert db.query(Conversation).count() == 1

    def test_unknown_token_is_adopted(self, service):
        conv = service.resolve_conversation("client-made-id")
        assert conv.session_id == "client-made-id"

    def test_concurrent_creation_falls_back_to_fetch(self, service, db):
        existing = Conversation(session_id="raced")
        db.add(existing)
        db.commit()

        # Simulate losing the race: the lookup saw nothing, the insert collides
        with patch.object(service, "get_conversation", return_value=None):
            conv = service.resolve_conversation("raced")

        assert conv.id == existing.id
        assert db.query(Conversation).count() == 1


# ── send_message ──────────────────────────────────────────────────────────────

class TestSendMessage:
    def test_persists_both_turns(self, service, db, gateway):
        result = service.send_message("Do you ship to Canada?")

        assert result.reply == "Happy to help!"
        messages = _messages(db)
        assert [(m.sender, m.text) for m in messages] == [
            (Sender.USER, "Do you ship to Canada?"),
            (Sender.ASSISTANT, "Happy to help!"),
        ]
        assert gateway.calls == [([], "Do you ship to Canada?")]

    def test_history_excludes_current_turn(self, service, gateway):
        gateway.replies = ["first answer", "second answer"]
        first = service.send_message("first question")
        service.send_message("second question", first.session_id)

        history, utterance = gateway.calls[1]
        assert utterance == "second question"
        assert [(m.sender, m.text) for m in history] == [
            (Sender.USER, "first question"),
            (Sender.ASSISTANT, "first answer"),
        ]

    def test_bumps_updated_at(self, service, db):
        result = service.send_message("hello")
        conv = db.query(Conversation).filter_by(session_id=result.session_id).one()
        assert conv.updated_at >= conv.created_at
        before = conv.updated_at

        service.send_message("again", result.session_id)
        db.refresh(conv)
        assert conv.updated_at > before

    def test_unconfigured_gateway_uses_fallback(self, db):
        gateway = FakeGateway(configured=False)
        service = ChatService(db, gateway, fallback=FALLBACK)

        result = service.send_message("anyone there?")

        assert result.reply == FALLBACK
        assert "support@spurmart.com" in result.reply
        assert gateway.calls == []
        assert [m.text for m in _messages(db)] == ["anyone there?", FALLBACK]

    def test_gateway_error_keeps_user_turn(self, db):
        gateway = FakeGateway(error=GatewayError(GatewayErrorKind.UPSTREAM_UNAVAILABLE, 503))
        service = ChatService(db, gateway, fallback=FALLBACK)

        with pytest.raises(GatewayError):
            service.send_message("hello?", "s1")

        messages = _messages(db)
        assert [(m.sender, m.text) for m in messages] == [(Sender.USER, "hello?")]


# ── reads ─────────────────────────────────────────────────────────────────────

class TestReads:
    def test_history_unknown_session_is_empty(self, service):
        assert service.get_history("nobody") == []

    def test_history_is_ordered(self, service, gateway):
        gateway.replies = ["a1", "a2", "a3"]
        sid = service.send_message("q1").session_id
        service.send_message("q2", sid)
        service.send_message("q3", sid)

        history = service.get_history(sid)
        assert [m.text for m in history] == ["q1", "a1", "q2", "a2", "q3", "a3"]
        stamps = [m.created_at for m in history]
        assert stamps == sorted(stamps)

    def test_list_conversations_order_and_counts(self, service):
        service.send_message("first in s1", "s1")
        service.send_message("second in s1", "s1")
        service.send_message("only in s2", "s2")

        listing = service.list_conversations()
        assert [c.session_id for c in listing] == ["s2", "s1"]
        assert [c.message_count for c in listing] == [2, 4]
        assert listing[1].first_message == "first in s1"
        assert listing[0].first_message == "only in s2"

    def test_list_conversations_placeholder_for_empty(self, service):
        service.resolve_conversation("empty")
        [summary] = service.list_conversations()
        assert summary.message_count == 0
        assert summary.first_message == NO_MESSAGES_PLACEHOLDER

    def test_list_conversations_updated_session_moves_first(self, service):
        service.send_message("hi", "s1")
        service.send_message("hi", "s2")
        service.send_message("back again", "s1")

        assert [c.session_id for c in service.list_conversations()] == ["s1", "s2"]
