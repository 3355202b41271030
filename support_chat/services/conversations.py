"""Conversation orchestration: session resolution, turn persistence, replies."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from support_chat.logging_config import session_id_var
from support_chat.models.conversation import Conversation, Message, Sender, utcnow
from support_chat.services.llm import LLMGateway

logger = logging.getLogger(__name__)

FALLBACK_REPLY_TEMPLATE = (
    "I'm sorry, but our AI support is currently unavailable. "
    "Please contact us at {support_email} for assistance."
)

NO_MESSAGES_PLACEHOLDER = "New conversation"


def fallback_reply(support_email: str) -> str:
    return FALLBACK_REPLY_TEMPLATE.format(support_email=support_email)


@dataclass(frozen=True)
class ChatReply:
    reply: str
    session_id: str


@dataclass(frozen=True)
class ConversationSummary:
    id: int
    session_id: str
    created_at: datetime
    updated_at: datetime
    message_count: int
    first_message: str


class ChatService:
    """Per-request service over one ORM session and the shared gateway."""

    def __init__(self, db: Session, gateway: LLMGateway, *, fallback: str):
        self.db = db
        self.gateway = gateway
        self.fallback = fallback

    # ── Conversations ──────────────────────────────────────────────────────

    def get_conversation(self, session_id: str) -> Conversation | None:
        return self.db.execute(
            select(Conversation).where(Conversation.session_id == session_id)
        ).scalar_one_or_none()

    def resolve_conversation(self, session_id: str | None) -> Conversation:
        """Reuse the session's conversation, or create one (minting a token when absent).

        Creation inserts first and falls back to a fetch when another request
        won the race on the unique session token.
        """
        if session_id:
            existing = self.get_conversation(session_id)
            if existing is not None:
                return existing

        token = session_id or str(uuid.uuid4())
        conversation = Conversation(session_id=token)
        self.db.add(conversation)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.info("Conversation for session %s created concurrently, reusing it", token)
            return self.db.execute(
                select(Conversation).where(Conversation.session_id == token)
            ).scalar_one()
        logger.info("Created conversation %d for session %s", conversation.id, token)
        return conversation

    def add_message(self, conversation: Conversation, sender: Sender, text: str) -> Message:
        message = Message(conversation_id=conversation.id, sender=sender, text=text)
        self.db.add(message)
        self.db.commit()
        return message

    def touch(self, conversation: Conversation) -> None:
        conversation.updated_at = utcnow()
        self.db.commit()

    # ── Reads ──────────────────────────────────────────────────────────────

    def get_history(self, session_id: str) -> list[Message]:
        """All messages of a session in order; empty for unknown sessions."""
        stmt = (
            select(Message)
            .join(Conversation, Message.conversation_id == Conversation.id)
            .where(Conversation.session_id == session_id)
            .order_by(Message.created_at, Message.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_conversations(self) -> list[ConversationSummary]:
        """Every conversation, most recently updated first, with count and opening message."""
        counts = (
            select(Message.conversation_id, func.count(Message.id).label("message_count"))
            .group_by(Message.conversation_id)
            .subquery()
        )
        ranked = (
            select(
                Message.conversation_id,
                Message.text,
                func.row_number()
                .over(
                    partition_by=Message.conversation_id,
                    order_by=[Message.created_at, Message.id],
                )
                .label("position"),
            )
            .subquery()
        )
        stmt = (
            select(
                Conversation,
                func.coalesce(counts.c.message_count, 0),
                ranked.c.text,
            )
            .outerjoin(counts, counts.c.conversation_id == Conversation.id)
            .outerjoin(
                ranked,
                and_(ranked.c.conversation_id == Conversation.id, ranked.c.position == 1),
            )
            .order_by(Conversation.updated_at.desc(), Conversation.id.desc())
        )
        return [
            ConversationSummary(
                id=conv.id,
                session_id=conv.session_id,
                created_at=conv.created_at,
                updated_at=conv.updated_at,
                message_count=message_count,
                first_message=first_text or NO_MESSAGES_PLACEHOLDER,
            )
            for conv, message_count, first_text in self.db.execute(stmt).all()
        ]

    # ── Orchestration ──────────────────────────────────────────────────────

    def send_message(self, text: str, session_id: str | None = None) -> ChatReply:
        """Handle one user turn end to end.

        Order: user write, history read, gateway call, assistant write,
        timestamp bump. A GatewayError propagates after the user turn is
        already stored.
        """
        conversation = self.resolve_conversation(session_id)
        token = session_id_var.set(conversation.session_id)
        try:
            user_turn = self.add_message(conversation, Sender.USER, text)

            history = [
                m for m in self.get_history(conversation.session_id) if m.id != user_turn.id
            ]

            if self.gateway.is_configured:
                reply = self.gateway.generate_reply(history, text)
            else:
                logger.warning("LLM not configured, answering with fallback")
                reply = self.fallback

            self.add_message(conversation, Sender.ASSISTANT, reply)
            self.touch(conversation)
            logger.info("Stored reply (%d chars) after %d prior turns", len(reply), len(history))
            return ChatReply(reply=reply, session_id=conversation.session_id)
        finally:
            session_id_var.reset(token)
