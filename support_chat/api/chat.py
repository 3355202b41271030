"""Chat endpoints: send a message, read a session's history, list conversations."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError

from support_chat.api._helpers import get_chat_service
from support_chat.schemas.chat import (
    MAX_SESSION_ID_LENGTH,
    ConversationOut,
    ConversationsOut,
    HistoryOut,
    MessageIn,
    MessageOut,
    ReplyOut,
)
from support_chat.services.conversations import ChatService
from support_chat.services.llm import GatewayError

logger = logging.getLogger(__name__)

router = APIRouter()

UNEXPECTED_ERROR = "An unexpected error occurred. Please try again."


@router.post("/message", response_model=ReplyOut)
def post_message(
    payload: MessageIn,
    service: ChatService = Depends(get_chat_service),
):
    try:
        result = service.send_message(payload.message, payload.session_id)
    except GatewayError as exc:
        raise HTTPException(status_code=500, detail=exc.user_message) from exc
    except SQLAlchemyError:
        logger.exception("Chat message failed")
        raise HTTPException(status_code=500, detail=UNEXPECTED_ERROR) from None
    return ReplyOut(reply=result.reply, session_id=result.session_id)


@router.get("/history", response_model=HistoryOut)
def get_history(
    session_id: str | None = Query(
        None, alias="sessionId", max_length=MAX_SESSION_ID_LENGTH
    ),
    service: ChatService = Depends(get_chat_service),
):
    if not session_id:
        raise HTTPException(status_code=400, detail="Session ID is required")
    try:
        messages = service.get_history(session_id)
    except SQLAlchemyError:
        logger.exception("History lookup failed")
        raise HTTPException(status_code=500, detail="Failed to fetch chat history") from None
    return HistoryOut(
        messages=[
            MessageOut(id=m.id, sender=m.sender, text=m.text, timestamp=m.created_at)
            for m in messages
        ],
        session_id=session_id,
    )


@router.get("/conversations", response_model=ConversationsOut)
def list_conversations(service: ChatService = Depends(get_chat_service)):
    try:
        summaries = service.list_conversations()
    except SQLAlchemyError:
        logger.exception("Conversation listing failed")
        raise HTTPException(status_code=500, detail="Failed to fetch conversations") from None
    return ConversationsOut(
        conversations=[
            ConversationOut(
                id=s.id,
                session_id=s.session_id,
                created_at=s.created_at,
                updated_at=s.updated_at,
                message_count=s.message_count,
                first_message=s.first_message,
            )
            for s in summaries
        ]
    )
