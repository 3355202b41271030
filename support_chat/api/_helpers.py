"""Shared dependencies for API routers."""

from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from support_chat.database import get_db
from support_chat.services.conversations import ChatService
from support_chat.services.llm import LLMGateway


def get_gateway(request: Request) -> LLMGateway:
    """The gateway built once at startup."""
    return request.app.state.gateway


def get_chat_service(
    request: Request,
    db: Session = Depends(get_db),
    gateway: LLMGateway = Depends(get_gateway),
) -> ChatService:
    return ChatService(db, gateway, fallback=request.app.state.fallback_reply)
