"""FastAPI router aggregation."""

from fastapi import APIRouter

from support_chat.api.chat import router as chat_router

api_router = APIRouter(prefix="/api")

api_router.include_router(chat_router, prefix="/chat", tags=["chat"])
