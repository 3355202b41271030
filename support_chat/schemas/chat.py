"""Request and response schemas for the chat endpoints."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from support_chat.models.conversation import Sender

MAX_MESSAGE_LENGTH = 2000
MAX_SESSION_ID_LENGTH = 255


def _as_utc(value: datetime) -> datetime:
    # Stored timestamps are naive UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessageIn(_CamelModel):
    message: str
    session_id: str | None = Field(None, max_length=MAX_SESSION_ID_LENGTH)

    @field_validator("message")
    @classmethod
    def _check_length(cls, value: str) -> str:
        if len(value) < 1:
            raise PydanticCustomError("message_empty", "Message cannot be empty")
        if len(value) > MAX_MESSAGE_LENGTH:
            raise PydanticCustomError(
                "message_too_long",
                "Message too long (max {max_length} characters)",
                {"max_length": MAX_MESSAGE_LENGTH},
            )
        return value


class ReplyOut(_CamelModel):
    reply: str
    session_id: str


class MessageOut(_CamelModel):
    id: int
    sender: Sender
    text: str
    timestamp: UtcDatetime


class HistoryOut(_CamelModel):
    messages: list[MessageOut]
    session_id: str


class ConversationOut(_CamelModel):
    id: int
    session_id: str
    created_at: UtcDatetime
    updated_at: UtcDatetime
    message_count: int
    first_message: str


class ConversationsOut(_CamelModel):
    conversations: list[ConversationOut]
