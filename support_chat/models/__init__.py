"""SQLAlchemy models: re-export all."""

from support_chat.models.conversation import Conversation, Message, Sender  # noqa: F401
