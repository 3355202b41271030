"""Chat widget state: open/closed, sidebar, optimistic sends, typing indicator.

Pure state, no I/O. ``ChatController`` in ``support_chat.client`` drives it
against the HTTP API.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone


class MessageStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"


@dataclass
class WidgetMessage:
    sender: str  # "user" or "assistant"
    text: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: MessageStatus = MessageStatus.CONFIRMED


@dataclass
class ChatWidget:
    session_id: str | None = None
    is_open: bool = False
    show_sidebar: bool = False
    messages: list[WidgetMessage] = field(default_factory=list)
    conversations: list = field(default_factory=list)
    is_loading: bool = False
    is_typing: bool = False
    error: str | None = None

    # ── Visibility ──

    def toggle(self) -> bool:
        self.is_open = not self.is_open
        return self.is_open

    def toggle_sidebar(self) -> bool:
        """Flip the sidebar; returns True when it is now shown (caller reloads the list)."""
        self.show_sidebar = not self.show_sidebar
        return self.show_sidebar

    # ── Sending ──

    def begin_send(self, text: str) -> WidgetMessage | None:
        """Insert the user's message optimistically.

        Returns None for blank input or while another send is in flight.
        """
        trimmed = text.strip()
        if not trimmed or self.is_loading:
            return None

        self.error = None
        pending = WidgetMessage(sender="user", text=trimmed, status=MessageStatus.PENDING)
        self.messages.append(pending)
        self.is_loading = True
        self.is_typing = True
        return pending

    def confirm_send(self, pending: WidgetMessage, reply: str, session_id: str) -> WidgetMessage:
        pending.status = MessageStatus.CONFIRMED
        if session_id and not self.session_id:
            self.session_id = session_id
        answer = WidgetMessage(sender="assistant", text=reply)
        self.messages.append(answer)
        self._finish_send()
        return answer

    def fail_send(self, pending: WidgetMessage, error: str) -> None:
        """Roll back: drop the optimistic message and surface the error."""
        self.messages = [m for m in self.messages if m.id != pending.id]
        self.error = error
        self._finish_send()

    def _finish_send(self) -> None:
        self.is_loading = False
        self.is_typing = False

    # ── Conversations ──

    def start_new_conversation(self) -> str:
        self.session_id = str(uuid.uuid4())
        self.messages = []
        self.show_sidebar = False
        self.error = None
        return self.session_id

    def select_conversation(self, session_id: str) -> None:
        self.session_id = session_id
        self.show_sidebar = False
        self.error = None

    def load_history(self, messages: list[WidgetMessage]) -> None:
        self.messages = list(messages)

    def set_conversations(self, conversations: list) -> None:
        self.conversations = list(conversations)

    @property
    def pending_messages(self) -> list[WidgetMessage]:
        return [m for m in self.messages if m.status is MessageStatus.PENDING]
