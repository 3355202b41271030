"""HTTP client for the chat API and the controller that drives the widget with it."""

from __future__ import annotations

import logging

import httpx

from support_chat.schemas.chat import ConversationOut, ConversationsOut, HistoryOut, ReplyOut
from support_chat.session_store import SessionStore
from support_chat.widget import ChatWidget, WidgetMessage

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Something went wrong"


class ChatClientError(Exception):
    """A failed API call, carrying the server's ``error`` text when it sent one."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class SupportChatClient:
    """Thin wrapper over the three chat endpoints."""

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8000",
        *,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
        http_client: httpx.Client | None = None,
    ):
        self._http = http_client or httpx.Client(
            base_url=base_url, timeout=timeout, transport=transport
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "SupportChatClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(self, method: str, path: str, fallback_error: str, **kwargs) -> dict:
        try:
            resp = self._http.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("Chat API request %s %s failed: %s", method, path, exc)
            raise ChatClientError(GENERIC_ERROR) from exc

        try:
            data = resp.json()
        except ValueError:
            data = {}

        if resp.is_error:
            message = data.get("error") if isinstance(data, dict) else None
            raise ChatClientError(message or fallback_error, status_code=resp.status_code)
        return data

    def send_message(self, message: str, session_id: str | None = None) -> ReplyOut:
        body: dict = {"message": message}
        if session_id:
            body["sessionId"] = session_id
        data = self._request("POST", "/api/chat/message", "Failed to send message", json=body)
        return ReplyOut.model_validate(data)

    def get_history(self, session_id: str) -> HistoryOut:
        data = self._request(
            "GET", "/api/chat/history", "Failed to load history", params={"sessionId": session_id}
        )
        return HistoryOut.model_validate(data)

    def list_conversations(self) -> list[ConversationOut]:
        data = self._request("GET", "/api/chat/conversations", "Failed to load conversations")
        return ConversationsOut.model_validate(data).conversations


class ChatController:
    """Runs the widget's flows against the API, keeping the session id in a SessionStore."""

    def __init__(
        self,
        client: SupportChatClient,
        store: SessionStore,
        widget: ChatWidget | None = None,
    ):
        self.client = client
        self.store = store
        self.widget = widget or ChatWidget()

    def restore(self) -> None:
        """Resume the stored session, if any."""
        stored = self.store.load()
        if stored:
            self.widget.session_id = stored
            self.load_history(stored)

    def load_history(self, session_id: str) -> None:
        try:
            history = self.client.get_history(session_id)
        except ChatClientError as exc:
            # The transcript stays as it was; nothing to show the user
            logger.warning("Failed to load history: %s", exc.message)
            return
        self.widget.load_history(
            [
                WidgetMessage(
                    id=str(m.id),
                    sender=m.sender.value,
                    text=m.text,
                    timestamp=m.timestamp,
                )
                for m in history.messages
            ]
        )

    def refresh_conversations(self) -> None:
        try:
            conversations = self.client.list_conversations()
        except ChatClientError as exc:
            logger.warning("Failed to load conversations: %s", exc.message)
            return
        self.widget.set_conversations(conversations)

    def toggle_sidebar(self) -> None:
        if self.widget.toggle_sidebar():
            self.refresh_conversations()

    def new_conversation(self) -> str:
        session_id = self.widget.start_new_conversation()
        self.store.save(session_id)
        return session_id

    def select_conversation(self, session_id: str) -> None:
        self.widget.select_conversation(session_id)
        self.store.save(session_id)
        self.load_history(session_id)

    def send(self, text: str) -> bool:
        """Optimistic send; returns True when the reply arrived."""
        pending = self.widget.begin_send(text)
        if pending is None:
            return False

        had_session = self.widget.session_id is not None
        try:
            result = self.client.send_message(pending.text, self.widget.session_id)
        except ChatClientError as exc:
            self.widget.fail_send(pending, exc.message)
            return False

        self.widget.confirm_send(pending, result.reply, result.session_id)
        if not had_session:
            self.store.save(self.widget.session_id)
        if self.widget.show_sidebar:
            self.refresh_conversations()
        return True
