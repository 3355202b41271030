"""Persist the widget's current session id between runs (the browser's local storage)."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import BaseModel

_logger = logging.getLogger(__name__)


def get_client_dir() -> Path:
    """Resolve the client data directory. SUPPORT_CHAT_DIR env var or ~/.config/support-chat."""
    d = os.environ.get("SUPPORT_CHAT_DIR", "")
    return Path(d).expanduser() if d else Path.home() / ".config" / "support-chat"


class StoredSession(BaseModel):
    current_session_id: str | None = None


class SessionStore:
    def __init__(self, path: Path | None = None):
        self.path = path or get_client_dir() / "session.json"

    def load(self) -> str | None:
        if not self.path.exists():
            return None
        try:
            return StoredSession.model_validate_json(self.path.read_text()).current_session_id
        except ValueError:
            _logger.warning("Failed to parse %s, ignoring stored session", self.path, exc_info=True)
            return None

    def save(self, session_id: str | None) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(StoredSession(current_session_id=session_id).model_dump_json(indent=2))
