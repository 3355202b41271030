"""Centralised logging configuration for the chat server.

Usage:
    from support_chat.logging_config import setup_logging, session_id_var

    # At process startup:
    setup_logging("Server", settings)

    # While handling a chat turn (done by ChatService):
    session_id_var.set("1a2b3c4d-...")

Plain ``logging.getLogger(__name__).info(...)`` calls pick up the session
context automatically through ContextFilter.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from contextvars import ContextVar
from pathlib import Path

from support_chat.config import Settings

# ── Context variables (set per chat turn) ──────────────────────────────────

session_id_var: ContextVar[str] = ContextVar("session_id_var", default="")


# ── Filter: stamps context onto every LogRecord ────────────────────────────

class ContextFilter(logging.Filter):
    """Injects ``role`` and ``session_id`` onto each record."""

    def __init__(self, role: str) -> None:
        super().__init__()
        self.role = role

    def filter(self, record: logging.LogRecord) -> bool:
        record.role = self.role  # type: ignore[attr-defined]
        record.session_id = session_id_var.get("")  # type: ignore[attr-defined]
        return True


# ── Formatter: builds [Role][Session][LEVEL] prefix ────────────────────────

class ContextFormatter(logging.Formatter):
    """Produces lines like:

    2026-10-18 14:30:00 [Server][INFO] support_chat.main:40 - Database ready
    2026-10-18 14:30:01 [Server][Session 1a2b3c4d][INFO] support_chat.services.llm:88 - Calling LLM
    """

    def format(self, record: logging.LogRecord) -> str:
        role = getattr(record, "role", "")
        session_id = getattr(record, "session_id", "")

        parts = [f"[{role}]"] if role else []
        if session_id:
            parts.append(f"[Session {session_id[:8]}]")
        parts.append(f"[{record.levelname}]")

        prefix = "".join(parts)
        timestamp = self.formatTime(record, self.datefmt)
        location = f"{record.name}:{record.lineno}"
        message = record.getMessage()

        formatted = f"{timestamp} {prefix} {location} - {message}"
        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            formatted += "\n" + record.exc_text
        return formatted


# ── Setup function ─────────────────────────────────────────────────────────

def setup_logging(role: str, settings: Settings) -> None:
    """Configure the root logger for *role* (e.g. ``"Server"``).

    - Adds a stderr StreamHandler (always).
    - Adds a RotatingFileHandler when ``settings.LOG_FILE`` is set.
    - Tames noisy third-party loggers.
    - Makes uvicorn loggers propagate through root (when role is Server).

    Safe to call multiple times (idempotent via handler name check).
    """
    root = logging.getLogger()

    if any(getattr(h, "name", None) == "_support_chat_stream" for h in root.handlers):
        return

    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    ctx_filter = ContextFilter(role)
    formatter = ContextFormatter(datefmt="%Y-%m-%d %H:%M:%S")

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.name = "_support_chat_stream"
    stream_handler.addFilter(ctx_filter)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    if settings.LOG_FILE:
        log_path = Path(settings.LOG_FILE)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            str(log_path),
            maxBytes=settings.LOG_MAX_BYTES,
            backupCount=settings.LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.name = "_support_chat_file"
        file_handler.addFilter(ctx_filter)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    for name in ("httpx", "httpcore", "openai", "anthropic", "urllib3"):
        logging.getLogger(name).setLevel(logging.WARNING)

    if "server" in role.lower():
        for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
            uv_logger = logging.getLogger(name)
            uv_logger.handlers.clear()
            uv_logger.propagate = True
