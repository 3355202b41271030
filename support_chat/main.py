"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import Engine
from starlette.exceptions import HTTPException as StarletteHTTPException

from support_chat import __version__
from support_chat.api import api_router
from support_chat.api.chat import UNEXPECTED_ERROR
from support_chat.api.health import router as health_router
from support_chat.config import Settings, get_settings
from support_chat.database import Base, create_db_engine, create_session_factory
from support_chat.logging_config import setup_logging
from support_chat.services.conversations import fallback_reply
from support_chat.services.llm import LLMGateway

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging("Server", app.state.settings)

    # Create tables if they don't exist (dev convenience; use alembic in prod)
    Base.metadata.create_all(bind=app.state.engine)
    logger.info(
        "Support chat ready (model=%s, llm_configured=%s)",
        app.state.settings.LLM_MODEL,
        app.state.gateway.is_configured,
    )
    yield
    if app.state.owns_engine:
        app.state.engine.dispose()


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    if first.get("type") in ("message_empty", "message_too_long"):
        return first["msg"]
    if first.get("type") == "json_invalid":
        return "Invalid JSON"
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query")]
    return f"{'.'.join(loc)}: {first['msg']}" if loc else first["msg"]


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse({"error": _validation_message(exc)}, status_code=400)


async def unexpected_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse({"error": UNEXPECTED_ERROR}, status_code=500)


def create_app(
    settings: Settings | None = None,
    *,
    engine: Engine | None = None,
    gateway: LLMGateway | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    The engine, session factory and gateway are built here once and shared
    by every request through ``app.state``.
    """
    settings = settings or get_settings()
    owns_engine = engine is None
    engine = engine or create_db_engine(settings.DATABASE_URL)

    app = FastAPI(
        title="Support Chat API",
        description="Customer-support chat backed by a hosted language model",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.owns_engine = owns_engine
    app.state.session_factory = create_session_factory(engine)
    app.state.gateway = gateway or LLMGateway.from_settings(settings)
    app.state.fallback_reply = fallback_reply(settings.SUPPORT_EMAIL)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unexpected_exception_handler)

    app.include_router(health_router)
    app.include_router(api_router)

    return app


def main() -> None:
    """Main entry point."""
    settings = get_settings()
    uvicorn.run(
        "support_chat.main:create_app",
        factory=True,
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
