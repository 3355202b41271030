"""Health check endpoint."""
import logging

from fastapi import APIRouter, Request
from sqlalchemy import text

from support_chat import __version__

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Database reachability and whether the LLM has a credential."""
    database_ok = True
    try:
        with request.app.state.session_factory() as session:
            session.execute(text("SELECT 1"))
    except Exception:
        logger.warning("Health check: database unreachable", exc_info=True)
        database_ok = False

    return {
        "status": "ok" if database_ok else "degraded",
        "database": database_ok,
        "llm_configured": request.app.state.gateway.is_configured,
        "version": __version__,
    }
