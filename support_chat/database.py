"""SQLAlchemy engine, session factory, and declarative base."""

from __future__ import annotations

from collections.abc import Iterator

from fastapi import Request
from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    pass


def create_db_engine(database_url: str) -> Engine:
    """Build the process-wide engine for *database_url*."""
    is_sqlite = database_url.startswith("sqlite")
    in_memory = is_sqlite and (database_url in ("sqlite://", "sqlite:///:memory:"))

    kwargs: dict = {"echo": False}
    if is_sqlite:
        kwargs["connect_args"] = {"check_same_thread": False}
    if in_memory:
        # One shared connection, otherwise each checkout sees an empty database
        kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, **kwargs)

    # Enable WAL mode and foreign keys for SQLite
    if is_sqlite:
        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            if not in_memory:
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def get_db(request: Request) -> Iterator[Session]:
    """FastAPI dependency that yields a SQLAlchemy session."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
