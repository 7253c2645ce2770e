# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
SQLAlchemy engine and session factory builders, the declarative base, and
the FastAPI dependency that provides a DB session per request.

The engine is built by ``create_app`` from the Settings it receives and is
kept on ``app.state``; nothing here connects at import time.
"""

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

Base = declarative_base()


def build_engine(database_url: str) -> Engine:
    """
    Create the engine for *database_url*.

    SQLite gets ``check_same_thread=False`` because FastAPI runs sync
    handlers in a threadpool; an in-memory SQLite URL additionally shares a
    single connection so every session sees the same database.
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)

    # pool_pre_ping keeps idle connections alive across MySQL's wait_timeout
    return create_engine(database_url, pool_pre_ping=True)


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db(request: Request):
    """
    FastAPI dependency.  Yields a session for the duration of the request,
    then closes it (rolling back anything left uncommitted).
    """
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
