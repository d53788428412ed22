"""SQLAlchemy engine and session factory."""

import logging
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()


def normalize_database_url(url: Optional[str]) -> str:
    """Return a SQLAlchemy URL, pointing bare Postgres URLs at psycopg."""
    if not url:
        raise RuntimeError("DATABASE_URL is not defined in the environment variables")
    if url.startswith("postgres://"):
        return "postgresql+psycopg://" + url[len("postgres://"):]
    if url.startswith("postgresql://"):
        return "postgresql+psycopg://" + url[len("postgresql://"):]
    return url


def make_engine(url: Optional[str]) -> Engine:
    """Create an engine for ``url``.

    In-memory SQLite shares one connection across threads so every session
    sees the same database.
    """
    sa_url = normalize_database_url(url)
    if sa_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if sa_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(sa_url, **kwargs)
    return create_engine(sa_url, pool_pre_ping=True)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)
