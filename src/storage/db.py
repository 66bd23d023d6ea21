"""SQLAlchemy engine/session primitives and health checks."""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Dict, Generator, Optional, Tuple

from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from src.core.config import get_settings


Base = declarative_base()


def _is_in_memory_sqlite(database_url: str) -> bool:
    return database_url.startswith("sqlite") and (database_url.endswith("://") or ":memory:" in database_url)


def engine_options(database_url: str) -> Dict[str, Any]:
    """Engine kwargs for ``database_url``.

    In-memory SQLite shares one connection so every session sees the same tables.
    """

    options: Dict[str, Any] = {"future": True}
    if not database_url.startswith("sqlite"):
        options["pool_pre_ping"] = True
        return options

    options["connect_args"] = {"check_same_thread": False}
    if _is_in_memory_sqlite(database_url):
        options["poolclass"] = StaticPool
    return options


@lru_cache(maxsize=1)
def get_engine():
    database_url = get_settings().database_url
    return create_engine(database_url, **engine_options(database_url))


def build_session_factory(engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker:
    return build_session_factory(get_engine())


def get_session() -> Generator[Session, None, None]:
    """FastAPI dependency yielding one session per request."""

    session = get_session_factory()()
    try:
        yield session
    finally:
        session.close()


def test_connection() -> Tuple[bool, Optional[str]]:
    try:
        with get_engine().connect() as connection:
            connection.execute(text("SELECT 1"))
        return True, None
    except Exception as exc:  # pragma: no cover
        return False, str(exc)


def load_models() -> None:
    """Import ORM models so Base metadata contains the prompt and generation tables."""

    import src.storage.models  # noqa: F401


def reset_engine_cache() -> None:
    get_session_factory.cache_clear()
    get_engine.cache_clear()
