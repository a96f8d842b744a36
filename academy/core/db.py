"""Engine and session handling.

Route handlers call ``get_db()`` and get one session per Flask request; scripts
use ``session_scope()``. Tests swap in their own transactional session through
the override hooks below.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

from flask import g
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from academy.core.settings import settings


def engine_options(url: str) -> dict[str, Any]:
    if url.startswith("sqlite"):
        # in-memory SQLite must keep one shared connection
        return {
            "pool_pre_ping": True,
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    return {
        "pool_pre_ping": True,
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_timeout": settings.db_pool_timeout,
        "pool_recycle": settings.db_pool_recycle,
        "pool_use_lifo": True,
    }


engine = create_engine(settings.url, **engine_options(settings.url))

# Repositories commit themselves; keep loaded rows usable after commit.
SessionLocal = sessionmaker(
    bind=engine, autoflush=False, autocommit=False, expire_on_commit=False
)

_factory: Callable[[], Session] = SessionLocal
_override: Optional[Session] = None


def set_session_factory(factory: Callable[[], Session]) -> None:
    global _factory
    _factory = factory


def reset_session_factory() -> None:
    set_session_factory(SessionLocal)


def set_db_session_override(session: Optional[Session]) -> None:
    """Make ``get_db`` return ``session`` for every request."""
    global _override
    _override = session


def clear_db_session_override() -> None:
    set_db_session_override(None)


def get_db() -> Session:
    if _override is not None:
        return _override
    session = g.get("academy_db")
    if session is None:
        session = g.academy_db = _factory()
    return session


def close_db(_exc: BaseException | None = None) -> None:
    session = g.pop("academy_db", None)
    if session is not None:
        session.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for scripts: commit on success, roll back on error."""
    session = _factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
