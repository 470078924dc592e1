"""Session helpers for the newswire database."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from newswire.settings import Settings, get_settings

_ENGINE: Engine | None = None
_SESSIONMAKER: sessionmaker[Session] | None = None
_CURRENT_DSN: str | None = None


def _engine_kwargs(dsn: str) -> Dict[str, Any]:
    if not dsn.startswith("sqlite"):
        return {"pool_pre_ping": True}
    kwargs: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if dsn in ("sqlite://", "sqlite:///:memory:"):
        # single shared connection, otherwise each checkout sees an empty database
        kwargs["poolclass"] = StaticPool
    return kwargs


def get_engine(settings: Settings | None = None) -> Engine:
    """Return a memoized SQLAlchemy engine."""
    global _ENGINE, _SESSIONMAKER, _CURRENT_DSN

    config = settings or get_settings()
    if _ENGINE is None or _CURRENT_DSN != config.postgres_dsn:
        if _ENGINE is not None:
            _ENGINE.dispose()
        _ENGINE = create_engine(config.postgres_dsn, future=True, **_engine_kwargs(config.postgres_dsn))
        _SESSIONMAKER = sessionmaker(
            bind=_ENGINE,
            expire_on_commit=False,
            autoflush=False,
            future=True,
        )
        _CURRENT_DSN = config.postgres_dsn
    return _ENGINE


def get_sessionmaker(settings: Settings | None = None) -> sessionmaker[Session]:
    """Return a memoized sessionmaker."""
    get_engine(settings)
    assert _SESSIONMAKER is not None  # for mypy
    return _SESSIONMAKER


def reset_engine() -> None:
    """Dispose the memoized engine (tests, DSN switches)."""
    global _ENGINE, _SESSIONMAKER, _CURRENT_DSN
    if _ENGINE is not None:
        _ENGINE.dispose()
    _ENGINE = None
    _SESSIONMAKER = None
    _CURRENT_DSN = None


@contextmanager
def session_scope(settings: Settings | None = None) -> Iterator[Session]:
    """Provide a transactional scope for DB operations."""
    session = get_sessionmaker(settings)()
    try:
        yield session
        session.commit()
    except Exception:  # pragma: no cover - re-raise after rollback
        session.rollback()
        raise
    finally:
        session.close()
