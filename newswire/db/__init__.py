"""Database utilities for the newswire service."""

from .models import Base, FeedSourceRow, JobRun, JobStage, JobStatus, PressRelease  # noqa: F401
from .session import get_engine, get_sessionmaker, reset_engine, session_scope  # noqa: F401

__all__ = [
    "Base",
    "FeedSourceRow",
    "JobRun",
    "JobStage",
    "JobStatus",
    "PressRelease",
    "get_engine",
    "get_sessionmaker",
    "reset_engine",
    "session_scope",
]
