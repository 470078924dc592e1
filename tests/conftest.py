from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


class FakeClock:
    """Mutable clock for components that take ``clock=``."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        from datetime import timedelta

        self.now = self.now + timedelta(**kwargs)


class FakeRedis:
    """Subset of redis-py used by the redirect cache (no TTL enforcement)."""

    def __init__(self, *, fail_ping: bool = False, down: bool = False) -> None:
        self.store: Dict[str, Any] = {}
        self.expiry: Dict[str, Optional[int]] = {}
        self._fail_ping = fail_ping
        self.down = down

    def _check(self) -> None:
        if self.down:
            import redis

            raise redis.ConnectionError("redis down")

    def ping(self) -> bool:
        if self._fail_ping:
            import redis

            raise redis.ConnectionError("down")
        return True

    def get(self, name: str):
        self._check()
        value = self.store.get(name)
        return value.encode("utf-8") if isinstance(value, str) else value

    def set(self, name: str, value: str, *, ex: int | None = None, nx: bool | None = None):
        self._check()
        if nx and name in self.store:
            return None
        self.store[name] = value
        self.expiry[name] = ex
        return True

    def delete(self, *names: str) -> int:
        removed = 0
        for name in names:
            if self.store.pop(name, None) is not None:
                removed += 1
            self.expiry.pop(name, None)
        return removed

    def scan_iter(self, match: str | None = None):
        self._check()
        prefix = (match or "*").rstrip("*")
        for key in list(self.store):
            if key.startswith(prefix):
                yield key.encode("utf-8")


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture()
def unreachable_redis() -> FakeRedis:
    return FakeRedis(fail_ping=True)


@pytest.fixture()
def broken_redis() -> FakeRedis:
    """Answers ping at startup, then fails every command."""
    return FakeRedis(down=True)
