"""Redirect cache backends with pluggable storage (in-memory or Redis-like)."""

from __future__ import annotations

import threading
from collections import OrderedDict
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

from pydantic import ValidationError
from redis.exceptions import RedisError

from newswire.models.domain import RedirectCacheEntry, utcnow
from newswire.utils.logging import get_logger

Clock = Callable[[], datetime]
SAMPLE_SIZE = 5


class RedirectCache(Protocol):
    def get(self, url: str) -> Optional[RedirectCacheEntry]: ...  # noqa: D401
    def put(self, entry: RedirectCacheEntry) -> None: ...  # noqa: D401
    def clear(self) -> None: ...  # noqa: D401
    def stats(self) -> Dict[str, Any]: ...  # noqa: D401


def _stats(size: int, capacity: int, hits: int, misses: int, sample: List[Dict[str, Any]]) -> Dict[str, Any]:
    lookups = hits + misses
    return {
        "size": size,
        "capacity": capacity,
        "hits": hits,
        "misses": misses,
        "hit_rate": round(hits / lookups, 4) if lookups else 0.0,
        "sample": sample,
    }


def _sample_row(entry: RedirectCacheEntry, now: datetime) -> Dict[str, Any]:
    return {
        "original_url": entry.original_url,
        "resolved_url": entry.resolved_url,
        "method": entry.method,
        "age_seconds": int((now - entry.resolved_at).total_seconds()),
    }


class InMemoryRedirectCache:
    """Thread-safe bounded cache.

    Expired entries are purged first when the cache is full; if it is still
    full, the least recently resolved entry is evicted.
    """

    def __init__(self, capacity: int = 1000, *, clock: Clock = utcnow) -> None:
        self._capacity = capacity
        self._clock = clock
        self._entries: "OrderedDict[str, RedirectCacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, url: str) -> Optional[RedirectCacheEntry]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(url)
            if entry is not None and entry.is_fresh(now):
                self._hits += 1
                return entry
            if entry is not None:
                del self._entries[url]
            self._misses += 1
            return None

    def put(self, entry: RedirectCacheEntry) -> None:
        with self._lock:
            self._entries[entry.original_url] = entry
            self._entries.move_to_end(entry.original_url)
            if len(self._entries) > self._capacity:
                self._purge_expired(self._clock())
            while len(self._entries) > self._capacity:
                self._entries.popitem(last=False)

    def _purge_expired(self, now: datetime) -> None:
        stale = [key for key, entry in self._entries.items() if not entry.is_fresh(now)]
        for key in stale:
            del self._entries[key]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> Dict[str, Any]:
        now = self._clock()
        with self._lock:
            sample = [_sample_row(e, now) for e in list(self._entries.values())[:SAMPLE_SIZE]]
            return _stats(len(self._entries), self._capacity, self._hits, self._misses, sample)


class _RedisLikeClient(Protocol):
    def get(self, name: str) -> Any: ...
    def set(self, name: str, value: str, *, ex: int | None = None) -> bool | None: ...
    def delete(self, *names: str) -> int: ...
    def scan_iter(self, match: str | None = None) -> Iterable[Any]: ...


class RedisRedirectCache:
    """Redis 기반 리다이렉트 캐시.

    - 저장: `SET redirect:<url> <entry-json> EX <ttl>` → 만료는 Redis가 담당
    - 조회: `GET redirect:<url>` → 항목이 없거나 만료되었으면 miss

    워커 프로세스 간에 해석 결과를 공유한다. 히트/미스 카운터는 프로세스 단위로 집계한다.
    Redis 오류가 나면 조회는 miss로, 저장은 경고 로그만 남기고 건너뛴다.
    테스트에서는 fake 클라이언트를 주입한다.
    """

    def __init__(
        self,
        client: _RedisLikeClient,
        *,
        prefix: str = "redirect",
        capacity: int = 1000,
        clock: Clock = utcnow,
    ) -> None:
        self._client = client
        self._prefix = prefix
        self._capacity = capacity
        self._clock = clock
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._logger = get_logger(__name__)

    def _format(self, url: str) -> str:
        return f"{self._prefix}:{url}"

    def _count(self, hit: bool) -> None:
        with self._lock:
            if hit:
                self._hits += 1
            else:
                self._misses += 1

    def _keys(self) -> List[str]:
        keys = []
        for key in self._client.scan_iter(match=f"{self._prefix}:*"):
            keys.append(key.decode("utf-8") if isinstance(key, bytes) else key)
        return keys

    def get(self, url: str) -> Optional[RedirectCacheEntry]:
        try:
            raw = self._client.get(self._format(url))
        except RedisError as exc:
            self._logger.warning("resolver.cache.get_failed", extra={"url": url, "error": str(exc)})
            raw = None
        entry = self._decode(raw)
        if entry is None or not entry.is_fresh(self._clock()):
            self._count(False)
            return None
        self._count(True)
        return entry

    def put(self, entry: RedirectCacheEntry) -> None:
        try:
            self._client.set(self._format(entry.original_url), entry.model_dump_json(), ex=entry.ttl_seconds)
        except RedisError as exc:
            self._logger.warning("resolver.cache.put_failed", extra={"url": entry.original_url, "error": str(exc)})

    def clear(self) -> None:
        keys = self._keys()
        if keys:
            self._client.delete(*keys)
        with self._lock:
            self._hits = 0
            self._misses = 0

    def stats(self) -> Dict[str, Any]:
        now = self._clock()
        sample = []
        try:
            keys = self._keys()
            for key in keys[:SAMPLE_SIZE]:
                entry = self._decode(self._client.get(key))
                if entry is not None:
                    sample.append(_sample_row(entry, now))
        except RedisError as exc:
            self._logger.warning("resolver.cache.stats_failed", extra={"error": str(exc)})
            keys = []
        with self._lock:
            return _stats(len(keys), self._capacity, self._hits, self._misses, sample)

    @staticmethod
    def _decode(raw: Any) -> Optional[RedirectCacheEntry]:
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        try:
            return RedirectCacheEntry.model_validate_json(raw)
        except ValidationError:
            return None
