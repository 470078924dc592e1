"""Connector abstraction, HTTP helpers, and retry loop."""

from __future__ import annotations

import hashlib
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, TypeVar

import httpx

from newswire.errors import PermanentError, TransientError
from newswire.models.domain import FeedItem

T = TypeVar("T")


def _fingerprint(url: str, title: str) -> str:
    data = (url.strip() + "\n" + title.strip()).encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def http_get(
    url: str,
    *,
    timeout: float,
    user_agent: str,
    accept: str = "*/*",
    label: str = "HTTP",
) -> httpx.Response:
    """GET with redirects followed; maps failures onto Transient/Permanent errors."""
    headers = {"User-Agent": user_agent, "Accept": accept}
    try:
        resp = httpx.get(url, headers=headers, timeout=timeout, follow_redirects=True)
    except httpx.TimeoutException as exc:
        raise TransientError(f"{label} 타임아웃: {url}") from exc
    except httpx.HTTPError as exc:
        raise TransientError(f"{label} 호출 오류: {exc}") from exc

    if resp.status_code == 429 or resp.status_code >= 500:
        raise TransientError(f"{label} 일시 오류: {resp.status_code}")
    if resp.status_code >= 400:
        raise PermanentError(f"{label} 오류: {resp.status_code}")
    return resp


def call_with_retries(
    call: Callable[[], T],
    *,
    max_attempts: int = 3,
    backoff_seconds: float = 0.0,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Retry ``call`` on TransientError with capped exponential backoff."""
    attempts = 0
    last_error: Optional[Exception] = None
    while attempts < max_attempts:
        attempts += 1
        try:
            return call()
        except TransientError as exc:  # retry
            last_error = exc
            if attempts >= max_attempts:
                raise
            if backoff_seconds > 0:
                sleep(min(backoff_seconds * (2 ** (attempts - 1)), 5.0))
        except PermanentError:
            raise
    assert last_error is not None
    raise last_error


class BaseConnector(ABC):
    """Abstract feed connector interface with retry and normalization hooks."""

    source: str

    def fetch(self, feed_url: str, since: Optional[datetime] = None, *, max_attempts: int = 3) -> List[FeedItem]:
        raw = call_with_retries(lambda: self._fetch_raw(feed_url, since), max_attempts=max_attempts)
        return self._normalize_and_dedupe(feed_url, raw, since)

    @abstractmethod
    def _fetch_raw(self, feed_url: str, since: Optional[datetime]) -> List[Dict[str, Any]]:
        """Return a list of raw item dicts from the upstream."""

    def _normalize_and_dedupe(
        self, feed_url: str, items: Iterable[Dict[str, Any]], since: Optional[datetime] = None
    ) -> List[FeedItem]:
        seen: set[str] = set()
        normalized: List[FeedItem] = []
        now = datetime.now(timezone.utc)
        for item in items:
            feed_item = self._normalize_item(feed_url, item, now)
            if feed_item is None:
                continue
            if since is not None and feed_item.published_at < since:
                continue
            fp = _fingerprint(feed_item.link, feed_item.title)
            if fp in seen:
                continue
            seen.add(fp)
            normalized.append(feed_item)
        return normalized

    def _normalize_item(self, feed_url: str, item: Dict[str, Any], collected_at: datetime) -> Optional[FeedItem]:
        title = str(item.get("title") or "").strip()
        link = str(item.get("link") or item.get("url") or "").strip()
        if not title or not link:
            return None
        description = str(item.get("description") or item.get("summary") or "").strip()
        published_at = item.get("published_at") or item.get("published") or collected_at
        return FeedItem(
            title=title,
            description=description,
            published_at=published_at,
            link=link,
            guid=item.get("guid") or item.get("id"),
            source_feed_url=feed_url,
        )
