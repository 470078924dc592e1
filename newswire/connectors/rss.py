"""RSS/Atom connector (fetcher-injected for tests/offline)."""

from __future__ import annotations

import calendar
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

import feedparser

from newswire.errors import ConnectorError, FeedUnreachable, PermanentError
from newswire.models.domain import FeedItem

from .base import BaseConnector, http_get

FEED_ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml, */*"

FetcherFn = Callable[[str], Union[str, bytes]]


def parse_feed_document(content: Union[str, bytes]) -> "feedparser.FeedParserDict":
    """Parse a feed body; PermanentError when no RSS/Atom envelope is present."""
    parsed = feedparser.parse(content)
    if not parsed.get("version") and not parsed.entries:
        raise PermanentError("RSS/Atom 피드 형식이 아닙니다.")
    return parsed


def _entry_datetime(entry: Dict[str, Any]) -> Optional[datetime]:
    for key in ("published_parsed", "updated_parsed", "created_parsed"):
        value = entry.get(key)
        if value:
            return datetime.fromtimestamp(calendar.timegm(value), tz=timezone.utc)
    return None


def entries_to_raw(parsed: "feedparser.FeedParserDict") -> List[Dict[str, Any]]:
    items: List[Dict[str, Any]] = []
    for entry in parsed.entries:
        raw: Dict[str, Any] = {
            "title": entry.get("title"),
            "description": entry.get("summary") or entry.get("description"),
            "link": entry.get("link"),
            "guid": entry.get("id"),
        }
        published_at = _entry_datetime(entry)
        if published_at is not None:
            raw["published_at"] = published_at
        items.append(raw)
    return items


class RSSConnector(BaseConnector):
    """Connector that fetches and normalizes RSS/Atom items.

    A fetcher returning the raw document can be injected for offline use;
    otherwise the feed is fetched over HTTP with httpx.
    """

    source = "rss"

    def __init__(
        self,
        fetcher: Optional[FetcherFn] = None,
        *,
        timeout_seconds: float = 15.0,
        user_agent: str = "Mozilla/5.0 (compatible; newswire/0.1)",
        max_attempts: int = 2,
    ) -> None:
        self._fetcher = fetcher
        self._timeout = timeout_seconds
        self._user_agent = user_agent
        self._max_attempts = max_attempts

    def fetch(self, feed_url: str, since: Optional[datetime] = None, *, max_attempts: Optional[int] = None) -> List[FeedItem]:
        try:
            return super().fetch(feed_url, since, max_attempts=max_attempts or self._max_attempts)
        except FeedUnreachable:
            raise
        except ConnectorError as exc:
            raise FeedUnreachable(f"{feed_url}: {exc}") from exc

    def fetch_document(self, feed_url: str) -> Union[str, bytes]:
        if self._fetcher is not None:
            return self._fetcher(feed_url)
        resp = http_get(feed_url, timeout=self._timeout, user_agent=self._user_agent, accept=FEED_ACCEPT, label="RSS")
        return resp.content

    def _fetch_raw(self, feed_url: str, since: Optional[datetime]):
        return entries_to_raw(parse_feed_document(self.fetch_document(feed_url)))
