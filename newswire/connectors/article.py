"""Publisher article page connector."""

from __future__ import annotations

import time
from typing import Callable, Optional, Tuple

from newswire.errors import ArticleFetchFailed, ConnectorError

from .base import call_with_retries, http_get

HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"

# Returns (html, final_url)
PageFetcherFn = Callable[[str], Tuple[str, str]]


class ArticleConnector:
    """Fetches article HTML; retries transient failures with exponential backoff."""

    def __init__(
        self,
        fetcher: Optional[PageFetcherFn] = None,
        *,
        timeout_seconds: float = 20.0,
        user_agent: str = "Mozilla/5.0 (compatible; newswire/0.1)",
        max_attempts: int = 2,
        backoff_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._fetcher = fetcher
        self._timeout = timeout_seconds
        self._user_agent = user_agent
        self._max_attempts = max_attempts
        self._backoff = backoff_seconds
        self._sleep = sleep

    def fetch_html(self, url: str) -> Tuple[str, str]:
        try:
            return call_with_retries(
                lambda: self._fetch_once(url),
                max_attempts=self._max_attempts,
                backoff_seconds=self._backoff,
                sleep=self._sleep,
            )
        except ConnectorError as exc:
            raise ArticleFetchFailed(f"{url}: {exc}") from exc

    def _fetch_once(self, url: str) -> Tuple[str, str]:
        if self._fetcher is not None:
            return self._fetcher(url)
        resp = http_get(url, timeout=self._timeout, user_agent=self._user_agent, accept=HTML_ACCEPT, label="Article")
        return resp.text, str(resp.url)
