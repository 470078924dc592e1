"""Aggregator redirect resolution backed by a TTL cache."""

from __future__ import annotations

import base64
import binascii
import re
import time
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

from newswire.errors import ResolutionFailed
from newswire.models.domain import RedirectCacheEntry, ResolutionResult, utcnow
from newswire.utils.logging import get_logger

from .redirect_cache import InMemoryRedirectCache, RedirectCache

REDIRECT_STATUSES = (301, 302, 303, 307, 308)
DEFAULT_AGGREGATOR_HOSTS = ("news.google.com",)

_EMBEDDED_URL = re.compile(rb"https?://[\x21-\x7e]+")
_JS_LOCATION = re.compile(r"""(?:window\.)?location(?:\.href)?\s*=\s*["'](https?://[^"']+)["']""")


def _host(url: str) -> str:
    return (urlparse(url).hostname or "").lower()


class RedirectResolver:
    """Resolves aggregator links (e.g. Google News) to publisher URLs.

    - 캐시 히트: 저장된 URL 반환 (cached=True, 0ms)
    - 미스: 기사 ID 디코딩 → 수동 리다이렉트 추적 → 종착 페이지 HTML 분석
    - 실패 시 ResolutionFailed; 호출자는 원본 URL로 대체한다.
    """

    def __init__(
        self,
        cache: Optional[RedirectCache] = None,
        *,
        client: Optional[httpx.Client] = None,
        aggregator_hosts: Sequence[str] = DEFAULT_AGGREGATOR_HOSTS,
        max_hops: int = 10,
        timeout_seconds: float = 15.0,
        ttl_seconds: int = 86_400,
        user_agent: str = "Mozilla/5.0 (compatible; newswire/0.1)",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._cache = cache if cache is not None else InMemoryRedirectCache(clock=clock)
        self._client = client
        self._aggregator_hosts = tuple(h.lower() for h in aggregator_hosts)
        self._max_hops = max_hops
        self._timeout = timeout_seconds
        self._ttl = ttl_seconds
        self._user_agent = user_agent
        self._clock = clock
        self._logger = get_logger(__name__)

    @property
    def cache(self) -> RedirectCache:
        return self._cache

    def is_aggregator_url(self, url: str) -> bool:
        host = _host(url)
        if not host:
            return False
        on_aggregator = any(host == h or host.endswith("." + h) for h in self._aggregator_hosts)
        return on_aggregator and "/articles/" in urlparse(url).path

    def resolve(self, url: str) -> ResolutionResult:
        entry = self._cache.get(url)
        if entry is not None:
            self._logger.debug("resolver.cache_hit", extra={"url": url, "resolved_url": entry.resolved_url})
            return ResolutionResult(
                final_url=entry.resolved_url,
                cached=True,
                resolution_time_ms=0.0,
                method=entry.method,
                redirect_chain=[url, entry.resolved_url],
            )

        started = time.perf_counter()
        try:
            final_url, method, chain = self._resolve_uncached(url)
        except ResolutionFailed as exc:
            self._logger.info("resolver.failed", extra={"url": url, "error": str(exc)})
            raise
        elapsed_ms = (time.perf_counter() - started) * 1000.0

        self._cache.put(
            RedirectCacheEntry(
                original_url=url,
                resolved_url=final_url,
                resolved_at=self._clock(),
                ttl_seconds=self._ttl,
                method=method,
            )
        )
        self._logger.info(
            "resolver.resolved",
            extra={"url": url, "resolved_url": final_url, "method": method, "hops": len(chain) - 1},
        )
        return ResolutionResult(
            final_url=final_url,
            cached=False,
            resolution_time_ms=round(elapsed_ms, 2),
            method=method,
            redirect_chain=chain,
        )

    def resolve_many(
        self,
        urls: Iterable[str],
        *,
        delay_seconds: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> List[ResolutionResult]:
        """Resolve sequentially; failures fall back to the original URL (method="fallback")."""
        results: List[ResolutionResult] = []
        for index, url in enumerate(urls):
            if index and delay_seconds > 0:
                sleep(delay_seconds)
            try:
                results.append(self.resolve(url))
            except ResolutionFailed:
                results.append(
                    ResolutionResult(final_url=url, cached=False, resolution_time_ms=0.0, method="fallback", redirect_chain=[url])
                )
        return results

    def get_cache_stats(self) -> dict:
        return self._cache.stats()

    def clear_cache(self) -> None:
        self._cache.clear()

    # internals

    def _resolve_uncached(self, url: str) -> Tuple[str, str, List[str]]:
        decoded = self._decode_article_id(url)
        if decoded is not None:
            return decoded, "id-decoding", [url, decoded]
        return self._follow_redirects(url)

    def _decode_article_id(self, url: str) -> Optional[str]:
        if not self.is_aggregator_url(url):
            return None
        article_id = urlparse(url).path.rstrip("/").rsplit("/", 1)[-1]
        if not article_id:
            return None
        padded = article_id + "=" * (-len(article_id) % 4)
        try:
            raw = base64.urlsafe_b64decode(padded)
        except (binascii.Error, ValueError):
            return None
        for match in _EMBEDDED_URL.finditer(raw):
            candidate = match.group(0).decode("ascii", "ignore")
            if _host(candidate) and not self._on_aggregator(candidate):
                return candidate
        return None

    def _on_aggregator(self, url: str) -> bool:
        host = _host(url)
        return any(host == h or host.endswith("." + h) for h in self._aggregator_hosts)

    def _follow_redirects(self, url: str) -> Tuple[str, str, List[str]]:
        chain = [url]
        current = url
        redirects = 0
        client = self._client or httpx.Client(
            timeout=self._timeout,
            headers={"User-Agent": self._user_agent},
            follow_redirects=False,
        )
        try:
            while True:
                try:
                    resp = client.get(current, follow_redirects=False)
                except httpx.TimeoutException as exc:
                    raise ResolutionFailed(f"timeout resolving {current}") from exc
                except httpx.HTTPError as exc:
                    raise ResolutionFailed(f"request failed for {current}: {exc}") from exc

                if resp.status_code in REDIRECT_STATUSES:
                    location = resp.headers.get("location")
                    if not location:
                        raise ResolutionFailed(f"redirect without Location from {current}")
                    redirects += 1
                    if redirects > self._max_hops:
                        raise ResolutionFailed(f"too many redirects (>{self._max_hops})")
                    current = urljoin(current, location)
                    chain.append(current)
                    continue

                if not 200 <= resp.status_code < 300:
                    raise ResolutionFailed(f"HTTP {resp.status_code} from {current}")

                if not self._on_aggregator(current):
                    return current, "direct-redirect", chain

                publisher_url = self._publisher_url_from_html(resp.text, current)
                if publisher_url is None:
                    raise ResolutionFailed(f"no publisher URL found on {current}")
                chain.append(publisher_url)
                return publisher_url, "html-extraction", chain
        finally:
            if self._client is None:
                client.close()

    def _publisher_url_from_html(self, html: str, base_url: str) -> Optional[str]:
        soup = BeautifulSoup(html or "", "html.parser")
        candidates: List[str] = []
        canonical = soup.find("link", rel="canonical")
        if canonical is not None and canonical.get("href"):
            candidates.append(canonical["href"])
        og_url = soup.find("meta", attrs={"property": "og:url"})
        if og_url is not None and og_url.get("content"):
            candidates.append(og_url["content"])
        for tag in soup.find_all(attrs={"data-n-au": True}):
            candidates.append(tag["data-n-au"])
        for tag in soup.find_all(attrs={"data-url": True}):
            candidates.append(tag["data-url"])
        for script in soup.find_all("script"):
            candidates.extend(_JS_LOCATION.findall(script.get_text()))
        for anchor in soup.find_all("a", href=True):
            candidates.append(anchor["href"])

        for candidate in candidates:
            absolute = urljoin(base_url, candidate.strip())
            if urlparse(absolute).scheme in ("http", "https") and not self._on_aggregator(absolute):
                return absolute
        return None
