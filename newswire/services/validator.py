"""Feed URL validation, type detection and naming helpers."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Callable, List, Optional, Tuple, Union
from urllib.parse import urlparse

from newswire.connectors.rss import FEED_ACCEPT, parse_feed_document
from newswire.connectors.base import http_get
from newswire.errors import ConnectorError
from newswire.models.domain import FeedType, FeedValidationReport, FeedValidationResult, utcnow
from newswire.utils.logging import get_logger

# Checked in order; the first matching category wins.
FEED_TYPE_PATTERNS: Tuple[Tuple[FeedType, Tuple[re.Pattern, ...]], ...] = (
    (
        FeedType.IR_NEWS,
        tuple(
            re.compile(p, re.IGNORECASE)
            for p in (r"investors?\..*/rss", r"ir\..*/rss", r"newsroom\..*/rss", r"press\..*/rss", r"news\..*/rss")
        ),
    ),
    (FeedType.SEC_FILINGS, tuple(re.compile(p, re.IGNORECASE) for p in (r"sec\.gov.*edgar", r"edgar", r"filings"))),
    (
        FeedType.GENERAL_NEWS,
        tuple(re.compile(p, re.IGNORECASE) for p in (r"yahoo.*finance", r"reuters", r"bloomberg", r"marketwatch", r"cnbc")),
    ),
    (FeedType.INDUSTRY, tuple(re.compile(p, re.IGNORECASE) for p in (r"fintech", r"finance", r"banking", r"payments"))),
)

_NAME_NOISE = re.compile(r"\b(rss|feed|news)\b", re.IGNORECASE)
MIN_NAME_LENGTH = 2

FeedFetcherFn = Callable[[str], Union[str, bytes]]


def validate_url(url: str) -> Optional[str]:
    """Return an error message for a malformed feed URL, ``None`` when usable."""
    try:
        parsed = urlparse((url or "").strip())
    except ValueError:
        return "Invalid URL format"
    if parsed.scheme not in ("http", "https"):
        return "URL must use HTTP or HTTPS protocol"
    if not parsed.netloc:
        return "Invalid URL format"
    return None


def detect_feed_type(url: str) -> FeedType:
    lowered = (url or "").lower()
    for feed_type, patterns in FEED_TYPE_PATTERNS:
        if any(p.search(lowered) for p in patterns):
            return feed_type
    return FeedType.CUSTOM


def _domain_name(url: str) -> str:
    host = (urlparse(url).hostname or "") if url else ""
    if not host:
        return "Custom Feed"
    if host.startswith("www."):
        host = host[4:]
    return " ".join(part[:1].upper() + part[1:] for part in host.split("."))


def suggest_feed_name(url: str, title: Optional[str] = None) -> str:
    if title:
        cleaned = _NAME_NOISE.sub("", title)
        cleaned = re.sub(r"\s+", " ", cleaned).strip(" -|:–—")
        if cleaned:
            return cleaned
    return _domain_name(url)


def validate_source_fields(url: str, name: str, feed_type: str) -> List[str]:
    errors: List[str] = []
    url_error = validate_url(url)
    if url_error:
        errors.append(url_error)
    if not (name or "").strip():
        errors.append("Feed name is required")
    elif len(name.strip()) < MIN_NAME_LENGTH:
        errors.append(f"Feed name must be at least {MIN_NAME_LENGTH} characters")
    if feed_type not in {t.value for t in FeedType}:
        errors.append("Invalid feed type")
    return errors


class FeedValidator:
    """Connectivity check for candidate feed URLs; never persists anything."""

    def __init__(
        self,
        fetcher: Optional[FeedFetcherFn] = None,
        *,
        timeout_seconds: float = 10.0,
        user_agent: str = "Mozilla/5.0 (compatible; newswire/0.1)",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._fetcher = fetcher
        self._timeout = timeout_seconds
        self._user_agent = user_agent
        self._clock = clock
        self._logger = get_logger(__name__)

    detect_feed_type = staticmethod(detect_feed_type)
    suggest_feed_name = staticmethod(suggest_feed_name)
    validate_source_fields = staticmethod(validate_source_fields)

    def test_connectivity(self, url: str) -> FeedValidationResult:
        url_error = validate_url(url)
        if url_error:
            return FeedValidationResult(valid=False, error=url_error)
        try:
            parsed = parse_feed_document(self._fetch(url))
        except ConnectorError as exc:
            return FeedValidationResult(valid=False, error=str(exc))
        title = (parsed.feed.get("title") or "").strip() or None
        return FeedValidationResult(valid=True, title=title, item_count=len(parsed.entries))

    def validate(self, url: str) -> FeedValidationReport:
        result = self.test_connectivity(url)
        report = FeedValidationReport(
            **result.model_dump(),
            suggested_name=suggest_feed_name(url, result.title),
            detected_type=detect_feed_type(url),
            timestamp=self._clock(),
        )
        self._logger.info(
            "feeds.validate",
            extra={"url": url, "valid": report.valid, "detected_type": report.detected_type.value, "error": report.error},
        )
        return report

    def _fetch(self, url: str) -> Union[str, bytes]:
        if self._fetcher is not None:
            return self._fetcher(url)
        resp = http_get(url, timeout=self._timeout, user_agent=self._user_agent, accept=FEED_ACCEPT, label="Feed")
        return resp.content
