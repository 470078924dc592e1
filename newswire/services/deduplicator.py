"""Merge of live feed items with stored releases, one release per source URL."""

from __future__ import annotations

import hashlib
import re
import uuid
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from newswire.models.domain import FeedItem, MergedRelease, Origin, utcnow

from .sanitizer import html_to_text

SUMMARY_LIMIT = 200
DEFAULT_RECENCY_DAYS = 7

_WHITESPACE = re.compile(r"\s+")


def _normalize(value: str) -> str:
    return _WHITESPACE.sub(" ", value or "").strip().lower()


def content_hash(title: str, content: str, published_at: Optional[datetime]) -> str:
    published = published_at.isoformat() if published_at else ""
    data = "|".join((_normalize(title), _normalize(content), published)).encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def release_id(source_url: str) -> str:
    return str(uuid.uuid5(uuid.NAMESPACE_URL, source_url.strip()))


def make_summary(text: str, limit: int = SUMMARY_LIMIT) -> str:
    text = _WHITESPACE.sub(" ", text or "").strip()
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


def release_from_feed_item(
    item: FeedItem,
    *,
    source_url: Optional[str] = None,
    content: Optional[str] = None,
    company_id: Optional[str] = None,
    company_name: Optional[str] = None,
    relevance_score: int = 0,
) -> MergedRelease:
    """Build a live (``origin=rss``) release from a feed item.

    ``source_url`` overrides the item link (e.g. a resolved publisher URL) and
    ``content`` the description-derived body.
    """
    url = (source_url or item.link).strip()
    description = html_to_text(item.description)
    body = content if content else description
    return MergedRelease(
        id=release_id(url),
        title=item.title,
        content=body,
        summary=make_summary(description or body),
        source_url=url,
        published_at=item.published_at,
        company_id=company_id,
        matched_company_name=company_name,
        relevance_score=relevance_score,
        origin=Origin.RSS,
        content_hash=content_hash(item.title, body, item.published_at),
    )


def _pick(current: MergedRelease, candidate: MergedRelease, cutoff: datetime) -> MergedRelease:
    if current.origin == candidate.origin:
        return current
    live, stored = (current, candidate) if current.origin == Origin.RSS else (candidate, current)
    return live if live.published_at >= cutoff else stored


def merge(
    live: Iterable[MergedRelease],
    stored: Iterable[MergedRelease],
    *,
    now: Optional[datetime] = None,
    recency_days: int = DEFAULT_RECENCY_DAYS,
) -> List[MergedRelease]:
    """Merge keyed by ``source_url``; newest first.

    A live item beats a stored one only while younger than ``recency_days``.
    Entries of the same origin keep the first one seen.
    """
    cutoff = (now or utcnow()) - timedelta(days=recency_days)
    by_url: Dict[str, MergedRelease] = {}
    for release in list(live) + list(stored):
        key = release.source_url.strip()
        current = by_url.get(key)
        by_url[key] = release if current is None else _pick(current, release, cutoff)
    return sorted(by_url.values(), key=lambda r: (r.published_at, r.source_url), reverse=True)
