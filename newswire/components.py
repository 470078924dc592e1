"""Explicit construction of the long-lived pipeline components.

One :class:`Components` instance per process, built from settings and held
until :func:`reset_components` is called.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Optional

import redis as redislib

from newswire.connectors.article import ArticleConnector
from newswire.connectors.rss import RSSConnector
from newswire.repositories.releases import ReleaseStore, SqlReleaseStore
from newswire.services.extractor import ContentExtractor
from newswire.services.monitor import ExtractionMonitor
from newswire.services.redirect_cache import InMemoryRedirectCache, RedirectCache, RedisRedirectCache
from newswire.services.resolver import RedirectResolver
from newswire.services.validator import FeedValidator
from newswire.settings import Settings, get_settings
from newswire.tasks.poll import PollOrchestrator
from newswire.utils.logging import get_logger


@dataclass
class Components:
    settings: Settings
    store: ReleaseStore
    connector: RSSConnector
    article_connector: ArticleConnector
    resolver: RedirectResolver
    extractor: ContentExtractor
    validator: FeedValidator
    monitor: ExtractionMonitor
    orchestrator: PollOrchestrator


_COMPONENTS: Optional[Components] = None
_LOCK = threading.Lock()


def build_redirect_cache(settings: Settings, redis_client: Any = None) -> RedirectCache:
    logger = get_logger(__name__)
    if settings.redirect_cache_backend != "redis":
        return InMemoryRedirectCache(capacity=settings.redirect_cache_capacity)
    client = redis_client or redislib.Redis.from_url(settings.redis_url, socket_connect_timeout=0.2)
    try:
        client.ping()
    except redislib.RedisError:
        logger.info("resolver.cache.memory", extra={"reason": "redis_ping_failed"})
        return InMemoryRedirectCache(capacity=settings.redirect_cache_capacity)
    logger.info("resolver.cache.redis", extra={"redis_url": settings.redis_url})
    return RedisRedirectCache(client, capacity=settings.redirect_cache_capacity)


def build_components(
    settings: Optional[Settings] = None,
    *,
    store: Optional[ReleaseStore] = None,
    redis_client: Any = None,
    connector: Optional[RSSConnector] = None,
    article_connector: Optional[ArticleConnector] = None,
) -> Components:
    config = settings or get_settings()
    if store is None:
        from newswire.db.session import get_sessionmaker

        store = SqlReleaseStore(get_sessionmaker(config))

    connector = connector or RSSConnector(
        timeout_seconds=config.feed_timeout_seconds,
        user_agent=config.user_agent,
        max_attempts=config.feed_max_attempts,
    )
    article_connector = article_connector or ArticleConnector(
        timeout_seconds=config.article_timeout_seconds,
        user_agent=config.user_agent,
        max_attempts=config.article_max_attempts,
    )
    resolver = RedirectResolver(
        build_redirect_cache(config, redis_client),
        aggregator_hosts=config.aggregator_hosts,
        max_hops=config.redirect_max_hops,
        timeout_seconds=config.redirect_timeout_seconds,
        ttl_seconds=config.redirect_cache_ttl_seconds,
        user_agent=config.user_agent,
    )
    monitor = ExtractionMonitor(
        ring_capacity=config.monitor_ring_capacity,
        bucket_seconds=config.monitor_bucket_seconds,
        retention_hours=config.monitor_retention_hours,
        lookback_minutes=config.monitor_lookback_minutes,
        degraded_success_rate=config.health_degraded_success_rate,
        unhealthy_success_rate=config.health_unhealthy_success_rate,
        degraded_p95_ms=config.health_degraded_p95_ms,
    )
    extractor = ContentExtractor()
    validator = FeedValidator(timeout_seconds=config.validation_timeout_seconds, user_agent=config.user_agent)
    orchestrator = PollOrchestrator(
        store,
        connector=connector,
        resolver=resolver,
        extractor=extractor,
        article_connector=article_connector,
        monitor=monitor,
        inter_source_delay_seconds=config.poll_inter_source_delay_seconds,
        stored_lookback_days=config.stored_lookback_days,
        recency_days=config.dedup_recency_days,
        extract_content=config.extract_full_text,
    )
    return Components(
        settings=config,
        store=store,
        connector=connector,
        article_connector=article_connector,
        resolver=resolver,
        extractor=extractor,
        validator=validator,
        monitor=monitor,
        orchestrator=orchestrator,
    )


def get_components() -> Components:
    global _COMPONENTS
    with _LOCK:
        if _COMPONENTS is None:
            _COMPONENTS = build_components()
        return _COMPONENTS


def set_components(components: Components) -> None:
    global _COMPONENTS
    with _LOCK:
        _COMPONENTS = components


def reset_components() -> None:
    global _COMPONENTS
    with _LOCK:
        _COMPONENTS = None
