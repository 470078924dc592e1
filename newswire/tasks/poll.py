"""Poll orchestration and the Celery task that drives it."""

from __future__ import annotations

import threading
import time
import uuid
from datetime import datetime, timedelta
from typing import Callable, List, Optional
from urllib.parse import urlparse

from celery import shared_task

from newswire.connectors.article import ArticleConnector
from newswire.connectors.rss import RSSConnector
from newswire.errors import (
    ArticleFetchFailed,
    FeedUnreachable,
    NoContentFound,
    ResolutionFailed,
    ScopeResolutionFailed,
    describe,
)
from newswire.models.domain import FeedItem, FeedSource, MergedRelease, Origin, PollError, PollSummary, utcnow
from newswire.repositories.releases import ReleaseStore
from newswire.services.deduplicator import merge, release_from_feed_item
from newswire.services.extractor import ContentExtractor
from newswire.services.matcher import CompanyProfile, companies_from_sources, match_company
from newswire.services.monitor import ExtractionMonitor
from newswire.services.resolver import RedirectResolver
from newswire.services.sanitizer import html_to_text
from newswire.settings import Settings
from newswire.utils.logging import get_logger


class _Cancelled(Exception):
    pass


class PollOrchestrator:
    """Fetches every enabled feed of the tenants in scope and merges the results.

    Sources are processed one after another with a fixed delay between them;
    a failing source is recorded and skipped.
    """

    def __init__(
        self,
        store: ReleaseStore,
        *,
        connector: RSSConnector,
        resolver: RedirectResolver,
        extractor: ContentExtractor,
        article_connector: ArticleConnector,
        monitor: ExtractionMonitor,
        inter_source_delay_seconds: float = 1.0,
        stored_lookback_days: int = 30,
        recency_days: int = 7,
        extract_content: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._connector = connector
        self._resolver = resolver
        self._extractor = extractor
        self._articles = article_connector
        self._monitor = monitor
        self._delay = inter_source_delay_seconds
        self._lookback = timedelta(days=stored_lookback_days)
        self._recency_days = recency_days
        self._extract_default = extract_content
        self._clock = clock
        self._logger = get_logger(__name__)

    @property
    def store(self) -> ReleaseStore:
        return self._store

    def poll_all(
        self,
        tenant_scope: Optional[str] = None,
        *,
        extract_content: Optional[bool] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> PollSummary:
        cancel = cancel_event or threading.Event()
        extract = self._extract_default if extract_content is None else extract_content
        trace_id = str(uuid.uuid4())
        summary = PollSummary(started_at=self._clock())
        summary.tenants = self._resolve_scope(tenant_scope)
        self._logger.info(
            "poll.start",
            extra={"trace_id": trace_id, "tenants": len(summary.tenants), "extract_content": extract},
        )

        first_source = True
        for tenant_id in summary.tenants:
            sources = self._sources_for(tenant_id)
            companies = companies_from_sources(sources)
            live: List[MergedRelease] = []
            try:
                for source in sources:
                    if not first_source and self._delay > 0:
                        if cancel.wait(self._delay):
                            raise _Cancelled()
                    first_source = False
                    self._check(cancel)
                    self._poll_source(source, summary, live, extract, cancel, companies)
            except _Cancelled:
                summary.cancelled = True
            summary.new_items += self._merge_and_store(tenant_id, live, summary)
            if summary.cancelled:
                self._logger.info("poll.cancelled", extra={"trace_id": trace_id, "tenant_id": tenant_id})
                break

        summary.finished_at = self._clock()
        self._logger.info(
            "poll.finished",
            extra={
                "trace_id": trace_id,
                "total_sources": summary.total_sources,
                "succeeded": summary.succeeded,
                "failed": summary.failed,
                "new_items": summary.new_items,
                "cancelled": summary.cancelled,
            },
        )
        return summary

    @staticmethod
    def _check(cancel: threading.Event) -> None:
        if cancel.is_set():
            raise _Cancelled()

    def _resolve_scope(self, tenant_scope: Optional[str]) -> List[str]:
        if tenant_scope:
            return [tenant_scope]
        try:
            return list(self._store.list_tenants())
        except Exception as exc:
            raise ScopeResolutionFailed(f"could not list tenants: {describe(exc)}") from exc

    def _sources_for(self, tenant_id: str) -> List[FeedSource]:
        try:
            return list(self._store.list_enabled_sources(tenant_id))
        except Exception as exc:
            raise ScopeResolutionFailed(f"could not list sources for {tenant_id}: {describe(exc)}") from exc

    def _poll_source(
        self,
        source: FeedSource,
        summary: PollSummary,
        live: List[MergedRelease],
        extract: bool,
        cancel: threading.Event,
        companies: List[CompanyProfile],
    ) -> None:
        summary.total_sources += 1
        try:
            items = self._connector.fetch(source.url)
        except FeedUnreachable as exc:
            summary.failed += 1
            self._add_error(summary, source.tenant_id, exc, source_id=source.id, url=source.url)
            self._record_outcome(source, summary, success=False, error=describe(exc))
            self._logger.warning(
                "poll.source_failed",
                extra={"tenant_id": source.tenant_id, "source_id": source.id, "url": source.url, "error": str(exc)},
            )
            return

        self._record_outcome(source, summary, success=True)
        summary.succeeded += 1
        for item in items:
            self._check(cancel)
            try:
                live.append(self._process_item(item, source, extract, summary, companies))
            except Exception as exc:
                self._add_error(summary, source.tenant_id, exc, source_id=source.id, url=item.link)
                self._logger.exception(
                    "poll.item_failed",
                    extra={"tenant_id": source.tenant_id, "source_id": source.id, "url": item.link},
                )
        self._logger.info(
            "poll.source_done",
            extra={"tenant_id": source.tenant_id, "source_id": source.id, "items": len(items)},
        )

    @staticmethod
    def _add_error(
        summary: PollSummary,
        tenant_id: str,
        exc: BaseException,
        *,
        source_id: Optional[str] = None,
        url: Optional[str] = None,
    ) -> None:
        summary.errors.append(PollError(tenant_id=tenant_id, source_id=source_id, url=url, error=describe(exc)))

    def _record_outcome(self, source: FeedSource, summary: PollSummary, *, success: bool, error: Optional[str] = None) -> None:
        try:
            self._store.record_source_outcome(source.id, success=success, error=error, fetched_at=self._clock())
        except Exception as exc:
            self._add_error(summary, source.tenant_id, exc, source_id=source.id, url=source.url)
            self._logger.exception(
                "poll.source_outcome_failed",
                extra={"tenant_id": source.tenant_id, "source_id": source.id},
            )

    def _process_item(
        self,
        item: FeedItem,
        source: FeedSource,
        extract: bool,
        summary: PollSummary,
        companies: List[CompanyProfile],
    ) -> MergedRelease:
        started = time.perf_counter()
        resolved_url = item.link
        redirect_ms = 0.0
        extraction_ms = 0.0
        cached = False
        attempted = False
        error: Optional[BaseException] = None
        content: Optional[str] = None
        extracted_by: Optional[str] = None
        confidence: Optional[float] = None

        if self._resolver.is_aggregator_url(item.link):
            attempted = True
            try:
                result = self._resolver.resolve(item.link)
                resolved_url = result.final_url
                redirect_ms = result.resolution_time_ms
                cached = result.cached
            except ResolutionFailed as exc:
                error = exc

        if extract and error is None:
            attempted = True
            extraction_started = time.perf_counter()
            try:
                html, final_url = self._articles.fetch_html(resolved_url)
                article = self._extractor.extract(html, source_hint=final_url)
                content = article.sanitized_html
                extracted_by = article.extraction_method
                confidence = article.confidence_score
            except (ArticleFetchFailed, NoContentFound) as exc:
                error = exc
            extraction_ms = (time.perf_counter() - extraction_started) * 1000.0

        if attempted:
            self._monitor.record_outcome(
                item.link,
                error is None,
                redirect_time_ms=redirect_ms,
                extraction_time_ms=extraction_ms,
                total_time_ms=(time.perf_counter() - started) * 1000.0,
                cached=cached,
                final_source_domain=urlparse(resolved_url).hostname if error is None else None,
                extracted_by=extracted_by,
                confidence=confidence,
                error=error,
            )
        if error is not None:
            self._add_error(summary, source.tenant_id, error, source_id=source.id, url=item.link)

        match = match_company(item.title, html_to_text(item.description), companies, source=source)
        return release_from_feed_item(
            item,
            source_url=resolved_url,
            content=content,
            company_id=match.company.company_id if match.company else source.company_id,
            company_name=match.name,
            relevance_score=match.score,
        )

    def _merge_and_store(self, tenant_id: str, live: List[MergedRelease], summary: PollSummary) -> int:
        if not live:
            return 0
        now = self._clock()
        try:
            stored = self._store.list_releases_since(tenant_id, now - self._lookback)
            merged = merge(live, stored, now=now, recency_days=self._recency_days)
            winners = [r for r in merged if r.origin == Origin.RSS]
            inserted = self._store.upsert_releases(tenant_id, winners)
        except Exception as exc:
            self._add_error(summary, tenant_id, exc)
            self._logger.exception("poll.store_failed", extra={"tenant_id": tenant_id, "live": len(live)})
            return 0
        self._logger.info(
            "poll.tenant_done",
            extra={
                "tenant_id": tenant_id,
                "live": len(live),
                "stored": len(stored),
                "merged": len(merged),
                "written": len(winners),
                "new_items": inserted,
            },
        )
        return inserted


def _ensure_schema(settings: Optional[Settings] = None) -> None:
    # For local runs/tests, ensure schema exists (idempotent)
    from newswire.db.models import Base
    from newswire.db.session import get_engine

    Base.metadata.create_all(bind=get_engine(settings))


def poll_core(tenant_id: Optional[str] = None, extract_content: Optional[bool] = None) -> PollSummary:
    """Core logic behind the Celery task; test-friendly."""
    from newswire.components import get_components

    components = get_components()
    recorder_factory = getattr(components.store, "job_recorder", None)
    if recorder_factory is None:
        return components.orchestrator.poll_all(tenant_id, extract_content=extract_content)

    _ensure_schema(components.settings)
    with recorder_factory(tenant_id=tenant_id, task_name="poll_feeds", trace_id=str(uuid.uuid4())) as job:
        summary = components.orchestrator.poll_all(tenant_id, extract_content=extract_content)
        job.stats = summary.model_dump(mode="json", exclude={"errors"}) | {"errors": len(summary.errors)}
        return summary


@shared_task(name="newswire.tasks.poll.poll_feeds")
def poll_feeds(tenant_id: Optional[str] = None, extract_content: Optional[bool] = None) -> dict:  # pragma: no cover - wrapper
    return poll_core(tenant_id, extract_content).model_dump(mode="json")
