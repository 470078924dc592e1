"""Repositories for feed sources, press releases and job runs."""

from __future__ import annotations

import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Protocol, Sequence, Tuple

from sqlalchemy import select, update
from sqlalchemy.orm import Session, sessionmaker

from newswire.db.models import FeedSourceRow, JobRun, JobStage, JobStatus, PressRelease
from newswire.models.domain import FeedSource, MergedRelease, Origin, utcnow

MAX_ERROR_LEN = 512


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo on the way back
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ReleaseStore(Protocol):
    def list_tenants(self) -> List[str]: ...  # noqa: D401
    def list_enabled_sources(self, tenant_id: str) -> List[FeedSource]: ...  # noqa: D401
    def record_source_outcome(
        self, source_id: str, *, success: bool, error: Optional[str] = None, fetched_at: Optional[datetime] = None
    ) -> FeedSource: ...  # noqa: D401
    def upsert_releases(self, tenant_id: str, releases: Sequence[MergedRelease]) -> int: ...  # noqa: D401
    def list_releases_since(self, tenant_id: str, since: datetime) -> List[MergedRelease]: ...  # noqa: D401
    def retire_releases_before(self, tenant_id: str, cutoff: datetime) -> int: ...  # noqa: D401


def _apply_outcome(source: FeedSource, success: bool, error: Optional[str], fetched_at: datetime) -> FeedSource:
    fetch_count = source.fetch_count + 1
    success_count = source.success_count + (1 if success else 0)
    return source.model_copy(
        update={
            "fetch_count": fetch_count,
            "success_count": success_count,
            "success_rate": success_count / fetch_count,
            "last_fetched_at": fetched_at,
            "last_error": None if success else (error or "unknown error")[:MAX_ERROR_LEN],
        }
    )


# SQL-backed functions (session-scoped, caller controls the transaction)


def source_from_row(row: FeedSourceRow) -> FeedSource:
    return FeedSource(
        id=str(row.id),
        tenant_id=row.tenant_id,
        url=row.url,
        display_name=row.display_name,
        feed_type=row.feed_type,
        enabled=row.enabled,
        last_fetched_at=_aware(row.last_fetched_at),
        last_error=row.last_error,
        success_rate=row.success_rate,
        fetch_count=row.fetch_count,
        success_count=row.success_count,
        company_id=row.company_id,
        company_name=row.company_name,
        company_variations=list(row.company_variations or []),
    )


def release_from_row(row: PressRelease) -> MergedRelease:
    return MergedRelease(
        id=row.release_key,
        title=row.title,
        content=row.content,
        summary=row.summary,
        source_url=row.source_url,
        published_at=_aware(row.published_at),
        company_id=row.company_id,
        matched_company_name=row.matched_company_name,
        relevance_score=row.relevance_score or 0,
        origin=Origin.STORED,
        content_hash=row.content_hash,
    )


def save_source(session: Session, source: FeedSource) -> FeedSource:
    row = FeedSourceRow(
        id=uuid.UUID(source.id),
        tenant_id=source.tenant_id,
        url=source.url,
        display_name=source.display_name,
        feed_type=source.feed_type,
        enabled=source.enabled,
        success_rate=source.success_rate,
        fetch_count=source.fetch_count,
        success_count=source.success_count,
        company_id=source.company_id,
        company_name=source.company_name,
        company_variations=list(source.company_variations),
    )
    session.add(row)
    session.flush()
    return source_from_row(row)


def save_releases(session: Session, tenant_id: str, releases: Sequence[MergedRelease]) -> int:
    """Insert new releases and refresh existing ones; returns the number inserted."""
    if not releases:
        return 0
    urls = [r.source_url for r in releases]
    existing = {
        row.source_url: row
        for row in session.scalars(
            select(PressRelease).where(PressRelease.tenant_id == tenant_id, PressRelease.source_url.in_(urls))
        )
    }
    inserted = 0
    for release in releases:
        row = existing.get(release.source_url)
        if row is None:
            row = PressRelease(tenant_id=tenant_id, source_url=release.source_url)
            session.add(row)
            existing[release.source_url] = row
            inserted += 1
        row.release_key = release.id
        row.title = release.title[:512]
        row.content = release.content
        row.summary = release.summary
        row.published_at = release.published_at
        row.company_id = release.company_id
        row.matched_company_name = release.matched_company_name
        row.relevance_score = release.relevance_score
        row.content_hash = release.content_hash
    return inserted


class SqlReleaseStore:
    """ReleaseStore backed by SQLAlchemy; each call runs in its own transaction."""

    def __init__(self, session_factory: Optional[sessionmaker[Session]] = None) -> None:
        if session_factory is None:
            from newswire.db.session import get_sessionmaker

            session_factory = get_sessionmaker()
        self._session_factory = session_factory

    @contextmanager
    def session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def add_source(self, source: FeedSource) -> FeedSource:
        with self.session() as session:
            return save_source(session, source)

    def list_tenants(self) -> List[str]:
        stmt = select(FeedSourceRow.tenant_id).where(FeedSourceRow.enabled.is_(True)).distinct().order_by(FeedSourceRow.tenant_id)
        with self.session() as session:
            return [row[0] for row in session.execute(stmt)]

    def list_enabled_sources(self, tenant_id: str) -> List[FeedSource]:
        stmt = (
            select(FeedSourceRow)
            .where(FeedSourceRow.tenant_id == tenant_id, FeedSourceRow.enabled.is_(True))
            .order_by(FeedSourceRow.created_at, FeedSourceRow.url)
        )
        with self.session() as session:
            return [source_from_row(row) for row in session.scalars(stmt)]

    def record_source_outcome(
        self, source_id: str, *, success: bool, error: Optional[str] = None, fetched_at: Optional[datetime] = None
    ) -> FeedSource:
        with self.session() as session:
            row = session.get(FeedSourceRow, uuid.UUID(source_id))
            if row is None:
                raise KeyError(source_id)
            updated = _apply_outcome(source_from_row(row), success, error, fetched_at or utcnow())
            row.fetch_count = updated.fetch_count
            row.success_count = updated.success_count
            row.success_rate = updated.success_rate
            row.last_fetched_at = updated.last_fetched_at
            row.last_error = updated.last_error
            return updated

    def upsert_releases(self, tenant_id: str, releases: Sequence[MergedRelease]) -> int:
        with self.session() as session:
            return save_releases(session, tenant_id, releases)

    def list_releases_since(self, tenant_id: str, since: datetime) -> List[MergedRelease]:
        stmt = (
            select(PressRelease)
            .where(
                PressRelease.tenant_id == tenant_id,
                PressRelease.published_at >= since,
                PressRelease.retired_at.is_(None),
            )
            .order_by(PressRelease.published_at.desc())
        )
        with self.session() as session:
            return [release_from_row(row) for row in session.scalars(stmt)]

    def retire_releases_before(self, tenant_id: str, cutoff: datetime) -> int:
        stmt = (
            update(PressRelease)
            .where(
                PressRelease.tenant_id == tenant_id,
                PressRelease.published_at < cutoff,
                PressRelease.retired_at.is_(None),
            )
            .values(retired_at=utcnow())
        )
        with self.session() as session:
            return session.execute(stmt).rowcount or 0

    def job_recorder(
        self,
        *,
        tenant_id: Optional[str],
        task_name: str,
        trace_id: Optional[str] = None,
        stage: JobStage = JobStage.POLL,
    ) -> "StoreJobRecorder":
        return StoreJobRecorder(
            self._session_factory, stage=stage, tenant_id=tenant_id, task_name=task_name, trace_id=trace_id
        )


class InMemoryReleaseStore:
    """Simple in-memory store for tests/local runs."""

    def __init__(self, sources: Iterable[FeedSource] = (), releases: Iterable[Tuple[str, MergedRelease]] = ()) -> None:
        self._lock = threading.Lock()
        self._sources: Dict[str, FeedSource] = {s.id: s for s in sources}
        self._releases: Dict[Tuple[str, str], MergedRelease] = {}
        self._retired: Dict[Tuple[str, str], datetime] = {}
        for tenant_id, release in releases:
            self._releases[(tenant_id, release.source_url)] = release

    def add_source(self, source: FeedSource) -> FeedSource:
        with self._lock:
            self._sources[source.id] = source
        return source

    def get_source(self, source_id: str) -> FeedSource:
        with self._lock:
            return self._sources[source_id]

    def list_tenants(self) -> List[str]:
        with self._lock:
            return sorted({s.tenant_id for s in self._sources.values() if s.enabled})

    def list_enabled_sources(self, tenant_id: str) -> List[FeedSource]:
        with self._lock:
            return [s for s in self._sources.values() if s.tenant_id == tenant_id and s.enabled]

    def record_source_outcome(
        self, source_id: str, *, success: bool, error: Optional[str] = None, fetched_at: Optional[datetime] = None
    ) -> FeedSource:
        with self._lock:
            updated = _apply_outcome(self._sources[source_id], success, error, fetched_at or utcnow())
            self._sources[source_id] = updated
            return updated

    def upsert_releases(self, tenant_id: str, releases: Sequence[MergedRelease]) -> int:
        inserted = 0
        with self._lock:
            for release in releases:
                key = (tenant_id, release.source_url)
                if key not in self._releases:
                    inserted += 1
                self._releases[key] = release.model_copy(update={"origin": Origin.STORED})
        return inserted

    def list_releases_since(self, tenant_id: str, since: datetime) -> List[MergedRelease]:
        with self._lock:
            rows = [
                r.model_copy(update={"origin": Origin.STORED})
                for key, r in self._releases.items()
                if key[0] == tenant_id and r.published_at >= since and key not in self._retired
            ]
        return sorted(rows, key=lambda r: r.published_at, reverse=True)

    def retire_releases_before(self, tenant_id: str, cutoff: datetime) -> int:
        retired_at = utcnow()
        count = 0
        with self._lock:
            for key, release in self._releases.items():
                if key[0] == tenant_id and release.published_at < cutoff and key not in self._retired:
                    self._retired[key] = retired_at
                    count += 1
        return count

    def list_releases(self, tenant_id: str) -> List[MergedRelease]:
        return self.list_releases_since(tenant_id, datetime.min.replace(tzinfo=timezone.utc))


class JobRunRecorder:
    """Context manager to record job run lifecycle."""

    def __init__(
        self,
        session: Session,
        *,
        stage: JobStage = JobStage.POLL,
        tenant_id: str | None,
        task_name: str,
        trace_id: str | None = None,
    ) -> None:
        self._session = session
        self._job = JobRun(
            stage=stage,
            status=JobStatus.RUNNING,
            tenant_id=tenant_id,
            task_name=task_name,
            trace_id=trace_id,
            started_at=datetime.now(timezone.utc),
        )

    def __enter__(self) -> JobRun:
        self._session.add(self._job)
        # Commit initial RUNNING state so we have a durable record even if later work fails
        self._session.commit()
        return self._job

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        if exc is None:
            self._job.status = JobStatus.SUCCEEDED
        else:
            self._job.status = JobStatus.FAILED
            self._job.error_code = exc_type.__name__[:64]
            self._job.error_message = str(exc)[:MAX_ERROR_LEN]
        self._job.finished_at = datetime.now(timezone.utc)
        self._session.add(self._job)
        # Commit final state before outer transaction may roll back
        try:
            self._session.commit()
        except Exception:  # pragma: no cover - do not mask original error
            self._session.rollback()


class StoreJobRecorder:
    """JobRunRecorder bound to a session it owns."""

    def __init__(self, session_factory: Callable[[], Session], **kwargs) -> None:  # noqa: ANN003
        self._session = session_factory()
        self._recorder = JobRunRecorder(self._session, **kwargs)

    def __enter__(self) -> JobRun:
        return self._recorder.__enter__()

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        try:
            self._recorder.__exit__(exc_type, exc, tb)
        finally:
            self._session.close()
