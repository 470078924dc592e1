import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from newswire.db.models import Base, JobRun, JobStatus, PressRelease
from newswire.models.domain import FeedSource, FeedType, MergedRelease, Origin
from newswire.repositories.releases import InMemoryReleaseStore, SqlReleaseStore
from newswire.services.deduplicator import content_hash, release_id

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def session_factory(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'newswire.db'}", future=True)
    Base.metadata.create_all(engine)
    try:
        yield sessionmaker(bind=engine, expire_on_commit=False, future=True)
    finally:
        engine.dispose()


def _source(tenant: str, url: str, enabled: bool = True) -> FeedSource:
    return FeedSource(
        id=str(uuid.uuid4()),
        tenant_id=tenant,
        url=url,
        display_name="Acme IR",
        feed_type=FeedType.IR_NEWS,
        enabled=enabled,
        company_id="c-1",
    )


def _release(url: str, hours_ago: int, title: str = "Acme news") -> MergedRelease:
    published = NOW - timedelta(hours=hours_ago)
    return MergedRelease(
        id=release_id(url),
        title=title,
        content="<p>body</p>",
        summary="body",
        source_url=url,
        published_at=published,
        origin=Origin.RSS,
        content_hash=content_hash(title, "<p>body</p>", published),
    )


def test_sources_are_listed_per_tenant(session_factory):
    store = SqlReleaseStore(session_factory)
    store.add_source(_source("globex", "https://globex.example/rss"))
    acme = store.add_source(_source("acme", "https://ir.acme.com/rss"))
    store.add_source(_source("acme", "https://ir.acme.com/old", enabled=False))
    store.add_source(_source("initech", "https://initech.example/rss", enabled=False))

    assert store.list_tenants() == ["acme", "globex"]
    sources = store.list_enabled_sources("acme")
    assert [s.id for s in sources] == [acme.id]
    assert sources[0].feed_type == FeedType.IR_NEWS


def test_record_source_outcome_updates_health(session_factory):
    store = SqlReleaseStore(session_factory)
    source = store.add_source(_source("acme", "https://ir.acme.com/rss"))

    store.record_source_outcome(source.id, success=True, fetched_at=NOW)
    updated = store.record_source_outcome(source.id, success=False, error="FeedUnreachable: 503", fetched_at=NOW)

    assert updated.fetch_count == 2
    assert updated.success_count == 1
    assert updated.success_rate == pytest.approx(0.5)
    assert updated.last_error == "FeedUnreachable: 503"

    reloaded = store.list_enabled_sources("acme")[0]
    assert reloaded.success_rate == pytest.approx(0.5)
    assert reloaded.last_fetched_at == NOW


def test_record_outcome_for_unknown_source_raises(session_factory):
    with pytest.raises(KeyError):
        SqlReleaseStore(session_factory).record_source_outcome(str(uuid.uuid4()), success=True)


def test_upsert_counts_only_new_urls(session_factory):
    store = SqlReleaseStore(session_factory)

    assert store.upsert_releases("acme", [_release("https://a.example/1", 1), _release("https://a.example/2", 2)]) == 2
    assert (
        store.upsert_releases("acme", [_release("https://a.example/1", 1, title="Updated"), _release("https://a.example/3", 3)])
        == 1
    )
    assert store.upsert_releases("globex", [_release("https://a.example/1", 1)]) == 1

    with store.session() as session:
        titles = {row.source_url: row.title for row in session.scalars(select(PressRelease).where(PressRelease.tenant_id == "acme"))}
    assert titles["https://a.example/1"] == "Updated"
    assert len(titles) == 3


def test_list_releases_since_returns_stored_origin(session_factory):
    store = SqlReleaseStore(session_factory)
    store.upsert_releases("acme", [_release("https://a.example/new", 1), _release("https://a.example/old", 24 * 40)])

    releases = store.list_releases_since("acme", NOW - timedelta(days=30))

    assert [r.source_url for r in releases] == ["https://a.example/new"]
    assert releases[0].origin == Origin.STORED
    assert releases[0].published_at.tzinfo is not None
    assert releases[0].id == release_id("https://a.example/new")


def test_job_recorder_records_success_and_failure(session_factory):
    store = SqlReleaseStore(session_factory)

    with store.job_recorder(tenant_id="acme", task_name="newswire.tasks.poll.poll_feeds", trace_id="t-1") as job:
        job.stats = {"new_items": 3}

    with pytest.raises(RuntimeError):
        with store.job_recorder(tenant_id=None, task_name="newswire.tasks.poll.poll_feeds"):
            raise RuntimeError("boom")

    with store.session() as session:
        jobs = {job.trace_id: job for job in session.scalars(select(JobRun))}
    assert jobs["t-1"].status == JobStatus.SUCCEEDED
    assert jobs["t-1"].stats == {"new_items": 3}
    assert jobs[None].status == JobStatus.FAILED
    assert jobs[None].error_code == "RuntimeError"
    assert jobs[None].error_message == "boom"


def test_in_memory_store_matches_protocol():
    source = _source("acme", "https://ir.acme.com/rss")
    store = InMemoryReleaseStore(sources=[source])

    assert store.list_tenants() == ["acme"]
    assert store.upsert_releases("acme", [_release("https://a.example/1", 1)]) == 1
    assert store.upsert_releases("acme", [_release("https://a.example/1", 1)]) == 0
    assert store.list_releases("acme")[0].origin == Origin.STORED

    updated = store.record_source_outcome(source.id, success=False, error="x" * 600, fetched_at=NOW)
    assert len(updated.last_error) == 512
    assert store.get_source(source.id).success_rate == 0.0


def test_retire_releases_before_hides_old_rows_from_lookback(session_factory):
    store = SqlReleaseStore(session_factory)
    store.upsert_releases("acme", [_release("https://a.example/new", 1), _release("https://a.example/old", 24 * 31)])
    store.upsert_releases("globex", [_release("https://g.example/old", 24 * 31)])
    cutoff = NOW - timedelta(days=30)

    assert store.retire_releases_before("acme", cutoff) == 1
    assert store.retire_releases_before("acme", cutoff) == 0

    visible = store.list_releases_since("acme", NOW - timedelta(days=60))
    assert [r.source_url for r in visible] == ["https://a.example/new"]
    assert len(store.list_releases_since("globex", NOW - timedelta(days=60))) == 1
    with store.session() as session:
        rows = {row.source_url: row for row in session.scalars(select(PressRelease))}
    assert rows["https://a.example/old"].retired_at is not None
    assert rows["https://g.example/old"].retired_at is None


def test_source_variations_and_relevance_round_trip(session_factory):
    store = SqlReleaseStore(session_factory)
    source = _source("acme", "https://ir.acme.com/rss").model_copy(
        update={"company_name": "Acme Corp", "company_variations": ["ACME", "Acme Corporation"]}
    )
    store.add_source(source)
    release = _release("https://a.example/1", 1).model_copy(
        update={"matched_company_name": "Acme Corp", "relevance_score": 180}
    )
    store.upsert_releases("acme", [release])

    loaded = store.list_enabled_sources("acme")[0]
    assert loaded.company_variations == ["ACME", "Acme Corporation"]
    stored = store.list_releases_since("acme", NOW - timedelta(days=1))[0]
    assert stored.relevance_score == 180
    assert stored.matched_company_name == "Acme Corp"


def test_in_memory_retirement():
    store = InMemoryReleaseStore()
    store.upsert_releases("acme", [_release("https://a.example/new", 1), _release("https://a.example/old", 24 * 31)])

    assert store.retire_releases_before("acme", NOW - timedelta(days=30)) == 1
    assert [r.source_url for r in store.list_releases("acme")] == ["https://a.example/new"]
    assert store.retire_releases_before("globex", NOW - timedelta(days=30)) == 0
