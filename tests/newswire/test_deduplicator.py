from datetime import datetime, timedelta, timezone

from newswire.models.domain import FeedItem, MergedRelease, Origin
from newswire.services.deduplicator import (
    content_hash,
    make_summary,
    merge,
    release_from_feed_item,
    release_id,
)

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)
URL = "https://www.prnewswire.com/news-releases/acme-q1-302.html"


def _release(url: str, origin: Origin, age: timedelta, title: str = "Acme Q1") -> MergedRelease:
    published = NOW - age
    return MergedRelease(
        id=release_id(url),
        title=title,
        content=f"{title} body",
        summary=title,
        source_url=url,
        published_at=published,
        origin=origin,
        content_hash=content_hash(title, f"{title} body", published),
    )


def test_fresh_live_item_replaces_stored_copy():
    live = _release(URL, Origin.RSS, timedelta(hours=2), title="Acme Q1 (updated)")
    stored = _release(URL, Origin.STORED, timedelta(hours=3))

    merged = merge([live], [stored], now=NOW)

    assert len(merged) == 1
    assert merged[0].origin == Origin.RSS
    assert merged[0].title == "Acme Q1 (updated)"


def test_live_and_stored_with_same_timestamp_merge_to_live_copy():
    live = _release(URL, Origin.RSS, timedelta(hours=2))
    stored = _release(URL, Origin.STORED, timedelta(hours=2))

    merged = merge([live], [stored], now=NOW)

    assert len(merged) == 1
    assert merged[0].origin == Origin.RSS
    assert merged[0].published_at == NOW - timedelta(hours=2)


def test_duplicate_urls_within_live_list_keep_first_seen():
    first = _release(URL, Origin.RSS, timedelta(hours=1), title="Acme Q1 first")
    second = _release(URL, Origin.RSS, timedelta(minutes=10), title="Acme Q1 second")
    other = _release("https://ir.acme.com/news/2", Origin.RSS, timedelta(hours=3))

    merged = merge([first, second, other], [], now=NOW)

    assert [r.source_url for r in merged] == [URL, "https://ir.acme.com/news/2"]
    assert merged[0].title == "Acme Q1 first"


def test_stale_live_item_keeps_stored_copy():
    live = _release(URL, Origin.RSS, timedelta(days=10))
    stored = _release(URL, Origin.STORED, timedelta(days=10))

    merged = merge([live], [stored], now=NOW, recency_days=7)

    assert [r.origin for r in merged] == [Origin.STORED]


def test_merge_is_idempotent_and_url_unique():
    live = [
        _release(URL, Origin.RSS, timedelta(hours=1)),
        _release(URL + " ", Origin.RSS, timedelta(hours=1)),
        _release("https://ir.acme.com/news/2", Origin.RSS, timedelta(hours=5)),
    ]
    stored = [
        _release(URL, Origin.STORED, timedelta(days=1)),
        _release("https://ir.acme.com/news/old", Origin.STORED, timedelta(days=20)),
    ]

    first = merge(live, stored, now=NOW)
    again = merge(
        [r for r in first if r.origin == Origin.RSS],
        [r for r in first if r.origin == Origin.STORED],
        now=NOW,
    )

    urls = [r.source_url.strip() for r in first]
    assert len(urls) == len(set(urls)) == 3
    assert again == first


def test_merge_sorts_newest_first_with_url_tiebreak():
    a = _release("https://a.example/1", Origin.RSS, timedelta(hours=1))
    b = _release("https://b.example/1", Origin.RSS, timedelta(hours=1))
    old = _release("https://c.example/1", Origin.STORED, timedelta(days=3))

    merged = merge([a, old], [b], now=NOW)

    assert [r.source_url for r in merged] == [
        "https://b.example/1",
        "https://a.example/1",
        "https://c.example/1",
    ]


def test_release_from_feed_item_uses_resolved_url_and_summarizes():
    item = FeedItem(
        title="Acme reports record revenue",
        description="<p>" + "Revenue grew strongly. " * 20 + "</p>",
        published_at=NOW,
        link="https://news.google.com/rss/articles/abc",
        source_feed_url="https://news.google.com/rss/search?q=acme",
    )

    release = release_from_feed_item(item, source_url=URL, company_id="c-1", company_name="Acme Corp")

    assert release.source_url == URL
    assert release.id == release_id(URL)
    assert release.origin == Origin.RSS
    assert release.matched_company_name == "Acme Corp"
    assert "<p>" not in release.content
    assert len(release.summary) <= 200
    assert release.summary.endswith("...")


def test_extracted_content_overrides_description():
    item = FeedItem(
        title="Acme",
        description="Short teaser",
        published_at=NOW,
        link=URL,
        source_feed_url="https://ir.acme.com/rss",
    )

    release = release_from_feed_item(item, content="<p>Full body</p>")

    assert release.content == "<p>Full body</p>"
    assert release.summary == "Short teaser"


def test_content_hash_ignores_case_and_whitespace():
    assert content_hash("Acme  Q1", "Body\ntext", NOW) == content_hash("acme q1", " body text ", NOW)
    assert content_hash("Acme Q1", "Body", NOW) != content_hash("Acme Q1", "Body", NOW - timedelta(days=1))


def test_make_summary_short_text_untouched():
    assert make_summary("  Short   text ") == "Short text"
