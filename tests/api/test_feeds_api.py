from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from newswire.components import build_components, reset_components, set_components
from newswire.errors import PermanentError
from newswire.repositories.releases import InMemoryReleaseStore
from newswire.services.validator import FeedValidator
from newswire.settings import Settings

FEED = """<?xml version="1.0"?>
<rss version="2.0"><channel><title>Globex Investor Relations RSS</title>
  <item><title>Globex Q4</title><link>https://investors.globex.com/news/q4</link></item>
</channel></rss>
"""


def _fetch(url: str) -> str:
    if url == "https://investors.globex.com/rss/press":
        return FEED
    raise PermanentError("Feed 오류: 404")


@pytest.fixture()
def client() -> TestClient:
    settings = Settings(NEWSWIRE_REDIS_URL="redis://localhost:6379/0", POSTGRES_DSN="sqlite://")
    components = build_components(settings, store=InMemoryReleaseStore())
    components.validator = FeedValidator(fetcher=_fetch)
    set_components(components)
    from api.main import app

    yield TestClient(app)
    reset_components()


def test_validate_reachable_feed(client):
    response = client.post("/api/feeds/validate", json={"url": " https://investors.globex.com/rss/press "})

    assert response.status_code == 200
    body = response.json()
    assert body["valid"] is True
    assert body["title"] == "Globex Investor Relations RSS"
    assert body["item_count"] == 1
    assert body["detected_type"] == "ir-news"
    assert body["suggested_name"] == "Globex Investor Relations"
    assert body["timestamp"]


def test_validate_unreachable_feed_is_reported_not_raised(client):
    response = client.post("/api/feeds/validate", json={"url": "https://globex.example/missing.xml"})

    assert response.status_code == 200
    body = response.json()
    assert body["valid"] is False
    assert "404" in body["error"]
    assert body["suggested_name"] == "Globex Example"


def test_validate_bad_scheme(client):
    response = client.post("/api/feeds/validate", json={"url": "ftp://globex.example/feed"})

    assert response.status_code == 200
    assert response.json()["error"] == "URL must use HTTP or HTTPS protocol"


def test_validate_requires_url(client):
    assert client.post("/api/feeds/validate", json={}).status_code == 422
