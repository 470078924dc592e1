from __future__ import annotations

import uuid

import pytest

from newswire.models.domain import FeedSource, FeedType
from newswire.services.matcher import (
    NO_MATCH,
    SOURCE_MATCH_SCORE,
    CompanyProfile,
    companies_from_sources,
    match_company,
    score_company,
)

ACME = CompanyProfile(name="Acme Corp", variations=("ACME", "Acme Corporation"), company_id="c-acme")
GLOBEX = CompanyProfile(name="Globex", variations=("GBX",), company_id="c-globex")


def _source(name: str, company: str | None = None, variations=(), feed_type=FeedType.GENERAL_NEWS) -> FeedSource:
    return FeedSource(
        id=str(uuid.uuid4()),
        tenant_id="t-1",
        url=f"https://feeds.example/{name.lower().replace(' ', '-')}",
        display_name=name,
        feed_type=feed_type,
        company_id=f"id-{company}" if company else None,
        company_name=company,
        company_variations=list(variations),
    )


@pytest.mark.parametrize(
    "title, description, expected",
    [
        # name in title (100) + variation "acme" in title (80), one mention
        ("Acme Corp raises guidance", "", 180),
        # name in description only (50) + variation in description (40)
        ("Quarterly update", "Acme Corp reported results.", 90),
        # variation only, no name mention penalises by one bonus step
        ("ACME shares jump", "", 70),
        # title and description mentions add a bonus per extra mention
        ("Acme Corp and Acme Corp partners", "Acme Corp said", 100 + 50 + 80 + 40 + 20),
        ("Markets close higher", "Stocks rose.", -10),
    ],
)
def test_score_company(title, description, expected):
    assert score_company(title, description, ACME) == expected


def test_best_scoring_company_wins():
    match = match_company("Globex to buy GBX unit", "Globex said on Monday.", [ACME, GLOBEX])

    assert match.company == GLOBEX
    assert match.name == "Globex"
    assert match.score == 100 + 50 + 80 + 10


def test_no_positive_score_means_no_match():
    assert match_company("Markets close higher", "Stocks rose.", [ACME, GLOBEX]) == NO_MATCH
    assert match_company("Acme Corp results", "", []) == NO_MATCH


def test_company_feed_matches_its_own_company():
    source = _source("Acme IR", company="Acme Corp", feed_type=FeedType.IR_NEWS)

    match = match_company("Board declares dividend", "", [GLOBEX, ACME], source=source)

    assert match.company == ACME
    assert match.score == SOURCE_MATCH_SCORE


def test_company_feed_rule_uses_display_name():
    source = _source("Globex", feed_type=FeedType.SEC_FILINGS)

    assert match_company("Form 8-K", "", [ACME, GLOBEX], source=source).company == GLOBEX


def test_general_feed_is_scored_not_trusted():
    source = _source("Acme IR", company="Acme Corp", feed_type=FeedType.GENERAL_NEWS)

    match = match_company("Globex opens plant", "", [ACME, GLOBEX], source=source)

    assert match.company == GLOBEX


def test_companies_from_sources_merges_by_name():
    sources = [
        _source("Acme IR", company="Acme Corp", variations=["ACME", " "]),
        _source("Acme SEC", company="acme corp", variations=["Acme Corporation", "ACME"]),
        _source("Wire"),
        _source("Globex IR", company="Globex"),
    ]

    roster = companies_from_sources(sources)

    assert [c.name for c in roster] == ["Acme Corp", "Globex"]
    assert roster[0].variations == ("ACME", "Acme Corporation")
    assert roster[0].company_id == "id-Acme Corp"
