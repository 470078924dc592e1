"""Company relevance scoring for feed items.

Each item is scored against the tenant's companies (name plus variations);
the best positive score names the matched company.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from newswire.models.domain import FeedSource, FeedType

SOURCE_MATCH_SCORE = 200
TITLE_NAME_SCORE = 100
DESCRIPTION_NAME_SCORE = 50
TITLE_VARIATION_SCORE = 80
DESCRIPTION_VARIATION_SCORE = 40
MENTION_BONUS = 10

# Feeds published by the company itself
OWN_FEED_TYPES = (FeedType.IR_NEWS, FeedType.SEC_FILINGS)


@dataclass(frozen=True)
class CompanyProfile:
    name: str
    variations: Tuple[str, ...] = ()
    company_id: Optional[str] = None


@dataclass(frozen=True)
class CompanyMatch:
    company: Optional[CompanyProfile]
    score: int

    @property
    def name(self) -> Optional[str]:
        return self.company.name if self.company else None


NO_MATCH = CompanyMatch(company=None, score=0)


def companies_from_sources(sources: Iterable[FeedSource]) -> List[CompanyProfile]:
    """Company roster of a tenant, one profile per company name (case-insensitive)."""
    by_name: dict[str, CompanyProfile] = {}
    for source in sources:
        name = (source.company_name or "").strip()
        if not name:
            continue
        key = name.lower()
        variations = [v.strip() for v in source.company_variations if v.strip()]
        current = by_name.get(key)
        if current is None:
            by_name[key] = CompanyProfile(name=name, variations=tuple(dict.fromkeys(variations)), company_id=source.company_id)
        else:
            merged = tuple(dict.fromkeys([*current.variations, *variations]))
            by_name[key] = CompanyProfile(name=current.name, variations=merged, company_id=current.company_id or source.company_id)
    return list(by_name.values())


def score_company(title: str, description: str, company: CompanyProfile) -> int:
    title_lower = (title or "").lower()
    description_lower = (description or "").lower()
    name = company.name.lower()

    score = 0
    if name in title_lower:
        score += TITLE_NAME_SCORE
    if name in description_lower:
        score += DESCRIPTION_NAME_SCORE
    for variation in company.variations:
        variation_lower = variation.lower()
        if variation_lower in title_lower:
            score += TITLE_VARIATION_SCORE
        if variation_lower in description_lower:
            score += DESCRIPTION_VARIATION_SCORE
    mentions = title_lower.count(name) + description_lower.count(name)
    return score + (mentions - 1) * MENTION_BONUS


def match_company(
    title: str,
    description: str,
    companies: Iterable[CompanyProfile],
    *,
    source: Optional[FeedSource] = None,
) -> CompanyMatch:
    roster = list(companies)
    if source is not None and source.feed_type in OWN_FEED_TYPES:
        names = {n.strip().lower() for n in (source.company_name, source.display_name) if n}
        for company in roster:
            if company.name.lower() in names:
                return CompanyMatch(company=company, score=SOURCE_MATCH_SCORE)

    best = NO_MATCH
    for company in roster:
        score = score_company(title, description, company)
        if score > best.score:
            best = CompanyMatch(company=company, score=score)
    return best
