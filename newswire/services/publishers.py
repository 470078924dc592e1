"""Publisher profiles used by the content extractor."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple
from urllib.parse import urlparse


@dataclass(frozen=True)
class PublisherProfile:
    key: str
    name: str
    selectors: Tuple[str, ...]
    cleanup: Tuple[str, ...] = field(default_factory=tuple)
    confidence: float = 0.6


REUTERS = PublisherProfile(
    key="reuters.com",
    name="Reuters",
    selectors=(
        '[data-module="ArticleBody"] [data-module="StandardArticleBody_body"]',
        '[data-testid="paragraph"]',
        ".StandardArticleBody_body",
        ".ArticleBodyWrapper",
        ".StandardArticleBody_container",
        'div[data-module="ArticleBody"]',
        ".PaywallBarrier-free-content",
        ".article-body",
        ".story-body",
    ),
    cleanup=(
        ".RelatedCoverage-container",
        ".Attribution-container",
        ".AdSlot-container",
        ".SocialEmbed-container",
        ".Slideshow-container",
        ".MediaPlayer-container",
        ".InlineVideo-container",
        ".trust-project-component",
        ".paywall-bar",
        ".related-coverage",
        ".social-share",
        ".advertisement",
        ".ad-container",
    ),
    confidence=0.9,
)

PR_NEWSWIRE = PublisherProfile(
    key="prnewswire.com",
    name="PR Newswire",
    selectors=(
        ".release-body",
        ".news-release-content",
        ".release-text",
        ".pr-body",
        ".content-body",
        ".press-release-content",
        ".release-content",
    ),
    cleanup=(
        ".social-share",
        ".related-releases",
        ".contact-info",
        ".footer-content",
        ".advertisement",
        ".ad-container",
    ),
    confidence=0.85,
)

BLOOMBERG = PublisherProfile(
    key="bloomberg.com",
    name="Bloomberg",
    selectors=(
        '[data-module="BodyWrapper"]',
        ".body-content",
        ".story-body",
        ".article-content",
    ),
    cleanup=(
        ".inline-newsletter",
        ".related-stories",
        ".social-icons",
        ".advertisement",
        ".ad-container",
    ),
    confidence=0.88,
)

WSJ = PublisherProfile(
    key="wsj.com",
    name="Wall Street Journal",
    selectors=(
        ".wsj-article-body",
        ".articleLead-container",
        ".article-content",
        ".story-body",
    ),
    cleanup=(
        ".wsj-article-credit-tagline",
        ".related-coverage-module",
        ".social-share",
        ".advertisement",
        ".ad-container",
    ),
    confidence=0.87,
)

GENERIC = PublisherProfile(
    key="generic",
    name="Generic",
    selectors=(
        "article",
        ".article-content",
        ".article-body",
        ".story-content",
        ".story-body",
        ".post-content",
        ".entry-content",
        ".content",
        "main",
        ".main-content",
        "#main-content",
    ),
    cleanup=(
        "nav",
        "header",
        "footer",
        "aside",
        ".sidebar",
        ".navigation",
        ".social-share",
        ".related-articles",
        ".advertisement",
        ".ad-container",
        ".comments",
        ".comment-section",
    ),
    confidence=0.6,
)

PROFILES: Tuple[PublisherProfile, ...] = (REUTERS, PR_NEWSWIRE, BLOOMBERG, WSJ)


def _host_of(hint: str) -> str:
    value = hint.strip().lower()
    if "://" in value:
        value = urlparse(value).hostname or ""
    else:
        value = value.split("/", 1)[0]
    return value.split(":", 1)[0]


def detect_publisher(hint: Optional[str]) -> PublisherProfile:
    """Map a domain or URL to its publisher profile, ``GENERIC`` when unknown."""
    if not hint:
        return GENERIC
    host = _host_of(hint)
    for profile in PROFILES:
        if host == profile.key or host.endswith("." + profile.key):
            return profile
    return GENERIC


def supported_sources() -> List[str]:
    return [profile.key for profile in PROFILES]


def is_supported_source(url: str) -> bool:
    return detect_publisher(url) is not GENERIC
