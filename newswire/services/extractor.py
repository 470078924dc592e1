"""Content extraction from heterogeneous publisher HTML.

Strategies run in a fixed order and the first candidate that passes the
quality gate wins:

1. ``precise-boundary``: structural start/end markers of known release templates.
2. ``selector:<css>``: hinted publisher selectors, then the generic selector list.
3. ``heuristic:dateline`` then ``heuristic:paragraph-run``.

The document is parsed once with BeautifulSoup; candidates are always taken
from the parse tree so nested containers are balanced.
"""

from __future__ import annotations

import re
from typing import Callable, Iterable, Iterator, List, Optional, Tuple

from bs4 import BeautifulSoup, Tag

from newswire.errors import NoContentFound, QualityRejected
from newswire.models.domain import ExtractedArticle
from newswire.utils.logging import get_logger

from . import publishers
from .publishers import GENERIC, PublisherProfile
from .quality import rejection_reason
from .sanitizer import decompose_all, project

BOUNDARY_METHOD = "precise-boundary"
BOUNDARY_CONFIDENCE = 0.95
HEURISTIC_CONFIDENCE = 0.4
MIN_RUN_PARAGRAPH_CHARS = 100

BOUNDARY_START = 'section.release-body div.row div[class*="col-"]'
ALWAYS_REMOVED = ("script", "style", "noscript", "iframe", "template")

_DATELINE = re.compile(r"^[A-Z][A-Z.'\- ]{1,40},.{0,120}?(?:/PRNewswire/|--|—|–)")
_RUN_TAGS = ("p", "ul", "ol", "blockquote")

Candidate = Tuple[str, str, float]


def _has_class(tag: Tag, name: str) -> bool:
    return name in (tag.get("class") or [])


def _is_end_marker(tag: Tag) -> bool:
    if not isinstance(tag, Tag):
        return False
    if tag.name == "div" and _has_class(tag, "release-footer"):
        return True
    return tag.get("id") == "sourceLink" or _has_class(tag, "company-boilerplate")


def _collect_until_marker(nodes: Iterable, pieces: List[str]) -> bool:
    """Append serialized nodes until an end marker; True when one was reached."""
    for node in nodes:
        if isinstance(node, Tag):
            if _is_end_marker(node):
                return True
            if node.find(_is_end_marker) is not None:
                _collect_until_marker(list(node.children), pieces)
                return True
        pieces.append(str(node))
    return False


class ContentExtractor:
    """Turns raw publisher HTML into an :class:`ExtractedArticle`."""

    def __init__(self) -> None:
        self._logger = get_logger(__name__)

    def extract(self, html: str, source_hint: Optional[str] = None) -> ExtractedArticle:
        if not html or not html.strip():
            raise NoContentFound("empty document")

        profile = publishers.detect_publisher(source_hint)
        soup = BeautifulSoup(html, "html.parser")
        self._cleanup(soup, profile)

        rejected: List[str] = []
        for method, fragment, confidence in self._candidates(soup, profile):
            try:
                sanitized, text = self._accept(fragment)
            except QualityRejected as exc:
                rejected.append(f"{method}={exc}")
                self._logger.debug("extract.rejected", extra={"method": method, "reason": str(exc)})
                continue
            self._logger.info(
                "extract.selected",
                extra={
                    "method": method,
                    "publisher": profile.name,
                    "confidence": confidence,
                    "chars": len(text),
                },
            )
            return ExtractedArticle(
                sanitized_html=sanitized,
                text_content=text,
                extraction_method=method,
                confidence_score=confidence,
            )

        self._logger.info(
            "extract.no_content",
            extra={"publisher": profile.name, "rejected": rejected},
        )
        raise NoContentFound(f"no strategy produced quality content (tried {len(rejected)} candidates)")

    # Public helpers mirroring the publisher registry
    supported_sources = staticmethod(publishers.supported_sources)
    is_supported_source = staticmethod(publishers.is_supported_source)
    detect_publisher = staticmethod(publishers.detect_publisher)

    @staticmethod
    def _accept(fragment: str) -> Tuple[str, str]:
        sanitized, text = project(fragment)
        reason = rejection_reason(text)
        if reason is not None:
            raise QualityRejected(reason)
        return sanitized, text

    @staticmethod
    def _cleanup(soup: BeautifulSoup, profile: PublisherProfile) -> None:
        decompose_all(soup, ALWAYS_REMOVED)
        selectors = list(profile.cleanup)
        if profile is not GENERIC:
            selectors.extend(GENERIC.cleanup)
        for selector in selectors:
            for tag in soup.select(selector):
                if not tag.decomposed:
                    tag.decompose()

    def _candidates(self, soup: BeautifulSoup, profile: PublisherProfile) -> Iterator[Candidate]:
        strategies: List[Callable[[BeautifulSoup, PublisherProfile], Iterator[Candidate]]] = [
            self._boundary_candidates,
            self._selector_candidates,
            self._heuristic_candidates,
        ]
        for strategy in strategies:
            yield from strategy(soup, profile)

    # Strategy 1
    def _boundary_candidates(self, soup: BeautifulSoup, profile: PublisherProfile) -> Iterator[Candidate]:
        start = soup.select_one(BOUNDARY_START)
        if start is None:
            return
        pieces: List[str] = []
        if not _collect_until_marker(list(start.children), pieces):
            section = start.find_parent("section")
            node: Optional[Tag] = start
            while node is not None and node is not section:
                if _collect_until_marker(list(node.next_siblings), pieces):
                    break
                node = node.parent
        yield BOUNDARY_METHOD, "".join(pieces), BOUNDARY_CONFIDENCE

    # Strategy 2
    def _selector_candidates(self, soup: BeautifulSoup, profile: PublisherProfile) -> Iterator[Candidate]:
        ranked: List[Tuple[str, float]] = []
        if profile is not GENERIC:
            ranked.extend((selector, profile.confidence) for selector in profile.selectors)
        ranked.extend((selector, GENERIC.confidence) for selector in GENERIC.selectors)
        seen = set()
        for selector, confidence in ranked:
            if selector in seen:
                continue
            seen.add(selector)
            element = soup.select_one(selector)
            if element is None:
                continue
            yield f"selector:{selector}", element.decode_contents(), confidence

    # Strategy 3
    def _heuristic_candidates(self, soup: BeautifulSoup, profile: PublisherProfile) -> Iterator[Candidate]:
        for paragraph in soup.find_all("p"):
            if not _DATELINE.match(paragraph.get_text(" ", strip=True)):
                continue
            pieces = [str(paragraph)]
            for sibling in paragraph.find_next_siblings():
                if sibling.name not in _RUN_TAGS or _is_end_marker(sibling):
                    break
                pieces.append(str(sibling))
            yield "heuristic:dateline", "".join(pieces), HEURISTIC_CONFIDENCE

        for div in soup.find_all("div"):
            paragraphs = div.find_all("p", recursive=False)
            if any(len(p.get_text(strip=True)) >= MIN_RUN_PARAGRAPH_CHARS for p in paragraphs):
                yield "heuristic:paragraph-run", div.decode_contents(), HEURISTIC_CONFIDENCE
