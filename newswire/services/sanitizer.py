"""Allow-list HTML sanitizer and text projection for extracted content."""

from __future__ import annotations

from typing import Iterable, Tuple

from bs4 import BeautifulSoup, Comment, Declaration, Doctype, ProcessingInstruction

from .quality import normalize_text

ALLOWED_TAGS = frozenset({"p", "strong", "em", "a", "ul", "ol", "li", "blockquote", "br"})
ALLOWED_ATTRS = ("href", "target")
RENAMED_TAGS = {"b": "strong", "i": "em"}
# Removed together with their content; everything else outside the allow-list is unwrapped.
DROPPED_TAGS = (
    "script",
    "style",
    "noscript",
    "iframe",
    "template",
    "img",
    "svg",
    "canvas",
    "form",
    "button",
    "input",
    "select",
    "textarea",
    "object",
    "embed",
    "video",
    "audio",
    "head",
    "title",
    "meta",
    "link",
)
_NON_CONTENT_STRINGS = (Comment, Doctype, Declaration, ProcessingInstruction)


def decompose_all(soup: BeautifulSoup, names: Iterable[str]) -> None:
    for tag in soup.find_all(list(names)):
        if not tag.decomposed:
            tag.decompose()


def _clean_href(value) -> str:
    href = (value[0] if isinstance(value, list) and value else value or "").strip()
    if href.lower().replace(" ", "").startswith(("javascript:", "vbscript:", "data:")):
        return ""
    return href


def sanitize_html(fragment: str) -> str:
    soup = BeautifulSoup(fragment or "", "html.parser")
    for node in soup.find_all(string=lambda s: isinstance(s, _NON_CONTENT_STRINGS)):
        node.extract()
    decompose_all(soup, DROPPED_TAGS)

    for tag in soup.find_all(True):
        if tag.name in RENAMED_TAGS:
            tag.name = RENAMED_TAGS[tag.name]
        if tag.name not in ALLOWED_TAGS:
            tag.unwrap()
            continue
        kept = {}
        if tag.name == "a":
            for attr in ALLOWED_ATTRS:
                if attr not in tag.attrs:
                    continue
                value = _clean_href(tag.attrs[attr]) if attr == "href" else str(tag.attrs[attr])
                if value:
                    kept[attr] = value
        tag.attrs = kept

    for paragraph in soup.find_all("p"):
        if paragraph.decomposed:
            continue
        if not paragraph.get_text(strip=True):
            paragraph.decompose()
    return soup.decode().strip()


def html_to_text(fragment: str) -> str:
    soup = BeautifulSoup(fragment or "", "html.parser")
    for node in soup.find_all(string=lambda s: isinstance(s, _NON_CONTENT_STRINGS)):
        node.extract()
    decompose_all(soup, DROPPED_TAGS)
    return normalize_text(soup.get_text(" "))


def project(fragment: str) -> Tuple[str, str]:
    """Return ``(sanitized_html, text_content)`` for one candidate fragment."""
    return sanitize_html(fragment), html_to_text(fragment)
