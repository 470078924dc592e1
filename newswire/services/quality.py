"""Quality gate applied to every extraction candidate.

Pure functions only: the same text always yields the same verdict.
"""

from __future__ import annotations

import re
from typing import Optional

MIN_CHARS = 50
MIN_WORDS = 20
MIN_SENTENCE_MARKS = 2

_BOILERPLATE_START = re.compile(
    r"^(share|follow|subscribe|contact|advertisement|home|news|previous|next|learn more|visit us|for more)\b",
    re.IGNORECASE,
)
_SENTENCE_MARKS = re.compile(r"[.!?]+")
_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    return _WHITESPACE.sub(" ", text or "").strip()


def rejection_reason(text: str) -> Optional[str]:
    """Return why ``text`` fails the gate, or ``None`` when it passes."""
    cleaned = normalize_text(text)
    if len(cleaned) < MIN_CHARS:
        return "too_short"
    if len(cleaned.split(" ")) < MIN_WORDS:
        return "too_few_words"
    if _BOILERPLATE_START.match(cleaned):
        return "boilerplate_start"
    if len(_SENTENCE_MARKS.findall(cleaned)) < MIN_SENTENCE_MARKS:
        return "too_few_sentences"
    return None


def is_quality_content(text: str) -> bool:
    return rejection_reason(text) is None
