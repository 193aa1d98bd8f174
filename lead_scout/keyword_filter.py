"""
Keyword pre-filter.

Cheap, local gate in front of the paid classifier calls. Matching is
case-insensitive and comes in two modes:

- substring (default): keyword contained anywhere in the lowercased text
- word: keyword must sit on word boundaries ("hire" does not match "hired")

An empty keyword list matches nothing. An unconfigured subscription must
never push its whole topic stream into classification.
"""

import re
from enum import Enum
from functools import lru_cache
from typing import Iterable, List, Optional, Union

from lead_scout.db.models import ContentItem

MIN_KEYWORD_LENGTH = 2
MAX_KEYWORDS = 20


class MatchMode(str, Enum):
    SUBSTRING = "substring"
    WORD = "word"


@lru_cache(maxsize=512)
def _word_pattern(keyword: str) -> "re.Pattern[str]":
    return re.compile(rf"\b{re.escape(keyword)}\b", re.IGNORECASE)


def matches(
    text: Optional[str],
    keywords: Iterable[str],
    mode: MatchMode = MatchMode.SUBSTRING,
) -> bool:
    """True if any keyword occurs in text. Stops at the first hit."""
    if not text:
        return False

    haystack = text.lower()
    for raw in keywords:
        keyword = (raw or "").strip().lower()
        if not keyword:
            continue
        if mode == MatchMode.WORD:
            if _word_pattern(keyword).search(haystack):
                return True
        elif keyword in haystack:
            return True
    return False


def first_match(
    text: Optional[str],
    keywords: Iterable[str],
    mode: MatchMode = MatchMode.SUBSTRING,
) -> Optional[str]:
    """The first keyword that matches, for logging. None if nothing matched."""
    for raw in keywords:
        if matches(text, [raw], mode):
            return raw.strip()
    return None


def matches_item(
    item: ContentItem,
    keywords: Iterable[str],
    mode: MatchMode = MatchMode.SUBSTRING,
) -> bool:
    """Match against the post's title and body together."""
    return matches(item.text, keywords, mode)


def clean_keywords(raw: Union[str, Iterable[str], None]) -> List[str]:
    """Normalize a keyword configuration.

    Accepts a comma-separated string or a list. Trims each entry, drops
    anything shorter than MIN_KEYWORD_LENGTH, removes case-insensitive
    duplicates (first spelling wins), and keeps at most MAX_KEYWORDS.
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        raw = raw.split(",")

    cleaned: List[str] = []
    seen = set()
    for entry in raw:
        keyword = (entry or "").strip()
        if len(keyword) < MIN_KEYWORD_LENGTH:
            continue
        key = keyword.lower()
        if key in seen:
            continue
        seen.add(key)
        cleaned.append(keyword)
        if len(cleaned) >= MAX_KEYWORDS:
            break
    return cleaned
