"""Small text heuristics shared by the pattern and collaborative generators."""

from __future__ import annotations

import re
from typing import Iterable

from question_engine.constants import COMPARISON_KEYWORDS, KEYWORDS_PER_QUERY, STOPWORDS
from question_engine.models import QuestionCategory

_NON_WORD = re.compile(r"[^\w\s-]")

# first matching rule wins
_CATEGORY_RULES: tuple[tuple[QuestionCategory, tuple[str, ...]], ...] = (
    (QuestionCategory.COMPARISON, ("compare", "vs", "versus", "difference")),
    (QuestionCategory.TREND, ("latest", "recent", "new", "emerging", "breakthrough")),
    (QuestionCategory.DEEPENING, ("how does", "mechanism", "why", "what causes")),
    (QuestionCategory.PRACTICAL, ("clinical", "patient", "treatment", "therapy")),
    (QuestionCategory.BRIDGING, ("relationship", "connection", "link", "related")),
)


def extract_keywords(text: str, limit: int = KEYWORDS_PER_QUERY) -> list[str]:
    """First ``limit`` words longer than three characters that are not stopwords."""
    words = _NON_WORD.sub(" ", text.lower()).split()
    return [w for w in words if len(w) > 3 and w not in STOPWORDS][:limit]


def jaccard(a: Iterable[str], b: Iterable[str]) -> float:
    sa, sb = set(a), set(b)
    union = sa | sb
    if not union:
        return 0.0
    return len(sa & sb) / len(union)


def is_comparison(texts: Iterable[str]) -> bool:
    # substring match, so "vs" also fires inside longer words
    return any(kw in t.lower() for t in texts for kw in COMPARISON_KEYWORDS)


def infer_category(text: str) -> QuestionCategory:
    lowered = text.lower()
    for category, needles in _CATEGORY_RULES:
        if any(n in lowered for n in needles):
            return category
    return QuestionCategory.EXPLORATION
