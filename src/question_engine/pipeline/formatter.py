from __future__ import annotations

import logging
from typing import Any, Iterable

from question_engine.constants import DEFAULT_IMPACT
from question_engine.models import Candidate, QuestionCategory, SourceType

logger = logging.getLogger(__name__)


def _field(raw: Any, *names: str) -> Any:
    """First non-None value among ``names``, read from a mapping or an object."""
    for name in names:
        if isinstance(raw, dict):
            value = raw.get(name)
        else:
            value = getattr(raw, name, None)
        if value is not None:
            return value
    return None


def format_candidate(raw: Any) -> Candidate | None:
    """Normalise one generator result. Returns None when it has no question text."""
    question = str(_field(raw, "question") or "").strip()
    if not question:
        return None

    score = _field(raw, "base_score", "baseScore", "score")
    try:
        base = DEFAULT_IMPACT if score is None else min(max(float(score), 0.0), 1.0)
    except (TypeError, ValueError):
        base = DEFAULT_IMPACT

    ids = _field(raw, "source_ids", "sourceIds", "source_query_ids", "sourceQueryIds") or []
    return Candidate(
        question=question,
        category=QuestionCategory.parse(_field(raw, "category", "type")),
        reasoning=str(_field(raw, "reasoning") or ""),
        base_score=base,
        source_type=SourceType.parse(_field(raw, "source_type", "sourceType")),
        source_ids=[str(i) for i in ids],
    )


def format_candidates(raw: Iterable[Any]) -> list[Candidate]:
    out: list[Candidate] = []
    dropped = 0
    for item in raw:
        cand = format_candidate(item)
        if cand is None:
            dropped += 1
            continue
        out.append(cand)
    if dropped:
        logger.debug("Dropped %d candidates without question text", dropped)
    return out
