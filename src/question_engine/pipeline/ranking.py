from __future__ import annotations

from question_engine.constants import MIN_RETAINED
from question_engine.models import RankedQuestion


def rank(questions: list[RankedQuestion], limit: int) -> tuple[list[RankedQuestion], list[RankedQuestion]]:
    """Sort best-first and split into (retained, returned).

    ``retained`` holds ``max(limit, MIN_RETAINED)`` items for persistence and
    caching; ``returned`` is its first ``limit`` items.
    """
    ordered = sorted(questions, key=lambda q: q.overall_score, reverse=True)
    retained = ordered[: max(limit, MIN_RETAINED)]
    return retained, retained[: max(limit, 0)]
