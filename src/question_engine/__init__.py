"""Personalised next-research-question suggestions.

Four independent candidate generators (knowledge graph, query patterns, LLM,
collaborative filtering) are fanned out concurrently, then formatted,
de-duplicated by embedding similarity, scored, diversity-balanced, ranked,
persisted and cached.
"""

__version__ = "0.1.0"

from .models import QuestionCategory, RankedQuestion, ScoreBreakdown, SourceType
from .orchestrator import QuestionOrchestrator

__all__ = [
    "QuestionCategory",
    "QuestionOrchestrator",
    "RankedQuestion",
    "ScoreBreakdown",
    "SourceType",
    "__version__",
]
