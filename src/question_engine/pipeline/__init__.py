"""Pure(ish) ranking stages: format, dedup, score, diversify, rank."""

from .dedup import deduplicate
from .diversity import apply_diversity
from .formatter import format_candidate, format_candidates
from .ranking import rank
from .scoring import Scorer, actionability

__all__ = [
    "Scorer",
    "actionability",
    "apply_diversity",
    "deduplicate",
    "format_candidate",
    "format_candidates",
    "rank",
]
