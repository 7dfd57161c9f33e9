from __future__ import annotations

import math

# Pipeline thresholds
DEDUP_THRESHOLD = 0.85
CLUSTER_THRESHOLD = 0.75

# Diversity penalties
CATEGORY_REPEAT_PENALTY = 0.15
CLUSTER_REPEAT_PENALTY = 0.2

# Final score weights (must sum to 1.0)
SCORE_WEIGHTS: dict[str, float] = {
    "relevance": 0.35,
    "novelty": 0.20,
    "actionability": 0.20,
    "impact": 0.15,
    "diversity": 0.10,
}
assert math.isclose(sum(SCORE_WEIGHTS.values()), 1.0), "score weights must sum to 1.0"

# Scoring defaults
DEFAULT_RELEVANCE = 0.5
DEFAULT_NOVELTY = 1.0
DEFAULT_IMPACT = 0.5
NOVELTY_HISTORY_SIZE = 10

ACTIONABILITY_BASE = 0.5
ACTIONABILITY_MIN_WORDS = 5
ACTIONABILITY_MAX_WORDS = 25
VAGUE_PHRASES: tuple[str, ...] = (
    "everything about",
    "all aspects of",
    "complete guide to",
    "cure cancer",
    "solve",
)
ACTIONABLE_TERMS: tuple[str, ...] = (
    "latest",
    "recent",
    "current",
    "effective",
    "mechanism",
    "role",
    "impact",
    "relationship",
    "compare",
    "development",
)

# Ranking
DEFAULT_LIMIT = 5
MIN_RETAINED = 10

# Pattern generator
PATTERN_HISTORY_SIZE = 20
PATTERN_WINDOW = 5
KEYWORDS_PER_QUERY = 5
DEEP_DIVE_OVERLAP = 0.7
EXPLORATION_OVERLAP = 0.3
STOPWORDS: frozenset[str] = frozenset(
    {
        "the", "a", "an", "in", "on", "at", "for", "to", "of", "and", "or",
        "how", "what", "when", "where", "why", "which", "who",
        "is", "are", "was", "were", "be", "been", "being",
    }
)
COMPARISON_KEYWORDS: tuple[str, ...] = (
    "vs",
    "versus",
    "compare",
    "comparison",
    "difference",
    "better",
    "alternative",
    "instead",
)

# LLM generator
LLM_QUESTION_COUNT = 10
LLM_COLD_START_COUNT = 5
LLM_MAX_TOKENS = 3000
LLM_TEMPERATURE = 0.8
LLM_COLD_START_MAX_TOKENS = 2000
LLM_COLD_START_TEMPERATURE = 0.7
PRIORITY_SCORES: dict[str, float] = {"high": 0.9, "medium": 0.7, "low": 0.5}
DEFAULT_PRIORITY = "medium"

# Collaborative generator
PEER_WEIGHTS: dict[str, float] = {
    "interests": 0.25,
    "areas": 0.25,
    "queries": 0.30,
    "techniques": 0.10,
    "expertise": 0.10,
}
PEER_MIN_SIMILARITY = 0.3
PEER_LIMIT = 5
PEER_QUERY_SAMPLE = 5
PEER_LOOKBACK_DAYS = 30
PEER_NEAR_DUPLICATE = 0.8
PEER_SCORE_FACTOR = 0.8
COLLABORATIVE_LIMIT = 5
TRENDING_LOOKBACK_DAYS = 7
TRENDING_PREFIX_CHARS = 50
TRENDING_MIN_GROUP = 2

# Graph generator
FOOTPRINT_QUERY_LIMIT = 50
